"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XTOT, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Folder hierarchy reconciliation.

Source systems describe their hierarchy as a flat list of folders. Testomat.io
has two kinds of suites: ``folder`` suites that only contain other suites and
``file`` suites that hold tests. Reconciliation runs in two passes:

1. every folder gets a suite, ``folder`` typed when it has sub-folders and
   ``file`` typed otherwise; a container that also holds tests gets an extra
   ``file`` child for them;
2. once every suite exists, each suite is linked to its parent.

Tests whose folder has no file suite go to a shared "Root" suite that is
created on first use.
"""

import logging
import threading
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Protocol

from xtot.core.errors import ConfigurationError, NotFoundOrSkippable
from xtot.core.logging import ErrorTracker, log_operation
from xtot.models import FolderNode

logger = logging.getLogger("xtot.hierarchy")

ROOT_SUITE_ATTRIBUTES = {
    "title": "Root",
    "file-type": "file",
    "position": 1,
    "emoji": "📂",
}


class SuiteWriter(Protocol):
    """The part of the destination writer the reconciler needs."""

    def create_suite(self, attributes: dict[str, Any]) -> str | None: ...

    def update_suite(self, suite_id: str, attributes: dict[str, Any]) -> Any: ...


@dataclass
class SuiteIdMapping:
    """Source folder id to destination suite id maps."""

    folders: dict[str, str] = field(default_factory=dict)
    files: dict[str, str] = field(default_factory=dict)
    failed: set[str] = field(default_factory=set)
    root_suite_id: str | None = None

    @property
    def suite_count(self) -> int:
        root = 1 if self.root_suite_id else 0
        return len(self.folders) + len(self.files) + root

    def resolve_file_suite(self, folder_id: str | None) -> str | None:
        """File suite holding the tests of a folder, if one was created."""
        if folder_id is None:
            return None
        return self.files.get(str(folder_id))


def select_subtree(folders: list[FolderNode], folder_id: str) -> list[FolderNode]:
    """
    Select a folder and all of its descendants.

    Args:
        folders: The full flat folder list
        folder_id: Id of the folder to keep

    Returns:
        The folder followed by its descendants, depth first

    Raises:
        ConfigurationError: If no folder has the given id
    """
    by_id = {folder.id: folder for folder in folders}
    target = by_id.get(str(folder_id))
    if target is None:
        raise ConfigurationError(f"Folder with ID {folder_id} not found")

    selected = [target]
    seen = {target.id}

    def add_descendants(folder: FolderNode) -> None:
        for child_id in folder.child_folder_ids:
            child = by_id.get(child_id)
            if child is None or child.id in seen:
                continue
            seen.add(child.id)
            selected.append(child)
            add_descendants(child)

    add_descendants(target)
    return selected


class SuiteHierarchyReconciler:
    """
    Creates destination suites for a source folder tree.

    Args:
        writer: Destination writer with ``create_suite``/``update_suite``
        error_tracker: Collects diagnostics for skipped folders
        max_workers: Parallel suite creations in the first pass
        dry_run: Missing ids are expected and not reported as failures
    """

    def __init__(
        self,
        writer: SuiteWriter,
        error_tracker: ErrorTracker | None = None,
        max_workers: int = 1,
        dry_run: bool = False,
    ):
        self.writer = writer
        self.error_tracker = error_tracker or ErrorTracker()
        self.max_workers = max(1, max_workers)
        self.dry_run = dry_run
        self.mapping = SuiteIdMapping()
        self._lock = threading.Lock()
        self._root_attempted = False
        self._known_ids: set[str] = set()

    def reconcile(self, folders: Iterable[FolderNode]) -> SuiteIdMapping:
        """Run both passes over the folder list and return the id maps."""
        folders = list(folders)
        self._known_ids = {folder.id for folder in folders}

        with log_operation(logger, "suite creation", context={"folders": len(folders)}) as ctx:
            self._create_suites([f for f in folders if not f.is_root])
            ctx["folder_suites"] = len(self.mapping.folders)
            ctx["file_suites"] = len(self.mapping.files)

        with log_operation(logger, "suite linking") as ctx:
            ctx["linked"] = self._link_parents(folders)

        return self.mapping

    def _create_suites(self, folders: list[FolderNode]) -> None:
        if self.max_workers == 1:
            for folder in folders:
                self._store(folder, *self._create_folder_suites(folder))
            return

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [
                (folder, executor.submit(self._create_folder_suites, folder)) for folder in folders
            ]
            for folder, future in futures:
                self._store(folder, *future.result())

    def _create_folder_suites(self, folder: FolderNode) -> tuple[str | None, str | None]:
        """Create the suite(s) for one folder; returns (folder suite id, file suite id)."""
        attributes = {
            "title": folder.name,
            "file-type": "folder" if folder.is_container else "file",
        }
        suite_id = self.writer.create_suite(dict(attributes))
        logger.debug(f"Suite created: {folder.name} -> {suite_id}")

        if not folder.is_container:
            return None, suite_id

        file_suite_id = None
        if folder.direct_test_count > 0 and suite_id is not None:
            file_suite_id = self.writer.create_suite(
                {**attributes, "file-type": "file", "parent-id": suite_id}
            )
            logger.debug(f"Suite (file) created: {folder.name} -> {file_suite_id}")
        return suite_id, file_suite_id

    def _store(self, folder: FolderNode, folder_suite_id: str | None, file_suite_id: str | None) -> None:
        with self._lock:
            if folder_suite_id is not None:
                self.mapping.folders[folder.id] = folder_suite_id
            if file_suite_id is not None:
                self.mapping.files[folder.id] = file_suite_id

            if self.dry_run:
                return
            if folder.is_container:
                created = folder_suite_id is not None and (
                    folder.direct_test_count == 0 or file_suite_id is not None
                )
            else:
                created = file_suite_id is not None
            if not created:
                self.mapping.failed.add(folder.id)
                self.error_tracker.record(
                    "WriteFailure",
                    f"Suite for folder '{folder.name}' was not created",
                    {"folder_id": folder.id},
                )

    def _link_parents(self, folders: list[FolderNode]) -> int:
        linked = 0
        for folder in folders:
            if folder.is_root or not folder.has_real_parent:
                continue

            suite_id = self.mapping.folders.get(folder.id) or self.mapping.files.get(folder.id)
            if not suite_id:
                continue

            parent_id = self.mapping.folders.get(folder.parent_id)
            if not parent_id:
                # Parents outside the selected subtree are expected
                if folder.parent_id in self._known_ids and not self.dry_run:
                    self.error_tracker.add_error(
                        NotFoundOrSkippable(f"Parent suite of '{folder.name}' is missing, suite left at top level"),
                        {"folder_id": folder.id, "parent_id": folder.parent_id},
                    )
                continue

            self.writer.update_suite(suite_id, {"parent-id": parent_id})
            linked += 1
        return linked

    def suite_for_folder(self, folder_id: str | None) -> str | None:
        """
        File suite id for the tests of a folder.

        Falls back to the shared Root suite, created on first use, when the
        folder has no file suite of its own. Folders whose suite creation
        failed resolve to None and their tests are skipped.
        """
        suite_id = self.mapping.resolve_file_suite(folder_id)
        if suite_id:
            return suite_id

        if folder_id is not None and str(folder_id) in self.mapping.failed:
            self.error_tracker.add_error(
                NotFoundOrSkippable(f"No suite for folder {folder_id}, its tests are skipped"),
                {"folder_id": str(folder_id)},
            )
            return None

        with self._lock:
            if not self._root_attempted:
                self._root_attempted = True
                self.mapping.root_suite_id = self.writer.create_suite(dict(ROOT_SUITE_ATTRIBUTES))
                if self.mapping.root_suite_id:
                    logger.info(f"Root suite created: {self.mapping.root_suite_id}")
                elif not self.dry_run:
                    self.error_tracker.record(
                        "WriteFailure",
                        "Root suite was not created, tests outside a folder suite are skipped",
                        {"folder_id": folder_id},
                    )
            return self.mapping.root_suite_id
