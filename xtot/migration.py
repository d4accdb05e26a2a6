"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XTOT, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Migration orchestration.

A migration reads the source folder tree, reconciles it into Testomat.io
suites, then migrates the tests folder by folder: create the test, upload its
attachments, rewrite the description, link labels and issues. Problems with a
single test are recorded and the test is skipped; configuration errors and
exhausted rate-limit retries end the run.
"""

import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from rich.progress import Progress

from xtot.attachment_rewriter import TESTRAIL_SCHEME, XRAY_SCHEME, AttachmentReference, AttachmentRewriter
from xtot.core.errors import ConfigurationError, NotFoundOrSkippable, SourceApiError, StructuralAmbiguity
from xtot.core.logging import ErrorTracker, log_operation, migration_run
from xtot.hierarchy import SuiteHierarchyReconciler, select_subtree
from xtot.jira_client import JiraClient
from xtot.models import FolderNode, SourceTestCase, StepAttachment, TestStep
from xtot.priority_mapping import rescale_priorities
from xtot.test_case_transformer import TestCaseTransformer, TransformationResult
from xtot.testomatio_client import TestomatioClient
from xtot.testrail_client import TestRailClient, sections_to_folders
from xtot.xray_client import XraySourceReader

logger = logging.getLogger("xtot.migration")


@dataclass
class MigrationSummary:
    """Counts reported at the end of a run."""

    suites: int = 0
    tests: int = 0
    updated: int = 0
    attachments: int = 0
    labels: int = 0
    issue_links: int = 0
    skipped: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class BaseMigration:
    """Shared steps of the Xray and TestRail migrations."""

    def __init__(
        self,
        writer: TestomatioClient,
        error_tracker: ErrorTracker | None = None,
        max_workers: int = 1,
        progress: Progress | None = None,
    ):
        self.writer = writer
        self.error_tracker = error_tracker or ErrorTracker()
        self.summary = MigrationSummary()
        self.reconciler = SuiteHierarchyReconciler(
            writer, self.error_tracker, max_workers=max_workers, dry_run=writer.dry_run
        )
        self.progress = progress
        self.test_ids: dict[str, str] = {}

    @property
    def dry_run(self) -> bool:
        return self.writer.dry_run

    def skip(self, message: str, context: dict[str, Any] | None = None) -> None:
        """Record a skipped test."""
        self.summary.skipped += 1
        self.error_tracker.add_error(NotFoundOrSkippable(message), context)

    def reconcile(self, folders: list[FolderNode]) -> None:
        self.reconciler.reconcile(folders)
        self.summary.suites = self.reconciler.mapping.suite_count

    def write_test(
        self,
        source_id: str,
        result: TransformationResult,
        suite_id: str | None,
        download=None,
    ) -> str | None:
        """
        Create one test and finish it: attachments, description, labels.

        Returns:
            The destination test id, or None when nothing was written
        """
        test_id = self.writer.create_test({**result.attributes, "suite-id": suite_id})
        if test_id is None:
            if self.dry_run:
                self.summary.tests += 1
            else:
                self.skip(f"Test '{result.attributes.get('title')}' was not created", {"source_id": source_id})
            return None

        self.test_ids[source_id] = test_id
        self.summary.tests += 1
        logger.info(f"Test created: {result.attributes.get('title')}")

        rewriter = AttachmentRewriter(
            upload=lambda path, name: self.writer.upload_attachment(test_id, path, name),
            download=download,
            error_tracker=self.error_tracker,
        )
        description = rewriter.resolve(result.description, result.placeholders)
        self.summary.attachments += rewriter.uploaded

        if description != result.attributes.get("description"):
            self.writer.update_test(test_id, {"description": description})
            self.summary.updated += 1

        for title, value, field_type in result.labels:
            label_id = self.writer.ensure_label(title, field_type)
            if label_id and self.writer.link_label(label_id, test_id, value):
                self.summary.labels += 1

        return test_id

    def link_issue(self, test_id: str, url: str | None = None, external_id: str | None = None) -> None:
        if self.writer.link_external_issue(test_id, url=url, external_id=external_id):
            self.summary.issue_links += 1

    def _start_task(self, description: str, total: int | None = None):
        if self.progress is None:
            return None
        return self.progress.add_task(description, total=total)

    def _advance(self, task, advance: int = 1) -> None:
        if self.progress is not None and task is not None:
            self.progress.update(task, advance=advance)


class XrayToTestomatioMigration(BaseMigration):
    """
    Migrates an Xray test repository to Testomat.io.

    Args:
        reader: Source reader combining Xray and Jira
        writer: Testomat.io client
        jira: Jira client, for issue links
        folder_id: Only migrate this folder and its descendants
    """

    def __init__(
        self,
        reader: XraySourceReader,
        writer: TestomatioClient,
        jira: JiraClient,
        folder_id: str | None = None,
        error_tracker: ErrorTracker | None = None,
        max_workers: int = 1,
        progress: Progress | None = None,
    ):
        super().__init__(writer, error_tracker, max_workers, progress)
        self.reader = reader
        self.jira = jira
        self.folder_id = folder_id
        self.transformer = TestCaseTransformer()

    def run(self) -> MigrationSummary:
        """Run the migration and return its summary."""
        with migration_run(), log_operation(logger, "Xray migration") as ctx:
            folders = self.reader.list_folders()
            if self.folder_id:
                logger.info(f"Importing single folder {self.folder_id}")
                folders = select_subtree(folders, self.folder_id)

            self.writer.login()
            self.reconcile(folders)

            with log_operation(logger, "test creation"):
                task = self._start_task("Creating tests...", total=len(folders))
                for folder in folders:
                    for test_id in self.reader.list_test_cases_in_folder(folder.id):
                        self.migrate_test(folder, test_id)
                    self._advance(task)

            ctx.update(self.summary.as_dict())
        return self.summary

    def migrate_test(self, folder: FolderNode, test_id: str) -> str | None:
        """Migrate one test of a folder."""
        try:
            test = self.reader.fetch_test_detail(test_id)
        except NotFoundOrSkippable as e:
            self.skip(str(e), {"test_id": test_id})
            return None
        except SourceApiError as e:
            self.skip(f"Test {test_id} could not be read: {e}", {"test_id": test_id})
            return None

        if test.type != "Test":
            self.skip(f"Skipping {test.type} {test.key} [Not Supported]", {"test_id": test_id})
            return None

        try:
            steps = self.reader.fetch_steps(test_id)
            logger.debug(f"Steps fetched: {len(steps)}")
        except SourceApiError as e:
            self.skip(f"Steps of {test.key} could not be read: {e}", {"test_id": test_id})
            return None

        preconditions = self._fetch_preconditions(test_id)

        suite_id = self.reconciler.suite_for_folder(folder.id)
        if suite_id is None and not self.dry_run:
            self.summary.skipped += 1
            return None

        step_attachments = self._download_step_attachments(steps)
        result = self.transformer.transform_xray(
            test, steps, preconditions, self.test_ids, step_attachments
        )
        for warning in result.warnings:
            self.error_tracker.add_error(StructuralAmbiguity(warning), {"test_id": test_id})
        if not result.success:
            self.skip("; ".join(result.errors), {"test_id": test_id})
            return None

        destination_id = self.write_test(test_id, result, suite_id, download=self._download_reference)
        if destination_id and test.key:
            self.link_issue(destination_id, url=self.jira.browse_url(test.key))
        return destination_id

    def _fetch_preconditions(self, test_id: str) -> list[SourceTestCase]:
        preconditions = []
        try:
            preconditions = self.reader.fetch_preconditions(test_id)
        except SourceApiError as e:
            # A test without readable preconditions is still migrated
            logger.debug(f"Preconditions of {test_id} not available: {e}")
        logger.debug(f"Preconditions fetched: {len(preconditions)}")
        return preconditions

    def _download_step_attachments(self, steps: list[TestStep]) -> dict[str, Path]:
        downloaded = {}
        for step in steps:
            for attachment in step.attachments:
                try:
                    downloaded[attachment.id] = self.reader.download_attachment(attachment)
                except SourceApiError as e:
                    self.error_tracker.add_error(
                        NotFoundOrSkippable(f"Step attachment {attachment.filename} not downloaded: {e}"),
                        {"attachment_id": attachment.id},
                    )
        return downloaded

    def _download_reference(self, reference: AttachmentReference) -> Path | None:
        if reference.scheme != XRAY_SCHEME:
            return None
        try:
            return self.reader.download_attachment(StepAttachment(id=reference.attachment_id, filename=""))
        except SourceApiError as e:
            logger.warning(f"Attachment {reference.attachment_id} not downloaded: {e}")
            return None


class TestRailToTestomatioMigration(BaseMigration):
    """
    Migrates TestRail suites and cases to Testomat.io.

    Args:
        client: TestRail client
        writer: Testomat.io client
        suite_id: Only migrate this TestRail suite
    """

    __test__ = False

    def __init__(
        self,
        client: TestRailClient,
        writer: TestomatioClient,
        suite_id: int | None = None,
        error_tracker: ErrorTracker | None = None,
        max_workers: int = 1,
        progress: Progress | None = None,
    ):
        super().__init__(writer, error_tracker, max_workers, progress)
        self.client = client
        self.suite_id = suite_id
        self.transformer = TestCaseTransformer()

    def run(self) -> MigrationSummary:
        """Run the migration and return its summary."""
        with migration_run(), log_operation(logger, "TestRail migration") as ctx:
            self.transformer = TestCaseTransformer(
                rescale_priorities(self.client.get_priorities()), self.client.get_case_fields()
            )

            suites = self.client.get_suites()
            if self.suite_id is not None:
                suites = [s for s in suites if s.get("id") == self.suite_id]
                if not suites:
                    raise ConfigurationError(f"TestRail suite {self.suite_id} not found")

            self.writer.login()
            for suite in suites:
                self.migrate_suite(suite)

            ctx.update(self.summary.as_dict())
        return self.summary

    def migrate_suite(self, suite: dict[str, Any]) -> None:
        """Migrate the sections and cases of one suite."""
        sections = self.client.get_sections(suite["id"])
        cases = self.client.get_cases(suite["id"])
        logger.info(f"Suite {suite.get('name')}: {len(sections)} sections, {len(cases)} cases")

        self.reconcile(sections_to_folders(suite, sections, cases))

        task = self._start_task(f"Creating tests for {suite.get('name')}...", total=len(cases))
        for case in cases:
            self.migrate_case(case)
            self._advance(task)

    def migrate_case(self, case: dict[str, Any]) -> str | None:
        """Migrate one case."""
        source_id = str(case.get("id"))
        suite_id = self.reconciler.suite_for_folder(str(case.get("section_id")))
        if suite_id is None and not self.dry_run:
            self.summary.skipped += 1
            return None

        attachments, names = self._download_case_attachments(case)
        result = self.transformer.transform_testrail(case, attachments, names)
        for warning in result.warnings:
            logger.debug(warning)
        if not result.success:
            self.skip("; ".join(result.errors), {"case_id": source_id})
            return None

        test_id = self.write_test(source_id, result, suite_id, download=self._download_reference)
        if test_id:
            for ref in result.issue_links:
                self.link_issue(test_id, external_id=ref)
        return test_id

    def _download_case_attachments(self, case: dict[str, Any]) -> tuple[dict[str, Path], dict[str, str]]:
        downloaded: dict[str, Path] = {}
        names: dict[str, str] = {}
        try:
            attachments = self.client.get_attachments_for_case(case["id"])
        except SourceApiError as e:
            self.error_tracker.add_error(
                NotFoundOrSkippable(f"Attachments of case {case['id']} not listed: {e}")
            )
            return downloaded, names

        for attachment in attachments:
            attachment_id = str(attachment.get("id"))
            name = attachment.get("name") or attachment.get("filename") or attachment_id
            try:
                downloaded[attachment_id] = self.client.download_attachment(attachment_id, name)
                names[attachment_id] = name
            except SourceApiError as e:
                self.error_tracker.add_error(
                    NotFoundOrSkippable(f"Attachment {name} not downloaded: {e}"), {"case_id": case["id"]}
                )
        return downloaded, names

    def _download_reference(self, reference: AttachmentReference) -> Path | None:
        if reference.scheme != TESTRAIL_SCHEME:
            return None
        try:
            return self.client.download_attachment(reference.attachment_id, reference.name)
        except SourceApiError as e:
            logger.warning(f"Attachment {reference.attachment_id} not downloaded: {e}")
            return None
