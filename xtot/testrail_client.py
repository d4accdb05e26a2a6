"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XTOT, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Client for the TestRail API v2.

Paginated endpoints return a page object with a ``_links.next`` path relative
to ``index.php?``; older TestRail versions return bare lists.
"""

import logging
import tempfile
from collections import Counter
from pathlib import Path
from typing import Any

import requests

from xtot.core.config import TestRailConfig
from xtot.core.errors import SourceApiError
from xtot.jira_client import save_stream
from xtot.models import FolderNode, Priority

logger = logging.getLogger("xtot.testrail_client")

MAX_PAGES = 1000


class TestRailClient:
    """Client for reading suites, sections and cases from TestRail."""

    __test__ = False

    def __init__(self, config: TestRailConfig):
        self.config = config
        self.auth = (config.username, config.password)
        self.headers = {"Content-Type": "application/json"}

    def _request(self, path: str, stream: bool = False) -> requests.Response:
        url = f"{self.config.base_url}{path}"
        response = requests.request(
            "GET", url, headers=self.headers, auth=self.auth, timeout=self.config.timeout, stream=stream
        )
        if not response.ok:
            raise SourceApiError(
                f"Failed to fetch data: {url}", status_code=response.status_code, body=response.text
            )
        return response

    def fetch_all(self, path: str, item_key: str | None = None) -> list[Any]:
        """
        Fetch every page of an endpoint.

        Args:
            path: API path such as ``/api/v2/get_cases/1``
            item_key: Key of the item list in each page; bare list pages are
                collected as they are

        Returns:
            The collected items
        """
        items: list[Any] = []
        next_path: str | None = path
        pages = 0

        while next_path:
            pages += 1
            if pages > MAX_PAGES:
                logger.warning(f"Stopped paginating {path} after {MAX_PAGES} pages")
                break

            data = self._request(next_path).json()
            logger.debug(f"Fetched {next_path} from TestRail")

            if isinstance(data, list):
                items.extend(data)
                break
            if data.get("error"):
                raise SourceApiError(str(data["error"]))

            if item_key is None:
                items.append(data)
            else:
                items.extend(data.get(item_key) or [])
            next_path = (data.get("_links") or {}).get("next")

        return items

    def get_suites(self) -> list[dict[str, Any]]:
        return self.fetch_all(f"/api/v2/get_suites/{self.config.project_id}")

    def get_sections(self, suite_id: int | None = None) -> list[dict[str, Any]]:
        path = f"/api/v2/get_sections/{self.config.project_id}"
        if suite_id is not None:
            path += f"&suite_id={suite_id}"
        return self.fetch_all(path, "sections")

    def get_cases(self, suite_id: int | None = None) -> list[dict[str, Any]]:
        path = f"/api/v2/get_cases/{self.config.project_id}"
        if suite_id is not None:
            path += f"&suite_id={suite_id}"
        return self.fetch_all(path, "cases")

    def get_case_fields(self) -> list[dict[str, Any]]:
        return self.fetch_all("/api/v2/get_case_fields")

    def get_priorities(self) -> list[Priority]:
        return [Priority.model_validate(p) for p in self.fetch_all("/api/v2/get_priorities")]

    def get_attachments_for_case(self, case_id: int) -> list[dict[str, Any]]:
        return self.fetch_all(f"/api/v2/get_attachments_for_case/{case_id}", "attachments")

    def download_attachment(self, attachment_id: str, filename: str = "") -> Path:
        """Download an attachment into the temporary directory."""
        path = Path(tempfile.gettempdir()) / f"download-testrail-{attachment_id}{filename}"
        with self._request(f"/api/v2/get_attachment/{attachment_id}", stream=True) as response:
            save_stream(response, path)
        logger.debug(f"Attachment {attachment_id} saved to {path}")
        return path


def suite_folder_id(suite_id: Any) -> str:
    return f"suite-{suite_id}"


def sections_to_folders(
    suite: dict[str, Any],
    sections: list[dict[str, Any]],
    cases: list[dict[str, Any]],
) -> list[FolderNode]:
    """
    Build the folder list for a TestRail suite.

    The suite becomes the top container; top-level sections hang below it
    and nested sections below their parents.

    Args:
        suite: TestRail suite record
        sections: Sections of the suite
        cases: Cases of the suite, used for direct test counts

    Returns:
        Folder nodes with the suite node first
    """
    suite_id = suite_folder_id(suite["id"])
    counts = Counter(str(case.get("section_id")) for case in cases)
    children: dict[str, list[str]] = {suite_id: []}

    for section in sorted(sections, key=lambda s: (s.get("depth") or 0, s.get("display_order") or 0)):
        parent = section.get("parent_id")
        parent_key = str(parent) if parent is not None else suite_id
        children.setdefault(parent_key, []).append(str(section["id"]))

    folders = [
        FolderNode(
            id=suite_id,
            name=suite.get("name") or f"Suite {suite['id']}",
            parent_id=None,
            child_folder_ids=children[suite_id],
            direct_test_count=0,
        )
    ]
    for section in sections:
        section_id = str(section["id"])
        parent = section.get("parent_id")
        folders.append(
            FolderNode(
                id=section_id,
                name=section.get("name") or section_id,
                parent_id=str(parent) if parent is not None else suite_id,
                child_folder_ids=children.get(section_id, []),
                direct_test_count=counts.get(section_id, 0),
            )
        )
    return folders
