"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XTOT, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Client for the Xray Cloud internal API.

The internal API exposes the test repository (folders), the tests of each
folder, manual steps and preconditions. Test case details themselves live in
Jira, so ``XraySourceReader`` combines both clients into one source reader.
"""

import logging
import tempfile
from pathlib import Path
from typing import Any

import requests

from xtot.core.config import XrayConfig
from xtot.core.errors import NotFoundOrSkippable, SourceApiError
from xtot.jira_client import JiraClient
from xtot.models import FolderNode, SourceTestCase, StepAttachment, TestStep

logger = logging.getLogger("xtot.xray_client")

STEP_PAGE_SIZE = 99


class XrayClient:
    """Client for the Xray internal API."""

    def __init__(self, config: XrayConfig, jira: JiraClient):
        """Initialize the Xray client.

        Args:
            config: Xray connection settings
            jira: Jira client, used once to resolve the numeric project id
        """
        self.config = config
        self.jira = jira
        self.headers = {
            "accept": "application/json, text/plain, */*",
            "content-type": "application/json;charset=UTF-8",
            "x-acpt": config.token,
        }
        self._project_id: str | None = None

    @property
    def project_id(self) -> str:
        """Numeric Jira project id sent with every request."""
        if self._project_id is None:
            project = self.jira.get_project()
            if not project.get("id"):
                raise SourceApiError("Failed to fetch Jira Project ID")
            self._project_id = str(project["id"])
        return self._project_id

    def _request(self, method: str, path: str, body: dict[str, Any] | None = None) -> Any:
        url = f"{self.config.base_url}{path}"
        project_id = self.project_id
        payload = None if method == "GET" else {**(body or {}), "projectId": project_id}

        logger.debug(f"Fetching data from Xray: {method} {url}")
        response = requests.request(
            method,
            url,
            headers=self.headers,
            json=payload,
            timeout=self.config.timeout,
        )
        if not response.ok:
            raise SourceApiError(
                f"Failed to fetch data: {path}", status_code=response.status_code, body=response.text
            )
        return response.json()

    def fetch_repository(self) -> list[FolderNode]:
        """Fetch the flat folder list of the test repository."""
        data = self._request("POST", "/test-repository")
        folders = data.get("folders", []) if isinstance(data, dict) else data
        return [FolderNode.model_validate(folder) for folder in folders or []]

    def fetch_tests_from_folder(self, folder_id: str) -> list[str]:
        """Fetch the ids of the tests directly inside a folder."""
        data = self._request("POST", "/test-repository/get-tests", {"folderIds": [folder_id]})
        test_ids = []
        for folder_tests in (data or {}).get("foldersTests") or []:
            test_ids.extend(str(test_id) for test_id in folder_tests.get("tests") or [])
        return test_ids

    def fetch_steps(self, test_id: str) -> list[TestStep]:
        """Fetch the manual steps of a test."""
        data = self._request("GET", f"/test/{test_id}/steps?startAt=0&maxResults={STEP_PAGE_SIZE}")
        return [TestStep.model_validate(step) for step in (data or {}).get("steps") or []]

    def fetch_precondition_ids(self, test_id: str) -> list[str]:
        """Fetch the issue ids of the preconditions linked to a test."""
        data = self._request(
            "GET", f"/test/{test_id}/preconditions?startAt=0&maxResults={STEP_PAGE_SIZE}"
        )
        preconditions = (data or {}).get("preconditions") or []
        return [
            str(p.get("issueId") or p.get("id")) if isinstance(p, dict) else str(p)
            for p in preconditions
        ]

    def download_attachment(self, attachment: StepAttachment) -> Path:
        """Download a step attachment into the temporary directory."""
        url = f"{self.config.base_url}/attachments/{attachment.id}"
        response = requests.request(
            "GET", url, params={"jwt": self.config.token}, timeout=self.config.timeout
        )
        if not response.ok:
            raise SourceApiError(
                f"Failed to download attachment {attachment.id}",
                status_code=response.status_code,
                body=response.text,
            )

        path = Path(tempfile.gettempdir()) / f"xray-attach-{attachment.id}{attachment.filename}"
        path.write_bytes(response.content)
        logger.debug(f"Attachment {attachment.filename} saved to {path}")
        return path


class XraySourceReader:
    """Source reader backed by Xray for the hierarchy and Jira for test details."""

    def __init__(self, xray: XrayClient, jira: JiraClient):
        self.xray = xray
        self.jira = jira

    def list_folders(self) -> list[FolderNode]:
        return self.xray.fetch_repository()

    def list_test_cases_in_folder(self, folder_id: str) -> list[str]:
        return self.xray.fetch_tests_from_folder(folder_id)

    def fetch_test_detail(self, test_id: str) -> SourceTestCase:
        """
        Read a test issue from Jira.

        Raises:
            NotFoundOrSkippable: If the issue does not exist
            SourceApiError: For any other failed read
        """
        try:
            test = self.jira.fetch_test_case(test_id)
        except SourceApiError as e:
            if e.status_code == 404:
                raise NotFoundOrSkippable(f"Test {test_id} not found") from e
            raise
        if test is None:
            raise NotFoundOrSkippable(f"Test {test_id} not found")
        return test

    def fetch_steps(self, test_id: str) -> list[TestStep]:
        return self.xray.fetch_steps(test_id)

    def fetch_precondition_ids(self, test_id: str) -> list[str]:
        return self.xray.fetch_precondition_ids(test_id)

    def fetch_preconditions(self, test_id: str) -> list[SourceTestCase]:
        """Precondition issues of a test; missing issues and other issue types are left out."""
        issue_type = self.jira.config.precondition_issue_type
        preconditions = []
        for precondition_id in self.fetch_precondition_ids(test_id):
            try:
                precondition = self.fetch_test_detail(precondition_id)
            except NotFoundOrSkippable as e:
                logger.warning(f"Precondition of test {test_id} skipped: {e}")
                continue
            if precondition.type != issue_type:
                logger.warning(f"{precondition.key} is a {precondition.type}, not a {issue_type}; skipped")
                continue
            preconditions.append(precondition)
        return preconditions

    def download_attachment(self, attachment: StepAttachment) -> Path:
        return self.xray.download_attachment(attachment)
