"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XTOT, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Client for the Jira Cloud REST API.

Xray stores test cases as Jira issues; summaries, descriptions, priorities,
labels and attachments are read from Jira.
"""

import logging
import tempfile
from pathlib import Path
from typing import Any
from urllib.parse import quote, urljoin

import requests

from xtot.core.config import JiraConfig
from xtot.core.errors import NotFoundOrSkippable, SourceApiError, StructuralAmbiguity
from xtot.core.logging import ErrorTracker
from xtot.document_converter import DocumentConverter
from xtot.models import SourceTestCase
from xtot.wiki_markup import wiki_to_markdown

logger = logging.getLogger("xtot.jira_client")

API_PREFIX = "/rest/api/3"

# Guard against a cursor that never ends
MAX_PAGES = 1000


def save_stream(response: requests.Response, path: Path) -> None:
    """
    Write a streamed response body to a file.

    A download that breaks off leaves no partial file behind.

    Raises:
        SourceApiError: If the body could not be read or written
    """
    try:
        with open(path, "wb") as f:
            for chunk in response.iter_content(chunk_size=8192):
                f.write(chunk)
    except (requests.RequestException, OSError) as e:
        path.unlink(missing_ok=True)
        raise SourceApiError(f"Download to {path.name} interrupted: {e}") from e


class JiraClient:
    """Client for reading test cases from Jira."""

    def __init__(
        self,
        config: JiraConfig,
        converter: DocumentConverter | None = None,
        error_tracker: ErrorTracker | None = None,
    ):
        """Initialize the Jira client.

        Args:
            config: Jira connection settings
            converter: Converter for structured descriptions
            error_tracker: Collects conversion diagnostics
        """
        self.config = config
        self.error_tracker = error_tracker or ErrorTracker()
        self.converter = converter or DocumentConverter(self.error_tracker)
        self.auth = (config.username, config.token)
        self.headers = {"Accept": "application/json"}

        logger.debug(f"JiraClient initialized for project {config.project_key} at {config.base_url}")

    def _request(self, url: str, stream: bool = False) -> requests.Response:
        response = requests.request(
            "GET",
            url,
            headers=self.headers,
            auth=self.auth,
            timeout=self.config.timeout,
            stream=stream,
        )
        if not response.ok:
            raise SourceApiError(
                f"Failed to fetch data: {url}", status_code=response.status_code, body=response.text
            )
        return response

    def fetch_all(self, endpoint: str, item_key: str | None = None) -> list[Any]:
        """
        Fetch every page of an endpoint.

        Args:
            endpoint: Path below the API prefix
            item_key: Key of the item list in each page; None collects whole pages

        Returns:
            The collected items
        """
        items: list[Any] = []
        url: str | None = urljoin(self.config.base_url, API_PREFIX + endpoint)
        pages = 0

        while url:
            pages += 1
            if pages > MAX_PAGES:
                logger.warning(f"Stopped paginating {endpoint} after {MAX_PAGES} pages")
                break

            logger.debug(f"Fetching data from Jira: {url}")
            data = self._request(url).json()

            if isinstance(data, dict) and data.get("error"):
                raise SourceApiError(str(data["error"]))

            if item_key is None:
                items.append(data)
            elif isinstance(data, dict) and item_key in data:
                items.extend(data[item_key])
            else:
                logger.debug(f"Key '{item_key}' not found in response data")

            url = data.get("nextPage") if isinstance(data, dict) else None

        return items

    def _fetch_one(self, endpoint: str) -> dict[str, Any] | None:
        results = self.fetch_all(endpoint)
        return results[0] if results else None

    def get_project(self) -> dict[str, Any]:
        """Get the configured project."""
        project = self._fetch_one(f"/project/{quote(self.config.project_key)}")
        if not project:
            raise SourceApiError(f"Failed to fetch Jira project {self.config.project_key}")
        return project

    def get_custom_fields(self) -> dict[str, dict[str, Any]]:
        """Get custom field definitions keyed by field id."""
        fields = self.fetch_all("/field")
        # The field endpoint returns a bare list as its only page
        flattened = [f for page in fields for f in (page if isinstance(page, list) else [page])]
        return {
            field["id"]: {
                "name": field.get("name"),
                "type": (field.get("schema") or {}).get("type"),
                "description": field.get("description"),
            }
            for field in flattened
            if field.get("custom")
        }

    def get_issue(self, issue_id: str, fields: str | None = None) -> dict[str, Any] | None:
        """Get a single issue, optionally limited to some fields."""
        endpoint = f"/issue/{issue_id}"
        if fields:
            endpoint += f"?fields={fields}"
        return self._fetch_one(endpoint)

    def convert_description(self, issue: dict[str, Any]) -> str | None:
        """
        Convert an issue description to markdown.

        Structured descriptions go through the document converter, legacy
        string descriptions through the wiki markup pass.
        """
        description = (issue.get("fields") or {}).get("description")
        if not description:
            return ""
        if isinstance(description, str):
            return wiki_to_markdown(description)
        if isinstance(description, dict):
            return self.converter.convert(description)

        self.error_tracker.add_error(
            StructuralAmbiguity(f"Unsupported description format on {issue.get('key')}"),
            {"issue": issue.get("key")},
        )
        return None

    def download_attachments(self, issue_key: str) -> dict[str, Path]:
        """
        Download the attachments of an issue.

        Returns:
            Mapping of file name to local path; failed downloads are left out
        """
        issue = self.get_issue(issue_key, fields="attachment")
        attachments = ((issue or {}).get("fields") or {}).get("attachment") or []
        if not attachments:
            return {}

        target = Path(tempfile.mkdtemp(prefix="jira-attachments-"))
        files: dict[str, Path] = {}
        for attachment in attachments:
            filename = attachment["filename"]
            path = target / filename
            try:
                with self._request(attachment["content"], stream=True) as response:
                    save_stream(response, path)
            except SourceApiError as e:
                self.error_tracker.add_error(
                    NotFoundOrSkippable(f"Failed to download attachment {filename}: {e}"),
                    {"issue": issue_key},
                )
                continue
            files[filename] = path
            logger.debug(f"Attachment {filename} of {issue_key} saved to {path}")

        return files

    def fetch_test_case(self, issue_id: str) -> SourceTestCase | None:
        """
        Fetch an issue as a source test case.

        Returns:
            The test case, or None when the issue does not exist
        """
        issue = self.get_issue(issue_id)
        if not issue:
            return None

        fields = issue.get("fields") or {}
        try:
            description = self.convert_description(issue)
        except (KeyError, TypeError, ValueError) as e:
            self.error_tracker.add_error(
                StructuralAmbiguity(f"Description of {issue.get('key')} could not be converted: {e}"),
                {"issue": issue.get("key")},
            )
            description = None

        return SourceTestCase(
            id=issue["id"],
            key=issue.get("key"),
            summary=fields.get("summary") or "",
            type=(fields.get("issuetype") or {}).get("name"),
            priority=(fields.get("priority") or {}).get("name"),
            description=description,
            labels=fields.get("labels") or [],
            attachments=self.download_attachments(issue["key"]),
        )

    def browse_url(self, issue_key: str) -> str:
        """Web URL of an issue."""
        return f"{self.config.base_url}/browse/{issue_key}"
