"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XTOT, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Client for the Testomat.io API.

All writes go through ``_send``: a rate-limited response is retried after a
fixed cooldown, any other failure is logged and turns into a None result so
that one failed item does not stop the migration. A write that is still rate
limited after the last attempt raises ``RateLimitExceeded`` and ends the run.
"""

import functools
import logging
import time
from pathlib import Path
from typing import Any

import requests

from xtot.core.config import TestomatioConfig
from xtot.core.errors import ConfigurationError, RateLimitExceeded, TransientNetworkError

logger = logging.getLogger("xtot.testomatio_client")


def rate_limit_retry(func):
    """Retry a request after the configured cooldown while it is rate limited.

    The decorated method must belong to a client exposing ``config`` with
    ``rate_limit_attempts`` and ``rate_limit_cooldown``.
    """

    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        attempts = 0
        max_attempts = self.config.rate_limit_attempts
        cooldown = self.config.rate_limit_cooldown

        while True:
            try:
                return func(self, *args, **kwargs)
            except TransientNetworkError as e:
                attempts += 1
                if attempts >= max_attempts:
                    logger.error(f"Rate limit still active after {attempts} attempts: {e}")
                    raise RateLimitExceeded(
                        f"Testomat.io rate limit exceeded after {attempts} attempts: {e}"
                    ) from e

                logger.warning(
                    f"Rate limited by Testomat.io. Retrying in {cooldown:.0f}s "
                    f"(attempt {attempts}/{max_attempts})"
                )
                time.sleep(cooldown)

    return wrapper


class TestomatioClient:
    """Client for writing suites, tests, attachments and labels to Testomat.io."""

    __test__ = False

    def __init__(self, config: TestomatioConfig):
        """Initialize the Testomat.io client.

        Args:
            config: Testomat.io connection settings
        """
        self.config = config
        self.jwt: str | None = None
        self._labels: dict[str, str] | None = None

        if config.dry_run:
            logger.warning("DRY RUN: no data will be written to Testomat.io")

    @property
    def dry_run(self) -> bool:
        return self.config.dry_run

    @property
    def api_path(self) -> str:
        return f"/api/{self.config.project}"

    def login(self) -> str:
        """Exchange the API token for a session JWT."""
        response = requests.request(
            "POST",
            f"{self.config.host}/api/login",
            data={"api_token": self.config.token},
            timeout=self.config.timeout,
        )
        if not response.ok:
            raise ConfigurationError(
                f"Testomat.io login failed: {response.status_code} {response.text[:200]}"
            )
        self.jwt = response.json().get("jwt")
        if not self.jwt:
            raise ConfigurationError("Testomat.io login returned no token")
        logger.debug("Logged in to Testomat.io")
        return self.jwt

    @property
    def headers(self) -> dict[str, str]:
        if self.jwt is None:
            self.login()
        return {"Authorization": self.jwt}

    @rate_limit_retry
    def _send(
        self,
        method: str,
        endpoint: str,
        json_data: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
    ) -> requests.Response | None:
        """
        Send a request to Testomat.io.

        Returns:
            The response, or None when the request failed or writes are disabled

        Raises:
            TransientNetworkError: On a rate-limited response, handled by the retry wrapper
        """
        if self.dry_run and method != "GET":
            logger.debug(f"DRY RUN: skipped {method} {endpoint}")
            return None

        url = f"{self.config.host}{endpoint}"
        logger.debug(f"{method} {url}")
        try:
            response = requests.request(
                method,
                url,
                headers=self.headers,
                json=json_data,
                files=files,
                timeout=self.config.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Request to {url} failed: {e}")
            return None

        if response.status_code == 429:
            raise TransientNetworkError(f"{method} {endpoint} rate limited")
        if not response.ok:
            logger.error(
                f"Failed to send data: {method} {endpoint}: {response.status_code} {response.text[:500]}"
            )
            return None
        return response

    def _entity(self, method: str, endpoint: str, entity_type: str, attributes: dict[str, Any]):
        response = self._send(
            method, endpoint, json_data={"data": {"attributes": attributes, "type": entity_type}}
        )
        if response is None:
            return None
        try:
            return response.json().get("data")
        except ValueError:
            logger.error(f"Unexpected response from {endpoint}: {response.text[:200]}")
            return None

    def _create(self, collection: str, entity_type: str, attributes: dict[str, Any]) -> str | None:
        data = self._entity("POST", f"{self.api_path}/{collection}", entity_type, attributes)
        if not data or data.get("id") is None:
            return None
        return str(data["id"])

    def _update(self, collection: str, entity_type: str, entity_id: str, attributes: dict[str, Any]):
        return self._entity("PUT", f"{self.api_path}/{collection}/{entity_id}", entity_type, attributes)

    def create_suite(self, attributes: dict[str, Any]) -> str | None:
        """Create a suite and return its id."""
        suite_id = self._create("suites", "suites", attributes)
        logger.debug(f"Suite created: {attributes.get('title')} ({suite_id})")
        return suite_id

    def update_suite(self, suite_id: str, attributes: dict[str, Any]) -> dict[str, Any] | None:
        return self._update("suites", "suites", suite_id, attributes)

    def create_test(self, attributes: dict[str, Any]) -> str | None:
        """Create a test and return its id."""
        test_id = self._create("tests", "tests", attributes)
        logger.debug(f"Test created: {attributes.get('title')} ({test_id})")
        return test_id

    def update_test(self, test_id: str, attributes: dict[str, Any]) -> dict[str, Any] | None:
        return self._update("tests", "tests", test_id, attributes)

    def upload_attachment(self, test_id: str, file_path: str | Path, name: str | None = None) -> str | None:
        """
        Upload a file to a test.

        Args:
            test_id: Destination test id
            file_path: Local file to upload
            name: File name shown in Testomat.io, defaults to the local name

        Returns:
            URL of the uploaded file, or None on failure
        """
        if self.dry_run:
            return None

        file_path = Path(file_path)
        if not file_path.exists():
            logger.error(f"File not found: {file_path}, can't upload")
            return None

        name = name or file_path.name
        endpoint = f"{self.api_path}/tests/{test_id}/attachment"
        response = self._send("POST", endpoint, files={"file": (name, file_path.read_bytes())})
        if response is None:
            return None

        url = response.json().get("url")
        logger.debug(f"File {file_path} uploaded to {test_id} as {url}")
        return url

    def list_labels(self) -> list[dict[str, Any]]:
        """List the labels of the project as ``{"id", "title"}`` dicts."""
        response = self._send("GET", f"{self.api_path}/labels")
        if response is None:
            return []
        labels = []
        for item in response.json().get("data") or []:
            attributes = item.get("attributes") or {}
            labels.append({"id": str(item.get("id")), "title": attributes.get("title")})
        return labels

    def create_label(self, attributes: dict[str, Any]) -> str | None:
        """Create a label and return its id."""
        return self._create("labels", "label", attributes)

    def ensure_label(self, title: str, field_type: str | None = None) -> str | None:
        """
        Return the id of the label with this title, creating it when missing.

        Existing labels are matched by title only.
        """
        if self._labels is None:
            self._labels = {label["title"]: label["id"] for label in self.list_labels()}

        if title in self._labels:
            return self._labels[title]

        attributes: dict[str, Any] = {"title": title}
        if field_type:
            attributes["field"] = {"type": field_type}
        label_id = self.create_label(attributes)
        if label_id is not None:
            self._labels[title] = label_id
        return label_id

    def link_label(self, label_id: str, test_id: str, value: str | None = None) -> bool:
        """Link a label, with an optional value, to a test."""
        body: dict[str, Any] = {"test_id": test_id}
        if value is not None:
            body["value"] = value
        response = self._send("POST", f"{self.api_path}/labels/{label_id}/link", json_data=body)
        return response is not None

    def link_external_issue(
        self, test_id: str, url: str | None = None, external_id: str | None = None
    ) -> bool:
        """
        Link an issue tracker item to a test.

        Args:
            test_id: Destination test id
            url: Web URL of the issue
            external_id: Jira issue key, linked through the Jira integration
        """
        if external_id:
            endpoint = f"{self.api_path}/jira/issues"
            body = {"test_id": test_id, "jira_id": external_id}
        elif url:
            endpoint = f"{self.api_path}/ims/issues/link"
            body = {"test_id": test_id, "url": url}
        else:
            raise ValueError("Either url or external_id is required")

        response = self._send("POST", endpoint, json_data=body)
        return response is not None
