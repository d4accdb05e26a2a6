"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XTOT, licensed under the MIT License.
See LICENSE file for details.
"""

from unittest.mock import patch

import pytest
import requests

from xtot.core.errors import SourceApiError
from xtot.core.logging import ErrorTracker
from xtot.jira_client import JiraClient


@pytest.fixture
def tracker():
    return ErrorTracker()


@pytest.fixture
def client(jira_config, tracker):
    return JiraClient(jira_config, error_tracker=tracker)


def issue(description=None, **fields):
    return {
        "id": "10001",
        "key": "QA-1",
        "fields": {
            "summary": "Login works",
            "issuetype": {"name": "Test"},
            "priority": {"name": "High"},
            "labels": ["smoke"],
            "description": description,
            **fields,
        },
    }


@pytest.mark.unit
@pytest.mark.api
class TestJiraClient:
    @patch("xtot.jira_client.requests.request")
    def test_request_uses_basic_auth(self, mock_request, client, make_response):
        mock_request.return_value = make_response(json_data={"id": "100", "key": "QA"})

        assert client.get_project() == {"id": "100", "key": "QA"}
        mock_request.assert_called_once_with(
            "GET",
            "https://acme.atlassian.net/rest/api/3/project/QA",
            headers={"Accept": "application/json"},
            auth=("qa@example.com", "jira-test-token"),
            timeout=30.0,
            stream=False,
        )

    @patch("xtot.jira_client.requests.request")
    def test_fetch_all_follows_next_page(self, mock_request, client, make_response):
        mock_request.side_effect = [
            make_response(json_data={"values": [1, 2], "nextPage": "https://acme.atlassian.net/page2"}),
            make_response(json_data={"values": [3]}),
        ]

        assert client.fetch_all("/something", "values") == [1, 2, 3]
        assert mock_request.call_args_list[1].args[1] == "https://acme.atlassian.net/page2"

    @patch("xtot.jira_client.requests.request")
    def test_error_status_raises(self, mock_request, client, make_response):
        mock_request.return_value = make_response(status_code=404, text="not found")

        with pytest.raises(SourceApiError) as exc_info:
            client.get_issue("QA-404")
        assert exc_info.value.status_code == 404

    @patch("xtot.jira_client.requests.request")
    def test_custom_fields(self, mock_request, client, make_response):
        mock_request.return_value = make_response(
            json_data=[
                {"id": "summary", "name": "Summary", "custom": False},
                {"id": "customfield_1", "name": "Team", "custom": True, "schema": {"type": "option"}},
            ]
        )

        assert client.get_custom_fields() == {
            "customfield_1": {"name": "Team", "type": "option", "description": None}
        }

    def test_convert_wiki_description(self, client):
        assert client.convert_description(issue("h2. Setup")) == "## Setup"

    def test_convert_structured_description(self, client):
        document = {
            "type": "doc",
            "content": [{"type": "paragraph", "content": [{"type": "text", "text": "Hello"}]}],
        }
        assert client.convert_description(issue(document)) == "Hello"

    def test_convert_missing_description(self, client):
        assert client.convert_description(issue(None)) == ""

    def test_convert_unsupported_description(self, client, tracker):
        assert client.convert_description(issue(["a", "b"])) is None
        assert tracker.get_error_summary()["error_types"] == {"StructuralAmbiguity": 1}

    @patch("xtot.jira_client.requests.request")
    def test_fetch_test_case(self, mock_request, client, make_response):
        mock_request.side_effect = [
            make_response(json_data=issue("Plain *text*")),
            make_response(json_data={"fields": {"attachment": []}}),
        ]

        test_case = client.fetch_test_case("10001")
        assert test_case.id == "10001"
        assert test_case.key == "QA-1"
        assert test_case.type == "Test"
        assert test_case.priority == "High"
        assert test_case.description == "Plain **text**"
        assert test_case.labels == ["smoke"]
        assert test_case.attachments == {}

    @patch("xtot.jira_client.requests.request")
    def test_download_attachments(self, mock_request, client, make_response):
        attachment = {"filename": "log.txt", "content": "https://acme.atlassian.net/att/1"}
        mock_request.side_effect = [
            make_response(json_data={"fields": {"attachment": [attachment]}}),
            make_response(content=b"log line"),
        ]

        files = client.download_attachments("QA-1")
        assert list(files) == ["log.txt"]
        assert files["log.txt"].read_bytes() == b"log line"

    @patch("xtot.jira_client.requests.request")
    def test_failed_attachment_download_is_skipped(self, mock_request, client, tracker, make_response):
        attachment = {"filename": "gone.png", "content": "https://acme.atlassian.net/att/2"}
        mock_request.side_effect = [
            make_response(json_data={"fields": {"attachment": [attachment]}}),
            make_response(status_code=404),
        ]

        assert client.download_attachments("QA-1") == {}
        assert tracker.has_errors()

    @patch("xtot.jira_client.requests.request")
    def test_interrupted_download_leaves_no_file(self, mock_request, client, tracker, make_response):
        attachment = {"filename": "big.zip", "content": "https://acme.atlassian.net/att/3"}
        broken = make_response()
        broken.iter_content.side_effect = requests.exceptions.ChunkedEncodingError("connection reset")
        mock_request.side_effect = [
            make_response(json_data={"fields": {"attachment": [attachment]}}),
            broken,
        ]

        assert client.download_attachments("QA-1") == {}
        assert tracker.has_errors()
        broken.__exit__.assert_called_once()
        assert mock_request.call_args.kwargs["stream"] is True

    def test_browse_url(self, client):
        assert client.browse_url("QA-7") == "https://acme.atlassian.net/browse/QA-7"
