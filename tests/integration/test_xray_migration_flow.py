"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XTOT, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Integration test for a complete Xray migration over HTTP.

Every external system is served by ``responses``, so the real clients, the
reconciler, the transformer and the attachment rewriter all run together.
"""

import json

import pytest
import responses
from responses import matchers

from xtot.core.logging import ErrorTracker
from xtot.jira_client import JiraClient
from xtot.migration import XrayToTestomatioMigration
from xtot.testomatio_client import TestomatioClient
from xtot.xray_client import XrayClient, XraySourceReader

JIRA = "https://acme.atlassian.net/rest/api/3"
XRAY = "https://xray.example.com/api/internal"
TESTOMATIO = "https://app.testomat.io/api/demo-project"

DESCRIPTION = {
    "type": "doc",
    "version": 1,
    "content": [
        {"type": "paragraph", "content": [{"type": "text", "text": "Check the page"}]},
        {"type": "mediaSingle", "content": [{"type": "media", "attrs": {"alt": "shot.png", "type": "file"}}]},
    ],
}


def register_source():
    responses.add(responses.GET, f"{JIRA}/project/QA", json={"id": "10000", "key": "QA"})
    responses.add(
        responses.POST,
        f"{XRAY}/test-repository",
        json={
            "folders": [
                {"folderId": "-1", "name": "Test Repository", "folders": ["f1"], "testsCount": 0},
                {"folderId": "f1", "name": "Login", "parentFolderId": "-1", "testsCount": 1},
            ]
        },
    )
    for folder_id, tests in (("-1", []), ("f1", [101])):
        responses.add(
            responses.POST,
            f"{XRAY}/test-repository/get-tests",
            json={"foldersTests": [{"folderId": folder_id, "tests": tests}]},
            match=[matchers.json_params_matcher({"folderIds": [folder_id], "projectId": "10000"})],
        )
    responses.add(
        responses.GET,
        f"{JIRA}/issue/101",
        json={
            "id": "101",
            "key": "QA-101",
            "fields": {
                "summary": "Login page renders",
                "issuetype": {"name": "Test"},
                "priority": {"name": "High"},
                "labels": ["smoke"],
                "description": DESCRIPTION,
            },
        },
    )
    responses.add(
        responses.GET,
        f"{JIRA}/issue/QA-101?fields=attachment",
        json={
            "fields": {
                "attachment": [
                    {"filename": "shot.png", "content": f"{JIRA}/attachment/content/1"},
                ]
            }
        },
    )
    responses.add(responses.GET, f"{JIRA}/attachment/content/1", body=b"png-bytes")
    responses.add(
        responses.GET,
        f"{XRAY}/test/101/steps?startAt=0&maxResults=99",
        json={"steps": [{"action": "Open the page", "result": "Page shown", "attachments": []}]},
    )
    responses.add(
        responses.GET,
        f"{XRAY}/test/101/preconditions?startAt=0&maxResults=99",
        json={"preconditions": []},
    )


def register_destination():
    responses.add(responses.POST, "https://app.testomat.io/api/login", json={"jwt": "session-jwt"})
    responses.add(responses.POST, f"{TESTOMATIO}/suites", json={"data": {"id": "s1"}})
    responses.add(responses.POST, f"{TESTOMATIO}/tests", status=429)
    responses.add(responses.POST, f"{TESTOMATIO}/tests", json={"data": {"id": "t1"}})
    responses.add(
        responses.POST, f"{TESTOMATIO}/tests/t1/attachment", json={"url": "https://files.example.com/shot.png"}
    )
    responses.add(responses.PUT, f"{TESTOMATIO}/tests/t1", json={"data": {"id": "t1"}})
    responses.add(responses.GET, f"{TESTOMATIO}/labels", json={"data": []})
    responses.add(responses.POST, f"{TESTOMATIO}/labels", json={"data": {"id": "l1"}})
    responses.add(responses.POST, f"{TESTOMATIO}/labels/l1/link", json={})
    responses.add(responses.POST, f"{TESTOMATIO}/ims/issues/link", json={})


def calls_to(method, url):
    return [c for c in responses.calls if c.request.method == method and c.request.url == url]


@pytest.mark.integration
class TestXrayMigrationFlow:
    @responses.activate
    def test_full_migration(self, jira_config, xray_config, testomatio_config):
        register_source()
        register_destination()

        tracker = ErrorTracker()
        jira = JiraClient(jira_config, error_tracker=tracker)
        reader = XraySourceReader(XrayClient(xray_config, jira), jira)
        writer = TestomatioClient(testomatio_config)

        summary = XrayToTestomatioMigration(reader, writer, jira, error_tracker=tracker).run()

        assert summary.suites == 1
        assert summary.tests == 1
        assert summary.attachments == 1
        assert summary.labels == 1
        assert summary.issue_links == 1
        assert not tracker.has_errors()

        suite_body = json.loads(calls_to("POST", f"{TESTOMATIO}/suites")[0].request.body)
        assert suite_body == {"data": {"attributes": {"title": "Login", "file-type": "file"}, "type": "suites"}}

        test_posts = calls_to("POST", f"{TESTOMATIO}/tests")
        assert len(test_posts) == 2
        attributes = json.loads(test_posts[-1].request.body)["data"]["attributes"]
        assert attributes["suite-id"] == "s1"
        assert attributes["priority"] == "high"
        assert "![](shot.png)" in attributes["description"]

        update = json.loads(calls_to("PUT", f"{TESTOMATIO}/tests/t1")[0].request.body)
        description = update["data"]["attributes"]["description"]
        assert "![](https://files.example.com/shot.png)" in description
        assert "![](shot.png)" not in description
        assert description.endswith("## Steps\n\n* Open the page\n*Expected*: Page shown")

        link = json.loads(calls_to("POST", f"{TESTOMATIO}/ims/issues/link")[0].request.body)
        assert link == {"test_id": "t1", "url": "https://acme.atlassian.net/browse/QA-101"}
