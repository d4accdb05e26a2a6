"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XTOT, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Unit tests for the test case transformer.
"""

from pathlib import Path

import pytest

from xtot.models import SourceTestCase, StepAttachment, TestStep
from xtot.test_case_transformer import (
    MISSING_CALLED_TEST,
    TestCaseTransformer,
    TransformationResult,
    assemble_description,
    clean_step_data,
    render_step,
    render_steps,
)


def make_test(**overrides):
    values = {
        "id": "101",
        "key": "QA-1",
        "summary": "Login works",
        "type": "Test",
        "priority": "High",
        "description": "Users can log in.",
        "labels": ["smoke"],
    }
    values.update(overrides)
    return SourceTestCase(**values)


@pytest.mark.unit
class TestStepRendering:
    def test_full_step(self):
        step = TestStep(action="Open page", data="{noformat}url=\\{x}{noformat}", result="Page shown")
        assert render_step(step, {}) == "* Open page\n```\nurl={x}\n```\n*Expected*: Page shown"

    def test_step_without_data(self):
        assert render_step(TestStep(action="Click", result="Done"), {}) == "* Click\n*Expected*: Done"

    def test_called_test_reference(self):
        step = TestStep(call_test_issue_id="55")
        assert render_step(step, {"55": "T9"}) == "* Steps from @TT9"
        assert render_step(step, {}) == MISSING_CALLED_TEST

    def test_steps_section(self):
        steps = [TestStep(action="One"), TestStep(action="Two")]
        assert render_steps(steps, {}) == "\n\n## Steps\n\n* One\n\n* Two"
        assert render_steps([], {}) == ""

    def test_clean_step_data(self):
        assert clean_step_data("{noformat}a \\{b}{noformat}") == "a {b}"


@pytest.mark.unit
class TestAssembleDescription:
    def test_preconditions_come_first(self):
        text = assemble_description(
            "Body", [("Logged out", "Clear cookies")], [TestStep(action="Log in")]
        )
        assert text == (
            "## Preconditions\n\n#### Logged out\n\nClear cookies\n\n"
            "Body\n\n## Steps\n\n* Log in"
        )

    def test_description_only(self):
        assert assemble_description("Body") == "Body"
        assert assemble_description(None) == ""


@pytest.mark.unit
class TestTransformationResult:
    def test_add_error(self):
        result = TransformationResult()
        result.add_error("bad")
        assert not result.success
        assert result.errors == ["bad"]

    def test_add_warning_keeps_success(self):
        result = TransformationResult()
        result.add_warning("meh")
        assert result.success
        assert result.warnings == ["meh"]


@pytest.mark.unit
class TestTransformXray:
    @pytest.fixture
    def transformer(self):
        return TestCaseTransformer()

    def test_attributes(self, transformer):
        result = transformer.transform_xray(make_test(), [], [], {})

        assert result.success
        assert result.attributes == {
            "title": "Login works",
            "description": "Users can log in.",
            "priority": "high",
        }
        assert result.description == "Users can log in."
        assert result.labels == [("smoke", None, None)]

    def test_non_test_issue_is_rejected(self, transformer):
        result = transformer.transform_xray(make_test(type="Pre-conditions"), [], [], {})
        assert not result.success

    def test_unconverted_description_is_a_warning(self, transformer):
        result = transformer.transform_xray(make_test(description=None), [TestStep(action="Go")], [], {})
        assert result.success
        assert result.warnings
        assert result.description == "\n\n## Steps\n\n* Go"

    def test_preconditions_and_steps(self, transformer):
        precondition = make_test(id="201", summary="Account exists", description="Seed a user", type="Pre-conditions")
        result = transformer.transform_xray(make_test(), [TestStep(action="Log in")], [precondition], {})

        assert result.description.startswith("## Preconditions\n\n#### Account exists\n\nSeed a user")
        assert result.description.endswith("## Steps\n\n* Log in")

    def test_attachment_placeholders(self, transformer):
        test = make_test(attachments={"shot.png": Path("/tmp/a/shot.png"), "log.txt": Path("/tmp/a/log.txt")})
        step = TestStep(action="Look", attachments=[StepAttachment(id="9", filename="diagram.jpg")])

        result = transformer.transform_xray(
            test, [step], [], {}, step_attachments={"9": Path("/tmp/xray-attach-9diagram.jpg")}
        )

        tokens = {p.token: (p.name, p.is_image) for p in result.placeholders}
        assert tokens == {
            "![](shot.png)": ("shot.png", True),
            "![](log.txt)": ("log.txt", False),
            "!xray-attachment://9|": ("diagram.jpg", True),
        }
        assert [p.key for p in result.placeholders] == [None, None, ("xray", "9")]

    def test_unknown_priority_is_normal(self, transformer):
        result = transformer.transform_xray(make_test(priority="Whatever"), [], [], {})
        assert result.attributes["priority"] == "normal"


@pytest.mark.unit
class TestTransformTestRail:
    @pytest.fixture
    def case_fields(self):
        return [
            {"system_name": "custom_team", "label": "Team", "type_id": 6,
             "configs": [{"options": {"items": "1, Backend\n2, Frontend"}}]},
            {"system_name": "custom_platforms", "label": "Platforms", "type_id": 12,
             "configs": [{"options": {"items": "1, iOS\n2, Android"}}]},
            {"system_name": "custom_ticket", "label": "Ticket", "type_id": 1},
            {"system_name": "custom_automated", "label": "Automated", "type_id": 5},
            {"system_name": "custom_preconds", "label": "Preconditions", "type_id": 3},
        ]

    @pytest.fixture
    def transformer(self, case_fields):
        return TestCaseTransformer(priority_levels={1: -1, 2: 0, 4: 2}, case_fields=case_fields)

    def test_description_and_priority(self, transformer):
        case = {
            "id": 1,
            "title": "Checkout",
            "priority_id": 4,
            "custom_preconds": "Cart has items",
            "custom_description": "Pay with card",
            "custom_steps_separated": [
                {"content": "Open cart", "expected": "Cart shown"},
                {"content": "Pay", "additional_info": "card=4242", "expected": "Paid"},
            ],
        }

        result = transformer.transform_testrail(case)

        assert result.attributes["priority"] == "important"
        assert result.attributes["description"] == "## Preconditions\n\nCart has items\n\nPay with card"
        assert result.description == (
            "## Preconditions\n\nCart has items\n\nPay with card\n\n## Steps\n\n"
            "* Open cart\n*Expected*: Cart shown\n\n"
            "* Pay\n```\ncard=4242\n```\n*Expected*: Paid"
        )

    def test_single_text_steps(self, transformer):
        case = {"id": 2, "title": "Search", "custom_steps": "Type a query", "custom_expected": "Results"}
        result = transformer.transform_testrail(case)
        assert result.description == "\n\n## Steps\n\n* Type a query\n*Expected*: Results"
        assert result.attributes["priority"] == "normal"

    def test_refs_become_issue_links(self, transformer):
        result = transformer.transform_testrail({"id": 3, "title": "T", "refs": "QA-1, QA-2 QA-3"})
        assert result.issue_links == ["QA-1", "QA-2", "QA-3"]

    def test_custom_fields_become_labels(self, transformer):
        case = {
            "id": 4,
            "title": "T",
            "custom_team": 2,
            "custom_platforms": [1, 2],
            "custom_ticket": "JIRA-9",
            "custom_automated": True,
            "custom_unknown": "x",
            "custom_preconds": "p",
        }

        result = transformer.transform_testrail(case)

        assert result.labels == [
            ("Team", "Frontend", "list"),
            ("Platforms", "iOS, Android", "list"),
            ("Ticket", "JIRA-9", "string"),
        ]
        assert len(result.warnings) == 1

    def test_attachment_placeholders(self, transformer):
        result = transformer.transform_testrail(
            {"id": 5, "title": "T", "custom_description": "![](index.php?/attachments/get/a-7)"},
            attachments={"a-7": Path("/tmp/download-testrail-a-7")},
            attachment_names={"a-7": "screen.png"},
        )
        placeholder = result.placeholders[0]
        assert placeholder.token == "![](index.php?/attachments/get/a-7)"
        assert placeholder.name == "screen.png"
        assert placeholder.is_image
        assert placeholder.key == ("testrail", "a-7")

    def test_case_without_title(self, transformer):
        assert not transformer.transform_testrail({"id": 6, "title": ""}).success
