"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XTOT, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Tests for the contextual logging utilities.
"""

import json
import logging

import pytest

from xtot.core.logging import (
    ErrorTracker,
    JSONFormatter,
    LogRedactor,
    get_logger,
    get_run_id,
    log_operation,
    migration_run,
)


@pytest.mark.unit
class TestLogRedactor:
    def test_redacts_tokens_and_passwords(self):
        redactor = LogRedactor()
        assert redactor.redact("api_token=abcdef123456") == "api_token: [REDACTED]"
        assert redactor.redact("password: hunter2") == "password: [REDACTED]"

    def test_leaves_other_values(self):
        assert LogRedactor().redact("Suite created: Login") == "Suite created: Login"
        assert LogRedactor().redact(42) == 42


@pytest.mark.unit
class TestMigrationRun:
    def test_run_id_is_scoped(self):
        with migration_run("run-1") as run_id:
            assert run_id == "run-1"
            assert get_run_id() == "run-1"
        assert get_run_id() != "run-1"

    def test_generated_run_id(self):
        with migration_run() as run_id:
            assert run_id.startswith("xtot-")


@pytest.mark.unit
class TestLogOperation:
    def test_logs_start_and_completion(self, caplog):
        logger = logging.getLogger("tests.log_operation")
        with caplog.at_level(logging.INFO, logger="tests.log_operation"):
            with log_operation(logger, "suite creation", context={"folders": 3}) as ctx:
                ctx["created"] = 3

        messages = [record.getMessage() for record in caplog.records]
        assert messages[0] == "Starting suite creation"
        assert messages[1].startswith("Completed suite creation in ")
        assert caplog.records[1].context_data == {"folders": 3, "created": 3}

    def test_reraises_errors(self, caplog):
        logger = logging.getLogger("tests.log_operation")
        with pytest.raises(RuntimeError):
            with log_operation(logger, "suite linking"):
                raise RuntimeError("boom")
        assert "Failed suite linking" in caplog.text


@pytest.mark.unit
class TestErrorTracker:
    def test_summary_by_category(self):
        tracker = ErrorTracker()
        tracker.record("WriteFailure", "suite A")
        tracker.record("WriteFailure", "suite B")
        tracker.add_error(ValueError("bad value"), {"id": "1"})

        summary = tracker.get_error_summary()
        assert summary["total_errors"] == 3
        assert summary["error_types"] == {"WriteFailure": 2, "ValueError": 1}
        assert summary["last_error"]["context"] == {"id": "1"}

    def test_clear(self):
        tracker = ErrorTracker()
        tracker.record("X", "y")
        tracker.clear()
        assert not tracker.has_errors()


@pytest.mark.unit
def test_json_formatter_includes_context():
    record = logging.LogRecord("xtot.test", logging.INFO, __file__, 1, "hello", None, None)
    record.context_data = {"test_id": "T1"}
    data = json.loads(JSONFormatter().format(record))
    assert data["message"] == "hello"
    assert data["context"] == {"test_id": "T1"}


@pytest.mark.unit
def test_get_logger_namespaces_names():
    assert get_logger("hierarchy").name == "xtot.hierarchy"
    assert get_logger("xtot.cli").name == "xtot.cli"
