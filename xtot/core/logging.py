"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XTOT, licensed under the MIT License.
See LICENSE file for details.
"""

"""Logging infrastructure with contextual diagnostics.

This module configures rich console logging, optional JSON/file output,
sensitive data redaction, a run-scoped correlation id and an ErrorTracker used
to collect per-item diagnostics that are reported at the end of a migration.
"""

import json
import logging
import os
import re
import sys
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime
from re import Pattern
from typing import Any

from rich.logging import RichHandler

_run_id: ContextVar[str] = ContextVar("migration_run_id", default="")


def get_run_id() -> str:
    """Get the current migration run id, generating one if needed."""
    run_id = _run_id.get()
    if not run_id:
        run_id = f"xtot-{uuid.uuid4().hex[:12]}"
        _run_id.set(run_id)
    return run_id


@contextmanager
def migration_run(run_id: str | None = None) -> Iterator[str]:
    """
    Context manager that scopes a correlation id to one migration run.

    Args:
    ----
        run_id: ID to use, or None to generate a new one

    Yields:
    ------
        str: The active run id

    """
    token = _run_id.set(run_id or f"xtot-{uuid.uuid4().hex[:12]}")
    try:
        yield _run_id.get()
    finally:
        _run_id.reset(token)


class LogRedactor:
    """
    Redacts credentials from log messages.
    """

    def __init__(self) -> None:
        self.patterns: dict[str, Pattern] = {
            "api_key": re.compile(
                r'(api[_-]?token|api[_-]?key|token|jwt)["\']?\s*[:=]\s*["\']?([^"\'&\s]{8,})',
                re.IGNORECASE,
            ),
            "password": re.compile(
                r'(password|passwd|secret)["\']?\s*[:=]\s*["\']?([^"\'&\s]+)', re.IGNORECASE
            ),
            "authorization": re.compile(
                r'(Authorization|Bearer|Basic|x-acpt)["\']?\s*[:=]?\s*["\']?([^"\'&\s]{8,})',
                re.IGNORECASE,
            ),
        }

    def redact(self, message: Any) -> Any:
        """
        Redact sensitive values, keeping the key so the message stays readable.
        """
        if not isinstance(message, str):
            return message
        for pattern in self.patterns.values():
            message = pattern.sub(r"\1: [REDACTED]", message)
        return message


redactor = LogRedactor()


class ContextFilter(logging.Filter):
    """Adds the run id to each record and redacts its message."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_run_id()
        if isinstance(record.msg, str):
            record.msg = redactor.redact(record.msg)
        return True


class JSONFormatter(logging.Formatter):
    """
    Formatter that outputs log records as JSON.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if hasattr(record, "correlation_id"):
            log_data["correlation_id"] = record.correlation_id

        if getattr(record, "context_data", None):
            log_data["context"] = record.context_data

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(log_data, default=str)


class RichContextFormatter(logging.Formatter):
    """
    Formatter for rich console output that appends context data.
    """

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)

        context = getattr(record, "context_data", None)
        if context:
            context_str = " ".join(f"[{k}={v}]" for k, v in context.items())
            message = f"{message} {context_str}"

        return message


@contextmanager
def log_operation(
    logger: logging.Logger,
    operation_name: str,
    level: int = logging.INFO,
    context: dict[str, Any] | None = None,
) -> Iterator[dict[str, Any]]:
    """
    Context manager for logging a migration phase with timing.

    Args:
    ----
        logger: The logger instance to use
        operation_name: Name of the operation being performed
        level: Log level to use
        context: Additional context data to include in the logs

    Yields:
    ------
        dict: The context dict, which the caller may extend with results

    Raises:
    ------
        Exception: Re-raises any exception that occurs within the context

    """
    start_time = time.time()
    context = dict(context or {})

    logger.log(level, f"Starting {operation_name}", extra={"context_data": dict(context)})

    try:
        yield context
    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Failed {operation_name} after {duration:.2f}s: {e}",
            extra={"context_data": {**context, "error_type": type(e).__name__}},
        )
        raise
    duration = time.time() - start_time
    logger.log(
        level,
        f"Completed {operation_name} in {duration:.2f}s",
        extra={"context_data": context},
    )


class ErrorTracker:
    """
    Tracks per-item diagnostics for later reporting.

    Skipped test cases, failed uploads and degraded conversions are collected
    here so that one bad item never stops the migration of the others.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.errors: list[dict[str, Any]] = []
        self.logger = logger or logging.getLogger("xtot.diagnostics")

    def record(
        self,
        category: str,
        message: str,
        context: dict[str, Any] | None = None,
        level: int = logging.WARNING,
    ) -> None:
        """
        Record a diagnostic.

        Args:
        ----
            category: Short diagnostic category, usually an exception class name
            message: Human readable description
            context: Additional context information
            level: Log level used when echoing the diagnostic

        """
        entry = {
            "error_type": category,
            "message": message,
            "timestamp": datetime.now().isoformat(),
            "correlation_id": get_run_id(),
            "context": context or {},
        }
        self.errors.append(entry)
        self.logger.log(level, f"{category}: {message}", extra={"context_data": context or {}})

    def add_error(self, error: Exception, context: dict[str, Any] | None = None) -> None:
        """Record an exception as a diagnostic."""
        self.record(type(error).__name__, str(error), context)

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def get_error_summary(self) -> dict[str, Any]:
        """
        Get a summary of tracked diagnostics.

        Returns
        -------
            A dictionary with the total count and a count per category

        """
        error_types: dict[str, int] = {}
        for error in self.errors:
            error_types[error["error_type"]] = error_types.get(error["error_type"], 0) + 1

        return {
            "total_errors": len(self.errors),
            "error_types": error_types,
            "first_error": self.errors[0] if self.errors else None,
            "last_error": self.errors[-1] if self.errors else None,
        }

    def clear(self) -> None:
        self.errors = []


def configure_logging(
    level: int | str = logging.INFO,
    log_file: str | None = None,
    json_format: bool = False,
    include_timestamp: bool = True,
    use_rich: bool = True,
    debug: bool = False,
) -> None:
    """
    Configure application logging on the ``xtot`` logger.

    Args:
    ----
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL or integer)
        log_file: Optional path to log file
        json_format: Whether to use JSON format for logs
        include_timestamp: Whether to include timestamps in logs
        use_rich: Whether to use Rich for console output
        debug: Whether to force debug mode

    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    if debug:
        level = logging.DEBUG

    format_str = (
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
        if include_timestamp
        else "[%(levelname)s] %(name)s: %(message)s"
    )

    handlers: list[logging.Handler] = []

    if use_rich and not json_format:
        rich_handler = RichHandler(rich_tracebacks=True, markup=False, show_time=include_timestamp)
        rich_handler.setFormatter(RichContextFormatter("%(message)s"))
        handlers.append(rich_handler)
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(format_str))
        handlers.append(console_handler)

    if log_file:
        os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(format_str))
        handlers.append(file_handler)

    context_filter = ContextFilter()
    for handler in handlers:
        handler.addFilter(context_filter)

    logger = logging.getLogger("xtot")
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    for handler in handlers:
        logger.addHandler(handler)

    logger.debug(f"Logging configured with level {logging.getLevelName(level)}")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger below the ``xtot`` namespace.

    Args:
    ----
        name: Name of the logger, typically __name__

    """
    if not name.startswith("xtot"):
        name = f"xtot.{name}"
    return logging.getLogger(name)
