"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XTOT, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Exception hierarchy for XTOT.

Errors are split by how the migration reacts to them: configuration problems and
exhausted destination writes abort the run, everything else is recorded as a
diagnostic and the enclosing unit (one test case, one attachment) is skipped.
"""


class MigrationError(Exception):
    """Base class for all XTOT errors."""


class ConfigurationError(MigrationError):
    """Raised when required credentials or identifiers are missing at startup."""


class SourceApiError(MigrationError):
    """Raised when a read from a source system fails."""

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        if self.status_code is None:
            return super().__str__()
        return f"{super().__str__()} ({self.status_code})\n{self.body}".rstrip()


class TransientNetworkError(MigrationError):
    """Raised for a rate-limited destination write that may be retried."""

    def __init__(self, message: str, status_code: int = 429):
        super().__init__(message)
        self.status_code = status_code


class FatalWriteFailure(MigrationError):
    """Raised when a destination write cannot be completed; aborts the run."""


class RateLimitExceeded(FatalWriteFailure):
    """Raised when a destination write is still rate-limited after all attempts."""


class NotFoundOrSkippable(MigrationError):
    """Raised for a missing test detail, step list or attachment."""


class StructuralAmbiguity(MigrationError):
    """Diagnostic category for unknown document nodes and unsupported marks."""
