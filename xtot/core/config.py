"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XTOT, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Configuration management for XTOT.

Every external system gets its own configuration model. Values are read from the
environment (optionally primed from a .env file by the CLI) and passed explicitly
into each client at construction time.
"""

import logging
import os
from typing import Any, ClassVar

from pydantic import BaseModel, Field, ValidationError, field_validator

from xtot.core.errors import ConfigurationError

logger = logging.getLogger(__name__)


def _normalize_url(value: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValueError("a base URL must be provided")
    if not value.startswith(("http://", "https://")):
        value = f"https://{value}"
    return value.rstrip("/")


def _require(value: str, name: str) -> str:
    if not value or not str(value).strip():
        raise ValueError(f"{name} must be provided")
    return str(value).strip()


class BaseConfig(BaseModel):
    """Base configuration class with common functionality."""

    ENV_PREFIX: ClassVar[str] = ""

    @classmethod
    def get_env_var(cls, key: str, default: Any = None) -> Any:
        """
        Get an environment variable with the class prefix.

        Args:
        ----
            key: Key name without prefix
            default: Default value if environment variable is not found

        Returns:
        -------
            The environment variable value or default

        """
        env_key = f"{cls.ENV_PREFIX}{key.upper()}"
        value = os.environ.get(env_key)
        return default if value in (None, "") else value

    @classmethod
    def _build(cls, config: dict[str, Any], overrides: dict[str, Any]):
        config.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls(**config)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or cls.__name__}: {err['msg']}"
                for err in e.errors()
            )
            raise ConfigurationError(f"Invalid {cls.__name__}: {problems}") from e


class LoggingConfig(BaseConfig):
    """Configuration for logging settings."""

    ENV_PREFIX: ClassVar[str] = "XTOT_"

    level: str = Field(default="INFO", description="Logging level")
    log_file: str | None = Field(default=None, description="Optional log file path")
    json_format: bool = Field(default=False, description="Emit logs as JSON")
    use_rich: bool = Field(default=True, description="Use rich for console logging")

    @field_validator("level")
    @classmethod
    def validate_level(cls, value):
        """Validate that the log level is valid."""
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            logger.warning(f"Invalid log level '{value}', defaulting to INFO")
            return "INFO"
        return value

    @classmethod
    def from_env(cls, **overrides) -> "LoggingConfig":
        """Create a logging configuration from environment variables."""
        config = {
            "level": cls.get_env_var("LOG_LEVEL", "INFO"),
            "log_file": cls.get_env_var("LOG_FILE"),
            "json_format": cls.get_env_var("LOG_JSON", "false").lower() == "true",
            "use_rich": cls.get_env_var("LOG_USE_RICH", "true").lower() == "true",
        }
        return cls._build(config, overrides)

    def get_log_level_int(self) -> int:
        """Get the numeric logging level."""
        return getattr(logging, self.level)

    def configure_logging(self, debug: bool = False) -> None:
        """Configure logging based on the settings."""
        from xtot.core.logging import configure_logging

        configure_logging(
            level=self.get_log_level_int(),
            log_file=self.log_file,
            json_format=self.json_format,
            use_rich=self.use_rich,
            debug=debug,
        )


class JiraConfig(BaseConfig):
    """Configuration for the Jira REST API."""

    base_url: str = Field(..., description="Jira site URL, e.g. https://acme.atlassian.net")
    username: str = Field(..., description="Jira account e-mail")
    token: str = Field(..., description="Jira API token")
    project_key: str = Field(..., description="Jira project key or id")
    precondition_issue_type: str = Field(default="Pre-conditions")
    timeout: float = Field(default=30.0, description="Request timeout in seconds")

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, value):
        """Validate base URL format."""
        return _normalize_url(value)

    @field_validator("username", "token", "project_key")
    @classmethod
    def validate_required(cls, value, info):
        """Reject empty credentials."""
        return _require(value, info.field_name)

    @classmethod
    def from_env(cls, **overrides) -> "JiraConfig":
        """Create a Jira configuration from environment variables."""
        config = {
            "base_url": cls.get_env_var("JIRA_URL", ""),
            "username": cls.get_env_var("JIRA_USERNAME", ""),
            "token": cls.get_env_var("JIRA_TOKEN", ""),
            "project_key": cls.get_env_var("JIRA_PROJECT_ID", ""),
            "precondition_issue_type": cls.get_env_var(
                "JIRA_PRECONDITION_ISSUE_TYPE", "Pre-conditions"
            ),
        }
        return cls._build(config, overrides)


class XrayConfig(BaseConfig):
    """Configuration for the Xray internal API."""

    DEFAULT_URL: ClassVar[str] = "https://eu.xray.cloud.getxray.app/api/internal"

    base_url: str = Field(default=DEFAULT_URL, description="Xray internal API endpoint")
    token: str = Field(..., description="Xray x-acpt token")
    folder_id: str | None = Field(default=None, description="Only migrate this folder subtree")
    timeout: float = Field(default=30.0)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, value):
        """Validate base URL format."""
        return _normalize_url(value)

    @field_validator("token")
    @classmethod
    def validate_token(cls, value):
        """Reject an empty token."""
        return _require(value, "token")

    @classmethod
    def from_env(cls, **overrides) -> "XrayConfig":
        """Create an Xray configuration from environment variables."""
        config = {
            "base_url": cls.get_env_var("XRAY_URL", cls.DEFAULT_URL),
            "token": cls.get_env_var("XRAY_INTERNAL_TOKEN", ""),
            "folder_id": cls.get_env_var("XRAY_FOLDER_ID"),
        }
        return cls._build(config, overrides)


class TestRailConfig(BaseConfig):
    """Configuration for the TestRail API."""

    __test__ = False

    base_url: str = Field(..., description="TestRail URL; /index.php? is appended")
    username: str = Field(...)
    password: str = Field(..., description="TestRail password or API key")
    project_id: int = Field(..., gt=0)
    timeout: float = Field(default=30.0)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, value):
        """Normalize the URL so that API paths can be appended directly."""
        value = _normalize_url(value)
        if not value.endswith("/index.php?"):
            value = f"{value}/index.php?"
        return value

    @field_validator("username", "password")
    @classmethod
    def validate_required(cls, value, info):
        """Reject empty credentials."""
        return _require(value, info.field_name)

    @classmethod
    def from_env(cls, **overrides) -> "TestRailConfig":
        """Create a TestRail configuration from environment variables."""
        config = {
            "base_url": cls.get_env_var("TESTRAIL_URL", ""),
            "username": cls.get_env_var("TESTRAIL_USERNAME", ""),
            "password": cls.get_env_var("TESTRAIL_PASSWORD", ""),
            "project_id": cls.get_env_var("TESTRAIL_PROJECT_ID", 0),
        }
        return cls._build(config, overrides)


class TestomatioConfig(BaseConfig):
    """Configuration for the Testomat.io API."""

    __test__ = False

    host: str = Field(default="https://app.testomat.io")
    token: str = Field(..., description="Testomat.io API token")
    project: str = Field(..., description="Testomat.io project slug")
    dry_run: bool = Field(default=False, description="Disable all writes")
    timeout: float = Field(default=60.0)
    rate_limit_cooldown: float = Field(default=60.0, ge=0)
    rate_limit_attempts: int = Field(default=3, ge=1)

    @field_validator("host")
    @classmethod
    def validate_host(cls, value):
        """Validate host format."""
        return _normalize_url(value)

    @field_validator("token", "project")
    @classmethod
    def validate_required(cls, value, info):
        """Reject empty credentials."""
        return _require(value, info.field_name)

    @classmethod
    def from_env(cls, **overrides) -> "TestomatioConfig":
        """Create a Testomat.io configuration from environment variables."""
        config = {
            "host": cls.get_env_var("TESTOMATIO_HOST", "https://app.testomat.io"),
            "token": cls.get_env_var("TESTOMATIO_TOKEN", ""),
            "project": cls.get_env_var("TESTOMATIO_PROJECT", ""),
            "dry_run": bool(cls.get_env_var("DRY_RUN", "")),
        }
        return cls._build(config, overrides)
