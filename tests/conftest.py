"""
Test configuration and fixtures for the xtot project.

This file is the root pytest configuration file that sets up pytest
markers and imports fixtures from the fixtures modules to make them
available to all tests.
"""

from tests.fixtures.api_clients import (
    fake_writer,
    jira_config,
    testomatio_config,
    testrail_config,
    xray_config,
)
from tests.fixtures.base import base_test_env, make_response, mock_env_vars, temp_dir


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark a test as a unit test")
    config.addinivalue_line("markers", "integration: mark a test as an integration test")
    config.addinivalue_line("markers", "api: mark a test that tests API functionality")
    config.addinivalue_line("markers", "cli: mark a test that tests CLI functionality")
