"""
Fixtures package for the XTOT testing framework.

This package provides reusable fixtures to standardize the approach to
testing throughout the project.
"""

from tests.fixtures.api_clients import (
    FakeWriter,
    fake_writer,
    jira_config,
    testomatio_config,
    testrail_config,
    xray_config,
)
from tests.fixtures.base import base_test_env, make_response, mock_env_vars, temp_dir
