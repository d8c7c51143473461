"""
Pytest configuration and fixtures for scopegate tests.

This module provides shared fixtures used across unit, integration,
and security tests.
"""

import tempfile
from pathlib import Path
from typing import Generator

import pytest
import structlog


@pytest.fixture(autouse=True)
def reset_logging() -> Generator[None, None, None]:
    """Restore the default structlog configuration after each test."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_policy_json() -> str:
    """Return a nested policy document."""
    return """
{"any": [
    {"all": [
        {"action": "users:read", "scopes": ["users:id:1", "org.users:id:1"]},
        {"action": "teams:read", "scopes": ["teams:id:2"]}
    ]},
    {"action": "users:read", "scopes": ["users:*", "org.users:*"]},
    {"action": "teams:read", "scopes": ["teams:*"]}
]}
"""


@pytest.fixture
def sample_policy_yaml() -> str:
    """Return a policy document written as YAML."""
    return """
all:
  - action: reports:read
    scopes:
      - reports:*
  - action: reports:write
"""


@pytest.fixture
def sample_grants_yaml() -> str:
    """Return a granted-permissions mapping written as YAML."""
    return """
reports:read:
  - reports:7
reports:write: []
"""
