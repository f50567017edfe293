"""Root pytest configuration for all tests.

This conftest applies to all test types (unit, integration).
"""

import logging

import pytest

# Keep git command debug output out of captured logs unless a test asks for it
logging.getLogger("src.git_integration.git_runner").setLevel(logging.INFO)


@pytest.fixture(autouse=True)
def isolated_git_environment(monkeypatch, tmp_path):
    """Shield tests from the developer's global git configuration."""
    home = tmp_path / "home"
    home.mkdir(exist_ok=True)
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
