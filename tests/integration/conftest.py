"""Pytest configuration and fixtures for integration tests.

Provides a seeded bare remote, a connection registry rooted in a temporary
data directory, and a ContentService wired to both through an in-memory
project table.
"""

from pathlib import Path
from typing import Callable, Dict

import pytest

from src.content_service.content_service import ContentService
from src.git_integration.connection_registry import ConnectionRegistry
from src.git_integration.git_runner import GitCommandRunner
from src.git_integration.models import RepositoryConfig
from tests.helpers.git_test_utils import create_bare_remote

SEED_POST = '---\ntitle: "Seeded"\npubDate: 2024-01-15T00:00:00.000Z\n---\n\nSeeded body\n'


@pytest.fixture
def remote(tmp_path) -> Path:
    """Bare remote with one post under posts/."""
    return create_bare_remote(tmp_path / "origin", {
        "README.md": "# Blog\n",
        "posts/seeded.md": SEED_POST,
    })


@pytest.fixture
def project_table() -> Dict[str, RepositoryConfig]:
    """Mutable stand-in for the project database."""
    return {}


@pytest.fixture
def registry(tmp_path) -> ConnectionRegistry:
    registry = ConnectionRegistry(tmp_path / "data", runner=GitCommandRunner(), lock_timeout=30)
    yield registry
    registry.dispose_all()


@pytest.fixture
def service(registry, project_table) -> ContentService:
    return ContentService(registry, project_table.__getitem__)


@pytest.fixture
def make_config(remote) -> Callable[..., RepositoryConfig]:
    """Build a RepositoryConfig for the seeded remote (overridable per test)."""
    def _make(**overrides) -> RepositoryConfig:
        values = {
            "remote_url": str(remote),
            "branch": "main",
            "content_dir": "posts",
            "committer_name": "GitCMS Test",
            "committer_email": "cms@example.com",
        }
        values.update(overrides)
        return RepositoryConfig(**values)
    return _make


@pytest.fixture
def configured(service, project_table, make_config) -> ContentService:
    """ContentService with project "blog" configured against the seeded remote."""
    config = make_config()
    service.configure("blog", config)
    project_table["blog"] = config
    return service
