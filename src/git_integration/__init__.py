"""Git integration for the content store.

This package owns each project's local working copy: cloning, reconnecting,
pulling and publishing against the project's remote, plus the registry that
keeps exactly one live connection per project.
"""

from src.git_integration.connection_registry import ConnectionRegistry
from src.git_integration.errors import (
    ConfigError,
    ContentStoreError,
    GitCommandError,
    ProjectBusyError,
    PublishError,
    PublishFailureReason,
    PushRejectedError,
    RepositoryUnavailableError,
    SyncStaleError,
    UnpublishedChangesError,
)
from src.git_integration.git_repository import RepositoryConnection
from src.git_integration.git_runner import GitCommandRunner
from src.git_integration.models import (
    ConnectionState,
    PublishResult,
    PublishStatus,
    RepositoryConfig,
    Secret,
    SyncResult,
    SyncStatus,
)

__all__ = [
    # Errors
    'ConfigError',
    'ContentStoreError',
    'GitCommandError',
    'ProjectBusyError',
    'PublishError',
    'PublishFailureReason',
    'PushRejectedError',
    'RepositoryUnavailableError',
    'SyncStaleError',
    'UnpublishedChangesError',
    # Components
    'ConnectionRegistry',
    'GitCommandRunner',
    'RepositoryConnection',
    # Models
    'ConnectionState',
    'PublishResult',
    'PublishStatus',
    'RepositoryConfig',
    'Secret',
    'SyncResult',
    'SyncStatus',
]
