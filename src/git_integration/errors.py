"""Typed exception hierarchy for git integration errors.

This module defines the base exception for the whole content store and all
custom exceptions raised by the repository connection layer. Messages never
contain credentials: anything that may echo a remote URL or git output is
passed through sanitize_credentials() before it reaches an exception.
"""

from enum import Enum
from typing import Optional


class ContentStoreError(Exception):
    """Base exception for all content store errors.

    Use this to catch any application-level error from the content store.
    """
    pass


class GitCommandError(ContentStoreError):
    """Raised when a single git invocation fails or times out.

    Attributes:
        command: Git subcommand that failed (e.g. "clone", "push")
        message: Error description
        git_output: Sanitized git stderr output
        timed_out: True if the command was killed by its timeout
    """

    def __init__(
        self,
        command: str,
        message: str,
        git_output: str = "",
        timed_out: bool = False,
    ):
        super().__init__(f"git {command} failed: {message}")
        self.command = command
        self.message = message
        self.git_output = git_output
        self.timed_out = timed_out


class RepositoryUnavailableError(ContentStoreError):
    """Raised when a working copy cannot be cloned, opened or reconnected.

    Attributes:
        project_id: Project whose repository is unavailable
        reason: Sanitized error description
    """

    def __init__(self, project_id: str, reason: str):
        super().__init__(f"Repository for project {project_id} is unavailable: {reason}")
        self.project_id = project_id
        self.reason = reason


class UnpublishedChangesError(RepositoryUnavailableError):
    """Raised when a remote change would discard unpublished local work."""

    def __init__(self, project_id: str, current_remote: str, configured_remote: str):
        super().__init__(
            project_id,
            f"working copy tracks {current_remote} but {configured_remote} is configured, "
            f"and it holds changes that were never pushed. Publish them first or "
            f"reconfigure with discard_local_changes=True",
        )
        self.current_remote = current_remote
        self.configured_remote = configured_remote


class SyncStaleError(ContentStoreError):
    """Raised when a pull fails and the caller required a fresh working tree."""

    def __init__(self, project_id: str, reason: str):
        super().__init__(f"Working copy for project {project_id} is stale: {reason}")
        self.project_id = project_id
        self.reason = reason


class PublishFailureReason(Enum):
    """Classification of a failed publish."""

    PUSH_REJECTED = "push_rejected"
    UNKNOWN = "unknown"


class PublishError(ContentStoreError):
    """Raised when committing or pushing local changes fails.

    Attributes:
        project_id: Project being published
        reason: PublishFailureReason classification
        detail: Sanitized error description
    """

    def __init__(
        self,
        project_id: str,
        detail: str,
        reason: PublishFailureReason = PublishFailureReason.UNKNOWN,
    ):
        super().__init__(f"Publish failed for project {project_id}: {detail}")
        self.project_id = project_id
        self.reason = reason
        self.detail = detail


class PushRejectedError(PublishError):
    """Raised when the remote rejects a push (usually non-fast-forward)."""

    HINT = "Remote has new commits. Pull/rebase then try again."

    def __init__(self, project_id: str, detail: str):
        super().__init__(project_id, detail, PublishFailureReason.PUSH_REJECTED)
        self.hint = self.HINT


class ProjectBusyError(ContentStoreError):
    """Raised when exclusive access to a project cannot be acquired in time."""

    def __init__(self, project_id: str, timeout: float, operation: Optional[str] = None):
        what = f" for {operation}" if operation else ""
        super().__init__(
            f"Timeout acquiring project {project_id} lock{what} after {timeout}s. "
            f"Another operation may be in progress."
        )
        self.project_id = project_id
        self.timeout = timeout


class ConfigError(ContentStoreError):
    """Raised when a project's repository configuration is invalid."""

    def __init__(self, message: str, config_field: Optional[str] = None):
        if config_field:
            full_message = f"Configuration error in field '{config_field}': {message}"
        else:
            full_message = f"Configuration error: {message}"
        super().__init__(full_message)
        self.config_field = config_field
        self.original_message = message
