"""Data models for git integration module.

This module defines the configuration, state and result types used by the
repository connection layer. All models use dataclasses or enums.
"""

import posixpath
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from src.git_integration.errors import ConfigError

DEFAULT_BRANCH = "main"
DEFAULT_COMMITTER_NAME = "GitCMS"
DEFAULT_COMMITTER_EMAIL = "noreply@gitcms.local"

MAX_BRANCH_LENGTH = 80
MAX_CONTENT_DIR_LENGTH = 200
MAX_COMMITTER_FIELD_LENGTH = 120


class Secret:
    """Opaque wrapper for an authentication token.

    The wrapped value is only reachable through reveal(). Both str() and
    repr() render a mask, so a Secret can sit inside dataclasses, log
    records and exception messages without leaking the token.

    Example:
        >>> token = Secret("ghp_abc123")
        >>> str(token)
        '***'
        >>> token.reveal()
        'ghp_abc123'
    """

    __slots__ = ("_value",)

    def __init__(self, value: str):
        if not value:
            raise ConfigError("credential cannot be empty", "credential")
        self._value = value

    def reveal(self) -> str:
        return self._value

    def __str__(self) -> str:
        return "***"

    def __repr__(self) -> str:
        return "Secret('***')"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Secret):
            return NotImplemented
        return self._value == other._value

    def __hash__(self) -> int:
        return hash(self._value)


@dataclass
class RepositoryConfig:
    """Per-project repository configuration.

    Supplied by the project database collaborator (or ProjectConfigLoader).
    Values are normalized in __post_init__: strings are trimmed, the branch
    defaults to "main" and the content directory is validated to stay inside
    the working copy.

    Attributes:
        remote_url: Remote repository URL (https, ssh, scp-like or file)
        branch: The single branch the project works on
        content_dir: Subdirectory (relative) holding the markdown documents
        committer_name: Name used for commits
        committer_email: Email used for commits
        credential: Optional token embedded into https URLs at call time
    """
    remote_url: str
    branch: str = DEFAULT_BRANCH
    content_dir: str = ""
    committer_name: str = DEFAULT_COMMITTER_NAME
    committer_email: str = DEFAULT_COMMITTER_EMAIL
    credential: Optional[Secret] = None

    def __post_init__(self) -> None:
        self.remote_url = (self.remote_url or "").strip()
        if not self.remote_url:
            raise ConfigError("Repository URL is required", "remote_url")

        self.branch = (self.branch or "").strip()[:MAX_BRANCH_LENGTH] or DEFAULT_BRANCH
        if self.branch.startswith("-") or ".." in self.branch or " " in self.branch:
            raise ConfigError(f"Invalid branch name: '{self.branch}'", "branch")

        self.content_dir = self._normalize_content_dir(self.content_dir)
        self.committer_name = (
            (self.committer_name or "").strip()[:MAX_COMMITTER_FIELD_LENGTH]
            or DEFAULT_COMMITTER_NAME
        )
        self.committer_email = (
            (self.committer_email or "").strip()[:MAX_COMMITTER_FIELD_LENGTH]
            or DEFAULT_COMMITTER_EMAIL
        )

        if isinstance(self.credential, str):
            self.credential = Secret(self.credential.strip()) if self.credential.strip() else None

    @staticmethod
    def _normalize_content_dir(content_dir: Optional[str]) -> str:
        raw = (content_dir or "").strip()[:MAX_CONTENT_DIR_LENGTH].replace("\\", "/")
        if not raw:
            return ""
        if raw.startswith("/"):
            raise ConfigError(
                f"Content directory must be relative, got '{raw}'", "content_dir"
            )
        normalized = posixpath.normpath(raw)
        if normalized == ".":
            return ""
        if normalized == ".." or normalized.startswith("../"):
            raise ConfigError(
                f"Content directory escapes the repository: '{raw}'", "content_dir"
            )
        return normalized


class ConnectionState(Enum):
    """Lifecycle state of a RepositoryConnection.

    UNINITIALIZED: no local directory or no .git marker yet
    CLONED: remote cloned, identity not yet applied
    SYNCED: working copy matches the remote as of the last pull
    STALE: last pull failed, working tree may lag behind the remote
    ERROR: clone/open failed, connection must be re-initialized
    """

    UNINITIALIZED = "uninitialized"
    CLONED = "cloned"
    SYNCED = "synced"
    STALE = "stale"
    ERROR = "error"


class SyncStatus(Enum):
    """Outcome of a pull."""

    FRESH = "fresh"
    STALE = "stale"


@dataclass
class SyncResult:
    """Result of RepositoryConnection.pull_latest().

    Attributes:
        status: FRESH if fetch+fast-forward succeeded, STALE otherwise
        reason: Sanitized failure description (None when fresh)
    """
    status: SyncStatus
    reason: Optional[str] = None

    @property
    def is_fresh(self) -> bool:
        return self.status == SyncStatus.FRESH

    @classmethod
    def fresh(cls) -> "SyncResult":
        return cls(status=SyncStatus.FRESH)

    @classmethod
    def stale(cls, reason: str) -> "SyncResult":
        return cls(status=SyncStatus.STALE, reason=reason)


class PublishStatus(Enum):
    """Outcome of a successful publish call."""

    PUBLISHED = "published"
    NO_CHANGES = "no_changes"


@dataclass
class PublishResult:
    """Result of RepositoryConnection.publish().

    Attributes:
        status: PUBLISHED or NO_CHANGES
        message: Human readable summary
        commit_sha: HEAD after the push (None when nothing was published)
    """
    status: PublishStatus
    message: str
    commit_sha: Optional[str] = None

    @property
    def published(self) -> bool:
        return self.status == PublishStatus.PUBLISHED
