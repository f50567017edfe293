"""Local working copy management for one project's remote repository.

This module provides the RepositoryConnection class, which owns the lifecycle
of a single local clone (clone, open, reconnect) and the sync protocol against
its remote (pull, commit, push). It drives the native git binary through
GitCommandRunner.

Credentials are never written to .git/config. The remote stored as "origin"
is always the credential-free URL; the authenticated URL only appears in the
argv of the clone/fetch/push being executed.
"""

import logging
import re
import shutil
from pathlib import Path
from typing import Optional, Union

from src.git_integration.errors import (
    GitCommandError,
    PublishError,
    PushRejectedError,
    RepositoryUnavailableError,
    SyncStaleError,
    UnpublishedChangesError,
)
from src.git_integration.git_runner import GitCommandRunner
from src.git_integration.models import (
    ConnectionState,
    PublishResult,
    PublishStatus,
    RepositoryConfig,
    SyncResult,
)
from src.git_integration.remote_url import (
    build_auth_url,
    same_repository,
    sanitize_credentials,
    strip_credentials,
)

logger = logging.getLogger(__name__)

# Push failures that mean "the remote moved on" rather than "something broke"
PUSH_REJECTED_PATTERN = re.compile(r'non-fast-forward|fetch first|rejected', re.IGNORECASE)


class RepositoryConnection:
    """Wraps one project's local clone of its remote repository.

    The working copy at local_path is owned exclusively by this connection.
    Callers must hold the project's lock (see ConnectionRegistry.exclusive)
    while calling any method that touches the working tree.

    State machine:
        UNINITIALIZED -> initialize() -> SYNCED (or STALE if the pull failed)
        any -> initialize() failure -> ERROR
        SYNCED/STALE -> pull_latest() -> SYNCED on success, STALE on failure

    Example:
        >>> config = RepositoryConfig(remote_url="https://github.com/acme/blog.git")
        >>> conn = RepositoryConnection("p1", config, "/data/p1")
        >>> conn.initialize()
        >>> conn.pull_latest().is_fresh
        True
        >>> conn.publish("Update post").status
        <PublishStatus.NO_CHANGES: 'no_changes'>
    """

    def __init__(
        self,
        project_id: str,
        config: RepositoryConfig,
        local_path: Union[str, Path],
        runner: Optional[GitCommandRunner] = None,
    ):
        """Initialize the connection without touching the filesystem.

        Args:
            project_id: Project identifier (registry key)
            config: Repository configuration for the project
            local_path: Working copy root (<data-root>/<project-id>)
            runner: Git command runner (defaults to GitCommandRunner())
        """
        self.project_id = project_id
        self.config = config
        self.local_path = Path(local_path).absolute()
        self.runner = runner or GitCommandRunner()
        self.state = ConnectionState.UNINITIALIZED
        self.last_sync: Optional[SyncResult] = None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def _secrets(self) -> list:
        return [self.config.credential] if self.config.credential else []

    @property
    def _auth_url(self) -> str:
        return build_auth_url(self.config.remote_url, self.config.credential)

    @property
    def _clean_url(self) -> str:
        return strip_credentials(self.config.remote_url)

    @property
    def _tracking_ref(self) -> str:
        return self._tracking_ref_for(self.config.branch)

    @staticmethod
    def _tracking_ref_for(branch: str) -> str:
        return f"refs/remotes/origin/{branch}"

    def _git(self, *args: str, network: bool = False, check: bool = True):
        return self.runner.run(
            list(args),
            cwd=self.local_path,
            network=network,
            check=check,
            secrets=self._secrets,
        )

    def _set_state(self, state: ConnectionState) -> None:
        if state != self.state:
            logger.info(f"Project {self.project_id}: {self.state.value} -> {state.value}")
        self.state = state

    def has_clone(self) -> bool:
        """Check whether a local clone (a .git marker) exists."""
        return (self.local_path / ".git").exists()

    def get_local_path(self) -> Path:
        """Return the working copy root."""
        return self.local_path

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, discard_local_changes: bool = False) -> None:
        """Clone the remote, or open and reconcile an existing clone.

        If no clone exists, the configured branch is cloned into local_path.
        If one exists, the committer identity is re-applied and the origin
        remote and checked-out branch are compared with the configuration. A
        different repository or branch is treated as a configuration change:
        the working copy is deleted and re-cloned, unless it holds unpublished
        work and discard_local_changes is False. The same repository and
        branch get the origin URL refreshed and are pulled (a failed pull
        leaves the connection STALE, not failed).

        Args:
            discard_local_changes: Allow wiping unpublished local work when
                the configured remote or branch differs from the working copy

        Raises:
            UnpublishedChangesError: If re-cloning would discard local work
            RepositoryUnavailableError: If cloning or opening fails
        """
        try:
            if not self.has_clone():
                self._clone()
            else:
                self._prepare_existing(discard_local_changes)
        except UnpublishedChangesError:
            self._set_state(ConnectionState.ERROR)
            raise
        except (GitCommandError, OSError) as e:
            self._set_state(ConnectionState.ERROR)
            reason = sanitize_credentials(str(e), self._secrets)
            logger.error(f"Failed to initialize repository for project {self.project_id}: {reason}")
            raise RepositoryUnavailableError(self.project_id, reason) from e

    def _clone(self) -> None:
        """Clone the configured branch into local_path."""
        if self.local_path.exists():
            # Leftover from an aborted clone; the directory is ours alone
            shutil.rmtree(self.local_path)
        self.local_path.parent.mkdir(parents=True, exist_ok=True)

        logger.info(
            f"Cloning {self._clean_url} (branch {self.config.branch}) "
            f"for project {self.project_id}"
        )
        try:
            self.runner.run(
                [
                    "clone",
                    "--branch", self.config.branch,
                    "--single-branch",
                    "--",
                    self._auth_url,
                    str(self.local_path),
                ],
                network=True,
                secrets=self._secrets,
            )
        except GitCommandError:
            shutil.rmtree(self.local_path, ignore_errors=True)
            raise
        self._set_state(ConnectionState.CLONED)

        self._apply_identity()
        self._git("remote", "set-url", "origin", self._clean_url)
        self.last_sync = SyncResult.fresh()
        self._set_state(ConnectionState.SYNCED)

    def _apply_identity(self) -> None:
        self._git("config", "user.name", self.config.committer_name)
        self._git("config", "user.email", self.config.committer_email)

    def _origin_url(self) -> Optional[str]:
        result = self._git("remote", "get-url", "origin", check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def _current_branch(self) -> Optional[str]:
        """Branch checked out in the working copy (None when detached or unknown)."""
        result = self._git("symbolic-ref", "--short", "-q", "HEAD", check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def _reclone(self, reason: str) -> None:
        logger.warning(f"Project {self.project_id}: {reason}, re-cloning working copy")
        shutil.rmtree(self.local_path)
        self._set_state(ConnectionState.UNINITIALIZED)
        self._clone()

    def _prepare_existing(self, discard_local_changes: bool) -> None:
        """Reconcile an existing clone with the current configuration."""
        self._apply_identity()

        current_url = self._origin_url()
        if current_url is None:
            logger.info(f"Project {self.project_id}: no origin remote, adding {self._clean_url}")
            self._git("remote", "add", "origin", self._clean_url)
        elif not same_repository(current_url, self.config.remote_url):
            current_clean = strip_credentials(current_url)
            if self.has_unpublished_changes() and not discard_local_changes:
                raise UnpublishedChangesError(self.project_id, current_clean, self._clean_url)
            self._reclone(f"remote changed from {current_clean} to {self._clean_url}")
            return
        else:
            # Same repository: also drops any token a previous version left in .git/config
            self._git("remote", "set-url", "origin", self._clean_url)

        current_branch = self._current_branch()
        if current_branch is not None and current_branch != self.config.branch:
            if self.has_unpublished_changes(current_branch) and not discard_local_changes:
                raise UnpublishedChangesError(
                    self.project_id,
                    f"{self._clean_url} (branch {current_branch})",
                    f"{self._clean_url} (branch {self.config.branch})",
                )
            self._reclone(f"branch changed from {current_branch} to {self.config.branch}")
            return

        self.pull_latest()

    # ------------------------------------------------------------------
    # Sync protocol
    # ------------------------------------------------------------------

    def pull_latest(self, require_fresh: bool = False) -> SyncResult:
        """Fetch the configured branch from origin and fast-forward to it.

        Failures are soft by default: the connection degrades to STALE and a
        STALE SyncResult is returned so callers can keep working against the
        last known working tree.

        Args:
            require_fresh: Raise instead of returning a STALE result

        Returns:
            SyncResult (FRESH or STALE with a sanitized reason)

        Raises:
            SyncStaleError: If the pull failed and require_fresh is True
        """
        branch = self.config.branch
        try:
            if not self.has_clone():
                raise GitCommandError("fetch", f"no working copy at {self.local_path}")
            self._git(
                "fetch", "--", self._auth_url, f"+refs/heads/{branch}:{self._tracking_ref}",
                network=True,
            )
            self._git("merge", "--ff-only", self._tracking_ref)
        except GitCommandError as e:
            reason = e.message
            logger.warning(f"Pull failed for project {self.project_id}, working copy is stale: {reason}")
            self.last_sync = SyncResult.stale(reason)
            self._set_state(ConnectionState.STALE)
            if require_fresh:
                raise SyncStaleError(self.project_id, reason) from e
            return self.last_sync

        logger.debug(f"Pulled {branch} for project {self.project_id}")
        self.last_sync = SyncResult.fresh()
        self._set_state(ConnectionState.SYNCED)
        return self.last_sync

    def publish(self, commit_message: str) -> PublishResult:
        """Stage everything, commit and push to origin/<branch>.

        Nothing is committed when the working tree is clean. Commits left
        behind by an earlier failed push are still pushed.

        Args:
            commit_message: Commit message for the staged changes

        Returns:
            PublishResult with status PUBLISHED or NO_CHANGES

        Raises:
            PushRejectedError: If the remote rejected the push (non-fast-forward)
            PublishError: If staging, committing or pushing failed otherwise
        """
        try:
            self._git("add", "-A")
            dirty = bool(self._git("status", "--porcelain").stdout.strip())
            ahead = self._commits_ahead()

            if not dirty and ahead == 0:
                logger.debug(f"No changes to publish for project {self.project_id}")
                return PublishResult(status=PublishStatus.NO_CHANGES, message="No changes to publish")

            if dirty:
                self._git("commit", "-m", commit_message)
        except GitCommandError as e:
            logger.error(f"Commit failed for project {self.project_id}: {e.message}")
            raise PublishError(self.project_id, e.message) from e

        try:
            result = self._git(
                "push", "--", self._auth_url, f"HEAD:refs/heads/{self.config.branch}",
                network=True, check=False,
            )
        except GitCommandError as e:
            logger.error(f"Push failed for project {self.project_id}: {e.message}")
            raise PublishError(self.project_id, e.message) from e

        if result.returncode != 0:
            output = sanitize_credentials((result.stderr or "").strip(), self._secrets)
            if PUSH_REJECTED_PATTERN.search(output):
                logger.warning(f"Push rejected for project {self.project_id}: {output}")
                raise PushRejectedError(self.project_id, output)
            logger.error(f"Push failed for project {self.project_id}: {output}")
            raise PublishError(self.project_id, output or f"exit code {result.returncode}")

        sha: Optional[str] = None
        try:
            # Pushing to a URL does not move the tracking ref
            self._git("update-ref", self._tracking_ref, "HEAD")
            sha = self.head_sha()
        except GitCommandError as e:
            logger.warning(
                f"Pushed project {self.project_id} but could not update {self._tracking_ref}: {e.message}"
            )
        logger.info(f"Published project {self.project_id}" + (f" at {sha[:8]}" if sha else ""))
        return PublishResult(
            status=PublishStatus.PUBLISHED,
            message="Changes published successfully",
            commit_sha=sha,
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def _commits_ahead(self, branch: Optional[str] = None) -> int:
        """Count local commits not yet on origin/<branch> (default: the configured branch)."""
        tracking_ref = self._tracking_ref_for(branch or self.config.branch)
        result = self._git("rev-list", "--count", f"{tracking_ref}..HEAD", check=False)
        if result.returncode == 0:
            return int(result.stdout.strip() or 0)
        # No tracking ref: every local commit is unpublished
        return self.commit_count()

    def has_unpublished_changes(self, branch: Optional[str] = None) -> bool:
        """Check for uncommitted edits or commits not pushed to origin/<branch>."""
        status = self._git("status", "--porcelain", check=False)
        if status.returncode == 0 and status.stdout.strip():
            return True
        return self._commits_ahead(branch) > 0

    def commit_count(self) -> int:
        """Number of commits reachable from HEAD (0 for an empty repository)."""
        result = self._git("rev-list", "--count", "HEAD", check=False)
        if result.returncode != 0:
            return 0
        return int(result.stdout.strip() or 0)

    def head_sha(self) -> str:
        """Full SHA of HEAD."""
        return self._git("rev-parse", "HEAD").stdout.strip()
