"""Process-wide cache of repository connections, one per project.

The registry is the single owner of every RepositoryConnection. It guarantees
that at most one live connection exists per project id (single-flight
creation) and hands out exclusive access to a project's working copy for the
duration of a git-mutating sequence (pull -> write files -> commit -> push).
"""

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Dict, Iterator, Optional, Union

from src.git_integration.errors import ProjectBusyError
from src.git_integration.git_repository import RepositoryConnection
from src.git_integration.git_runner import GitCommandRunner
from src.git_integration.models import RepositoryConfig

logger = logging.getLogger(__name__)

# Seconds a caller waits for another operation on the same project
LOCK_TIMEOUT = 60.0

ConnectionFactory = Callable[[str, RepositoryConfig, Path], RepositoryConnection]


class ConnectionRegistry:
    """Maps project id -> RepositoryConnection with get-or-create semantics.

    Each project gets its own re-entrant lock. get_or_init() creates and
    initializes a connection while holding that lock, so concurrent callers
    for the same project wait for the first one instead of cloning twice.
    A connection is cached only after initialize() succeeded; a failure
    leaves the slot empty and the next call retries cleanly.

    Different projects never wait on each other: the registry-wide lock
    only guards the dictionaries themselves and is never held during I/O.

    The registry is an explicit object. Whoever bootstraps the service owns
    its lifetime; there is no module-level instance.

    Example:
        >>> registry = ConnectionRegistry("/srv/gitcms/data")
        >>> with registry.exclusive("p1", config) as conn:
        ...     conn.pull_latest()
        ...     conn.publish("Update post")
    """

    def __init__(
        self,
        data_root: Union[str, Path],
        runner: Optional[GitCommandRunner] = None,
        connection_factory: Optional[ConnectionFactory] = None,
        lock_timeout: float = LOCK_TIMEOUT,
    ):
        """Initialize an empty registry.

        Args:
            data_root: Directory holding one working copy per project
            runner: Git runner shared by all connections
            connection_factory: Builds a connection from (project_id, config,
                local_path); defaults to RepositoryConnection
            lock_timeout: Seconds to wait for a busy project before failing
        """
        self.data_root = Path(data_root).absolute()
        self.runner = runner or GitCommandRunner()
        self._factory = connection_factory or self._default_factory
        self.lock_timeout = lock_timeout
        self._connections: Dict[str, RepositoryConnection] = {}
        self._project_locks: Dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def _default_factory(
        self, project_id: str, config: RepositoryConfig, local_path: Path
    ) -> RepositoryConnection:
        return RepositoryConnection(project_id, config, local_path, runner=self.runner)

    def local_path_for(self, project_id: str) -> Path:
        """Working copy path for a project: <data-root>/<project-id>."""
        if not project_id or "/" in project_id or "\\" in project_id or project_id in (".", ".."):
            raise ValueError(f"Invalid project id: '{project_id}'")
        return self.data_root / project_id

    def _lock_for(self, project_id: str) -> threading.RLock:
        # Locks are never pruned, not even by dispose(): a caller waiting on
        # the old lock must still exclude callers that arrive after it.
        # One RLock per project id ever used.
        with self._registry_lock:
            lock = self._project_locks.get(project_id)
            if lock is None:
                lock = threading.RLock()
                self._project_locks[project_id] = lock
            return lock

    @contextmanager
    def locked(self, project_id: str, timeout: Optional[float] = None) -> Iterator[None]:
        """Hold the project's lock, failing with ProjectBusyError on timeout.

        The lock is released when the block exits, including on error or on
        a git timeout, so a later request can always retry.
        """
        wait = self.lock_timeout if timeout is None else timeout
        lock = self._lock_for(project_id)
        if not lock.acquire(timeout=wait):
            logger.warning(f"Project {project_id} busy for more than {wait}s")
            raise ProjectBusyError(project_id, wait)
        try:
            yield
        finally:
            lock.release()

    def get(self, project_id: str) -> Optional[RepositoryConnection]:
        """Cache lookup only: no I/O, no initialization."""
        with self._registry_lock:
            return self._connections.get(project_id)

    def get_or_init(
        self,
        project_id: str,
        config: RepositoryConfig,
        discard_local_changes: bool = False,
    ) -> RepositoryConnection:
        """Return the cached connection, creating and initializing it if absent.

        Args:
            project_id: Project identifier
            config: Repository configuration used when a connection is created
            discard_local_changes: Passed to RepositoryConnection.initialize()

        Returns:
            The single live connection for the project

        Raises:
            RepositoryUnavailableError: If the new connection fails to initialize
            ProjectBusyError: If the project lock cannot be acquired in time
        """
        existing = self.get(project_id)
        if existing is not None:
            return existing

        with self.locked(project_id):
            # Another thread may have finished initializing while we waited
            existing = self.get(project_id)
            if existing is not None:
                return existing

            connection = self._factory(project_id, config, self.local_path_for(project_id))
            connection.initialize(discard_local_changes=discard_local_changes)

            with self._registry_lock:
                self._connections[project_id] = connection
            logger.debug(f"Cached connection for project {project_id}")
            return connection

    @contextmanager
    def exclusive(
        self,
        project_id: str,
        config: Optional[RepositoryConfig] = None,
        timeout: Optional[float] = None,
    ) -> Iterator[RepositoryConnection]:
        """Exclusive access to a project's connection for a git-mutating sequence.

        Args:
            project_id: Project identifier
            config: Configuration to initialize with if not yet connected;
                without it an unconnected project raises KeyError
            timeout: Override for the lock timeout

        Yields:
            The project's RepositoryConnection, locked for the caller
        """
        with self.locked(project_id, timeout):
            connection = self.get(project_id)
            if connection is None:
                if config is None:
                    raise KeyError(f"Project {project_id} is not connected")
                connection = self.get_or_init(project_id, config)
            yield connection

    def dispose(self, project_id: str) -> None:
        """Evict a project's connection. Its lock and on-disk clone are left untouched."""
        with self._registry_lock:
            removed = self._connections.pop(project_id, None)
        if removed is not None:
            logger.info(f"Disposed connection for project {project_id}")

    def dispose_all(self) -> None:
        """Evict every cached connection."""
        with self._registry_lock:
            self._connections.clear()
