"""Unit tests for git_integration.connection_registry module."""

import threading
import time
from unittest.mock import MagicMock

import pytest

from src.git_integration.connection_registry import ConnectionRegistry
from src.git_integration.errors import ProjectBusyError, RepositoryUnavailableError
from src.git_integration.models import ConnectionState, RepositoryConfig


class FakeConnection:
    """Stand-in for RepositoryConnection that counts initialize() calls."""

    init_delay = 0.0
    fail_next = 0

    def __init__(self, project_id, config, local_path):
        self.project_id = project_id
        self.config = config
        self.local_path = local_path
        self.state = ConnectionState.UNINITIALIZED
        self.init_calls = 0

    def initialize(self, discard_local_changes=False):
        self.init_calls += 1
        if self.init_delay:
            time.sleep(self.init_delay)
        if FakeConnection.fail_next:
            FakeConnection.fail_next -= 1
            self.state = ConnectionState.ERROR
            raise RepositoryUnavailableError(self.project_id, "unreachable")
        self.state = ConnectionState.SYNCED


@pytest.fixture
def created():
    return []


@pytest.fixture
def registry(tmp_path, created):
    FakeConnection.init_delay = 0.0
    FakeConnection.fail_next = 0

    def factory(project_id, config, local_path):
        connection = FakeConnection(project_id, config, local_path)
        created.append(connection)
        return connection

    return ConnectionRegistry(tmp_path / "data", runner=MagicMock(), connection_factory=factory, lock_timeout=2)


@pytest.fixture
def config():
    return RepositoryConfig(remote_url="https://github.com/acme/blog.git")


class TestGetOrInit:
    """Test cases for get_or_init()."""

    def test_creates_and_caches(self, registry, config, created):
        first = registry.get_or_init("p1", config)
        second = registry.get_or_init("p1", config)

        assert first is second
        assert len(created) == 1
        assert first.init_calls == 1
        assert registry.get("p1") is first

    def test_local_path_under_data_root(self, registry, config, tmp_path):
        connection = registry.get_or_init("p1", config)

        assert connection.local_path == (tmp_path / "data" / "p1").absolute()

    def test_failed_initialize_is_not_cached(self, registry, config, created):
        FakeConnection.fail_next = 1

        with pytest.raises(RepositoryUnavailableError):
            registry.get_or_init("p1", config)

        assert registry.get("p1") is None
        connection = registry.get_or_init("p1", config)
        assert connection.state == ConnectionState.SYNCED
        assert len(created) == 2

    def test_concurrent_callers_share_one_initialization(self, registry, config, created):
        """Single-flight: ten threads asking at once produce one clone."""
        FakeConnection.init_delay = 0.2
        results = []
        errors = []

        def worker():
            try:
                results.append(registry.get_or_init("p1", config))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(created) == 1
        assert created[0].init_calls == 1
        assert all(r is results[0] for r in results)

    def test_different_projects_do_not_block_each_other(self, registry, config):
        FakeConnection.init_delay = 0.3
        started = time.monotonic()

        threads = [
            threading.Thread(target=registry.get_or_init, args=(pid, config))
            for pid in ("p1", "p2", "p3")
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert time.monotonic() - started < 0.8
        assert all(registry.get(pid) is not None for pid in ("p1", "p2", "p3"))

    @pytest.mark.parametrize("project_id", ["", ".", "..", "a/b", "a\\b"])
    def test_invalid_project_id_rejected(self, registry, config, project_id):
        with pytest.raises(ValueError):
            registry.get_or_init(project_id, config)


class TestExclusive:
    """Test cases for exclusive() and locked()."""

    def test_yields_connection_and_initializes_lazily(self, registry, config, created):
        with registry.exclusive("p1", config) as connection:
            assert connection is registry.get("p1")

        assert len(created) == 1

    def test_unconnected_project_without_config_raises(self, registry):
        with pytest.raises(KeyError):
            with registry.exclusive("p1"):
                pass

    def test_is_reentrant_for_the_same_thread(self, registry, config):
        with registry.exclusive("p1", config):
            with registry.exclusive("p1", config) as inner:
                assert inner is registry.get("p1")

    def test_busy_project_raises_after_timeout(self, registry, config):
        holding = threading.Event()
        release = threading.Event()

        def holder():
            with registry.exclusive("p1", config):
                holding.set()
                release.wait(5)

        thread = threading.Thread(target=holder)
        thread.start()
        holding.wait(5)
        try:
            with pytest.raises(ProjectBusyError) as exc_info:
                with registry.exclusive("p1", config, timeout=0.1):
                    pass
            assert exc_info.value.project_id == "p1"
        finally:
            release.set()
            thread.join()

    def test_lock_released_after_exception(self, registry, config):
        with pytest.raises(RuntimeError):
            with registry.exclusive("p1", config):
                raise RuntimeError("boom")

        acquired = []

        def other():
            with registry.exclusive("p1", config, timeout=0.5):
                acquired.append(True)

        thread = threading.Thread(target=other)
        thread.start()
        thread.join()
        assert acquired == [True]

    def test_exclusive_serializes_operations(self, registry, config):
        """Two writers on one project never overlap."""
        active = []
        overlaps = []

        def writer():
            with registry.exclusive("p1", config):
                active.append(1)
                if len(active) > 1:
                    overlaps.append(True)
                time.sleep(0.05)
                active.pop()

        threads = [threading.Thread(target=writer) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert overlaps == []


class TestDispose:
    """Test cases for dispose() and dispose_all()."""

    def test_dispose_forces_new_connection(self, registry, config, created):
        first = registry.get_or_init("p1", config)

        registry.dispose("p1")

        assert registry.get("p1") is None
        assert registry.get_or_init("p1", config) is not first
        assert len(created) == 2

    def test_dispose_keeps_project_lock(self, registry, config):
        """A disposed project still serializes callers that arrive afterwards."""
        holding = threading.Event()
        release = threading.Event()

        def holder():
            with registry.locked("p1"):
                holding.set()
                release.wait(5)

        registry.get_or_init("p1", config)
        thread = threading.Thread(target=holder)
        thread.start()
        holding.wait(5)
        try:
            registry.dispose("p1")
            with pytest.raises(ProjectBusyError):
                with registry.locked("p1", timeout=0.1):
                    pass
        finally:
            release.set()
            thread.join()

    def test_dispose_unknown_project_is_noop(self, registry):
        registry.dispose("nope")

    def test_dispose_all(self, registry, config):
        registry.get_or_init("p1", config)
        registry.get_or_init("p2", config)

        registry.dispose_all()

        assert registry.get("p1") is None
        assert registry.get("p2") is None
