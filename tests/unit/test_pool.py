"""
Unit tests for the connection pool registry.

Tests cover:
- Single construction per key
- Concurrent first access
- Failure handling and retry
- Pool settings passthrough
"""

import logging
import threading
import time

import pytest

from entmap.config import EntMapConfig, PoolConfig, StorageConfig
from entmap.engine import SqlitePool
from entmap.errors import PoolUnavailableError
from entmap.pool import ConnectionPool, get_pool, reset_pools, sqlite_pool_factory


def memory_pool(key):
    return ConnectionPool(SqlitePool(":memory:", max_size=1))


class TestGetPool:
    """Tests for get_pool()."""

    @pytest.fixture(autouse=True)
    def clean_registry(self):
        """Reset the global registry around each test."""
        reset_pools()
        yield
        reset_pools()

    def test_factory_called_once(self):
        """Repeated lookups return the first pool."""
        calls = []

        def factory(key):
            calls.append(key)
            return memory_pool(key)

        first = get_pool("production", factory)
        second = get_pool("production", factory)

        assert first is second
        assert calls == ["production"]

    def test_keys_are_independent(self):
        """Different keys get different pools."""
        assert get_pool("a", memory_pool) is not get_pool("b", memory_pool)

    def test_later_factory_ignored(self):
        """Once registered, another factory is never consulted."""
        first = get_pool("production", memory_pool)

        def failing(key):
            raise AssertionError("should not be called")

        assert get_pool("production", failing) is first

    def test_concurrent_first_access(self):
        """Racing callers all receive the single registered pool."""
        calls = []
        results = []
        start = threading.Barrier(10)

        def factory(key):
            calls.append(key)
            time.sleep(0.05)
            return memory_pool(key)

        def worker():
            start.wait()
            results.append(get_pool("shared", factory))

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(calls) == 1
        assert len(results) == 10
        assert all(pool is results[0] for pool in results)

    def test_failure_raises_and_retries(self, caplog):
        """A failing factory registers nothing; the next call retries."""

        def broken(key):
            raise OSError("disk unavailable")

        with caplog.at_level(logging.ERROR):
            with pytest.raises(PoolUnavailableError) as exc_info:
                get_pool("production", broken)

        assert exc_info.value.key == "production"
        assert isinstance(exc_info.value.__cause__, OSError)
        assert "Unable to instantiate connection pool for 'production'" in caplog.text

        pool = get_pool("production", memory_pool)
        assert isinstance(pool, ConnectionPool)

    def test_none_result_is_failure(self):
        """A factory returning None is treated as a failure."""
        with pytest.raises(PoolUnavailableError):
            get_pool("production", lambda key: None)

        assert get_pool("production", memory_pool) is not None


class TestConnectionPool:
    """Tests for ConnectionPool."""

    def test_auto_create_passthrough(self):
        """auto_create reads and writes the underlying pool."""
        inner = SqlitePool(":memory:", auto_create=False)
        pool = ConnectionPool(inner)

        pool.auto_create = True

        assert inner.auto_create is True
        assert pool.auto_create is True

    def test_sqlite_factory_uses_config(self, tmp_path):
        """The SQLite factory maps keys to files under the data directory."""
        config = EntMapConfig(
            storage=StorageConfig(data_dir=str(tmp_path), wal_mode=False),
            pool=PoolConfig(max_size=2, auto_create=True),
        )

        pool = sqlite_pool_factory(config)("tenant_1")
        try:
            assert pool.path == str(tmp_path / "tenant_1.db")
            with pool.acquire() as database:
                assert database.schema.classes() == []
        finally:
            pool.close()

        assert (tmp_path / "tenant_1.db").exists()

    def test_disallowed_key_not_registered(self, tmp_path):
        """A key the SQLite factory rejects leaves the registry empty."""
        reset_pools()
        factory = sqlite_pool_factory(EntMapConfig(storage=StorageConfig(data_dir=str(tmp_path))))

        try:
            with pytest.raises(PoolUnavailableError) as exc_info:
                get_pool("tenant/1", factory)

            assert isinstance(exc_info.value.__cause__, ValueError)
            assert get_pool("tenant1", factory).path == str(tmp_path / "tenant1.db")
        finally:
            reset_pools()
