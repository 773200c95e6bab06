"""
Process-wide registry of database connection pools.

Pools are expensive and shared, so they are looked up by key (for
example "production" or "test") rather than built by callers. The first
request for a key builds the pool through a caller-supplied factory:

    >>> pool = get_pool("production", sqlite_pool_factory(config))
    >>> with pool.acquire() as db:
    ...     ensure_type(Person, db.schema, create_if_missing=True)

Invariants:
    - At most one pool is registered per key for the life of the process
    - A factory is never called again for a key once it has succeeded
    - A failed construction registers nothing, so the next call retries
    - Registered pools are never evicted or refreshed

How to change safely:
    - Keep the factory call inside the registry lock
    - reset_pools() is for tests only
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from .config import EntMapConfig
from .engine.sqlite import SqliteDatabase, SqlitePool
from .errors import PoolUnavailableError

logger = logging.getLogger(__name__)


class ConnectionPool:
    """Shared wrapper around a SqlitePool.

    Obtain instances through get_pool() so that every caller using the
    same key shares one pool.
    """

    def __init__(self, pool: SqlitePool) -> None:
        self._pool = pool

    def __repr__(self) -> str:
        return f"ConnectionPool({self._pool.path!r})"

    @property
    def auto_create(self) -> bool:
        """Whether the underlying pool creates a missing database."""
        return self._pool.auto_create

    @auto_create.setter
    def auto_create(self, value: bool) -> None:
        self._pool.auto_create = value

    @property
    def path(self) -> str:
        return self._pool.path

    @contextmanager
    def acquire(self) -> Iterator[SqliteDatabase]:
        """Borrow one database connection for the duration of the block."""
        with self._pool.acquire() as database:
            yield database

    def close(self) -> None:
        self._pool.close()


ConnectionPoolFactory = Callable[[str], ConnectionPool]

# Global registry
_pools: dict[str, ConnectionPool] = {}
_pools_lock = threading.Lock()


def get_pool(key: str, factory: ConnectionPoolFactory) -> ConnectionPool:
    """Get the pool registered under key, building it on first use.

    Args:
        key: Pool selection key
        factory: Called with key to build the pool when none is registered

    Returns:
        The registered pool

    Raises:
        PoolUnavailableError: If the factory fails; nothing is registered
    """
    existing = _pools.get(key)
    if existing is not None:
        return existing

    with _pools_lock:
        existing = _pools.get(key)
        if existing is not None:
            return existing

        try:
            pool = factory(key)
        except Exception as e:
            logger.exception(f"Unable to instantiate connection pool for '{key}'")
            raise PoolUnavailableError(key) from e
        if pool is None:
            logger.error(f"Connection pool factory returned nothing for '{key}'")
            raise PoolUnavailableError(key)

        _pools[key] = pool
        logger.info(f"Registered connection pool for '{key}'")
        return pool


def reset_pools() -> None:
    """Close and forget every registered pool (for testing only)."""
    with _pools_lock:
        for pool in _pools.values():
            pool.close()
        _pools.clear()


def sqlite_pool_factory(config: EntMapConfig | None = None) -> ConnectionPoolFactory:
    """Factory mapping a key to a SQLite file under the data directory.

    Args:
        config: Configuration to use (loaded from env if not provided)
    """
    config = config or EntMapConfig.from_env()

    def factory(key: str) -> ConnectionPool:
        return ConnectionPool(
            SqlitePool(
                config.storage.database_path(key),
                max_size=config.pool.max_size,
                acquire_timeout=config.pool.acquire_timeout,
                auto_create=config.pool.auto_create,
                wal_mode=config.storage.wal_mode,
                busy_timeout_ms=config.storage.busy_timeout_ms,
            )
        )

    return factory
