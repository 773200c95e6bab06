"""
Configuration management for entmap.

All configuration is done via environment variables prefixed ENTMAP_.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Production deployments SHOULD set an explicit data directory

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Deprecate settings by logging warnings but continuing to support them
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class StorageConfig:
    """Local storage configuration.

    Attributes:
        data_dir: Directory for SQLite databases
        database_pattern: File name pattern, {key} is the pool key
        wal_mode: SQLite WAL mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
    """

    data_dir: str = "./data"
    database_pattern: str = "{key}.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        return cls(
            data_dir=os.getenv("ENTMAP_DATA_DIR", "./data"),
            database_pattern=os.getenv("ENTMAP_DATABASE_PATTERN", "{key}.db"),
            wal_mode=_env_bool("ENTMAP_SQLITE_WAL_MODE", "true"),
            busy_timeout_ms=int(os.getenv("ENTMAP_SQLITE_BUSY_TIMEOUT_MS", "5000")),
        )

    def database_path(self, key: str) -> str:
        """Database file for a pool key.

        Raises:
            ValueError: If the key is empty or holds characters other than
                letters, digits, '-' and '_'
        """
        # Distinct keys must never map to the same file
        if not key or not all(c.isalnum() or c in "-_" for c in key):
            raise ValueError(
                f"Pool key {key!r} may only contain letters, digits, '-' and '_'"
            )
        return str(Path(self.data_dir) / self.database_pattern.format(key=key))


@dataclass(frozen=True)
class PoolConfig:
    """Connection pool configuration.

    Attributes:
        max_size: Maximum open connections per pool
        acquire_timeout: Seconds to wait for a free connection
        auto_create: Create missing database files on connect
    """

    max_size: int = 8
    acquire_timeout: float = 30.0
    auto_create: bool = True

    @classmethod
    def from_env(cls) -> PoolConfig:
        """Load configuration from environment variables."""
        return cls(
            max_size=int(os.getenv("ENTMAP_POOL_MAX_SIZE", "8")),
            acquire_timeout=float(os.getenv("ENTMAP_POOL_ACQUIRE_TIMEOUT", "30")),
            auto_create=_env_bool("ENTMAP_POOL_AUTO_CREATE", "true"),
        )


@dataclass(frozen=True)
class SchemaConfig:
    """Schema mapping configuration.

    Attributes:
        strict_targets: Fail instead of warning when a link/embedded
            field's target cannot be used as an ancestor
    """

    strict_targets: bool = False

    @classmethod
    def from_env(cls) -> SchemaConfig:
        """Load configuration from environment variables."""
        return cls(strict_targets=_env_bool("ENTMAP_STRICT_TARGETS", "false"))


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("ENTMAP_LOG_LEVEL", "INFO"),
            log_format=os.getenv("ENTMAP_LOG_FORMAT", "text"),
        )


@dataclass
class EntMapConfig:
    """Complete configuration.

    Attributes:
        storage: Local storage configuration
        pool: Connection pool configuration
        schema: Schema mapping configuration
        observability: Logging configuration
    """

    storage: StorageConfig = field(default_factory=StorageConfig)
    pool: PoolConfig = field(default_factory=PoolConfig)
    schema: SchemaConfig = field(default_factory=SchemaConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> EntMapConfig:
        """Load complete configuration from environment variables.

        Raises:
            ValueError: If configuration is invalid.
        """
        config = cls(
            storage=StorageConfig.from_env(),
            pool=PoolConfig.from_env(),
            schema=SchemaConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if "{key}" not in self.storage.database_pattern:
            raise ValueError("ENTMAP_DATABASE_PATTERN must contain '{key}'")
        if self.pool.max_size <= 0:
            raise ValueError("ENTMAP_POOL_MAX_SIZE must be positive")
        if self.observability.log_format not in ("json", "text"):
            raise ValueError("ENTMAP_LOG_FORMAT must be 'json' or 'text'")

        if not os.path.exists(self.storage.data_dir):
            logger.warning(
                f"Data directory does not exist: {self.storage.data_dir}. "
                "It will be created on first write."
            )

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "entmap configuration loaded",
            extra={
                "data_dir": self.storage.data_dir,
                "database_pattern": self.storage.database_pattern,
                "pool_max_size": self.pool.max_size,
                "pool_auto_create": self.pool.auto_create,
                "strict_targets": self.schema.strict_targets,
                "log_level": self.observability.log_level,
            },
        )
