"""
Unit tests for configuration loading.

Tests cover:
- Defaults
- Environment overrides
- Validation errors
- Database path derivation
"""

import os

import pytest

from entmap.config import EntMapConfig, PoolConfig, SchemaConfig, StorageConfig


class TestEntMapConfig:
    """Tests for EntMapConfig."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        """Remove ENTMAP_ variables from the environment."""
        for name in list(os.environ):
            if name.startswith("ENTMAP_"):
                monkeypatch.delenv(name)

    def test_defaults(self):
        """Defaults are usable for local development."""
        config = EntMapConfig.from_env()

        assert config.storage.data_dir == "./data"
        assert config.pool.max_size == 8
        assert config.pool.auto_create is True
        assert config.schema.strict_targets is False
        assert config.observability.log_format == "text"

    def test_env_overrides(self, monkeypatch, tmp_path):
        """Environment variables override defaults."""
        monkeypatch.setenv("ENTMAP_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("ENTMAP_POOL_MAX_SIZE", "2")
        monkeypatch.setenv("ENTMAP_POOL_AUTO_CREATE", "false")
        monkeypatch.setenv("ENTMAP_STRICT_TARGETS", "TRUE")
        monkeypatch.setenv("ENTMAP_LOG_FORMAT", "json")

        config = EntMapConfig.from_env()

        assert config.storage.data_dir == str(tmp_path)
        assert config.pool.max_size == 2
        assert config.pool.auto_create is False
        assert config.schema.strict_targets is True
        assert config.observability.log_format == "json"

    def test_pattern_requires_key(self, monkeypatch):
        """Database pattern must include {key}."""
        monkeypatch.setenv("ENTMAP_DATABASE_PATTERN", "app.db")

        with pytest.raises(ValueError, match="ENTMAP_DATABASE_PATTERN"):
            EntMapConfig.from_env()

    def test_pool_size_positive(self, monkeypatch):
        """Pool size must be positive."""
        monkeypatch.setenv("ENTMAP_POOL_MAX_SIZE", "0")

        with pytest.raises(ValueError, match="ENTMAP_POOL_MAX_SIZE"):
            EntMapConfig.from_env()

    def test_log_format_checked(self, monkeypatch):
        """Only json and text log formats are accepted."""
        monkeypatch.setenv("ENTMAP_LOG_FORMAT", "xml")

        with pytest.raises(ValueError, match="ENTMAP_LOG_FORMAT"):
            EntMapConfig.from_env()

    def test_sub_configs_frozen(self):
        """Section configs are immutable."""
        with pytest.raises(AttributeError):
            PoolConfig().max_size = 1  # type: ignore[misc]
        assert SchemaConfig(strict_targets=True).strict_targets is True


class TestStorageConfig:
    """Tests for StorageConfig.database_path()."""

    def test_key_substituted(self, tmp_path):
        """The key fills the file name pattern."""
        storage = StorageConfig(data_dir=str(tmp_path), database_pattern="entmap-{key}.sqlite")

        assert storage.database_path("production") == str(tmp_path / "entmap-production.sqlite")

    def test_key_allowed_characters(self, tmp_path):
        """Letters, digits, dashes and underscores are kept as given."""
        storage = StorageConfig(data_dir=str(tmp_path))

        assert storage.database_path("tenant-1_eu") == str(tmp_path / "tenant-1_eu.db")

    @pytest.mark.parametrize("key", ["../etc/passwd", "a/b", "a.b", "prod db", ""])
    def test_disallowed_key_rejected(self, key):
        """Keys with other characters raise instead of being rewritten."""
        with pytest.raises(ValueError, match="may only contain"):
            StorageConfig().database_path(key)

    def test_distinct_keys_never_share_a_file(self, tmp_path):
        """Keys differing only by a separator do not collapse to one path."""
        storage = StorageConfig(data_dir=str(tmp_path))

        assert storage.database_path("ab") == str(tmp_path / "ab.db")
        with pytest.raises(ValueError):
            storage.database_path("a/b")
