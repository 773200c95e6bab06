"""
Schema CLI tool for entmap.

This tool brings a database schema in line with a module of entities:
- sync: Create missing classes, properties and unique indexes
- show: Print the schema catalog as JSON

Usage:
    entmap sync --module myapp.models --database ./data/app.db
    entmap sync --module myapp.models --key production
    entmap show --database ./data/app.db

Invariants:
    - sync only ever adds schema elements and is safe to re-run
    - show output is deterministic (sorted JSON)
    - Failures exit non-zero

How to change safely:
    - Add new commands, don't modify existing ones
    - Keep output format stable for CI parsing
"""

from __future__ import annotations

import argparse
import importlib
import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from types import ModuleType

import json_log_formatter

from ..config import EntMapConfig, SchemaConfig
from ..engine import EngineError, SqliteDatabase, schema_to_dict
from ..errors import EntMapError
from ..pool import get_pool, sqlite_pool_factory
from ..schema import is_schema_backed, sync_types

logger = logging.getLogger(__name__)


def setup_logging(config: EntMapConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Loaded configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]


def entity_types(module: ModuleType) -> list[type]:
    """Entity classes defined in a module, in definition order."""
    return [
        obj
        for obj in vars(module).values()
        if isinstance(obj, type) and obj.__module__ == module.__name__ and is_schema_backed(obj)
    ]


class SchemaCLI:
    """CLI tool for schema reconciliation.

    Example:
        >>> cli = SchemaCLI(config)
        >>> cli.sync("myapp.models", database_path="./data/app.db")
    """

    def __init__(self, config: EntMapConfig) -> None:
        self.config = config

    @contextmanager
    def open_database(
        self,
        database_path: str | None = None,
        key: str | None = None,
        create: bool = False,
    ) -> Iterator[SqliteDatabase]:
        """Open a database by file path or through the pool registry."""
        if database_path:
            database = SqliteDatabase(
                database_path,
                create=create,
                wal_mode=self.config.storage.wal_mode,
                busy_timeout_ms=self.config.storage.busy_timeout_ms,
            )
            try:
                yield database
            finally:
                database.close()
        elif key:
            pool = get_pool(key, sqlite_pool_factory(self.config))
            with pool.acquire() as database:
                yield database
        else:
            raise ValueError("Either a database path or a pool key is required")

    def sync(
        self,
        module_path: str,
        database_path: str | None = None,
        key: str | None = None,
    ) -> list[str]:
        """Reconcile every entity of a module into the schema.

        Returns:
            Names of the synchronized schema classes
        """
        module = importlib.import_module(module_path)
        types = entity_types(module)
        if not types:
            logger.warning(f"No entity types found in {module_path}")

        with self.open_database(database_path, key, create=True) as database:
            synced = sync_types(
                types,
                database.schema,
                strict_targets=self.config.schema.strict_targets,
            )
        return [schema_class.name for schema_class in synced]

    def show(self, database_path: str | None = None, key: str | None = None) -> str:
        """Schema catalog as sorted JSON."""
        with self.open_database(database_path, key) as database:
            return json.dumps(schema_to_dict(database.schema), indent=2, sort_keys=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="entmap schema management tool")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", help="Create missing schema elements")
    sync_parser.add_argument("--module", "-m", required=True, help="Module defining entities")
    sync_parser.add_argument(
        "--strict", action="store_true", help="Fail on unusable link/embedded targets"
    )

    show_parser = subparsers.add_parser("show", help="Print the schema as JSON")

    for sub in (sync_parser, show_parser):
        target = sub.add_mutually_exclusive_group(required=True)
        target.add_argument("--database", "-d", help="SQLite database file")
        target.add_argument("--key", "-k", help="Pool key resolved under ENTMAP_DATA_DIR")

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for the schema tool."""
    args = build_parser().parse_args(argv)

    try:
        config = EntMapConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    if args.command == "sync" and args.strict:
        config.schema = SchemaConfig(strict_targets=True)

    setup_logging(config)
    config.log_config()
    cli = SchemaCLI(config)

    try:
        if args.command == "sync":
            names = cli.sync(args.module, database_path=args.database, key=args.key)
            print(f"Synchronized {len(names)} class(es): {', '.join(names)}")
        elif args.command == "show":
            print(cli.show(database_path=args.database, key=args.key))
    except (EntMapError, EngineError) as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
