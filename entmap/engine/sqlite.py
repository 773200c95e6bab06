"""
SQLite-backed document database with a schema catalog.

This module stores, in a single SQLite file:
- The schema catalog: classes, their superclasses, properties and indexes
- Documents: JSON payloads tagged with their schema class

It also provides SqlitePool, a bounded pool of database connections.

Invariants:
    - Catalog rows are only ever inserted, never updated or deleted
    - Class, property and index names are enforced unique by primary keys,
      so concurrent duplicate creation fails in the database
    - Unique indexes apply to the owning class and all of its subclasses
    - Documents are written only by an explicit save()

How to change safely:
    - Catalog migrations must be backward compatible
    - Use transactions for all multi-statement writes

Table schema:
    schema_classes:
        - name TEXT PRIMARY KEY
        - created_at INTEGER (Unix ms)

    schema_superclasses:
        - class_name TEXT
        - superclass_name TEXT
        - position INTEGER
        - PRIMARY KEY (class_name, superclass_name)

    schema_properties:
        - class_name TEXT
        - name TEXT
        - kind TEXT
        - PRIMARY KEY (class_name, name)

    schema_indexes:
        - class_name TEXT
        - name TEXT
        - index_type TEXT
        - fields_json TEXT
        - PRIMARY KEY (class_name, name)

    documents:
        - rid INTEGER PRIMARY KEY AUTOINCREMENT
        - class_name TEXT
        - payload_json TEXT
        - created_at INTEGER
        - updated_at INTEGER
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from ..kinds import FieldKind
from .base import (
    ClassNotFoundError,
    DatabaseNotFoundError,
    DuplicateClassError,
    DuplicateIndexError,
    DuplicateKeyError,
    DuplicatePropertyError,
    EngineError,
    Index,
    IndexType,
    PoolExhaustedError,
    Property,
    SchemaClass,
)

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"


def _now_ms() -> int:
    return int(time.time() * 1000)


def json_path(name: str) -> str:
    """JSON path selecting one top-level payload key.

    The key is quoted so names containing dots or brackets address a
    single key instead of a nested path.
    """
    return '$."' + name + '"'


class Document:
    """A record of a schema class.

    Changes are held in memory until save() is called; nothing is saved
    automatically.

    Attributes:
        class_name: Schema class of the record
        rid: Record id, None until first saved
    """

    def __init__(
        self,
        database: SqliteDatabase,
        class_name: str,
        payload: dict[str, Any] | None = None,
        rid: int | None = None,
    ) -> None:
        self._database = database
        self.class_name = class_name
        self.rid = rid
        self._payload: dict[str, Any] = dict(payload or {})

    def __repr__(self) -> str:
        return f"Document({self.class_name!r}, rid={self.rid})"

    def __getitem__(self, key: str) -> Any:
        return self._payload[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._payload[key] = value

    def __contains__(self, key: object) -> bool:
        return key in self._payload

    def get(self, key: str, default: Any = None) -> Any:
        return self._payload.get(key, default)

    def fields(self) -> dict[str, Any]:
        """Copy of the current payload."""
        return dict(self._payload)

    @property
    def is_new(self) -> bool:
        return self.rid is None

    def save(self) -> Document:
        """Write the document to its database."""
        self._database.save_document(self)
        return self


class SqliteSchemaClass:
    """Handle on a class stored in the catalog.

    Reads go to the database on every call, so handles stay current when
    other connections extend the class.
    """

    def __init__(self, database: SqliteDatabase, name: str) -> None:
        self._database = database
        self._name = name

    def __repr__(self) -> str:
        return f"SqliteSchemaClass({self._name!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SqliteSchemaClass):
            return NotImplemented
        return self._database is other._database and self._name == other._name

    def __hash__(self) -> int:
        return hash((id(self._database), self._name))

    @property
    def name(self) -> str:
        return self._name

    @property
    def superclasses(self) -> list[SchemaClass]:
        rows = self._database.execute(
            "SELECT superclass_name FROM schema_superclasses WHERE class_name = ? ORDER BY position",
            (self._name,),
        ).fetchall()
        return [SqliteSchemaClass(self._database, row["superclass_name"]) for row in rows]

    def get_property(self, name: str) -> Property | None:
        row = self._database.execute(
            "SELECT name, kind FROM schema_properties WHERE class_name = ? AND name = ?",
            (self._name, name),
        ).fetchone()
        if row is None:
            return None
        return Property(class_name=self._name, name=row["name"], kind=FieldKind(row["kind"]))

    def properties(self) -> list[Property]:
        rows = self._database.execute(
            "SELECT name, kind FROM schema_properties WHERE class_name = ? ORDER BY rowid",
            (self._name,),
        ).fetchall()
        return [
            Property(class_name=self._name, name=row["name"], kind=FieldKind(row["kind"]))
            for row in rows
        ]

    def create_property(self, name: str, kind: FieldKind) -> Property:
        try:
            self._database.execute(
                "INSERT INTO schema_properties (class_name, name, kind) VALUES (?, ?, ?)",
                (self._name, name, kind.value),
            )
        except sqlite3.IntegrityError as e:
            raise DuplicatePropertyError(f"Property {self._name}.{name} already exists") from e
        return Property(class_name=self._name, name=name, kind=kind)

    def get_indexes(self) -> set[Index]:
        rows = self._database.execute(
            "SELECT name, index_type, fields_json FROM schema_indexes WHERE class_name = ?",
            (self._name,),
        ).fetchall()
        return {self._database._row_to_index(self._name, row) for row in rows}

    def create_index(self, name: str, index_type: IndexType, *fields: str) -> Index:
        if not fields:
            raise ValueError("An index needs at least one field")
        try:
            self._database.execute(
                """
                INSERT INTO schema_indexes (class_name, name, index_type, fields_json)
                VALUES (?, ?, ?, ?)
                """,
                (self._name, name, index_type.value, json.dumps(list(fields))),
            )
        except sqlite3.IntegrityError as e:
            raise DuplicateIndexError(f"Index {self._name}.{name} already exists") from e
        return Index(class_name=self._name, name=name, index_type=index_type, fields=tuple(fields))


class SqliteSchema:
    """Schema protocol implementation over the catalog tables."""

    def __init__(self, database: SqliteDatabase) -> None:
        self._database = database

    def get_class(self, name: str) -> SqliteSchemaClass | None:
        row = self._database.execute(
            "SELECT 1 FROM schema_classes WHERE name = ?", (name,)
        ).fetchone()
        return SqliteSchemaClass(self._database, name) if row is not None else None

    def create_class(
        self,
        name: str,
        superclasses: Sequence[SchemaClass] = (),
    ) -> SqliteSchemaClass:
        with self._database.transaction() as conn:
            for parent in superclasses:
                if conn.execute(
                    "SELECT 1 FROM schema_classes WHERE name = ?", (parent.name,)
                ).fetchone() is None:
                    raise ClassNotFoundError(f"Superclass {parent.name} is not part of this schema")
            try:
                conn.execute(
                    "INSERT INTO schema_classes (name, created_at) VALUES (?, ?)",
                    (name, _now_ms()),
                )
            except sqlite3.IntegrityError as e:
                raise DuplicateClassError(f"Class {name} already exists") from e
            conn.executemany(
                """
                INSERT INTO schema_superclasses (class_name, superclass_name, position)
                VALUES (?, ?, ?)
                """,
                [(name, parent.name, position) for position, parent in enumerate(superclasses)],
            )
        return SqliteSchemaClass(self._database, name)

    def classes(self) -> list[SchemaClass]:
        rows = self._database.execute("SELECT name FROM schema_classes ORDER BY name").fetchall()
        return [SqliteSchemaClass(self._database, row["name"]) for row in rows]


class SqliteDatabase:
    """One connection to a SQLite-backed document database.

    Thread safety:
        A connection may move between threads but must only be used by
        one thread at a time; SqlitePool hands each out exclusively.

    Example:
        >>> db = SqliteDatabase("/var/lib/entmap/app.db", create=True)
        >>> person = db.schema.create_class("Person")
        >>> db.new_document("Person", email="a@example.com").save()
    """

    def __init__(
        self,
        path: str,
        create: bool = False,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        """Open (and optionally create) the database.

        Args:
            path: Database file path, or ":memory:"
            create: Create the file when missing
            wal_mode: Enable SQLite WAL journal mode
            busy_timeout_ms: SQLite busy timeout

        Raises:
            DatabaseNotFoundError: If the file is missing and create is False
        """
        self.path = path
        if path != MEMORY_PATH:
            db_path = Path(path)
            if not create and not db_path.exists():
                raise DatabaseNotFoundError(f"Database not found: {path}")
            db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(
            path,
            timeout=busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
            check_same_thread=False,
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms}")
        if wal_mode and path != MEMORY_PATH:
            self._conn.execute("PRAGMA journal_mode = WAL")
        self._conn.execute("PRAGMA synchronous = NORMAL")
        self._create_catalog()
        self._closed = False
        self.schema = SqliteSchema(self)

    def __repr__(self) -> str:
        return f"SqliteDatabase({self.path!r})"

    def _create_catalog(self) -> None:
        """Create catalog and document tables."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS schema_classes (
                name TEXT PRIMARY KEY,
                created_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS schema_superclasses (
                class_name TEXT NOT NULL,
                superclass_name TEXT NOT NULL,
                position INTEGER NOT NULL,
                PRIMARY KEY (class_name, superclass_name)
            );

            CREATE INDEX IF NOT EXISTS idx_superclasses_parent
                ON schema_superclasses(superclass_name);

            CREATE TABLE IF NOT EXISTS schema_properties (
                class_name TEXT NOT NULL,
                name TEXT NOT NULL,
                kind TEXT NOT NULL,
                PRIMARY KEY (class_name, name)
            );

            CREATE TABLE IF NOT EXISTS schema_indexes (
                class_name TEXT NOT NULL,
                name TEXT NOT NULL,
                index_type TEXT NOT NULL,
                fields_json TEXT NOT NULL,
                PRIMARY KEY (class_name, name)
            );

            CREATE TABLE IF NOT EXISTS documents (
                rid INTEGER PRIMARY KEY AUTOINCREMENT,
                class_name TEXT NOT NULL,
                payload_json TEXT NOT NULL DEFAULT '{}',
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_documents_class ON documents(class_name);
        """)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if not self._closed:
            self._conn.close()
            self._closed = True

    def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        if self._closed:
            raise EngineError(f"Database connection to {self.path} is closed")
        return self._conn.execute(sql, params)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run statements in one immediate transaction."""
        if self._closed:
            raise EngineError(f"Database connection to {self.path} is closed")
        self._conn.execute("BEGIN IMMEDIATE")
        try:
            yield self._conn
            self._conn.execute("COMMIT")
        except Exception:
            self._conn.execute("ROLLBACK")
            raise

    @staticmethod
    def _row_to_index(class_name: str, row: sqlite3.Row) -> Index:
        return Index(
            class_name=class_name,
            name=row["name"],
            index_type=IndexType(row["index_type"]),
            fields=tuple(json.loads(row["fields_json"])),
        )

    def ancestor_names(self, class_name: str) -> list[str]:
        """The class itself followed by all its ancestors, breadth first."""
        result = [class_name]
        queue = [class_name]
        while queue:
            current = queue.pop(0)
            rows = self.execute(
                "SELECT superclass_name FROM schema_superclasses WHERE class_name = ? ORDER BY position",
                (current,),
            ).fetchall()
            for row in rows:
                parent = row["superclass_name"]
                if parent not in result:
                    result.append(parent)
                    queue.append(parent)
        return result

    def descendant_names(self, class_name: str) -> list[str]:
        """The class itself followed by all its subclasses, breadth first."""
        result = [class_name]
        queue = [class_name]
        while queue:
            current = queue.pop(0)
            rows = self.execute(
                "SELECT class_name FROM schema_superclasses WHERE superclass_name = ?",
                (current,),
            ).fetchall()
            for row in rows:
                child = row["class_name"]
                if child not in result:
                    result.append(child)
                    queue.append(child)
        return result

    def new_document(self, class_name: str, **payload: Any) -> Document:
        """Create an unsaved document of a class."""
        return Document(self, class_name, payload)

    def load(self, rid: int) -> Document | None:
        """Load a document by record id."""
        row = self.execute(
            "SELECT rid, class_name, payload_json FROM documents WHERE rid = ?", (rid,)
        ).fetchone()
        return self._row_to_document(row) if row is not None else None

    def query_first(self, sql: str, params: Sequence[Any] = ()) -> Document | None:
        """Run a document query and return the first match.

        The query must select rid, class_name and payload_json from documents.
        """
        row = self.execute(sql, params).fetchone()
        return self._row_to_document(row) if row is not None else None

    def query(self, sql: str, params: Sequence[Any] = ()) -> list[Document]:
        """Run a document query and return every match."""
        return [self._row_to_document(row) for row in self.execute(sql, params).fetchall()]

    def _row_to_document(self, row: sqlite3.Row) -> Document:
        return Document(
            self,
            row["class_name"],
            json.loads(row["payload_json"]),
            rid=row["rid"],
        )

    def save_document(self, document: Document) -> None:
        """Insert or update a document, enforcing unique indexes.

        Raises:
            ClassNotFoundError: If the document's class is not in the schema
            DuplicateKeyError: If a unique index would be violated
        """
        if self.schema.get_class(document.class_name) is None:
            raise ClassNotFoundError(f"Class {document.class_name} not found in schema")

        payload = document.fields()
        now = _now_ms()
        with self.transaction() as conn:
            self._check_unique(document, payload)
            if document.rid is None:
                cursor = conn.execute(
                    """
                    INSERT INTO documents (class_name, payload_json, created_at, updated_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (document.class_name, json.dumps(payload), now, now),
                )
                document.rid = cursor.lastrowid
            else:
                conn.execute(
                    "UPDATE documents SET payload_json = ?, updated_at = ? WHERE rid = ?",
                    (json.dumps(payload), now, document.rid),
                )

    def _check_unique(self, document: Document, payload: dict[str, Any]) -> None:
        for owner in self.ancestor_names(document.class_name):
            rows = self.execute(
                "SELECT name, index_type, fields_json FROM schema_indexes "
                "WHERE class_name = ? AND index_type = ?",
                (owner, IndexType.UNIQUE.value),
            ).fetchall()
            for row in rows:
                index = self._row_to_index(owner, row)
                values = [payload.get(name) for name in index.fields]
                if any(value is None for value in values):
                    continue
                family = self.descendant_names(owner)
                clauses = " AND ".join(
                    "json_extract(payload_json, ?) = ?" for _ in index.fields
                )
                params: list[Any] = []
                for name, value in zip(index.fields, values):
                    params.extend((json_path(name), value))
                placeholders = ", ".join("?" for _ in family)
                clash = self.execute(
                    f"SELECT rid FROM documents WHERE class_name IN ({placeholders}) "
                    f"AND {clauses} AND rid IS NOT ? LIMIT 1",
                    (*family, *params, document.rid),
                ).fetchone()
                if clash is not None:
                    raise DuplicateKeyError(
                        f"Unique index {owner}.{index.name} violated by {values!r} "
                        f"(existing record {clash['rid']})"
                    )


class SqlitePool:
    """Bounded pool of SqliteDatabase connections to one file.

    Connections are opened lazily up to max_size and handed out one
    caller at a time through acquire().

    Example:
        >>> pool = SqlitePool("/var/lib/entmap/app.db", auto_create=True)
        >>> with pool.acquire() as db:
        ...     ensure_type(Person, db.schema, create_if_missing=True)
    """

    def __init__(
        self,
        path: str,
        max_size: int = 8,
        acquire_timeout: float = 30.0,
        auto_create: bool = False,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self.path = path
        self.max_size = max_size
        self.acquire_timeout = acquire_timeout
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self._auto_create = auto_create
        self._idle: list[SqliteDatabase] = []
        self._size = 0
        self._closed = False
        self._cond = threading.Condition()

    @property
    def auto_create(self) -> bool:
        """Whether a missing database file is created on first connect."""
        return self._auto_create

    @auto_create.setter
    def auto_create(self, value: bool) -> None:
        self._auto_create = value

    @property
    def size(self) -> int:
        """Connections currently open, idle or borrowed."""
        return self._size

    @property
    def available(self) -> int:
        """Idle connections ready to be borrowed."""
        return len(self._idle)

    @contextmanager
    def acquire(self) -> Iterator[SqliteDatabase]:
        """Borrow one connection for the duration of the block.

        Raises:
            PoolExhaustedError: If none is free within acquire_timeout
            DatabaseNotFoundError: If the file is missing and auto_create is off
        """
        database = self._checkout()
        try:
            yield database
        finally:
            self._release(database)

    def _checkout(self) -> SqliteDatabase:
        deadline = time.monotonic() + self.acquire_timeout
        with self._cond:
            while True:
                if self._closed:
                    raise EngineError(f"Pool for {self.path} is closed")
                if self._idle:
                    return self._idle.pop()
                if self._size < self.max_size:
                    self._size += 1
                    break
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise PoolExhaustedError(
                        f"No connection to {self.path} available after {self.acquire_timeout}s"
                    )
                self._cond.wait(remaining)

        try:
            database = SqliteDatabase(
                self.path,
                create=self._auto_create,
                wal_mode=self.wal_mode,
                busy_timeout_ms=self.busy_timeout_ms,
            )
        except Exception:
            with self._cond:
                self._size -= 1
                self._cond.notify()
            raise
        logger.debug(f"Opened pooled connection to {self.path} ({self._size}/{self.max_size})")
        return database

    def _release(self, database: SqliteDatabase) -> None:
        with self._cond:
            if self._closed or database.closed:
                database.close()
                self._size -= 1
            else:
                self._idle.append(database)
            self._cond.notify()

    def close(self) -> None:
        """Close idle connections; borrowed ones close when returned."""
        with self._cond:
            self._closed = True
            while self._idle:
                self._idle.pop().close()
                self._size -= 1
            self._cond.notify_all()
