"""
Database engine abstraction for entmap.

This module provides the schema interface the mapping layer works
against, plus two backends:
- SQLite (schema catalog and documents in one file, pooled connections)
- In-memory (for testing)

Invariants:
    - Backends enforce class, property and index name uniqueness themselves
    - Nothing in a schema is ever altered or removed through this interface

How to change safely:
    - New backends must implement the Schema and SchemaClass protocols
    - Keep duplicate creation an error, never a silent overwrite
"""

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
    Schema,
    SchemaClass,
    schema_to_dict,
)
from .memory import InMemorySchema, InMemorySchemaClass
from .sqlite import (
    Document,
    SqliteDatabase,
    SqlitePool,
    SqliteSchema,
    SqliteSchemaClass,
    json_path,
)

__all__ = [
    # Protocol and types
    "Schema",
    "SchemaClass",
    "Property",
    "Index",
    "IndexType",
    "schema_to_dict",
    # Errors
    "EngineError",
    "DuplicateClassError",
    "DuplicatePropertyError",
    "DuplicateIndexError",
    "DuplicateKeyError",
    "ClassNotFoundError",
    "DatabaseNotFoundError",
    "PoolExhaustedError",
    # Implementations
    "InMemorySchema",
    "InMemorySchemaClass",
    "SqliteDatabase",
    "SqliteSchema",
    "SqliteSchemaClass",
    "SqlitePool",
    "Document",
    "json_path",
]
