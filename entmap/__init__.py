"""
entmap - Schema mapping for document databases.

This package keeps a database schema in step with annotated Python types:
- Markers (@entity, Field, @field) declaring classes and properties
- Schema reconciliation (ensure_type, configure_base_fields)
- A process-wide connection pool registry (get_pool)
- Record wrappers and field lookups (DefaultModel, Getter)

Example:
    >>> from typing import Annotated
    >>> from entmap import Field, entity, ensure_type, configure_base_fields
    >>>
    >>> @entity
    ... class Person:
    ...     email: Annotated[str, Field(unique=True)]
    >>>
    >>> with get_pool("app", sqlite_pool_factory()).acquire() as db:
    ...     ensure_type(Person, db.schema, create_if_missing=True)
    ...     configure_base_fields(Person, db.schema)

Invariants:
    - Schema elements are only ever added, never altered or removed
    - Reconciliation is idempotent

Version: 1.0.0
"""

__version__ = "1.0.0"

from .config import EntMapConfig
from .errors import (
    DuplicateFieldError,
    EntMapError,
    InvalidTypeError,
    PoolUnavailableError,
    SchemaCycleError,
    UnresolvedTargetError,
    UnsupportedMemberKind,
    WrapperInstantiationError,
)
from .kinds import FieldKind
from .model import DefaultModel, Getter
from .pool import ConnectionPool, get_pool, sqlite_pool_factory
from .schema import (
    UNSET,
    Field,
    TypeDescriptor,
    configure_base_fields,
    configure_fields_on,
    ensure_type,
    entity,
    field,
    sync_types,
)

__all__ = [
    # Markers
    "entity",
    "field",
    "Field",
    "FieldKind",
    "UNSET",
    # Schema mapping
    "TypeDescriptor",
    "ensure_type",
    "configure_base_fields",
    "configure_fields_on",
    "sync_types",
    # Pools
    "ConnectionPool",
    "get_pool",
    "sqlite_pool_factory",
    # Models
    "DefaultModel",
    "Getter",
    # Config
    "EntMapConfig",
    # Errors
    "EntMapError",
    "UnsupportedMemberKind",
    "InvalidTypeError",
    "UnresolvedTargetError",
    "DuplicateFieldError",
    "SchemaCycleError",
    "PoolUnavailableError",
    "WrapperInstantiationError",
]
