"""
In-memory schema implementation for testing.

This module provides a simple in-memory schema backend for:
- Unit tests
- Local development without a database file

Invariants:
    - All data is lost on process exit
    - Enforces the same uniqueness rules as persistent backends
    - Thread-safe for concurrent access

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with the Schema protocol
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence

from ..kinds import FieldKind
from .base import (
    ClassNotFoundError,
    DuplicateClassError,
    DuplicateIndexError,
    DuplicatePropertyError,
    Index,
    IndexType,
    Property,
    SchemaClass,
)

logger = logging.getLogger(__name__)


class InMemorySchemaClass:
    """Schema class held in memory.

    Attributes:
        name: Class name
        superclasses: Direct parents in declaration order
    """

    def __init__(
        self,
        name: str,
        superclasses: Sequence[InMemorySchemaClass],
        lock: threading.RLock,
    ) -> None:
        self._name = name
        self._superclasses = list(superclasses)
        self._properties: dict[str, Property] = {}
        self._indexes: dict[str, Index] = {}
        self._lock = lock

    def __repr__(self) -> str:
        return f"InMemorySchemaClass({self._name!r})"

    @property
    def name(self) -> str:
        return self._name

    @property
    def superclasses(self) -> list[SchemaClass]:
        return list(self._superclasses)

    def get_property(self, name: str) -> Property | None:
        return self._properties.get(name)

    def properties(self) -> list[Property]:
        return list(self._properties.values())

    def create_property(self, name: str, kind: FieldKind) -> Property:
        with self._lock:
            if name in self._properties:
                raise DuplicatePropertyError(f"Property {self._name}.{name} already exists")
            prop = Property(class_name=self._name, name=name, kind=kind)
            self._properties[name] = prop
            return prop

    def get_indexes(self) -> set[Index]:
        return set(self._indexes.values())

    def create_index(self, name: str, index_type: IndexType, *fields: str) -> Index:
        with self._lock:
            if name in self._indexes:
                raise DuplicateIndexError(f"Index {self._name}.{name} already exists")
            if not fields:
                raise ValueError("An index needs at least one field")
            index = Index(
                class_name=self._name,
                name=name,
                index_type=index_type,
                fields=tuple(fields),
            )
            self._indexes[name] = index
            return index


class InMemorySchema:
    """In-memory implementation of Schema for testing.

    Example:
        >>> schema = InMemorySchema()
        >>> person = schema.create_class("Person")
        >>> person.create_property("email", FieldKind.STRING)
    """

    def __init__(self) -> None:
        self._classes: dict[str, InMemorySchemaClass] = {}
        self._lock = threading.RLock()

    def get_class(self, name: str) -> InMemorySchemaClass | None:
        return self._classes.get(name)

    def create_class(
        self,
        name: str,
        superclasses: Sequence[SchemaClass] = (),
    ) -> InMemorySchemaClass:
        with self._lock:
            if name in self._classes:
                raise DuplicateClassError(f"Class {name} already exists")

            parents: list[InMemorySchemaClass] = []
            for parent in superclasses:
                known = self._classes.get(parent.name)
                if known is None:
                    raise ClassNotFoundError(f"Superclass {parent.name} is not part of this schema")
                parents.append(known)

            schema_class = InMemorySchemaClass(name, parents, self._lock)
            self._classes[name] = schema_class
            logger.debug(f"InMemorySchema created class {name}")
            return schema_class

    def classes(self) -> list[SchemaClass]:
        return list(self._classes.values())
