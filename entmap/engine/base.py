"""
Base protocol and types for the schema engine abstraction.

This module defines the Schema and SchemaClass protocols that every
database backend must implement, along with the value types describing
properties and indexes and the errors backends raise.

Invariants:
    - Class names are unique within one schema
    - Property names are unique within one class
    - Index names are unique within one class
    - Backends never silently replace an existing class, property or index;
      creating a duplicate raises the matching Duplicate*Error

How to change safely:
    - Protocol changes require updating all implementations
    - Add new methods as optional with default implementations
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

from ..kinds import FieldKind


class EngineError(Exception):
    """Base exception for database engine operations."""

    pass


class DuplicateClassError(EngineError):
    """A class with this name already exists in the schema."""

    pass


class DuplicatePropertyError(EngineError):
    """A property with this name already exists on the class."""

    pass


class DuplicateIndexError(EngineError):
    """An index with this name already exists on the class."""

    pass


class DuplicateKeyError(EngineError):
    """A record violates a unique index."""

    pass


class ClassNotFoundError(EngineError):
    """Referenced class does not exist in the schema."""

    pass


class DatabaseNotFoundError(EngineError):
    """Database does not exist and auto-create is off."""

    pass


class PoolExhaustedError(EngineError):
    """No pooled connection became available in time."""

    pass


class IndexType(Enum):
    """Supported index types."""

    UNIQUE = "unique"
    NOTUNIQUE = "notunique"


@dataclass(frozen=True)
class Property:
    """A declared property of a schema class.

    Attributes:
        class_name: Owning class
        name: Property name
        kind: Property type
    """

    class_name: str
    name: str
    kind: FieldKind


@dataclass(frozen=True)
class Index:
    """An index declared on a schema class.

    Attributes:
        class_name: Owning class
        name: Index name
        index_type: Unique or not
        fields: Indexed property names, in key order
    """

    class_name: str
    name: str
    index_type: IndexType
    fields: tuple[str, ...]

    @property
    def is_unique(self) -> bool:
        return self.index_type is IndexType.UNIQUE


@runtime_checkable
class SchemaClass(Protocol):
    """Protocol for a class living in a database schema."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Class name, unique within its schema."""
        ...

    @property
    @abstractmethod
    def superclasses(self) -> list[SchemaClass]:
        """Direct parent classes, in declaration order."""
        ...

    @abstractmethod
    def get_property(self, name: str) -> Property | None:
        """Property declared directly on this class, or None."""
        ...

    @abstractmethod
    def properties(self) -> list[Property]:
        """All properties declared directly on this class."""
        ...

    @abstractmethod
    def create_property(self, name: str, kind: FieldKind) -> Property:
        """Declare a new property.

        Raises:
            DuplicatePropertyError: If the property already exists
        """
        ...

    @abstractmethod
    def get_indexes(self) -> set[Index]:
        """Indexes declared on this class."""
        ...

    @abstractmethod
    def create_index(self, name: str, index_type: IndexType, *fields: str) -> Index:
        """Declare a new index over one or more properties.

        Raises:
            DuplicateIndexError: If an index with this name already exists
        """
        ...


@runtime_checkable
class Schema(Protocol):
    """Protocol for a database schema holding named classes."""

    @abstractmethod
    def get_class(self, name: str) -> SchemaClass | None:
        """Look up a class by name."""
        ...

    @abstractmethod
    def create_class(
        self,
        name: str,
        superclasses: Sequence[SchemaClass] = (),
    ) -> SchemaClass:
        """Create a class with the given parents.

        Raises:
            DuplicateClassError: If the name is taken
        """
        ...

    @abstractmethod
    def classes(self) -> list[SchemaClass]:
        """All classes in the schema."""
        ...


def schema_to_dict(schema: Schema) -> dict:
    """Render a schema as a deterministic dictionary."""
    result = []
    for schema_class in sorted(schema.classes(), key=lambda c: c.name):
        result.append(
            {
                "name": schema_class.name,
                "superclasses": [parent.name for parent in schema_class.superclasses],
                "properties": {
                    prop.name: prop.kind.value
                    for prop in sorted(schema_class.properties(), key=lambda p: p.name)
                },
                "indexes": [
                    {
                        "name": index.name,
                        "type": index.index_type.value,
                        "fields": list(index.fields),
                    }
                    for index in sorted(schema_class.get_indexes(), key=lambda i: i.name)
                ],
            }
        )
    return {"classes": result}
