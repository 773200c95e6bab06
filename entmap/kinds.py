"""
Value kinds for schema properties.

FieldKind enumerates the property types a schema class can declare. The
link and embedded families point at another entity type and therefore
need a target type on the declaring field.

Invariants:
    - Enum values are the persisted property type names and never change
    - STRING is the default kind for an unqualified field
    - TARGET_KINDS is exactly the link family plus the embedded family

How to change safely:
    - Add new kinds at the end with new persisted names
    - A new link or embedded variant must also be added to TARGET_KINDS
"""

from __future__ import annotations

from enum import Enum


class FieldKind(Enum):
    """Supported property types in the schema."""

    BOOLEAN = "boolean"
    INTEGER = "integer"
    SHORT = "short"
    LONG = "long"
    FLOAT = "float"
    DOUBLE = "double"
    DECIMAL = "decimal"
    BYTE = "byte"
    STRING = "string"
    BINARY = "binary"
    DATE = "date"
    DATETIME = "datetime"
    ANY = "any"
    CUSTOM = "custom"
    TRANSIENT = "transient"
    # Reference to one or more records of another class
    LINK = "link"
    LINKLIST = "linklist"
    LINKSET = "linkset"
    LINKMAP = "linkmap"
    LINKBAG = "linkbag"
    # Record of another class stored inline
    EMBEDDED = "embedded"
    EMBEDDEDLIST = "embeddedlist"
    EMBEDDEDSET = "embeddedset"
    EMBEDDEDMAP = "embeddedmap"

    @classmethod
    def from_str(cls, value: str) -> FieldKind:
        """Convert string representation to FieldKind.

        Args:
            value: Persisted name of the kind (case-insensitive)

        Returns:
            Corresponding FieldKind enum value

        Raises:
            ValueError: If value is not a valid field kind
        """
        lowered = value.lower()
        for kind in cls:
            if kind.value == lowered:
                return kind
        valid = [k.value for k in cls]
        raise ValueError(f"Invalid field kind '{value}'. Valid kinds: {valid}")

    @property
    def requires_target(self) -> bool:
        """Whether a field of this kind must name a target entity type."""
        return self in TARGET_KINDS


TARGET_KINDS: frozenset[FieldKind] = frozenset(
    {
        FieldKind.LINK,
        FieldKind.LINKLIST,
        FieldKind.LINKSET,
        FieldKind.LINKMAP,
        FieldKind.LINKBAG,
        FieldKind.EMBEDDED,
        FieldKind.EMBEDDEDLIST,
        FieldKind.EMBEDDEDSET,
        FieldKind.EMBEDDEDMAP,
    }
)
