"""
Schema mapping for entmap.

This module turns marked Python classes into schema classes:
- Markers (entity, field, Field) declare what should exist
- FieldDescriptor normalizes one marked member
- TypeDescriptor resolves ancestry and creates classes and properties
- ensure_type / configure_base_fields are the public entry points

Invariants:
    - Schema elements are only ever added, never altered or removed
    - Every operation is safe to re-run

How to change safely:
    - Add new marker options with backward-compatible defaults
    - Keep destructive migrations out of this package
"""

from .annotations import UNSET, EntityMeta, Field, entity, field, get_entity_meta
from .facade import configure_base_fields, configure_fields_on, ensure_type, sync_types
from .field_descriptor import Attribute, FieldDescriptor, MemberKind, accessor_name, describe
from .type_descriptor import TypeDescriptor, is_schema_backed

__all__ = [
    # Markers
    "entity",
    "field",
    "Field",
    "EntityMeta",
    "UNSET",
    "get_entity_meta",
    # Descriptors
    "Attribute",
    "FieldDescriptor",
    "MemberKind",
    "TypeDescriptor",
    "accessor_name",
    "describe",
    "is_schema_backed",
    # Entry points
    "ensure_type",
    "configure_base_fields",
    "configure_fields_on",
    "sync_types",
]
