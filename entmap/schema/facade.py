"""
Entry points for mapping entity types onto a schema.

To create the class in the schema call ensure_type() with
create_if_missing=True and then configure_base_fields():

    >>> ensure_type(Person, schema, create_if_missing=True)
    >>> configure_base_fields(Person, schema)

Types and fields are only ever created here. Removing types or fields,
changing field kinds and restructuring hierarchies are left to explicit
migration scripts.

Invariants:
    - Only @entity classes are accepted
    - configure_base_fields() never creates the class itself
    - Re-running either entry point converges instead of duplicating
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..engine.base import Schema, SchemaClass
from ..errors import InvalidTypeError
from .type_descriptor import TypeDescriptor

logger = logging.getLogger(__name__)


def ensure_type(
    cls: type,
    schema: Schema,
    create_if_missing: bool = False,
    strict_targets: bool = False,
) -> SchemaClass | None:
    """Fetch the schema class for an entity type.

    With create_if_missing, a missing class is created together with any
    missing entity ancestors. Fields are not configured, not even on newly
    created ancestors.

    Args:
        cls: Entity class
        schema: Schema to look in
        create_if_missing: Create the class instead of returning None
        strict_targets: Fail on unusable link/embedded targets

    Returns:
        The schema class, or None if absent and not created

    Raises:
        InvalidTypeError: If cls is not marked with @entity
    """
    descriptor = TypeDescriptor(cls, strict_targets=strict_targets)
    if not descriptor.is_schema_backed:
        raise InvalidTypeError(
            f"The type {cls.__qualname__} must be marked with @entity in order to be auto-created.",
            type_name=cls.__qualname__,
        )

    schema_class = schema.get_class(descriptor.name)
    if schema_class is None and create_if_missing:
        schema_class = descriptor.create_in_schema(schema)
    return schema_class


def configure_base_fields(cls: type, schema: Schema) -> SchemaClass:
    """Declare the marked members of an entity on its existing schema class.

    Raises:
        InvalidTypeError: If cls is not an entity or its class does not exist
    """
    schema_class = ensure_type(cls, schema, create_if_missing=False)
    if schema_class is None:
        raise InvalidTypeError(
            "Type not found in database. Be sure to create type before configuration.",
            type_name=cls.__qualname__,
        )
    configure_fields_on(cls, schema_class)
    return schema_class


def configure_fields_on(cls: type, schema_class: SchemaClass) -> None:
    """Declare the marked members of cls on an arbitrary schema class.

    Useful when templating several unrelated schema classes from one model.
    """
    TypeDescriptor(cls).configure_fields(schema_class)


def sync_types(
    types: Iterable[type],
    schema: Schema,
    strict_targets: bool = False,
) -> list[SchemaClass]:
    """Create and configure each entity type in order.

    Intended for a single-writer migration step at startup; concurrent
    callers against one schema must be serialized externally.

    Returns:
        Schema classes, one per given type
    """
    synced: list[SchemaClass] = []
    for cls in types:
        schema_class = ensure_type(cls, schema, create_if_missing=True, strict_targets=strict_targets)
        if schema_class is None:
            raise InvalidTypeError(
                f"Schema class for {cls.__qualname__} could not be created",
                type_name=cls.__qualname__,
            )
        configure_fields_on(cls, schema_class)
        synced.append(schema_class)
    logger.info(f"Synchronized {len(synced)} entity type(s)")
    return synced
