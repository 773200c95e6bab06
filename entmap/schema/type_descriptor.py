"""
Schema view of one entity type.

A TypeDescriptor reads the markers of a Python class and knows how to
bring the database schema in line with it:

- collect_fields() describes the class's own marked members
- find_parent_types() discovers the direct entity ancestors
- create_in_schema() creates the class (and missing ancestors) by name
- configure_fields() adds missing properties and unique indexes

Ancestors are the first base class (the superclass), the remaining bases
(capability interfaces), and the targets of link/embedded fields, each
kept only when it is itself an entity. Only direct bases are examined: an
unmarked class between two entities is a gap that ends discovery.

Invariants:
    - Descriptors are built per call and never cached
    - Class name lookup is the idempotency key; an existing class is
      returned untouched (no re-parenting, no property sync)
    - Existing properties and indexes are never altered
    - Ancestry must be acyclic; a loop raises SchemaCycleError

How to change safely:
    - Keep create_in_schema() and configure_fields() independent so callers
      can create a whole hierarchy before configuring any of it
    - Never add destructive operations here; migrations belong elsewhere
"""

from __future__ import annotations

import importlib
import inspect
import logging
import sys
import typing
from typing import Any

from ..engine.base import IndexType, Schema, SchemaClass
from ..errors import (
    DuplicateFieldError,
    InvalidTypeError,
    SchemaCycleError,
    UnresolvedTargetError,
    UnsupportedMemberKind,
)
from .annotations import UNSET, Field, get_entity_meta, get_field_meta
from .field_descriptor import Attribute, FieldDescriptor, describe

logger = logging.getLogger(__name__)


def is_schema_backed(cls: Any) -> bool:
    """Whether cls carries the entity marker itself."""
    return get_entity_meta(cls) is not None


def _annotated_field(annotation: Any) -> Field | None:
    """Field marker inside an Annotated[...] hint, if any."""
    if typing.get_origin(annotation) is not typing.Annotated:
        return None
    for extra in annotation.__metadata__:
        if isinstance(extra, Field):
            return extra
    return None


def _may_carry_marker(text: str) -> bool:
    """Whether a deferred annotation could hold a Field marker."""
    return "Annotated[" in text and "Field(" in text


def _evaluate_annotation(
    attr_name: str,
    text: str,
    globalns: dict[str, Any],
    localns: dict[str, Any],
) -> Any:
    """Evaluate one deferred annotation with inspect.get_annotations()."""
    holder = type("_AnnotationHolder", (), {"__annotations__": {attr_name: text}})
    return inspect.get_annotations(holder, globals=globalns, locals=localns, eval_str=True)[
        attr_name
    ]


class TypeDescriptor:
    """Schema-facing description of a Python class.

    Attributes:
        cls: The described class
        name: Schema class name (marker name or the class's own name)
        strict_targets: Raise instead of warning on unusable field targets

    Example:
        >>> descriptor = TypeDescriptor(Person)
        >>> person_class = descriptor.create_in_schema(schema)
        >>> descriptor.configure_fields(person_class)
    """

    def __init__(self, cls: type, strict_targets: bool = False) -> None:
        self.cls = cls
        self.strict_targets = strict_targets
        meta = get_entity_meta(cls)
        self.name = meta.name if meta is not None and meta.name else cls.__name__

    def __repr__(self) -> str:
        return f"TypeDescriptor({self.cls.__qualname__!r}, name={self.name!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TypeDescriptor):
            return NotImplemented
        return self.cls is other.cls

    def __hash__(self) -> int:
        return hash(self.cls)

    @property
    def is_schema_backed(self) -> bool:
        """Whether the class is marked with @entity."""
        return is_schema_backed(self.cls)

    def collect_fields(self) -> list[FieldDescriptor]:
        """Describe every marked member declared directly on the class.

        Methods come first, then annotated attributes, each in
        declaration order.

        Raises:
            UnsupportedMemberKind: If a marker sits on an unsupported member
            DuplicateFieldError: If two members map to the same name
        """
        descriptors: list[FieldDescriptor] = []

        for member_name, member in vars(self.cls).items():
            meta = get_field_meta(member)
            if meta is not None:
                descriptors.append(describe(meta, member, member_name))

        for attr_name, annotation in self._own_annotations().items():
            meta = _annotated_field(annotation)
            if meta is not None:
                descriptors.append(describe(meta, Attribute(attr_name, annotation)))

        seen: set[str] = set()
        for descriptor in descriptors:
            if descriptor.name in seen:
                raise DuplicateFieldError(self.name, descriptor.name)
            seen.add(descriptor.name)

        return descriptors

    def _own_annotations(self) -> dict[str, Any]:
        """Annotations declared on the class itself, evaluated.

        Deferred annotations are evaluated one at a time in the class's
        module and namespace. One that cannot be evaluated is skipped unless
        its text could carry a Field marker.

        Raises:
            InvalidTypeError: If a possibly marked annotation cannot be evaluated
        """
        raw = inspect.get_annotations(self.cls)
        module = sys.modules.get(self.cls.__module__)
        globalns = vars(module) if module is not None else {}
        localns = dict(vars(self.cls))

        evaluated: dict[str, Any] = {}
        for attr_name, annotation in raw.items():
            if isinstance(annotation, str):
                try:
                    annotation = _evaluate_annotation(attr_name, annotation, globalns, localns)
                except Exception as e:
                    if not _may_carry_marker(annotation):
                        logger.debug(
                            f"Skipping unmarked annotation {self.name}.{attr_name}: {e}"
                        )
                        continue
                    raise InvalidTypeError(
                        f"Cannot evaluate annotation of '{attr_name}' on {self.name}: {e}",
                        type_name=self.name,
                    ) from e
            evaluated[attr_name] = annotation
        return evaluated

    def resolve_target(self, descriptor: FieldDescriptor) -> type | None:
        """Resolve a field's declared target to a class.

        Strings name a class in the declaring module, or a dotted
        "package.module.Class" path.

        Returns:
            The target class, or None when unset or unresolvable
        """
        target = descriptor.target
        if target is UNSET:
            return None
        if isinstance(target, type):
            return target
        if not isinstance(target, str):
            return None

        if target == self.cls.__name__:
            return self.cls

        module_name, _, attr = target.rpartition(".")
        if module_name:
            try:
                module = importlib.import_module(module_name)
            except ImportError:
                return None
        else:
            module = sys.modules.get(self.cls.__module__)
            attr = target

        resolved = getattr(module, attr, None) if module is not None else None
        return resolved if isinstance(resolved, type) else None

    def find_parent_types(self) -> list[TypeDescriptor]:
        """Direct entity ancestors, in superclass, interface, target order.

        Link and embedded fields whose target is unset, unresolvable or not
        an entity are skipped with a warning (or raise UnresolvedTargetError
        in strict mode). A field targeting the class itself is not an
        ancestor. If the fields cannot be collected at all, only the
        superclass and interface ancestors are returned.

        Returns:
            Descriptors of the direct parents, without duplicates
        """
        parents: list[TypeDescriptor] = []

        def add(candidate: type) -> None:
            descriptor = TypeDescriptor(candidate, self.strict_targets)
            if descriptor not in parents:
                parents.append(descriptor)

        bases = self.cls.__bases__
        if bases:
            superclass, interfaces = bases[0], bases[1:]
            if is_schema_backed(superclass):
                add(superclass)
            for interface in interfaces:
                if is_schema_backed(interface):
                    add(interface)

        try:
            fields = self.collect_fields()
        except UnsupportedMemberKind as e:
            logger.warning(
                f"Unable to collect fields of {self.name}. Cannot determine all parent types: {e}"
            )
            return parents

        for descriptor in fields:
            if not descriptor.requires_target:
                continue

            target = self.resolve_target(descriptor)
            if target is None:
                self._skip_target(descriptor, f"target {descriptor.target!r} cannot be resolved")
                continue
            if target is self.cls:
                logger.debug(f"Field {self.name}.{descriptor.name} targets its own type")
                continue
            if not is_schema_backed(target):
                self._skip_target(descriptor, f"target {target.__qualname__} is not an entity")
                continue
            add(target)

        return parents

    def _skip_target(self, descriptor: FieldDescriptor, reason: str) -> None:
        message = f"Cannot determine parents for {self.name}.{descriptor.name}: {reason}"
        if self.strict_targets:
            raise UnresolvedTargetError(message, type_name=self.name, field_name=descriptor.name)
        logger.warning(message)

    def create_in_schema(self, schema: Schema, *, _path: tuple[str, ...] = ()) -> SchemaClass:
        """Create this class and its missing ancestors in the schema.

        Ancestors are created depth-first before the class itself. An
        existing class with the same name is returned as is.

        Args:
            schema: Schema to create the class in

        Returns:
            The schema class for this type, new or existing

        Raises:
            SchemaCycleError: If the ancestry loops back to a class in progress
        """
        schema_class = schema.get_class(self.name)
        if schema_class is not None:
            return schema_class

        if self.name in _path:
            cycle = list(_path[_path.index(self.name):]) + [self.name]
            raise SchemaCycleError(cycle)
        path = _path + (self.name,)

        parent_classes: list[SchemaClass] = []
        for parent in self.find_parent_types():
            parent_class = parent.create_in_schema(schema, _path=path)
            if all(existing.name != parent_class.name for existing in parent_classes):
                parent_classes.append(parent_class)

        # An existing class keeps its hierarchy even if the model changed
        schema_class = schema.create_class(self.name, parent_classes)
        logger.info(
            f"Created schema class {self.name}",
            extra={"superclasses": [p.name for p in parent_classes]},
        )
        return schema_class

    def configure_fields(self, schema_class: SchemaClass) -> None:
        """Declare the class's marked members on a schema class.

        Missing properties are created with the declared kind; unique
        fields get a unique index named after the field unless an index of
        that name exists. Existing properties and indexes are left alone.
        """
        try:
            fields = self.collect_fields()
        except UnsupportedMemberKind as e:
            logger.warning(f"Cannot parse improper field marker on {self.name}. Fields skipped: {e}")
            return

        for descriptor in fields:
            if schema_class.get_property(descriptor.name) is None:
                schema_class.create_property(descriptor.name, descriptor.kind)
                logger.info(
                    f"Created property {schema_class.name}.{descriptor.name}",
                    extra={"kind": descriptor.kind.value},
                )

            if descriptor.unique and not self.has_index(descriptor.name, schema_class):
                schema_class.create_index(descriptor.name, IndexType.UNIQUE, descriptor.name)
                logger.info(f"Created unique index {schema_class.name}.{descriptor.name}")

    @staticmethod
    def has_index(index_name: str, schema_class: SchemaClass) -> bool:
        """Whether the schema class has an index with exactly this name."""
        for index in schema_class.get_indexes():
            if index.name == index_name:
                return True
        return False
