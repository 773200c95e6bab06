"""
Declarative markers for entity types and their fields.

A class decorated with @entity represents a class that ought to exist in
the database schema. Its own members carrying a Field marker become
properties of that schema class:

    >>> @entity
    ... class Person:
    ...     email: Annotated[str, Field(unique=True)]
    ...     age_of_person: Annotated[int, Field(name="age", kind=FieldKind.INTEGER)]
    ...
    ...     @field(name="address", kind=FieldKind.LINK, target="Address")
    ...     def get_home_address(self):
    ...         ...

Invariants:
    - Markers are read from the declaring class only, never inherited
    - Field targets are stored as declared (class or forward-reference name)
    - UNSET is never a type, so it cannot collide with a real target

How to change safely:
    - New marker options need a default that keeps existing models valid
    - Keep markers free of schema or database access
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, TypeVar, Union, overload

from ..kinds import FieldKind

ENTITY_MARKER = "__entmap_entity__"
FIELD_MARKER = "__entmap_field__"

T = TypeVar("T")


class _Unset:
    """Sentinel type for a field target that was not declared."""

    _instance: _Unset | None = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET = _Unset()

TargetRef = Union[type, str, _Unset]


@dataclass(frozen=True)
class EntityMeta:
    """Entity marker payload.

    Attributes:
        name: Schema class name, or None to use the class's own name
    """

    name: str | None = None

    def __post_init__(self) -> None:
        if self.name is not None and not self.name:
            raise ValueError("Entity name cannot be empty")


@dataclass(frozen=True)
class Field:
    """Field marker payload.

    Attributes:
        name: Property name, or None to derive it from the member
        kind: Property type, STRING unless stated
        unique: Whether a unique index should back the property
        target: Entity type linked or embedded by the property
    """

    name: str | None = None
    kind: FieldKind = FieldKind.STRING
    unique: bool = False
    target: TargetRef = UNSET

    def __post_init__(self) -> None:
        if isinstance(self.kind, str):
            object.__setattr__(self, "kind", FieldKind.from_str(self.kind))
        if self.name is not None and not self.name:
            raise ValueError("Field name cannot be empty")
        if self.target is None:
            object.__setattr__(self, "target", UNSET)


@overload
def entity(cls: type[T]) -> type[T]: ...


@overload
def entity(*, name: str | None = None) -> Callable[[type[T]], type[T]]: ...


def entity(cls: Any = None, *, name: str | None = None) -> Any:
    """Mark a class as a schema-backed entity.

    Usable bare (@entity) or with options (@entity(name="People")).
    """
    meta = EntityMeta(name=name)

    def wrap(target: type[T]) -> type[T]:
        setattr(target, ENTITY_MARKER, meta)
        return target

    if cls is None:
        return wrap
    return wrap(cls)


def field(
    name: str | None = None,
    kind: FieldKind | str = FieldKind.STRING,
    *,
    unique: bool = False,
    target: TargetRef = UNSET,
) -> Callable[[T], T]:
    """Decorator marking a getter-style method as a schema property.

    Example:
        >>> @field(kind="link", target="Address")
        ... def get_home_address(self): ...
    """
    meta = Field(name=name, kind=kind, unique=unique, target=target)  # type: ignore[arg-type]

    def wrap(member: T) -> T:
        if isinstance(member, property):
            # property objects take no attributes; mark the getter instead
            setattr(member.fget, FIELD_MARKER, meta)
        elif isinstance(member, (staticmethod, classmethod)):
            setattr(member.__func__, FIELD_MARKER, meta)
        else:
            setattr(member, FIELD_MARKER, meta)
        return member

    return wrap


def get_entity_meta(cls: Any) -> EntityMeta | None:
    """Entity marker declared directly on cls, if any."""
    if not isinstance(cls, type):
        return None
    meta = vars(cls).get(ENTITY_MARKER)
    return meta if isinstance(meta, EntityMeta) else None


def get_field_meta(member: Any) -> Field | None:
    """Field marker carried by a class member, if any."""
    if isinstance(member, property):
        member = member.fget
    elif isinstance(member, (staticmethod, classmethod)):
        member = member.__func__
    meta = getattr(member, FIELD_MARKER, None)
    return meta if isinstance(meta, Field) else None
