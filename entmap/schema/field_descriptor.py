"""
Normalized description of one marked member.

A FieldDescriptor pairs a property name with its kind, uniqueness flag and
declared target, applying the default naming rules when the marker does
not name the property explicitly:

- attribute members keep their own name
- getter-style methods drop the "get" prefix and lower-case the next
  character (getHomeAddress -> homeAddress, get_home_address -> home_address)
- a method called exactly "get" keeps its name

Invariants:
    - describe() is pure: no schema access, no target resolution
    - requires_target is derived from the kind alone
    - Member classification is exhaustive; unknown categories raise

How to change safely:
    - Support a new member category by adding a MemberKind and a branch
      in classify_member(), never by widening an existing branch
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..errors import UnsupportedMemberKind
from ..kinds import FieldKind
from .annotations import UNSET, Field, TargetRef

ACCESSOR_PREFIX = "get"


class MemberKind(Enum):
    """Member categories a field marker may sit on."""

    ATTRIBUTE = "attribute"
    METHOD = "method"


@dataclass(frozen=True)
class Attribute:
    """A structural field declared through a class annotation.

    Attributes:
        name: Attribute name as written in the class body
        annotation: The full annotation (usually typing.Annotated)
    """

    name: str
    annotation: Any = None


@dataclass(frozen=True)
class FieldDescriptor:
    """Canonical description of a schema property.

    Attributes:
        name: Canonical property name
        kind: Property type
        unique: Whether a unique index is requested
        target: Declared target entity (class or name), UNSET if none
        member_kind: Category of the member the marker was found on
    """

    name: str
    kind: FieldKind
    unique: bool = False
    target: TargetRef = UNSET
    member_kind: MemberKind = MemberKind.ATTRIBUTE

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Field name cannot be empty")

    @property
    def requires_target(self) -> bool:
        """True for link and embedded kinds."""
        return self.kind.requires_target

    @property
    def has_target(self) -> bool:
        """Whether a target was declared at all."""
        return self.target is not UNSET


def classify_member(member: Any, member_name: str | None = None) -> MemberKind:
    """Decide which member category a marked object belongs to.

    Raises:
        UnsupportedMemberKind: For anything but attributes and plain functions
    """
    if isinstance(member, Attribute):
        return MemberKind.ATTRIBUTE
    if inspect.isfunction(member):
        return MemberKind.METHOD
    name = member_name or getattr(member, "__name__", None)
    raise UnsupportedMemberKind(
        f"An unrecognized member type was found: {type(member).__name__} '{name}'",
        member_name=name,
    )


def accessor_name(method_name: str) -> str:
    """Default property name for a getter-style method."""
    if not method_name.startswith(ACCESSOR_PREFIX):
        return method_name
    rest = method_name[len(ACCESSOR_PREFIX):]
    if rest.startswith("_"):
        rest = rest[1:]
    if not rest:
        return method_name
    return rest[0].lower() + rest[1:]


def describe(meta: Field, member: Any, member_name: str | None = None) -> FieldDescriptor:
    """Build the FieldDescriptor for a marked member.

    Args:
        meta: The Field marker found on the member
        member: An Attribute or a function
        member_name: Name the member is bound to in its class, if different

    Returns:
        FieldDescriptor with defaults applied

    Raises:
        UnsupportedMemberKind: If the member is neither attribute nor method
    """
    member_kind = classify_member(member, member_name)

    if meta.name is not None:
        name = meta.name
    elif member_kind is MemberKind.ATTRIBUTE:
        name = member.name
    else:
        name = accessor_name(member_name or member.__name__)

    return FieldDescriptor(
        name=name,
        kind=meta.kind,
        unique=meta.unique,
        target=meta.target,
        member_kind=member_kind,
    )
