"""
Error types for entmap.

This module defines all exception types raised by the mapping layer:
- EntMapError: Base exception
- UnsupportedMemberKind: Field marker on a member category that cannot be described
- InvalidTypeError: Type is not an entity, or its schema class is missing
- UnresolvedTargetError: Link/embedded field target cannot be resolved
- DuplicateFieldError: Two members of one type resolve to the same field name
- SchemaCycleError: Ancestry graph loops back on itself
- PoolUnavailableError: Connection pool could not be constructed
- WrapperInstantiationError: Model wrapper could not be built around a record

Errors raised by the database engine itself live in entmap.engine.base.

Invariants:
    - All errors inherit from EntMapError
    - Errors include context for debugging
    - Error messages are actionable
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class EntMapError(Exception):
    """Base exception for all entmap errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "ENTMAP_ERROR"
        self.details = details or {}


class UnsupportedMemberKind(EntMapError):
    """A field marker sits on a member that is neither an attribute nor a method.

    Raised when:
    - @field decorates a staticmethod, classmethod or property
    - @field decorates a nested class
    """

    def __init__(self, message: str, member_name: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="UNSUPPORTED_MEMBER_KIND",
            details={"member_name": member_name},
        )
        self.member_name = member_name


class InvalidTypeError(EntMapError):
    """Type cannot be mapped onto the schema.

    Raised when:
    - The type is not decorated with @entity
    - Fields are configured before the schema class exists
    """

    def __init__(self, message: str, type_name: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="INVALID_TYPE",
            details={"type_name": type_name},
        )
        self.type_name = type_name


class UnresolvedTargetError(EntMapError):
    """A link or embedded field has no usable target type.

    Only raised when strict target checking is enabled; otherwise the
    field is skipped during ancestry discovery with a warning.
    """

    def __init__(self, message: str, type_name: str, field_name: str) -> None:
        super().__init__(
            message,
            code="UNRESOLVED_TARGET",
            details={"type_name": type_name, "field_name": field_name},
        )
        self.type_name = type_name
        self.field_name = field_name


class DuplicateFieldError(EntMapError):
    """Two members of the same type map to one canonical field name."""

    def __init__(self, type_name: str, field_name: str) -> None:
        super().__init__(
            f"Field '{field_name}' is declared more than once on '{type_name}'",
            code="DUPLICATE_FIELD",
            details={"type_name": type_name, "field_name": field_name},
        )
        self.type_name = type_name
        self.field_name = field_name


class SchemaCycleError(EntMapError):
    """Ancestry resolution reached a type that is still being created.

    Attributes:
        cycle: Class names along the loop, first and last entries equal
    """

    def __init__(self, cycle: List[str]) -> None:
        super().__init__(
            f"Cyclic schema ancestry: {' -> '.join(cycle)}",
            code="SCHEMA_CYCLE",
            details={"cycle": cycle},
        )
        self.cycle = cycle


class PoolUnavailableError(EntMapError):
    """No connection pool could be registered for a key.

    The key stays unregistered, so a later call retries construction.
    """

    def __init__(self, key: str) -> None:
        super().__init__(
            f"Unable to instantiate connection pool for '{key}'",
            code="POOL_UNAVAILABLE",
            details={"key": key},
        )
        self.key = key


class WrapperInstantiationError(EntMapError):
    """Model class could not be constructed around a raw document."""

    def __init__(self, message: str, model_name: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="WRAPPER_INSTANTIATION",
            details={"model_name": model_name},
        )
        self.model_name = model_name
