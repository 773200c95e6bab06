"""
Record wrappers and lookups built on the document database.

DefaultModel gives entity classes the shared save()/document boilerplate;
inheriting it is optional. Getter finds one record of an entity by the
value of a field and wraps it in the entity class.

    >>> @entity
    ... class Person(DefaultModel):
    ...     email: Annotated[str, Field(unique=True)]
    ...
    >>> by_email = Getter(Person, "email")
    >>> person = by_email.get(db, "a@example.com")

Invariants:
    - Changes to a wrapped document are not persisted until save()
    - Getter only ever returns the first match
"""

from __future__ import annotations

import logging
from typing import Any, Generic, TypeVar

from .engine.sqlite import Document, SqliteDatabase, json_path
from .errors import WrapperInstantiationError
from .schema.type_descriptor import TypeDescriptor

logger = logging.getLogger(__name__)

M = TypeVar("M")


class DefaultModel:
    """Shared behaviour for models backed by a Document."""

    def __init__(self, document: Document) -> None:
        self._document = document

    def save(self) -> None:
        """Save the underlying document to the database.

        Changes to the document stay in memory until this is called; it is
        never called automatically.
        """
        self._document.save()

    @property
    def document(self) -> Document:
        """The underlying, raw Document."""
        return self._document


class Getter(Generic[M]):
    """Lookup of a model by field equality.

    Attributes:
        model: Class used to wrap matching documents
        field_name: Property compared against the lookup value
        query: The parameterized query run for every lookup
    """

    def __init__(self, model: type[M], field_name: str) -> None:
        self.model = model
        self.field_name = field_name
        self.class_name = TypeDescriptor(model).name
        self.query = (
            "SELECT rid, class_name, payload_json FROM documents "
            "WHERE class_name = ? AND json_extract(payload_json, ?) = ? "
            "ORDER BY rid LIMIT 1"
        )

    def __repr__(self) -> str:
        return f"Getter({self.class_name}.{self.field_name})"

    def get_raw(self, database: SqliteDatabase, value: Any) -> Document | None:
        """First document whose field equals value, or None."""
        return database.query_first(
            self.query,
            (self.class_name, json_path(self.field_name), value),
        )

    def get(self, database: SqliteDatabase, value: Any) -> M | None:
        """First matching document wrapped in the model class, or None.

        Raises:
            WrapperInstantiationError: If the model cannot wrap the document
        """
        document = self.get_raw(database, value)
        if document is None:
            logger.debug(f"No {self.class_name} with {self.field_name}={value!r}")
            return None
        try:
            return self.model(document)  # type: ignore[call-arg]
        except Exception as e:
            raise WrapperInstantiationError(
                f"Failed to instantiate wrapper class {self.model.__qualname__}",
                model_name=self.model.__qualname__,
            ) from e
