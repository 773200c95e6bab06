"""
Unit tests for the schema entry points.

Tests cover:
- ensure_type lookup and creation
- configure_base_fields preconditions
- configure_fields_on templating
- sync_types ordering
"""

from typing import Annotated

import pytest

from entmap.engine import InMemorySchema
from entmap.errors import InvalidTypeError
from entmap.kinds import FieldKind
from entmap.schema import (
    Field,
    configure_base_fields,
    configure_fields_on,
    ensure_type,
    entity,
    sync_types,
)


@entity
class Company:
    name: Annotated[str, Field(unique=True)]


@entity
class Employee:
    email: Annotated[str, Field(unique=True)]
    employer: Annotated[object, Field(kind=FieldKind.LINK, target="Company")]


class NotAnEntity:
    email: Annotated[str, Field()]


class TestEnsureType:
    """Tests for ensure_type()."""

    def test_lookup_only_returns_none(self):
        """Without create_if_missing an absent class yields None."""
        schema = InMemorySchema()

        assert ensure_type(Employee, schema) is None
        assert schema.classes() == []

    def test_lookup_existing(self):
        """An existing class is returned."""
        schema = InMemorySchema()
        existing = schema.create_class("Employee")

        assert ensure_type(Employee, schema) is existing

    def test_create_if_missing(self):
        """Missing classes and ancestors are created without fields."""
        schema = InMemorySchema()

        employee = ensure_type(Employee, schema, create_if_missing=True)

        assert employee.name == "Employee"
        assert [c.name for c in employee.superclasses] == ["Company"]
        assert employee.properties() == []
        assert schema.get_class("Company").properties() == []

    def test_non_entity_rejected(self):
        """Types without @entity raise InvalidTypeError."""
        with pytest.raises(InvalidTypeError, match="must be marked with @entity") as exc_info:
            ensure_type(NotAnEntity, InMemorySchema(), create_if_missing=True)

        assert exc_info.value.type_name == "NotAnEntity"

    def test_subclass_of_entity_rejected(self):
        """The entity marker is not inherited."""

        class Contractor(Employee):
            pass

        with pytest.raises(InvalidTypeError):
            ensure_type(Contractor, InMemorySchema())


class TestConfigureBaseFields:
    """Tests for configure_base_fields()."""

    def test_requires_existing_class(self):
        """Configuring before creation raises InvalidTypeError."""
        schema = InMemorySchema()

        with pytest.raises(InvalidTypeError, match="Be sure to create type before configuration"):
            configure_base_fields(Company, schema)

        assert schema.classes() == []

    def test_non_entity_rejected(self):
        """Types without @entity raise InvalidTypeError."""
        with pytest.raises(InvalidTypeError):
            configure_base_fields(NotAnEntity, InMemorySchema())

    def test_configures_only_given_type(self):
        """Ancestors created alongside are left unconfigured."""
        schema = InMemorySchema()
        ensure_type(Employee, schema, create_if_missing=True)

        employee = configure_base_fields(Employee, schema)

        assert {p.name for p in employee.properties()} == {"email", "employer"}
        assert schema.get_class("Company").properties() == []


class TestConfigureFieldsOn:
    """Tests for configure_fields_on()."""

    def test_templates_other_class(self):
        """Fields of one model can be applied to any schema class."""
        schema = InMemorySchema()
        archive = schema.create_class("CompanyArchive")

        configure_fields_on(Company, archive)

        assert [p.name for p in archive.properties()] == ["name"]
        assert [i.name for i in archive.get_indexes()] == ["name"]


class TestSyncTypes:
    """Tests for sync_types()."""

    def test_sync_creates_and_configures(self):
        """Every type is created and configured."""
        schema = InMemorySchema()

        synced = sync_types([Employee, Company], schema)

        assert [c.name for c in synced] == ["Employee", "Company"]
        assert {p.name for p in schema.get_class("Company").properties()} == {"name"}
        assert {p.name for p in schema.get_class("Employee").properties()} == {"email", "employer"}

    def test_sync_twice_converges(self):
        """A second sync leaves the schema unchanged."""
        schema = InMemorySchema()
        sync_types([Company, Employee], schema)
        employee = schema.get_class("Employee")
        before = (employee.properties(), employee.get_indexes())

        sync_types([Company, Employee], schema)

        assert (employee.properties(), employee.get_indexes()) == before
        assert len(schema.classes()) == 2

    def test_sync_rejects_missing_class(self):
        """A schema that fails to hand back a created class raises."""

        class SilentSchema(InMemorySchema):
            def create_class(self, name, superclasses=()):
                super().create_class(name, superclasses)
                return None

        with pytest.raises(InvalidTypeError, match="could not be created") as exc_info:
            sync_types([Company], SilentSchema())

        assert exc_info.value.type_name == "Company"
