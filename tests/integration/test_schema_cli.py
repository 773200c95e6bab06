"""
Integration tests for the schema CLI.

Tests cover:
- sync against a database file and a pool key
- show output
- Error exit codes
- Logging setup
"""

import json
import logging
import os
import textwrap

import json_log_formatter
import pytest

from entmap.config import EntMapConfig, ObservabilityConfig
from entmap.pool import reset_pools
from entmap.tools import schema_cli

MODELS = textwrap.dedent(
    """
    from typing import Annotated

    from entmap import Field, FieldKind, entity


    class Helper:
        pass


    @entity
    class Address:
        city: Annotated[str, Field()]


    @entity(name="People")
    class Person:
        email: Annotated[str, Field(unique=True)]
        home: Annotated[object, Field(kind=FieldKind.LINK, target="Address")]
    """
)

BROKEN_MODELS = textwrap.dedent(
    """
    from typing import Annotated

    from entmap import Field, FieldKind, entity


    @entity
    class Dangling:
        ref: Annotated[object, Field(kind=FieldKind.LINK, target="Nowhere")]
    """
)


class TestSchemaCLI:
    """Tests for the entmap command line."""

    @pytest.fixture(autouse=True)
    def environment(self, tmp_path, monkeypatch):
        """Isolated data directory, model modules and pool registry."""
        for name in list(os.environ):
            if name.startswith("ENTMAP_"):
                monkeypatch.delenv(name)
        monkeypatch.setenv("ENTMAP_DATA_DIR", str(tmp_path / "data"))
        (tmp_path / "cli_models.py").write_text(MODELS)
        (tmp_path / "cli_broken_models.py").write_text(BROKEN_MODELS)
        monkeypatch.syspath_prepend(str(tmp_path))
        monkeypatch.setattr(schema_cli, "setup_logging", lambda config: None)
        reset_pools()
        yield
        reset_pools()

    def test_sync_database(self, tmp_path, capsys):
        """sync creates entity classes in a database file."""
        db_path = str(tmp_path / "app.db")

        code = schema_cli.main(["sync", "--module", "cli_models", "--database", db_path])

        assert code == 0
        assert "Synchronized 2 class(es): Address, People" in capsys.readouterr().out

    def test_show_after_sync(self, tmp_path, capsys):
        """show prints the synchronized catalog as JSON."""
        db_path = str(tmp_path / "app.db")
        schema_cli.main(["sync", "-m", "cli_models", "-d", db_path])
        capsys.readouterr()

        code = schema_cli.main(["show", "--database", db_path])

        assert code == 0
        catalog = json.loads(capsys.readouterr().out)
        people = next(c for c in catalog["classes"] if c["name"] == "People")
        assert people["superclasses"] == ["Address"]
        assert people["properties"] == {"email": "string", "home": "link"}
        assert people["indexes"] == [{"name": "email", "type": "unique", "fields": ["email"]}]

    def test_sync_by_key(self, tmp_path, capsys):
        """sync resolves a pool key under the data directory."""
        code = schema_cli.main(["sync", "--module", "cli_models", "--key", "staging"])

        assert code == 0
        assert (tmp_path / "data" / "staging.db").exists()

    def test_show_missing_database(self, tmp_path, capsys):
        """show fails for a database that does not exist."""
        code = schema_cli.main(["show", "--database", str(tmp_path / "missing.db")])

        assert code == 1
        assert "Database not found" in capsys.readouterr().err

    def test_strict_sync_fails(self, tmp_path, capsys):
        """--strict turns unusable targets into a failure."""
        db_path = str(tmp_path / "app.db")

        code = schema_cli.main(
            ["sync", "--module", "cli_broken_models", "--database", db_path, "--strict"]
        )

        assert code == 1
        assert "Dangling.ref" in capsys.readouterr().err

    def test_lenient_sync_warns(self, tmp_path, capsys):
        """Without --strict unusable targets are skipped."""
        db_path = str(tmp_path / "app.db")

        code = schema_cli.main(["sync", "--module", "cli_broken_models", "--database", db_path])

        assert code == 0
        assert "Dangling" in capsys.readouterr().out

    def test_invalid_configuration(self, monkeypatch, capsys):
        """Invalid environment configuration exits with an error."""
        monkeypatch.setenv("ENTMAP_LOG_FORMAT", "xml")

        code = schema_cli.main(["show", "--key", "staging"])

        assert code == 1
        assert "Configuration error" in capsys.readouterr().err

    def test_target_required(self):
        """Either --database or --key must be given."""
        with pytest.raises(SystemExit):
            schema_cli.main(["show"])


class TestEntityTypes:
    """Tests for entity discovery in modules."""

    def test_only_local_entities(self, tmp_path, monkeypatch):
        """Imported and unmarked classes are ignored."""
        (tmp_path / "cli_discovery_models.py").write_text(MODELS)
        monkeypatch.syspath_prepend(str(tmp_path))
        import cli_discovery_models

        types = schema_cli.entity_types(cli_discovery_models)

        assert [t.__name__ for t in types] == ["Address", "Person"]


class TestSetupLogging:
    """Tests for setup_logging()."""

    @pytest.fixture(autouse=True)
    def restore_root(self):
        """Restore root logger handlers and level."""
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    def test_json_format(self):
        """json format installs the JSON formatter."""
        config = EntMapConfig(observability=ObservabilityConfig(log_level="DEBUG", log_format="json"))

        schema_cli.setup_logging(config)

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)

    def test_text_format(self):
        """text format installs a plain formatter."""
        schema_cli.setup_logging(EntMapConfig())

        formatter = logging.getLogger().handlers[0].formatter
        assert not isinstance(formatter, json_log_formatter.JSONFormatter)
        assert "%(levelname)s" in formatter._fmt
