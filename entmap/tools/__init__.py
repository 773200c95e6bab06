"""
CLI tools for entmap administration.

This package provides command-line tools for:
- Schema synchronization from entity modules
- Schema catalog inspection
"""

from .schema_cli import SchemaCLI, main, setup_logging

__all__ = ["SchemaCLI", "main", "setup_logging"]
