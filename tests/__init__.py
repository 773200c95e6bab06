"""
entmap Test Suite.

This package contains:
- unit/: Unit tests (in-memory schema, no database files)
- integration/: Integration tests (SQLite catalog, pools, CLI)
"""
