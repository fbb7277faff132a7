"""
ancestree test suite.

This package contains:
- unit/: Unit tests (in-memory store, no files)
- integration/: Integration tests (SQLite store, tree CLI)
"""
