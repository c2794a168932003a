"""
Gigboard Test Suite.

This package contains:
- unit/: Unit tests (SQLite in a temp dir, mocked HTTP)
- integration/: Job board and database registry tests against real stores
"""
