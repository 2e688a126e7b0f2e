"""
Varadhi control plane test suite.

This package contains:
- unit/: Unit tests (no external dependencies)
- integration/: Integration tests (SQLite node tree, services, admin API)
"""
