"""
LinkDB Test Suite.

This package contains:
- unit/: Unit tests (schema, model, store, config, tools)
- integration/: Integration tests (HTTP API on a local port)
"""
