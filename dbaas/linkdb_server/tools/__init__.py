"""
Command-line tools for LinkDB.

- schema_cli: inspect, snapshot and validate the schema (linkdb-schema)
- smoke: replay the API dependency scenarios against a server (linkdb-smoke)
"""
