"""
LinkDB Server - in-memory entity store with referential integrity.

This package implements a small graph-structured entity store:
- Five closed entity kinds (user, category, post, comment, tag)
- Reference fields validated on insert (no dangling references)
- Transitive cascade deletion along reverse references
- JSON HTTP API compatible with the /data/add, /data/delete, /data/display contract

Architecture:
    ┌─────────────┐     ┌─────────────┐     ┌─────────────────┐
    │   Client    │────▶│    HTTP     │────▶│    Servicer     │
    │ (smoke CLI) │     │  (aiohttp)  │     │  (dict <-> API) │
    └─────────────┘     └─────────────┘     └────────┬────────┘
                                                     │
                                                     ▼
                        ┌─────────────────────────────────────────┐
                        │        GraphStore (write / read lock)   │
                        └─────────────────────────────────────────┘
                                             │
                        ┌────────────────────┼────────────────────┐
                        │                    │                    │
                        ▼                    ▼                    ▼
                   ┌─────────┐         ┌──────────┐         ┌──────────┐
                   │Validator│         │ Cascade  │         │ Display  │
                   └────┬────┘         └────┬─────┘         └────┬─────┘
                        │                   │                    │
                        ▼                   ▼                    ▼
                   ┌─────────────────────────────┐         ┌──────────┐
                   │ EntityStore + DependencyIdx │         │EntityStore│
                   └─────────────────────────────┘         └──────────┘

Invariants:
    - Every stored reference points at an entity that existed when it was added
    - Entities are either present or absent, never partially written
    - The dependency index only holds keys, never entity data
    - All mutations are serialized under a single write lock

How to change safely:
    - New entity kinds need a type definition, a model variant and registration
    - Keep the reference graph acyclic (the registry refuses to freeze otherwise)
    - Never mutate EntityStore or DependencyIndex outside GraphStore

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
