"""
Store module for LinkDB - entity storage, integrity and cascades.

This module handles:
- Keyed entity storage (EntityStore)
- Reverse-reference index (DependencyIndex)
- Insert-time reference validation (ReferenceValidator)
- Transitive cascade deletion (CascadeDeleter)
- The access API tying them together under one lock (GraphStore)

Invariants:
    - Only GraphStore mutates EntityStore and DependencyIndex
    - Adds and cascades are atomic with respect to readers
    - No dangling reference can be created

How to change safely:
    - Keep new operations inside GraphStore's lock discipline
    - Cover every new mutation with an integrity check in tests
"""

from .cascade import CascadeDeleter, CascadePlan
from .dependency_index import DependencyIndex
from .entity_store import EntityStore
from .graph_store import AddResult, DeleteResult, DisplayResult, GraphStore
from .locks import ReadWriteLock
from .validator import ReferenceValidator

__all__ = [
    "EntityStore",
    "DependencyIndex",
    "ReferenceValidator",
    "CascadeDeleter",
    "CascadePlan",
    "ReadWriteLock",
    "GraphStore",
    "AddResult",
    "DeleteResult",
    "DisplayResult",
]
