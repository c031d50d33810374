"""
Reverse-adjacency index of entity references.

For every key that is referenced by at least one stored entity, the
index holds the set of keys referencing it (its dependents). The
cascade engine walks these buckets to find everything that has to go
when an entity is deleted.

Invariants:
    - The index holds keys only, never entity data
    - After link(e), e.key is in the bucket of every target of e
    - After unlink(e), e.key is in no bucket and e's own bucket is gone
    - Empty buckets are dropped

Thread safety:
    Not synchronized. Only GraphStore mutates the index, under its write lock.
"""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet, Iterator, Set, Tuple

from ..model import Entity, EntityKey

logger = logging.getLogger(__name__)


class DependencyIndex:
    """Maps each referenced key to the keys that reference it."""

    def __init__(self) -> None:
        self._dependents: Dict[EntityKey, Set[EntityKey]] = {}

    def link(self, entity: Entity) -> None:
        """Record entity as a dependent of each of its reference targets."""
        for _, target in entity.references():
            self._dependents.setdefault(target, set()).add(entity.key)

    def unlink(self, entity: Entity) -> None:
        """Remove every back-pointer contributed by entity, and its own bucket."""
        for _, target in entity.references():
            bucket = self._dependents.get(target)
            if bucket is None:
                continue
            bucket.discard(entity.key)
            if not bucket:
                del self._dependents[target]
        self.drop(entity.key)

    def drop(self, key: EntityKey) -> None:
        """Discard the dependents bucket of key."""
        self._dependents.pop(key, None)

    def dependents(self, key: EntityKey) -> FrozenSet[EntityKey]:
        """Snapshot of the keys referencing key."""
        return frozenset(self._dependents.get(key, ()))

    def items(self) -> Iterator[Tuple[EntityKey, FrozenSet[EntityKey]]]:
        """(key, dependents) for every bucket."""
        for key, bucket in self._dependents.items():
            yield key, frozenset(bucket)

    def __contains__(self, key: object) -> bool:
        return key in self._dependents

    def __len__(self) -> int:
        return len(self._dependents)
