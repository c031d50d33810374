"""
Keyed in-memory storage for entity records.

The EntityStore is the exclusive owner of entity records. It knows
nothing about references; keeping the dependency index consistent is
the job of GraphStore, the only component that mutates both.

Invariants:
    - At most one record per EntityKey
    - Keys are validated on construction (see EntityKey), so no
      operation here fails on well-formed input

Thread safety:
    Not synchronized. Callers hold GraphStore's read or write lock.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, Iterator, Optional

from ..model import Entity, EntityKey

logger = logging.getLogger(__name__)


class EntityStore:
    """Dict-backed entity storage.

    Example:
        >>> store = EntityStore()
        >>> store.put(User(id="user_001", name="Hong"))
        >>> store.exists(EntityKey("user", "user_001"))
        True
    """

    def __init__(self) -> None:
        self._records: Dict[EntityKey, Entity] = {}

    def put(self, entity: Entity) -> None:
        """Insert or overwrite the record for entity.key."""
        self._records[entity.key] = entity

    def get(self, key: EntityKey) -> Optional[Entity]:
        """Return the record for key, or None."""
        return self._records.get(key)

    def exists(self, key: EntityKey) -> bool:
        return key in self._records

    def remove(self, key: EntityKey) -> bool:
        """Delete the record for key if present.

        Returns:
            True if a record was removed, False if key was absent
        """
        return self._records.pop(key, None) is not None

    def keys(self) -> Iterator[EntityKey]:
        yield from self._records.keys()

    def values(self) -> Iterator[Entity]:
        yield from self._records.values()

    def count_by_type(self) -> Dict[str, int]:
        """Number of stored records per entity type."""
        return dict(Counter(key.type for key in self._records))

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: object) -> bool:
        return key in self._records
