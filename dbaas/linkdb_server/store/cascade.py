"""
Cascade deletion engine for LinkDB.

Deleting an entity removes it together with every entity that depends
on it, directly or transitively. The work is split in two steps:

    plan(root)   walk the dependency index breadth-first from root and
                 collect every present key in the closure
    apply(plan)  remove the collected entities from the store and the
                 index as a single unit

Invariants:
    - The closure is exactly the set of present keys reachable from the
      root through reverse references
    - A key is processed at most once (visited set), so the walk
      terminates and costs O(closure size)
    - apply() is all-or-nothing: on failure every entity removed so far
      is restored before CascadeError propagates

How to change safely:
    - Callers must hold GraphStore's write lock across plan() and apply()
    - Keep plan() read-only; all mutation happens in apply()
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Set

from ..errors import CascadeError
from ..model import Entity, EntityKey
from .dependency_index import DependencyIndex
from .entity_store import EntityStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CascadePlan:
    """The closure computed for one delete.

    Attributes:
        root: Key the delete was issued for
        keys: Present keys to remove, in discovery order (root first if present)
        visited: Number of distinct keys examined
    """

    root: EntityKey
    keys: tuple[EntityKey, ...] = field(default_factory=tuple)
    visited: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.keys

    def __len__(self) -> int:
        return len(self.keys)


class CascadeDeleter:
    """Computes and applies cascade deletions over a store and its index.

    Example:
        >>> deleter = CascadeDeleter(store, index)
        >>> plan = deleter.plan(EntityKey("post", "post_002"))
        >>> [str(k) for k in plan.keys]
        ['post:post_002', 'comment:comment_002', 'tag:tag_002']
        >>> deleter.apply(plan)
    """

    def __init__(self, store: EntityStore, index: DependencyIndex) -> None:
        self._store = store
        self._index = index

    def plan(self, root: EntityKey) -> CascadePlan:
        """Compute the set of entities removed by deleting root.

        An absent root yields an empty plan.
        """
        visited: Set[EntityKey] = set()
        to_delete: List[EntityKey] = []
        queue: Deque[EntityKey] = deque([root])

        while queue:
            key = queue.popleft()
            if key in visited:
                continue
            visited.add(key)

            if self._store.exists(key):
                to_delete.append(key)

            queue.extend(self._index.dependents(key))

        return CascadePlan(root=root, keys=tuple(to_delete), visited=len(visited))

    def apply(self, plan: CascadePlan) -> List[Entity]:
        """Remove every entity in plan from the store and the index.

        Returns:
            The removed entities, in plan order

        Raises:
            CascadeError: If removal failed; the store and index are
                restored to their state before the call
        """
        removed: List[Entity] = []
        try:
            for key in plan.keys:
                entity = self._store.get(key)
                if entity is None:
                    continue
                self._index.unlink(entity)
                self._store.remove(key)
                removed.append(entity)
        except Exception as e:
            logger.error(
                f"Cascade from {plan.root} failed after {len(removed)} of "
                f"{len(plan.keys)} removals, rolling back: {e}",
                exc_info=True,
            )
            self._rollback(plan, removed)
            raise CascadeError(
                f"Cascade delete of {plan.root} failed: {e}",
                root=plan.root.to_dict(),
            ) from e

        return removed

    def _rollback(self, plan: CascadePlan, removed: List[Entity]) -> None:
        """Restore removed entities and re-link every planned entity."""
        for entity in removed:
            self._store.put(entity)
        # unlink() dropped buckets that still-present dependents relied on
        for key in plan.keys:
            entity = self._store.get(key)
            if entity is not None:
                self._index.link(entity)
