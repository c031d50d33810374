"""
GraphStore - the access API of LinkDB.

GraphStore owns the EntityStore and the DependencyIndex and is the only
component that mutates them. It exposes three operations:

    add(entity)         validate references, then insert
    delete(type, id)    remove the entity and its transitive dependents
    display(type, id)   report whether the entity exists, with its fields

Invariants:
    - No stored entity ever references an absent entity
    - add() either inserts the entity and all its back-pointers, or
      changes nothing
    - delete() is idempotent; deleting an absent key succeeds and
      removes nothing
    - Readers never observe a partially applied add or cascade

Concurrency:
    Add validation + insert, and delete planning + application, each
    run under the write lock. display/exists/stats take the read lock
    and may run concurrently with each other.

How to change safely:
    - Route every mutation through this class
    - Keep the critical sections free of I/O
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from ..errors import DuplicateEntityError, ValidationError
from ..model import ENTITY_CLASSES, Entity, EntityKey, entity_from_payload
from ..schema import SchemaRegistry, build_registry
from .cascade import CascadeDeleter
from .dependency_index import DependencyIndex
from .entity_store import EntityStore
from .locks import ReadWriteLock
from .validator import ReferenceValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AddResult:
    """Outcome of an add.

    Attributes:
        success: Whether the entity was inserted
        key: Key of the inserted entity (on success)
        error: Why the add was rejected (on failure)
    """

    success: bool
    key: Optional[EntityKey] = None
    error: Optional[ValidationError] = None

    @classmethod
    def ok(cls, key: EntityKey) -> AddResult:
        return cls(success=True, key=key)

    @classmethod
    def failed(cls, error: ValidationError) -> AddResult:
        return cls(success=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        if self.success and self.key is not None:
            return {"success": True, **self.key.to_dict()}
        body: Dict[str, Any] = {"success": False}
        if self.error is not None:
            body.update(self.error.to_dict())
        return body


@dataclass(frozen=True)
class DeleteResult:
    """Outcome of a delete. Always successful.

    Attributes:
        root: Key the delete was issued for
        removed: Every key removed, root first when it was present
    """

    root: EntityKey
    removed: tuple[EntityKey, ...] = field(default_factory=tuple)

    @property
    def success(self) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "deleted": [key.to_dict() for key in self.removed],
        }


@dataclass(frozen=True)
class DisplayResult:
    """Outcome of a display: presence plus stored fields."""

    key: EntityKey
    entity: Optional[Entity] = None

    @property
    def exists(self) -> bool:
        return self.entity is not None

    def to_dict(self) -> Dict[str, Any]:
        if self.entity is None:
            return {"exists": False}
        return {
            "exists": True,
            "type": self.key.type,
            "id": self.key.id,
            "data": self.entity.attributes(),
        }


class GraphStore:
    """In-memory entity graph with referential integrity.

    Example:
        >>> store = GraphStore()
        >>> store.add({"type": "user", "id": "user_001", "name": "Hong"}).success
        True
        >>> store.add({"type": "post", "id": "p1", "user_id": "nobody",
        ...            "category_id": "c1"}).success
        False
        >>> store.delete("user", "user_001").removed
        (EntityKey(type='user', id='user_001'),)
    """

    def __init__(
        self,
        registry: Optional[SchemaRegistry] = None,
        reject_unknown_fields: bool = True,
    ) -> None:
        """Initialize an empty store.

        Payloads are validated against the registry's type definitions,
        so a registry may tighten a kind (e.g. require an attribute) but
        must declare the same fields as the kind's variant.

        Args:
            registry: Frozen schema registry (built-in schema if omitted)
            reject_unknown_fields: Whether payload fields outside the schema
                reject an add

        Raises:
            ValueError: If the registry is not frozen, lacks a model kind,
                or declares different fields for one
        """
        self.registry = registry if registry is not None else build_registry()
        if not self.registry.frozen:
            raise ValueError("GraphStore requires a frozen schema registry")
        missing = [name for name in ENTITY_CLASSES if name not in self.registry]
        if missing:
            raise ValueError(f"Schema registry is missing entity types: {missing}")
        for name, cls in ENTITY_CLASSES.items():
            declared = self.registry.get_entity_type(name)
            if sorted(declared.get_field_names()) != sorted(cls.type_def.get_field_names()):
                raise ValueError(
                    f"Schema registry fields of '{name}' do not match the entity model: "
                    f"{declared.get_field_names()}"
                )
            if sorted((f.name, f.ref_type) for f in declared.reference_fields()) != sorted(
                (f.name, f.ref_type) for f in cls.type_def.reference_fields()
            ):
                raise ValueError(
                    f"Schema registry references of '{name}' do not match the entity model"
                )

        self.reject_unknown_fields = reject_unknown_fields
        self._store = EntityStore()
        self._index = DependencyIndex()
        self._validator = ReferenceValidator(self._store)
        self._cascade = CascadeDeleter(self._store, self._index)
        self._lock = ReadWriteLock()

    def add(self, entity: Union[Entity, Mapping[str, Any]]) -> AddResult:
        """Insert an entity after validating its references.

        Args:
            entity: An Entity variant, or a wire payload to parse

        Returns:
            AddResult.ok(key) or AddResult.failed(error); a failed add
            leaves the store unchanged
        """
        try:
            if not isinstance(entity, Entity):
                entity = entity_from_payload(
                    dict(entity) if isinstance(entity, Mapping) else entity,
                    reject_unknown=self.reject_unknown_fields,
                    registry=self.registry,
                )

            with self._lock.write():
                if self._store.exists(entity.key):
                    raise DuplicateEntityError(entity.key.type, entity.key.id)
                self._validator.validate(entity)
                self._store.put(entity)
                self._index.link(entity)

        except ValidationError as e:
            logger.info(
                f"Rejected add: {e.message}",
                extra={"error_code": e.code},
            )
            return AddResult.failed(e)

        logger.debug("Added entity", extra={"type": entity.key.type, "id": entity.key.id})
        return AddResult.ok(entity.key)

    def delete(self, type_name: str, entity_id: str) -> DeleteResult:
        """Delete an entity and every entity depending on it.

        Raises:
            MalformedKeyError: If type_name or entity_id is empty
            CascadeError: If the cascade failed (nothing was removed)
        """
        root = EntityKey(type_name, entity_id)

        with self._lock.write():
            plan = self._cascade.plan(root)
            removed = self._cascade.apply(plan) if not plan.is_empty else []

        if removed:
            logger.info(
                f"Deleted {root} with {len(removed) - 1} dependent(s)",
                extra={"type": root.type, "id": root.id, "removed": len(removed)},
            )
        else:
            logger.debug(f"Delete of absent {root} is a no-op")

        return DeleteResult(root=root, removed=tuple(e.key for e in removed))

    def display(self, type_name: str, entity_id: str) -> DisplayResult:
        """Look up an entity.

        Raises:
            MalformedKeyError: If type_name or entity_id is empty
        """
        key = EntityKey(type_name, entity_id)
        with self._lock.read():
            return DisplayResult(key=key, entity=self._store.get(key))

    def exists(self, type_name: str, entity_id: str) -> bool:
        key = EntityKey(type_name, entity_id)
        with self._lock.read():
            return self._store.exists(key)

    def get(self, key: EntityKey) -> Optional[Entity]:
        with self._lock.read():
            return self._store.get(key)

    def dependents(self, key: EntityKey) -> frozenset:
        """Keys directly referencing key."""
        with self._lock.read():
            return self._index.dependents(key)

    def stats(self) -> Dict[str, Any]:
        """Counts for health reporting."""
        with self._lock.read():
            return {
                "entities": len(self._store),
                "by_type": self._store.count_by_type(),
                "index_buckets": len(self._index),
            }

    def check_integrity(self) -> List[str]:
        """Diagnose referential problems.

        Reports stored references to absent entities and index entries
        that disagree with the stored references. A correct store always
        returns an empty list.
        """
        problems: List[str] = []
        with self._lock.read():
            expected: Dict[EntityKey, set] = {}
            for entity in self._store.values():
                for field_name, target in entity.references():
                    expected.setdefault(target, set()).add(entity.key)
                    if not self._store.exists(target):
                        problems.append(
                            f"{entity.key}.{field_name} references absent {target}"
                        )

            for target, dependents in self._index.items():
                if dependents != expected.get(target, set()):
                    problems.append(
                        f"Index bucket for {target} is out of sync with stored references"
                    )
            for target in expected:
                if target not in self._index:
                    problems.append(f"Index bucket for {target} is missing")

        return problems

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._store)
