"""
Schema Registry for LinkDB.

The SchemaRegistry is the central authority for entity type definitions.
It provides:
- Registration of entity types
- Lookup by name
- Reverse lookup of dependent types (who references whom)
- Graph validation (known targets, no cycles, bounded depth)
- Schema fingerprinting and a freeze mechanism

Invariants:
    - Registry is mutable during startup, frozen before serving
    - A registry only freezes if its reference graph is a DAG
      with at most MAX_REFERENCE_DEPTH hops from root to leaf
    - Fingerprint changes when the schema changes

How to change safely:
    - Register all types before calling freeze()
    - Run `linkdb-schema validate` after adding reference fields

Example:
    >>> registry = SchemaRegistry()
    >>> registry.register_entity_type(User)
    >>> registry.register_entity_type(Post)
    >>> registry.freeze()
    'sha256:...'
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from typing import Dict, Iterator, List, Optional

from .types import EntityTypeDef

logger = logging.getLogger(__name__)

MAX_REFERENCE_DEPTH = 2


class RegistryFrozenError(Exception):
    """Raised when attempting to modify a frozen registry."""
    pass


class DuplicateRegistrationError(Exception):
    """Raised when attempting to register a type name twice."""
    pass


class SchemaValidationError(Exception):
    """Raised when freezing a registry whose reference graph is invalid."""

    def __init__(self, errors: List[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = errors


class SchemaRegistry:
    """Central registry for entity type definitions.

    Thread-safety:
        - Registration is thread-safe (uses internal lock)
        - Lookups after freeze are lock-free
        - Freeze is atomic and irreversible

    Attributes:
        frozen: Whether the registry is frozen (immutable)
        fingerprint: SHA-256 hash of the schema (computed on freeze)
    """

    def __init__(self) -> None:
        """Initialize an empty, mutable registry."""
        self._types: Dict[str, EntityTypeDef] = {}
        self._frozen = False
        self._fingerprint: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def frozen(self) -> bool:
        """Whether the registry is frozen."""
        return self._frozen

    @property
    def fingerprint(self) -> Optional[str]:
        """Schema fingerprint (available after freeze)."""
        return self._fingerprint

    def register_entity_type(self, entity_type: EntityTypeDef) -> None:
        """Register an entity type definition.

        Raises:
            RegistryFrozenError: If registry is frozen
            DuplicateRegistrationError: If the name is already registered
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(
                    f"Cannot register entity type '{entity_type.name}': registry is frozen"
                )

            if entity_type.name in self._types:
                raise DuplicateRegistrationError(
                    f"Entity type '{entity_type.name}' already registered"
                )

            for ref in entity_type.reference_fields():
                if ref.ref_type not in self._types and ref.ref_type != entity_type.name:
                    logger.warning(
                        f"Entity type '{entity_type.name}' field '{ref.name}' references "
                        f"unregistered type '{ref.ref_type}'"
                    )

            self._types[entity_type.name] = entity_type
            logger.debug(f"Registered entity type: {entity_type.name}")

    def get_entity_type(self, name: str) -> Optional[EntityTypeDef]:
        """Get an entity type by name, or None."""
        return self._types.get(name)

    def entity_types(self) -> Iterator[EntityTypeDef]:
        """Iterate over all registered entity types."""
        yield from self._types.values()

    def type_names(self) -> List[str]:
        """Sorted list of registered type names."""
        return sorted(self._types)

    def __contains__(self, name: object) -> bool:
        return name in self._types

    def __len__(self) -> int:
        return len(self._types)

    def dependent_types(self, name: str) -> List[tuple[str, str]]:
        """Types that reference `name`.

        Returns:
            Sorted (dependent_type, field_name) pairs
        """
        result = []
        for entity_type in self._types.values():
            for ref in entity_type.reference_fields():
                if ref.ref_type == name:
                    result.append((entity_type.name, ref.name))
        return sorted(result)

    def reference_depth(self, name: str) -> int:
        """Longest chain of references from `name` down to a root type.

        Assumes the graph is acyclic (call validate_all first).
        """
        entity_type = self._types[name]
        targets = [
            ref.ref_type
            for ref in entity_type.reference_fields()
            if ref.ref_type in self._types
        ]
        if not targets:
            return 0
        return 1 + max(self.reference_depth(t) for t in targets)

    def freeze(self) -> str:
        """Validate the reference graph, freeze and compute the fingerprint.

        Returns:
            Schema fingerprint string

        Raises:
            RegistryFrozenError: If already frozen
            SchemaValidationError: If the reference graph is invalid
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError("Registry is already frozen")

            errors = self.validate_all()
            if errors:
                raise SchemaValidationError(errors)

            self._fingerprint = self._compute_fingerprint()
            self._frozen = True
            logger.info(
                f"Schema registry frozen with {len(self._types)} entity types, "
                f"fingerprint={self._fingerprint}"
            )
            return self._fingerprint

    def _compute_fingerprint(self) -> str:
        """Compute SHA-256 fingerprint of the canonical JSON schema."""
        canonical = json.dumps(self.to_dict(), sort_keys=True, separators=(',', ':'))
        hash_bytes = hashlib.sha256(canonical.encode('utf-8')).hexdigest()
        return f"sha256:{hash_bytes}"

    def validate_all(self) -> List[str]:
        """Validate all registered types for consistency.

        Checks that every reference targets a registered type, that no
        type references itself, that the reference graph has no cycle,
        and that no chain is deeper than MAX_REFERENCE_DEPTH.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        for entity_type in self._types.values():
            for ref in entity_type.reference_fields():
                if ref.ref_type == entity_type.name:
                    errors.append(
                        f"Field '{ref.name}' in entity type '{entity_type.name}' "
                        f"references its own type"
                    )
                elif ref.ref_type not in self._types:
                    errors.append(
                        f"Field '{ref.name}' in entity type '{entity_type.name}' "
                        f"references unknown type '{ref.ref_type}'"
                    )

        if errors:
            return errors

        cycle = self._find_cycle()
        if cycle:
            errors.append(f"Reference cycle: {' -> '.join(cycle)}")
            return errors

        for name in sorted(self._types):
            depth = self.reference_depth(name)
            if depth > MAX_REFERENCE_DEPTH:
                errors.append(
                    f"Entity type '{name}' is {depth} references away from a root "
                    f"(max {MAX_REFERENCE_DEPTH})"
                )

        return errors

    def _find_cycle(self) -> Optional[List[str]]:
        """Depth-first search for a cycle in the type reference graph."""
        visiting: List[str] = []
        done: set[str] = set()

        def visit(name: str) -> Optional[List[str]]:
            if name in done:
                return None
            if name in visiting:
                return visiting[visiting.index(name):] + [name]
            visiting.append(name)
            for ref in self._types[name].reference_fields():
                found = visit(ref.ref_type)
                if found:
                    return found
            visiting.pop()
            done.add(name)
            return None

        for name in sorted(self._types):
            found = visit(name)
            if found:
                return found
        return None

    def to_dict(self) -> dict:
        """Convert registry to dictionary representation, sorted by name."""
        return {
            "entity_types": [
                self._types[name].to_dict() for name in sorted(self._types)
            ],
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        """Convert registry to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)

    @classmethod
    def from_dict(cls, data: dict) -> SchemaRegistry:
        """Create registry from dictionary representation (not frozen)."""
        registry = cls()
        for type_data in data.get("entity_types", []):
            registry.register_entity_type(EntityTypeDef.from_dict(type_data))
        return registry

    @classmethod
    def from_json(cls, json_str: str) -> SchemaRegistry:
        """Create registry from JSON string (not frozen)."""
        return cls.from_dict(json.loads(json_str))
