"""
Schema module for LinkDB.

This module provides the type system for entities:
- Type definitions (EntityTypeDef, FieldDef)
- Schema registry with reference-graph validation
- The built-in blog schema (user, category, post, comment, tag)

Invariants:
    - The reference graph is acyclic and at most two hops deep
    - The registry is frozen before the server starts serving

How to change safely:
    - Add attribute fields freely
    - Validate the registry after touching reference fields
"""

from .blog import ALL_ENTITY_TYPES, build_registry
from .registry import (
    MAX_REFERENCE_DEPTH,
    DuplicateRegistrationError,
    RegistryFrozenError,
    SchemaRegistry,
    SchemaValidationError,
)
from .types import EntityTypeDef, FieldDef, FieldKind, field

__all__ = [
    # Types
    "FieldDef",
    "FieldKind",
    "EntityTypeDef",
    "field",
    # Registry
    "SchemaRegistry",
    "RegistryFrozenError",
    "DuplicateRegistrationError",
    "SchemaValidationError",
    "MAX_REFERENCE_DEPTH",
    # Built-in schema
    "ALL_ENTITY_TYPES",
    "build_registry",
]
