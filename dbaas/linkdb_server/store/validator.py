"""
Insert-time reference validation.

Given a candidate entity, checks that every reference field names an
entity of the declared target type that is present in the store. The
validator never mutates anything; on failure the whole add is rejected.
"""

from __future__ import annotations

import logging

from ..errors import MissingReferenceError
from ..model import Entity
from .entity_store import EntityStore

logger = logging.getLogger(__name__)


class ReferenceValidator:
    """Checks references of candidate entities against an EntityStore."""

    def __init__(self, store: EntityStore) -> None:
        self._store = store

    def validate(self, entity: Entity) -> None:
        """Validate every reference of entity.

        All missing targets are reported together, not just the first.

        Raises:
            MissingReferenceError: If any reference target is absent
        """
        missing = [
            (field_name, target.type, target.id)
            for field_name, target in entity.references()
            if not self._store.exists(target)
        ]
        if missing:
            raise MissingReferenceError(entity.kind.value, entity.id, missing)
