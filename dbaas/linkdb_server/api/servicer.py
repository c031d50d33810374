"""
Service layer for LinkDB.

LinkDbServicer turns transport-level requests (plain dicts) into
GraphStore calls and GraphStore results back into response dicts. The
HTTP server is a thin shell around it.

Invariants:
    - Every method returns a dict; caller-visible failures carry
      "error" and "error_code"
    - Rejected adds are the only validation failures; delete and
      display of absent keys succeed
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .._version import __version__
from ..errors import CascadeError, MalformedKeyError
from ..store import GraphStore

logger = logging.getLogger(__name__)


def _invalid_argument(message: str) -> Dict[str, Any]:
    return {"success": False, "error": message, "error_code": "INVALID_ARGUMENT"}


def _require_key(request: Any) -> tuple[Optional[str], Optional[str], Optional[str]]:
    """Extract (type, id) from a request dict, or an error message."""
    if not isinstance(request, dict):
        return None, None, "Request body must be a JSON object"
    type_name = request.get("type")
    entity_id = request.get("id")
    if not isinstance(type_name, str) or not type_name:
        return None, None, "'type' is required"
    if not isinstance(entity_id, str) or not entity_id:
        return None, None, "'id' is required"
    return type_name, entity_id, None


class LinkDbServicer:
    """Request handling for the LinkDB API.

    Attributes:
        store: The GraphStore serving requests
    """

    def __init__(self, store: GraphStore) -> None:
        self.store = store

    async def add(self, payload: Any) -> Dict[str, Any]:
        """Add an entity from a wire payload."""
        result = self.store.add(payload)
        return result.to_dict()

    async def delete(self, request: Any) -> Dict[str, Any]:
        """Delete an entity and its dependents."""
        type_name, entity_id, error = _require_key(request)
        if error:
            return _invalid_argument(error)

        try:
            result = self.store.delete(type_name, entity_id)
        except MalformedKeyError as e:
            return _invalid_argument(e.message)
        except CascadeError as e:
            return {"success": False, **e.to_dict()}

        return result.to_dict()

    async def display(self, type_name: Optional[str], entity_id: Optional[str]) -> Dict[str, Any]:
        """Report whether an entity exists, with its stored fields."""
        if not type_name or not entity_id:
            return _invalid_argument("'type' and 'id' query parameters are required")

        try:
            result = self.store.display(type_name, entity_id)
        except MalformedKeyError as e:
            return _invalid_argument(e.message)

        return result.to_dict()

    async def health(self) -> Dict[str, Any]:
        """Get server health status."""
        stats = self.store.stats()
        components = {
            "schema": "healthy" if self.store.registry.frozen else "unhealthy",
            "store": "healthy",
        }
        return {
            "healthy": all(v == "healthy" for v in components.values()),
            "version": __version__,
            "components": components,
            "stats": stats,
        }

    async def get_schema(self, type_name: Optional[str] = None) -> Dict[str, Any]:
        """Get schema information, optionally for one type and its dependents."""
        registry = self.store.registry
        schema_dict = registry.to_dict()

        if type_name is not None:
            if type_name not in registry:
                return {
                    "success": False,
                    "error": f"Unknown entity type '{type_name}'",
                    "error_code": "UNKNOWN_TYPE",
                }
            schema_dict["entity_types"] = [
                t for t in schema_dict["entity_types"] if t["name"] == type_name
            ]
            schema_dict["dependents"] = [
                {"type": dep, "field": field_name}
                for dep, field_name in registry.dependent_types(type_name)
            ]

        return {
            "schema": schema_dict,
            "fingerprint": registry.fingerprint or "",
        }
