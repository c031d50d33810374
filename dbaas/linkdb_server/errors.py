"""
Error types for LinkDB.

This module defines the exceptions raised by the store and surfaced by the API:
- LinkDbError: Base exception
- ValidationError: An add was rejected (store unchanged)
- MalformedKeyError: Empty entity type or id (caller error)
- CascadeError: A cascade failed before commit and was rolled back

Invariants:
    - All errors inherit from LinkDbError
    - Every error carries a stable code for programmatic handling
    - Details are JSON-serializable so the API can return them verbatim

How to change safely:
    - Add new subclasses with new codes, never reuse an existing code
    - Keep messages actionable (name the field, type and id involved)
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class LinkDbError(Exception):
    """Base exception for all LinkDB errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "LINKDB_ERROR"
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the error body returned by the API."""
        return {
            "error": self.message,
            "error_code": self.code,
            "details": self.details,
        }


class ValidationError(LinkDbError):
    """An add was rejected.

    Raised when:
    - The entity type is unknown
    - The payload does not match the schema
    - A reference names a nonexistent entity
    - The key is already taken
    """

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code=code, details=details)


class UnknownTypeError(ValidationError):
    """Entity type is not part of the schema."""

    def __init__(self, type_name: str, known: Optional[List[str]] = None) -> None:
        super().__init__(
            f"Unknown entity type '{type_name}'",
            code="UNKNOWN_TYPE",
            details={"type": type_name, "known_types": known or []},
        )
        self.type_name = type_name


class PayloadError(ValidationError):
    """Payload failed schema validation.

    Attributes:
        errors: One message per offending field
    """

    def __init__(self, type_name: str, errors: List[str]) -> None:
        super().__init__(
            f"Invalid {type_name} payload: {'; '.join(errors)}",
            code="INVALID_PAYLOAD",
            details={"type": type_name, "errors": errors},
        )
        self.type_name = type_name
        self.errors = errors


class MissingReferenceError(ValidationError):
    """One or more reference fields name entities that do not exist.

    Attributes:
        missing: (field, target_type, target_id) for each missing target
    """

    def __init__(self, type_name: str, entity_id: str, missing: List[tuple]) -> None:
        described = ", ".join(f"{f} -> {t}:{i}" for f, t, i in missing)
        super().__init__(
            f"{type_name}:{entity_id} references missing entities: {described}",
            code="MISSING_REFERENCE",
            details={
                "type": type_name,
                "id": entity_id,
                "missing": [
                    {"field": f, "type": t, "id": i} for f, t, i in missing
                ],
            },
        )
        self.missing = missing


class DuplicateEntityError(ValidationError):
    """An entity with the same (type, id) is already present."""

    def __init__(self, type_name: str, entity_id: str) -> None:
        super().__init__(
            f"{type_name}:{entity_id} already exists",
            code="DUPLICATE_ENTITY",
            details={"type": type_name, "id": entity_id},
        )


class MalformedKeyError(LinkDbError, ValueError):
    """Entity key has an empty type or id."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="MALFORMED_KEY")


class CascadeError(LinkDbError):
    """Cascade deletion failed and was rolled back."""

    def __init__(self, message: str, root: Optional[Dict[str, str]] = None) -> None:
        super().__init__(message, code="CASCADE_FAILED", details={"root": root})
