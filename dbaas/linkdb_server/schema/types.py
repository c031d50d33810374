"""
Core type definitions for the LinkDB schema.

This module defines the foundational types of the entity model:
- FieldDef: Individual field of an entity type
- EntityTypeDef: Definition of an entity type and its reference fields

Invariants:
    - Type names are the canonical identifiers (e.g. "post")
    - Field names are unique within a type
    - Every REFERENCE field names a target type
    - Reference fields are always required

How to change safely:
    - Add attribute fields freely, they are not load-bearing
    - Adding a reference field changes the dependency graph; re-run
      the registry validation (linkdb-schema validate)

Example:
    >>> from dbaas.linkdb_server.schema.types import EntityTypeDef, field
    >>> Tag = EntityTypeDef(
    ...     name="tag",
    ...     fields=(
    ...         field("name", "str"),
    ...         field("post_id", "ref", ref_type="post"),
    ...     ),
    ... )
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field as dataclass_field
from difflib import get_close_matches
from enum import Enum
from typing import Any


class FieldKind(Enum):
    """Supported field types in the schema."""

    STRING = "str"
    REFERENCE = "ref"  # Id of another entity of ref_type

    @classmethod
    def from_str(cls, value: str) -> FieldKind:
        """Convert string representation to FieldKind.

        Raises:
            ValueError: If value is not a valid field kind
        """
        for kind in cls:
            if kind.value == value:
                return kind
        valid = [k.value for k in cls]
        raise ValueError(f"Invalid field kind '{value}'. Valid kinds: {valid}")


@dataclass(frozen=True)
class FieldDef:
    """Definition of a single field within an entity type.

    Attributes:
        name: Field name as it appears in payloads
        kind: The data type of the field
        required: Whether the field must be present on add
        ref_type: Target type name if kind is REFERENCE
        description: Human-readable description

    Invariants:
        - REFERENCE fields always have a ref_type and are always required
    """

    name: str
    kind: FieldKind
    required: bool = False
    ref_type: str | None = None
    description: str = ""

    def __post_init__(self) -> None:
        """Validate field definition."""
        if not self.name:
            raise ValueError("Field name cannot be empty")
        if self.name in ("type", "id"):
            raise ValueError(f"Field name '{self.name}' is reserved")
        if self.kind == FieldKind.REFERENCE:
            if not self.ref_type:
                raise ValueError(f"ref_type required for REFERENCE field '{self.name}'")
            if not self.required:
                # frozen dataclass: bypass __setattr__
                object.__setattr__(self, "required", True)

    @property
    def is_reference(self) -> bool:
        """Whether this field points at another entity."""
        return self.kind == FieldKind.REFERENCE

    def validate_value(self, value: Any) -> tuple[bool, str | None]:
        """Validate a value against this field definition.

        Args:
            value: The value to validate

        Returns:
            Tuple of (is_valid, error_message)
        """
        if value is None:
            if self.required:
                return False, f"Field '{self.name}' is required"
            return True, None

        if not isinstance(value, str):
            return (
                False,
                f"Field '{self.name}' must be a string, got {type(value).__name__}",
            )

        if self.kind == FieldKind.REFERENCE and not value:
            return False, f"Field '{self.name}' must name a {self.ref_type} id"

        return True, None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for serialization."""
        result: dict[str, Any] = {
            "name": self.name,
            "kind": self.kind.value,
        }
        if self.required:
            result["required"] = True
        if self.ref_type is not None:
            result["ref_type"] = self.ref_type
        if self.description:
            result["description"] = self.description
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FieldDef:
        """Create from dictionary representation."""
        return cls(
            name=data["name"],
            kind=FieldKind.from_str(data["kind"]),
            required=data.get("required", False),
            ref_type=data.get("ref_type"),
            description=data.get("description", ""),
        )


def field(
    name: str,
    kind: str | FieldKind,
    *,
    required: bool = False,
    ref_type: str | None = None,
    description: str = "",
) -> FieldDef:
    """Convenience function to create a FieldDef.

    Example:
        >>> title = field("title", "str")
        >>> author = field("user_id", "ref", ref_type="user")
    """
    if isinstance(kind, str):
        kind = FieldKind.from_str(kind)
    return FieldDef(
        name=name,
        kind=kind,
        required=required,
        ref_type=ref_type,
        description=description,
    )


@dataclass(frozen=True)
class EntityTypeDef:
    """Definition of an entity type.

    Every entity is identified by (type, id) and carries the fields
    declared here. Reference fields make the entity a dependent of the
    entity they name.

    Attributes:
        name: Canonical type name
        fields: Tuple of field definitions
        description: Human-readable description

    Example:
        >>> User = EntityTypeDef(
        ...     name="user",
        ...     fields=(field("name", "str"), field("email", "str")),
        ... )
    """

    name: str
    fields: tuple[FieldDef, ...] = dataclass_field(default_factory=tuple)
    description: str = ""

    def __post_init__(self) -> None:
        """Validate entity type definition."""
        if not self.name:
            raise ValueError("Entity type name cannot be empty")

        field_names = [f.name for f in self.fields]
        if len(field_names) != len(set(field_names)):
            raise ValueError(f"Duplicate field name in entity type '{self.name}'")

    def get_field(self, name: str) -> FieldDef | None:
        """Get a field by name."""
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def get_field_names(self) -> list[str]:
        """Get list of all field names."""
        return [f.name for f in self.fields]

    def reference_fields(self) -> list[FieldDef]:
        """Fields that point at other entities."""
        return [f for f in self.fields if f.is_reference]

    def attribute_fields(self) -> list[FieldDef]:
        """Plain data fields."""
        return [f for f in self.fields if not f.is_reference]

    @property
    def is_root(self) -> bool:
        """Whether this type references nothing."""
        return not self.reference_fields()

    def validate_payload(
        self,
        payload: dict[str, Any],
        reject_unknown: bool = True,
    ) -> tuple[bool, list[str]]:
        """Validate a payload against this entity type.

        The "type" and "id" keys are part of the envelope and are ignored.

        Args:
            payload: Dictionary of field values
            reject_unknown: Whether unknown fields are errors

        Returns:
            Tuple of (is_valid, list_of_errors)
        """
        errors: list[str] = []

        if reject_unknown:
            known = set(self.get_field_names())
            unknown = set(payload.keys()) - known - {"type", "id"}
            for name in sorted(unknown):
                suggestions = get_close_matches(name, sorted(known), n=3)
                if suggestions:
                    errors.append(f"Unknown field '{name}'. Did you mean: {suggestions}?")
                else:
                    errors.append(f"Unknown field '{name}'")

        for f in self.fields:
            is_valid, error = f.validate_value(payload.get(f.name))
            if not is_valid and error:
                errors.append(error)

        return len(errors) == 0, errors

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        result: dict[str, Any] = {
            "name": self.name,
            "fields": [f.to_dict() for f in self.fields],
        }
        if self.description:
            result["description"] = self.description
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EntityTypeDef:
        """Create from dictionary representation."""
        return cls(
            name=data["name"],
            fields=tuple(FieldDef.from_dict(f) for f in data.get("fields", [])),
            description=data.get("description", ""),
        )
