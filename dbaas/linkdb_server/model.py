"""
Entity model for LinkDB.

Each entity kind is a frozen dataclass carrying its reference fields as
typed attributes. Payloads arriving over the wire (loosely-typed JSON
objects tagged with "type") are parsed into these variants exactly once,
at the edge; everything behind the API works with the variants.

Invariants:
    - EntityKey type and id are non-empty strings
    - Variant field names match the schema definition of their kind
    - references() lists every reference field of the kind, in schema order

How to change safely:
    - Adding a kind means: type definition in schema/blog.py, a variant
      here, and an entry in ENTITY_CLASSES
    - Attribute fields default to None (absent); reference fields have no default
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, ClassVar

from .errors import MalformedKeyError, PayloadError, UnknownTypeError
from .schema import blog
from .schema.registry import SchemaRegistry
from .schema.types import EntityTypeDef


class EntityKind(Enum):
    """The closed set of entity kinds."""

    USER = "user"
    CATEGORY = "category"
    POST = "post"
    COMMENT = "comment"
    TAG = "tag"

    def key(self, entity_id: str) -> EntityKey:
        """Build the key of an entity of this kind."""
        return EntityKey(self.value, entity_id)


@dataclass(frozen=True, order=True)
class EntityKey:
    """Identity of an entity: (type, id).

    Keys are compared and hashed by value, so a key built from a display
    query matches the key of the stored entity.

    Raises:
        MalformedKeyError: If type or id is empty or not a string
    """

    type: str
    id: str

    def __post_init__(self) -> None:
        if not isinstance(self.type, str) or not self.type:
            raise MalformedKeyError(f"Entity type must be a non-empty string, got {self.type!r}")
        if not isinstance(self.id, str) or not self.id:
            raise MalformedKeyError(f"Entity id must be a non-empty string, got {self.id!r}")

    def to_dict(self) -> dict[str, str]:
        return {"type": self.type, "id": self.id}

    def __str__(self) -> str:
        return f"{self.type}:{self.id}"


@dataclass(frozen=True)
class Entity:
    """Base class for all entity variants."""

    id: str

    kind: ClassVar[EntityKind]
    type_def: ClassVar[EntityTypeDef]

    @property
    def key(self) -> EntityKey:
        return self.kind.key(self.id)

    def references(self) -> tuple[tuple[str, EntityKey], ...]:
        """(field_name, target_key) for every reference field."""
        return ()

    def attributes(self) -> dict[str, Any]:
        """Stored field values, omitting absent attributes."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name != "id" and getattr(self, f.name) is not None
        }

    def to_payload(self) -> dict[str, Any]:
        """Convert back to the wire representation."""
        return {"type": self.kind.value, "id": self.id, **self.attributes()}


@dataclass(frozen=True)
class User(Entity):
    kind: ClassVar[EntityKind] = EntityKind.USER
    type_def: ClassVar[EntityTypeDef] = blog.User

    name: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class Category(Entity):
    kind: ClassVar[EntityKind] = EntityKind.CATEGORY
    type_def: ClassVar[EntityTypeDef] = blog.Category

    name: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class Post(Entity):
    kind: ClassVar[EntityKind] = EntityKind.POST
    type_def: ClassVar[EntityTypeDef] = blog.Post

    user_id: str = ""
    category_id: str = ""
    title: str | None = None
    content: str | None = None

    def references(self) -> tuple[tuple[str, EntityKey], ...]:
        return (
            ("user_id", EntityKind.USER.key(self.user_id)),
            ("category_id", EntityKind.CATEGORY.key(self.category_id)),
        )


@dataclass(frozen=True)
class Comment(Entity):
    kind: ClassVar[EntityKind] = EntityKind.COMMENT
    type_def: ClassVar[EntityTypeDef] = blog.Comment

    post_id: str = ""
    user_id: str = ""
    content: str | None = None

    def references(self) -> tuple[tuple[str, EntityKey], ...]:
        return (
            ("post_id", EntityKind.POST.key(self.post_id)),
            ("user_id", EntityKind.USER.key(self.user_id)),
        )


@dataclass(frozen=True)
class Tag(Entity):
    kind: ClassVar[EntityKind] = EntityKind.TAG
    type_def: ClassVar[EntityTypeDef] = blog.Tag

    post_id: str = ""
    name: str | None = None

    def references(self) -> tuple[tuple[str, EntityKey], ...]:
        return (("post_id", EntityKind.POST.key(self.post_id)),)


ENTITY_CLASSES: dict[str, type[Entity]] = {
    cls.kind.value: cls for cls in (User, Category, Post, Comment, Tag)
}


def entity_from_payload(
    payload: Any,
    reject_unknown: bool = True,
    registry: SchemaRegistry | None = None,
) -> Entity:
    """Parse a wire payload into its entity variant.

    Args:
        payload: JSON object with "type", "id" and the type's fields
        reject_unknown: Whether fields outside the schema are errors
        registry: Registry whose type definitions validate the payload
            (the built-in definitions if omitted)

    Returns:
        The matching Entity variant

    Raises:
        UnknownTypeError: If "type" is not a known kind
        PayloadError: If the payload does not match the schema
    """
    if not isinstance(payload, dict):
        raise PayloadError("entity", ["Payload must be a JSON object"])

    type_name = payload.get("type")
    if not isinstance(type_name, str) or not type_name:
        raise PayloadError("entity", ["Field 'type' must be a non-empty string"])

    cls = ENTITY_CLASSES.get(type_name)
    if cls is None:
        raise UnknownTypeError(type_name, sorted(ENTITY_CLASSES))

    errors: list[str] = []
    entity_id = payload.get("id")
    if not isinstance(entity_id, str) or not entity_id:
        errors.append("Field 'id' must be a non-empty string")

    type_def = cls.type_def
    if registry is not None:
        type_def = registry.get_entity_type(type_name) or type_def

    _, field_errors = type_def.validate_payload(payload, reject_unknown=reject_unknown)
    errors.extend(field_errors)
    if errors:
        raise PayloadError(type_name, errors)

    values = {name: payload.get(name) for name in cls.type_def.get_field_names()}
    return cls(id=entity_id, **values)
