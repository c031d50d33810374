"""
Built-in LinkDB schema: users, categories, posts, comments and tags.

Reference graph (arrows point from dependent to target):

    comment ──▶ post ──▶ user
       │         │
       │         └─────▶ category
       └───────────────▶ user
    tag ─────▶ post

Deleting a user or category removes its posts, and with them the
posts' comments and tags. Deleting a user also removes the user's
own comments on other posts.
"""

from __future__ import annotations

from .registry import SchemaRegistry
from .types import EntityTypeDef, field

User = EntityTypeDef(
    name="user",
    fields=(
        field("name", "str"),
        field("email", "str"),
    ),
    description="Account that authors posts and comments",
)

Category = EntityTypeDef(
    name="category",
    fields=(
        field("name", "str"),
        field("description", "str"),
    ),
    description="Grouping for posts",
)

Post = EntityTypeDef(
    name="post",
    fields=(
        field("title", "str"),
        field("content", "str"),
        field("user_id", "ref", ref_type="user", description="Author"),
        field("category_id", "ref", ref_type="category"),
    ),
)

Comment = EntityTypeDef(
    name="comment",
    fields=(
        field("content", "str"),
        field("post_id", "ref", ref_type="post"),
        field("user_id", "ref", ref_type="user", description="Author"),
    ),
)

Tag = EntityTypeDef(
    name="tag",
    fields=(
        field("name", "str"),
        field("post_id", "ref", ref_type="post"),
    ),
)

ALL_ENTITY_TYPES = (User, Category, Post, Comment, Tag)


def build_registry() -> SchemaRegistry:
    """Create and freeze a registry holding the built-in types."""
    registry = SchemaRegistry()
    for entity_type in ALL_ENTITY_TYPES:
        registry.register_entity_type(entity_type)
    registry.freeze()
    return registry
