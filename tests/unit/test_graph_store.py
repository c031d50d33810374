"""
Unit tests for GraphStore.

Tests cover:
- Adds with valid and invalid references (no partial writes)
- Duplicate keys and re-adding after delete
- Cascade deletion of posts, categories and users
- Idempotent deletes
- Display results
- Integrity under concurrent writers and readers
"""

import threading

import pytest

from dbaas.linkdb_server.errors import MalformedKeyError
from dbaas.linkdb_server.model import EntityKey, User
from dbaas.linkdb_server.schema import (
    ALL_ENTITY_TYPES,
    EntityTypeDef,
    SchemaRegistry,
    build_registry,
    field,
)
from dbaas.linkdb_server.store import GraphStore


def user(id, **fields):
    return {"type": "user", "id": id, **fields}


def category(id, **fields):
    return {"type": "category", "id": id, **fields}


def post(id, user_id, category_id, **fields):
    return {"type": "post", "id": id, "user_id": user_id, "category_id": category_id, **fields}


def comment(id, post_id, user_id, **fields):
    return {"type": "comment", "id": id, "post_id": post_id, "user_id": user_id, **fields}


def tag(id, post_id, **fields):
    return {"type": "tag", "id": id, "post_id": post_id, **fields}


def add_all(store, *payloads):
    for payload in payloads:
        result = store.add(payload)
        assert result.success, result.to_dict()


def registry_with(replacement):
    """Frozen built-in registry with one type definition swapped."""
    registry = SchemaRegistry()
    for entity_type in ALL_ENTITY_TYPES:
        registry.register_entity_type(
            replacement if entity_type.name == replacement.name else entity_type
        )
    registry.freeze()
    return registry


@pytest.fixture
def store():
    return GraphStore()


class TestConstruction:
    """Tests for GraphStore construction."""

    def test_requires_frozen_registry(self):
        """An unfrozen registry is refused."""
        with pytest.raises(ValueError, match="frozen"):
            GraphStore(registry=SchemaRegistry())

    def test_requires_every_kind(self):
        """The registry must define every entity kind."""
        registry = SchemaRegistry()
        registry.freeze()
        with pytest.raises(ValueError, match="missing entity types"):
            GraphStore(registry=registry)

    def test_starts_empty(self, store):
        """A new store holds nothing."""
        assert len(store) == 0
        assert store.stats() == {"entities": 0, "by_type": {}, "index_buckets": 0}
        assert store.check_integrity() == []

    def test_uses_given_registry(self):
        """An explicit registry is kept, not replaced by the built-in one."""
        registry = build_registry()
        assert GraphStore(registry=registry).registry is registry

    def test_rejects_registry_with_other_fields(self):
        """A registry must declare the same fields as the entity model."""
        with pytest.raises(ValueError, match="fields of 'user'"):
            GraphStore(
                registry=registry_with(EntityTypeDef(name="user", fields=(field("name", "str"),)))
            )

    def test_rejects_registry_with_other_references(self):
        """Reference targets must match the entity model."""
        tag_on_category = EntityTypeDef(
            name="tag",
            fields=(field("name", "str"), field("post_id", "ref", ref_type="category")),
        )
        with pytest.raises(ValueError, match="references of 'tag'"):
            GraphStore(registry=registry_with(tag_on_category))

    def test_registry_definitions_validate_payloads(self):
        """Adds are validated against the given registry's definitions."""
        strict_user = EntityTypeDef(
            name="user",
            fields=(field("name", "str", required=True), field("email", "str")),
        )
        store = GraphStore(registry=registry_with(strict_user))

        result = store.add(user("u1", email="hong@example.com"))

        assert not result.success
        assert result.error.errors == ["Field 'name' is required"]
        assert store.add(user("u1", name="Hong")).success
        assert store.check_integrity() == []


class TestAdd:
    """Tests for GraphStore.add()."""

    def test_normal_flow(self, store):
        """Adds with valid references succeed and are displayable."""
        add_all(
            store,
            user("user_001", name="Hong", email="hong@example.com"),
            category("cat_001", name="Tech", description="Tech posts"),
            post("post_001", "user_001", "cat_001", title="Guide", content="..."),
            comment("comment_001", "post_001", "user_001", content="Thanks!"),
            tag("tag_001", "post_001", name="testing"),
        )
        for type_name, entity_id in [
            ("user", "user_001"),
            ("category", "cat_001"),
            ("post", "post_001"),
            ("comment", "comment_001"),
            ("tag", "tag_001"),
        ]:
            assert store.exists(type_name, entity_id)
        assert store.check_integrity() == []

    def test_add_result(self, store):
        """A successful add reports the key."""
        result = store.add(user("user_001"))
        assert result.success
        assert result.key == EntityKey("user", "user_001")
        assert result.to_dict() == {"success": True, "type": "user", "id": "user_001"}

    def test_add_entity_variant(self, store):
        """Entity variants can be added directly."""
        assert store.add(User(id="u1", name="Hong")).success
        assert store.get(EntityKey("user", "u1")) == User(id="u1", name="Hong")

    @pytest.mark.parametrize(
        "payload",
        [
            post("post_invalid_1", "user_999", "cat_001"),
            post("post_invalid_2", "user_001", "cat_999"),
            comment("comment_invalid_1", "post_999", "user_001"),
            tag("tag_invalid_1", "post_999"),
        ],
    )
    def test_missing_reference_rejected(self, store, payload):
        """Adds referencing absent entities fail and change nothing."""
        add_all(store, user("user_001"), category("cat_001"))
        before = store.stats()

        result = store.add(payload)

        assert not result.success
        assert result.error.code == "MISSING_REFERENCE"
        assert not store.exists(payload["type"], payload["id"])
        assert store.stats() == before

    def test_all_missing_references_reported(self, store):
        """Every missing reference is listed in the error."""
        result = store.add(post("p1", "nobody", "nothing"))
        missing = result.to_dict()["details"]["missing"]
        assert [m["field"] for m in missing] == ["user_id", "category_id"]

    def test_reference_to_wrong_type_rejected(self, store):
        """A reference must name an entity of the declared type."""
        add_all(store, category("x"))
        result = store.add(post("p1", "x", "x"))
        assert not result.success
        assert result.error.missing == [("user_id", "user", "x")]

    def test_unknown_type_rejected(self, store):
        """Unknown types are rejected."""
        result = store.add({"type": "article", "id": "a1"})
        assert not result.success
        assert result.error.code == "UNKNOWN_TYPE"

    def test_invalid_payload_rejected(self, store):
        """Schema violations are rejected."""
        result = store.add({"type": "post", "id": "p1"})
        assert not result.success
        assert result.error.code == "INVALID_PAYLOAD"

    def test_unknown_field_rejected(self, store):
        """Fields outside the schema are rejected by default."""
        result = store.add(user("u1", nickname="h"))
        assert not result.success
        assert result.error.code == "INVALID_PAYLOAD"

    def test_unknown_field_allowed_when_configured(self):
        """Unknown fields can be ignored."""
        store = GraphStore(reject_unknown_fields=False)
        assert store.add(user("u1", nickname="h")).success
        assert store.display("user", "u1").to_dict()["data"] == {}

    def test_duplicate_rejected(self, store):
        """Re-adding an existing key fails and keeps the original."""
        add_all(store, user("u1", name="first"))
        result = store.add(user("u1", name="second"))
        assert not result.success
        assert result.error.code == "DUPLICATE_ENTITY"
        assert store.display("user", "u1").entity.name == "first"

    def test_readd_after_delete(self, store):
        """A deleted key can be added again."""
        add_all(store, user("u1", name="first"))
        store.delete("user", "u1")
        assert store.add(user("u1", name="second")).success
        assert store.display("user", "u1").entity.name == "second"

    def test_same_id_across_types(self, store):
        """Ids are scoped by type."""
        add_all(store, user("x"), category("x"))
        assert len(store) == 2


class TestDelete:
    """Tests for GraphStore.delete()."""

    def test_post_cascade(self, store):
        """Deleting a post removes its comments and tags, not its author."""
        add_all(
            store,
            user("user_002"),
            category("cat_002"),
            post("post_002", "user_002", "cat_002"),
            comment("comment_002", "post_002", "user_002"),
            tag("tag_002", "post_002"),
        )

        result = store.delete("post", "post_002")

        assert result.success
        assert set(result.removed) == {
            EntityKey("post", "post_002"),
            EntityKey("comment", "comment_002"),
            EntityKey("tag", "tag_002"),
        }
        assert result.removed[0] == EntityKey("post", "post_002")
        assert store.exists("user", "user_002")
        assert store.exists("category", "cat_002")
        assert store.check_integrity() == []

    def test_category_cascade(self, store):
        """Deleting a category removes every post in it and their dependents."""
        add_all(
            store,
            user("user_001"),
            category("cat_001"),
            post("post_001", "user_001", "cat_001"),
            comment("comment_001", "post_001", "user_001"),
            tag("tag_001", "post_001"),
            post("post_003", "user_001", "cat_001"),
        )

        store.delete("category", "cat_001")

        for type_name, entity_id in [
            ("category", "cat_001"),
            ("post", "post_001"),
            ("post", "post_003"),
            ("comment", "comment_001"),
            ("tag", "tag_001"),
        ]:
            assert not store.exists(type_name, entity_id)
        assert store.exists("user", "user_001")
        assert store.check_integrity() == []

    def test_user_cascade(self, store):
        """Deleting a user removes their posts and comments."""
        add_all(
            store,
            user("user_003"),
            category("cat_003"),
            post("post_004", "user_003", "cat_003"),
            comment("comment_003", "post_004", "user_003"),
        )

        store.delete("user", "user_003")

        assert not store.exists("user", "user_003")
        assert not store.exists("post", "post_004")
        assert not store.exists("comment", "comment_003")
        assert store.exists("category", "cat_003")

    def test_user_cascade_reaches_comments_on_other_posts(self, store):
        """A user's comments on someone else's post go with the user."""
        add_all(
            store,
            user("alice"),
            user("bob"),
            category("c1"),
            post("p1", "alice", "c1"),
            comment("m1", "p1", "bob"),
        )

        store.delete("user", "bob")

        assert not store.exists("comment", "m1")
        assert store.exists("post", "p1")
        assert store.check_integrity() == []

    def test_delete_absent_is_noop(self, store):
        """Deleting an absent key succeeds and removes nothing."""
        add_all(store, user("u1"))
        result = store.delete("user", "nobody")
        assert result.success
        assert result.removed == ()
        assert result.to_dict() == {"success": True, "deleted": []}
        assert len(store) == 1

    def test_delete_is_idempotent(self, store):
        """Repeating a delete is safe."""
        add_all(store, user("u1"), category("c1"), post("p1", "u1", "c1"))
        first = store.delete("user", "u1")
        second = store.delete("user", "u1")
        assert len(first.removed) == 2
        assert second.removed == ()
        assert store.exists("category", "c1")

    def test_delete_unknown_type_is_noop(self, store):
        """Types outside the schema simply hold nothing."""
        assert store.delete("article", "a1").removed == ()

    def test_delete_malformed_key(self, store):
        """Empty type or id is a caller error."""
        with pytest.raises(MalformedKeyError):
            store.delete("", "u1")
        with pytest.raises(MalformedKeyError):
            store.delete("user", "")

    def test_delete_result_dict(self, store):
        """The delete result lists every removed key."""
        add_all(store, user("u1"), category("c1"), post("p1", "u1", "c1"))
        body = store.delete("category", "c1").to_dict()
        assert body["success"] is True
        assert body["deleted"][0] == {"type": "category", "id": "c1"}
        assert {"type": "post", "id": "p1"} in body["deleted"]

    def test_index_emptied(self, store):
        """Deleting everything leaves no index buckets."""
        add_all(
            store,
            user("u1"),
            category("c1"),
            post("p1", "u1", "c1"),
            comment("m1", "p1", "u1"),
            tag("t1", "p1"),
        )
        store.delete("user", "u1")
        store.delete("category", "c1")
        assert store.stats() == {"entities": 0, "by_type": {}, "index_buckets": 0}


class TestDisplay:
    """Tests for GraphStore.display()."""

    def test_present(self, store):
        """Present entities report their stored fields."""
        add_all(store, user("user_001", name="Hong", email="hong@example.com"))
        result = store.display("user", "user_001")
        assert result.exists
        assert result.to_dict() == {
            "exists": True,
            "type": "user",
            "id": "user_001",
            "data": {"name": "Hong", "email": "hong@example.com"},
        }

    def test_absent(self, store):
        """Absent entities report exists=false only."""
        result = store.display("post", "post_invalid_1")
        assert not result.exists
        assert result.to_dict() == {"exists": False}

    def test_display_includes_references(self, store):
        """Reference fields are part of the stored data."""
        add_all(store, user("u1"), category("c1"), post("p1", "u1", "c1", title="Hi"))
        data = store.display("post", "p1").to_dict()["data"]
        assert data == {"user_id": "u1", "category_id": "c1", "title": "Hi"}

    def test_malformed_key(self, store):
        """Empty type or id is a caller error."""
        with pytest.raises(MalformedKeyError):
            store.display("user", "")


class TestIntrospection:
    """Tests for stats, dependents and integrity checks."""

    def test_stats(self, store):
        """Stats count entities by type."""
        add_all(store, user("u1"), user("u2"), category("c1"), post("p1", "u1", "c1"))
        assert store.stats() == {
            "entities": 4,
            "by_type": {"user": 2, "category": 1, "post": 1},
            "index_buckets": 2,
        }

    def test_dependents(self, store):
        """Direct dependents of a key are reported."""
        add_all(store, user("u1"), category("c1"), post("p1", "u1", "c1"), comment("m1", "p1", "u1"))
        assert store.dependents(EntityKey("user", "u1")) == {
            EntityKey("post", "p1"),
            EntityKey("comment", "m1"),
        }

    def test_integrity_detects_index_drift(self, store):
        """Integrity check flags an index that disagrees with the records."""
        add_all(store, user("u1"), category("c1"), post("p1", "u1", "c1"))
        store._index.drop(EntityKey("user", "u1"))
        problems = store.check_integrity()
        assert problems == ["Index bucket for user:u1 is missing"]


class TestConcurrency:
    """Tests for concurrent access."""

    def test_concurrent_adds_and_deletes_keep_integrity(self):
        """Interleaved writers never leave a dangling reference."""
        store = GraphStore(registry=build_registry())
        add_all(store, category("c1"))
        errors = []

        def writer(n):
            try:
                for i in range(50):
                    uid = f"u{n}_{i}"
                    store.add(user(uid))
                    store.add(post(f"p{n}_{i}", uid, "c1"))
                    store.add(comment(f"m{n}_{i}", f"p{n}_{i}", uid))
                    if i % 3 == 0:
                        store.delete("user", uid)
            except Exception as e:
                errors.append(e)

        def reader():
            try:
                for _ in range(200):
                    store.stats()
                    store.display("category", "c1")
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        threads += [threading.Thread(target=reader) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert errors == []
        assert store.check_integrity() == []
        assert store.stats()["by_type"]["post"] == 4 * 33

    def test_concurrent_deletes_of_shared_parent(self):
        """Racing deletes of the same root are both successful."""
        store = GraphStore()
        add_all(store, user("u1"), category("c1"))
        for i in range(20):
            add_all(store, post(f"p{i}", "u1", "c1"), tag(f"t{i}", f"p{i}"))

        results = []
        threads = [
            threading.Thread(target=lambda: results.append(store.delete("category", "c1")))
            for _ in range(4)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert all(r.success for r in results)
        assert sum(len(r.removed) for r in results) == 41
        assert store.check_integrity() == []
        assert len(store) == 1
