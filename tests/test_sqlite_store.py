"""Tests for docmap.store (SQLite backend and filter translation).

Coverage:
- Session lifecycle: context manager enforcement, commit, rollback
- CRUD primitives: insert, upsert_id, find, count, remove_all
- Mongo-style filter subset, sort, projection
- Unique indexes and DuplicateError
"""

from datetime import datetime, timezone

import pytest
from bson import ObjectId

from docmap.exceptions import DuplicateError
from docmap.store.filters import (
    apply_projection,
    build_order_clause,
    build_where_clause,
    encode_value,
    json_path,
)


def insert_all(store, collection, documents):
    with store.session() as session:
        for document in documents:
            session.insert(collection, document)


@pytest.fixture
def people(store):
    """Three documents in the 'people' collection."""
    documents = [
        {"_id": ObjectId(), "name": "Anna", "age": 31, "tags": ["a", "b"], "address": {"city": "Berlin"}},
        {"_id": ObjectId(), "name": "Bert", "age": 25, "tags": ["b"], "address": {"city": "Hamburg"}},
        {"_id": ObjectId(), "name": "Carl", "age": 40, "tags": [], "nickname": None},
    ]
    insert_all(store, "people", documents)
    return documents


class TestSessionLifecycle:
    """Tests for StoreSession context handling."""

    def test_operations_require_context(self, store):
        """Using a session outside 'with' raises RuntimeError."""
        session = store._open_session()

        with pytest.raises(RuntimeError, match="context manager"):
            session.count("people", {})

    def test_commit_on_success(self, store):
        object_id = ObjectId()
        with store.session() as session:
            session.insert("people", {"_id": object_id, "name": "Anna"})

        assert store.collection("people").find_one({"_id": object_id})["name"] == "Anna"

    def test_rollback_on_exception(self, store):
        with pytest.raises(RuntimeError):
            with store.session() as session:
                session.insert("people", {"_id": ObjectId(), "name": "Anna"})
                raise RuntimeError("boom")

        assert store.collection("people").count() == 0

    def test_collections_are_separate(self, store, people):
        assert store.collection("people").count() == 3
        assert store.collection("pets").count() == 0


class TestDocuments:
    """Tests for reading and writing documents."""

    def test_id_is_object_id_on_read(self, store, people):
        found = store.collection("people").find_one({"name": "Anna"})

        assert found["_id"] == people[0]["_id"]
        assert isinstance(found["_id"], ObjectId)

    def test_datetime_stored_as_iso_text(self, store):
        moment = datetime(2026, 10, 19, 12, 30, tzinfo=timezone.utc)
        insert_all(store, "events", [{"_id": ObjectId(), "at": moment}])

        found = store.collection("events").find_one()

        assert datetime.fromisoformat(found["at"]) == moment

    def test_upsert_replaces_and_inserts(self, store, people):
        people_collection = store.collection("people")
        new_id = ObjectId()

        with people_collection.session() as collection:
            collection.upsert_id(people[0]["_id"], {"name": "Anna Maria"})
            collection.upsert_id(new_id, {"name": "Dora"})

        assert people_collection.find_one({"_id": people[0]["_id"]}) == {
            "_id": people[0]["_id"], "name": "Anna Maria",
        }
        assert people_collection.count() == 4

    def test_duplicate_id(self, store, people):
        with pytest.raises(DuplicateError) as exc_info:
            insert_all(store, "people", [{"_id": people[0]["_id"], "name": "Again"}])

        assert exc_info.value.details["collection"] == "people"

    def test_unique_index(self, store, people):
        collection = store.collection("people")
        collection.ensure_unique_index("name")
        collection.ensure_unique_index("name")

        with pytest.raises(DuplicateError):
            insert_all(store, "people", [{"_id": ObjectId(), "name": "Bert"}])

        insert_all(store, "pets", [{"_id": ObjectId(), "name": "Bert"}])
        assert store.collection("pets").count() == 1

    def test_unique_index_rejects_odd_names(self, store):
        with pytest.raises(ValueError):
            store.collection("people; DROP").ensure_unique_index("name")

    def test_remove_all(self, store, people):
        removed = store.collection("people").remove_all({"age": {"$gt": 30}})

        assert removed == 2
        assert store.collection("people").count() == 1


class TestFilters:
    """Tests for Mongo-style filters evaluated by SQLite."""

    def names(self, store, filter, **kwargs):
        return [document["name"] for document in store.collection("people").find(filter, **kwargs)]

    def test_equality(self, store, people):
        assert self.names(store, {"name": "Bert"}) == ["Bert"]

    def test_equality_matches_array_elements(self, store, people):
        assert self.names(store, {"tags": "b"}) == ["Anna", "Bert"]

    def test_in_by_id(self, store, people):
        ids = [people[2]["_id"], people[0]["_id"]]
        assert self.names(store, {"_id": {"$in": ids}}) == ["Anna", "Carl"]

    def test_nin(self, store, people):
        assert self.names(store, {"name": {"$nin": ["Anna", "Bert"]}}) == ["Carl"]

    def test_ne(self, store, people):
        assert self.names(store, {"name": {"$ne": "Anna"}}) == ["Bert", "Carl"]

    def test_range(self, store, people):
        assert self.names(store, {"age": {"$gte": 25, "$lt": 40}}) == ["Anna", "Bert"]

    def test_exists_and_null(self, store, people):
        assert self.names(store, {"nickname": {"$exists": True}}) == ["Carl"]
        assert self.names(store, {"nickname": None}) == ["Anna", "Bert", "Carl"]

    def test_nested_key(self, store, people):
        assert self.names(store, {"address.city": "Hamburg"}) == ["Bert"]

    def test_or(self, store, people):
        assert self.names(store, {"$or": [{"name": "Anna"}, {"age": 40}]}) == ["Anna", "Carl"]

    def test_sort_limit_skip(self, store, people):
        assert self.names(store, {}, sort=["-age"], limit=2) == ["Carl", "Anna"]
        assert self.names(store, {}, sort=["age"], skip=1) == ["Anna", "Carl"]

    def test_unsupported_operator(self, store, people):
        with pytest.raises(ValueError, match="Unsupported query operator"):
            store.collection("people").find({"name": {"$regex": "^A"}})

    def test_unsupported_key(self):
        with pytest.raises(ValueError):
            json_path("name') OR 1=1 --")


class TestFilterHelpers:
    """Tests for the pure translation helpers."""

    def test_empty_filter(self):
        assert build_where_clause({}) == ("1=1", [])

    def test_id_in(self):
        object_id = ObjectId()
        assert build_where_clause({"_id": {"$in": [object_id]}}) == ("(id IN (?))", [str(object_id)])

    def test_order_clause(self):
        assert build_order_clause(["-_id", "name"]) == (
            "id DESC, json_extract(data, ?) ASC",
            ["$.name"],
        )

    def test_encode_value(self):
        object_id = ObjectId()
        moment = datetime(2026, 1, 1, tzinfo=timezone.utc)

        assert encode_value({"ids": [object_id], "at": moment}) == {
            "ids": [str(object_id)],
            "at": "2026-01-01T00:00:00+00:00",
        }

    def test_projection_include(self):
        document = {"_id": 1, "name": "Anna", "age": 31}
        assert apply_projection(document, ["name"]) == {"_id": 1, "name": "Anna"}

    def test_projection_exclude(self):
        document = {"_id": 1, "name": "Anna", "age": 31}
        assert apply_projection(document, {"age": 0}) == {"_id": 1, "name": "Anna"}
