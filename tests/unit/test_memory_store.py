"""
Unit tests for the in-memory node store and filter evaluation.

Tests cover:
- Insert/find/update/remove
- Filter operators and sorting
- Testing helpers (failure injection, concurrency tracking)
"""

import pytest

from ancestree.errors import StoreError
from ancestree.store.filters import matches, project, sort_documents
from ancestree.store.memory import InMemoryNodeStore


class TestFilters:
    """Tests for filter evaluation helpers."""

    def test_exact_match(self):
        assert matches({"parent": "a"}, {"parent": "a"})
        assert not matches({"parent": "b"}, {"parent": "a"})

    def test_none_matches_missing(self):
        assert matches({"_id": "a"}, {"parent": None})

    def test_in_operator(self):
        assert matches({"_id": "b"}, {"_id": {"$in": ["a", "b"]}})
        assert not matches({"_id": "c"}, {"_id": {"$in": ["a", "b"]}})

    def test_regex_operator_skips_non_strings(self):
        assert matches({"ancestry": "a/b"}, {"ancestry": {"$regex": "^a"}})
        assert not matches({"ancestry": None}, {"ancestry": {"$regex": ".*"}})

    def test_project_keeps_tree_fields(self):
        doc = {"_id": "a", "parent": None, "ancestry": None, "name": "A", "size": 3}
        assert project(doc, ["name"]) == {"_id": "a", "parent": None, "ancestry": None, "name": "A"}

    def test_sort_puts_missing_first(self):
        docs = [{"ancestry": "b"}, {"ancestry": None}, {"ancestry": "a"}]
        assert [d["ancestry"] for d in sort_documents(docs, [("ancestry", 1)])] == [None, "a", "b"]


class TestInMemoryNodeStore:
    """Tests for InMemoryNodeStore."""

    @pytest.fixture
    def store(self):
        """Create a fresh store."""
        return InMemoryNodeStore()

    @pytest.mark.asyncio
    async def test_requires_initialize(self, store):
        """Operations fail before initialize()."""
        with pytest.raises(StoreError):
            await store.insert({"_id": "a"})

    @pytest.mark.asyncio
    async def test_insert_assigns_id(self, store):
        await store.initialize()

        node_id = await store.insert({"parent": None, "ancestry": None, "name": "A"})

        assert node_id
        assert store.get_document(node_id)["name"] == "A"

    @pytest.mark.asyncio
    async def test_insert_duplicate_rejected(self, store):
        await store.initialize()
        await store.insert({"_id": "a"})

        with pytest.raises(StoreError):
            await store.insert({"_id": "a"})

    @pytest.mark.asyncio
    async def test_find_with_sort_and_fields(self, store):
        await store.initialize()
        await store.insert({"_id": "b", "parent": "a", "ancestry": "a", "name": "B"})
        await store.insert({"_id": "a", "parent": None, "ancestry": None, "name": "A"})

        docs = [doc async for doc in store.find({}, fields=(), sort=[("ancestry", 1)])]

        assert [doc["_id"] for doc in docs] == ["a", "b"]
        assert "name" not in docs[0]

    @pytest.mark.asyncio
    async def test_find_returns_copies(self, store):
        await store.initialize()
        await store.insert({"_id": "a", "name": "A"})

        async for doc in store.find({"_id": "a"}):
            doc["name"] = "changed"

        assert store.get_document("a")["name"] == "A"

    @pytest.mark.asyncio
    async def test_unknown_operator_rejected(self, store):
        await store.initialize()

        with pytest.raises(StoreError):
            await store.find_one({"ancestry": {"$where": "x"}})

    @pytest.mark.asyncio
    async def test_update_and_remove(self, store):
        await store.initialize()
        await store.insert({"_id": "a", "parent": None})
        await store.insert({"_id": "b", "parent": "a"})

        assert await store.update({"parent": "a"}, {"parent": None, "_id": "ignored"}) == 1
        assert store.get_document("b")["parent"] is None
        assert await store.remove({"_id": {"$in": ["a", "b"]}}) == 2
        assert store.count() == 0

    @pytest.mark.asyncio
    async def test_inject_failure_with_match(self, store):
        """Injected failures only hit matching targets, a limited number of times."""
        await store.initialize()
        await store.insert({"_id": "a"})
        await store.insert({"_id": "b"})
        store.inject_failure("update", StoreError("disk full"), match={"_id": "b"}, times=1)

        await store.update({"_id": "a"}, {"name": "A"})
        with pytest.raises(StoreError):
            await store.update({"_id": "b"}, {"name": "B"})
        await store.update({"_id": "b"}, {"name": "B"})

        assert store.get_document("b")["name"] == "B"

    @pytest.mark.asyncio
    async def test_close_clears_data(self, store):
        await store.initialize()
        await store.insert({"_id": "a"})

        await store.close()
        await store.initialize()

        assert store.count() == 0
