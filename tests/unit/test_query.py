"""
Unit tests for the query surface.

Tests cover:
- Parent, children and ancestor lookups
- Caller filter merging
- Nested subtree retrieval
"""

import pytest

from ancestree.config import TreeConfig
from ancestree.store.memory import InMemoryNodeStore
from ancestree.tree.node import Node
from ancestree.tree.repository import TreeRepository


async def build_forest(repo):
    """a -> b -> c, a -> b2, plus a disjoint root x."""
    nodes = {}
    nodes["a"] = await repo.create({"name": "A", "kind": "dir"}, id="a")
    nodes["b"] = await repo.create({"name": "B", "kind": "dir"}, parent="a", id="b")
    nodes["c"] = await repo.create({"name": "C", "kind": "file"}, parent="b", id="c")
    nodes["b2"] = await repo.create({"name": "B2", "kind": "file"}, parent="a", id="b2")
    nodes["x"] = await repo.create({"name": "X", "kind": "dir"}, id="x")
    return nodes


def shape(entries):
    return [(entry["_id"], shape(entry.get("children") or [])) for entry in entries]


class TestTreeQueries:
    """Tests for TreeQueries via TreeRepository."""

    @pytest.fixture
    def store(self):
        return InMemoryNodeStore()

    @pytest.fixture
    def repo(self, store):
        return TreeRepository(store, TreeConfig())

    @pytest.mark.asyncio
    async def test_get_parent(self, store, repo):
        await store.initialize()
        nodes = await build_forest(repo)

        parent = await repo.get_parent(nodes["c"])

        assert parent.id == "b"
        assert parent.data["name"] == "B"
        assert await repo.get_parent(nodes["a"]) is None

    @pytest.mark.asyncio
    async def test_get_children_direct(self, store, repo):
        await store.initialize()
        nodes = await build_forest(repo)

        children = await repo.get_children(nodes["a"], sort=[("_id", 1)])

        assert [child.id for child in children] == ["b", "b2"]
        assert all(not child.is_new for child in children)

    @pytest.mark.asyncio
    async def test_get_children_recursive(self, store, repo):
        """Recursive lookup returns the whole subtree and nothing beside it."""
        await store.initialize()
        nodes = await build_forest(repo)

        descendants = await repo.get_children(nodes["a"], recursive=True)

        assert sorted(node.id for node in descendants) == ["b", "b2", "c"]

    @pytest.mark.asyncio
    async def test_get_children_of_leaf(self, store, repo):
        await store.initialize()
        nodes = await build_forest(repo)

        assert await repo.get_children(nodes["c"]) == []
        assert await repo.get_children(nodes["c"], recursive=True) == []

    @pytest.mark.asyncio
    async def test_caller_filters_are_applied(self, store, repo):
        await store.initialize()
        nodes = await build_forest(repo)

        files = await repo.get_children(nodes["a"], filters={"kind": "file"}, recursive=True)

        assert sorted(node.id for node in files) == ["b2", "c"]

    @pytest.mark.asyncio
    async def test_engine_clause_wins_on_collision(self, store, repo):
        """A caller-supplied parent clause cannot widen the lookup."""
        await store.initialize()
        nodes = await build_forest(repo)

        children = await repo.get_children(nodes["a"], filters={"parent": "x"})

        assert sorted(child.id for child in children) == ["b", "b2"]

    @pytest.mark.asyncio
    async def test_fields_projection(self, store, repo):
        """Projected results keep tree fields."""
        await store.initialize()
        nodes = await build_forest(repo)

        children = await repo.get_children(nodes["b"], fields=["name"])

        assert children[0].data == {"name": "C"}
        assert children[0].ancestry == "a/b"

    @pytest.mark.asyncio
    async def test_get_ancestors_root_first(self, store, repo):
        await store.initialize()
        nodes = await build_forest(repo)

        ancestors = await repo.get_ancestors(nodes["c"])

        assert [node.id for node in ancestors] == ["a", "b"]
        assert await repo.get_ancestors(nodes["a"]) == []

    @pytest.mark.asyncio
    async def test_get_ancestors_with_filter(self, store, repo):
        await store.initialize()
        nodes = await build_forest(repo)

        ancestors = await repo.get_ancestors(nodes["c"], filters={"name": "A"})

        assert [node.id for node in ancestors] == ["a"]

    @pytest.mark.asyncio
    async def test_children_tree_whole_forest(self, store, repo):
        await store.initialize()
        await build_forest(repo)

        tree = await repo.get_children_tree()

        assert shape(tree) == [
            ("a", [("b", [("c", [])]), ("b2", [])]),
            ("x", []),
        ]

    @pytest.mark.asyncio
    async def test_children_tree_below_root(self, store, repo):
        await store.initialize()
        nodes = await build_forest(repo)

        tree = await repo.get_children_tree(nodes["a"])

        assert shape(tree) == [("b", [("c", [])]), ("b2", [])]

    @pytest.mark.asyncio
    async def test_children_tree_root_as_document(self, store, repo):
        await store.initialize()
        await build_forest(repo)

        tree = await repo.get_children_tree({"_id": "b", "ancestry": "a"})

        assert shape(tree) == [("c", [])]

    @pytest.mark.asyncio
    async def test_children_tree_min_level(self, store, repo):
        """min_level=2 below a root starts at its grandchildren."""
        await store.initialize()
        nodes = await build_forest(repo)

        tree = await repo.get_children_tree(nodes["a"], min_level=2)

        assert shape(tree) == [("c", [])]

    @pytest.mark.asyncio
    async def test_children_tree_not_recursive(self, store, repo):
        await store.initialize()
        nodes = await build_forest(repo)

        tree = await repo.get_children_tree(nodes["a"], recursive=False)

        assert shape(tree) == [("b", []), ("b2", [])]

    @pytest.mark.asyncio
    async def test_children_tree_without_empty_children(self, store, repo):
        await store.initialize()
        nodes = await build_forest(repo)

        tree = await repo.get_children_tree(nodes["a"], allow_empty_children=False)

        assert "children" not in tree[1]
        assert tree[0]["children"][0]["_id"] == "c"

    @pytest.mark.asyncio
    async def test_children_tree_filter_drops_subtree(self, store, repo):
        """Filtering out an intermediate node drops its descendants too."""
        await store.initialize()
        await build_forest(repo)

        tree = await repo.get_children_tree(filters={"_id": {"$in": ["a", "c", "b2"]}})

        assert shape(tree) == [("a", [("b2", [])])]

    @pytest.mark.asyncio
    async def test_children_tree_wrapped(self, store):
        """wrap_children_tree returns Node objects."""
        repo = TreeRepository(store, TreeConfig(wrap_children_tree=True))
        await store.initialize()
        await build_forest(repo)

        tree = await repo.get_children_tree()

        assert all(isinstance(entry, Node) for entry in tree)
        assert [child.id for child in tree[0].children] == ["b", "b2"]
        assert tree[0].children[0].children[0].data["name"] == "C"
