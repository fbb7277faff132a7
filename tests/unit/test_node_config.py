"""
Unit tests for the Node model and configuration.

Tests cover:
- Parent coercion and change tracking
- Derived level and path
- TreeConfig validation and environment loading
- Settings aggregation
"""

import pytest

from ancestree.config import (
    ObservabilityConfig,
    OnDelete,
    Settings,
    StorageConfig,
    StoreBackend,
    TreeConfig,
)
from ancestree.errors import ConfigurationError
from ancestree.store import InMemoryNodeStore, SqliteNodeStore, create_node_store
from ancestree.tree.node import Node, coerce_parent


class TestNode:
    """Tests for Node."""

    def test_parent_from_node(self):
        parent = Node("p", is_new=False)
        child = Node("c", parent=parent)
        assert child.parent == "p"

    def test_parent_from_mapping(self):
        assert coerce_parent({"_id": "p", "name": "P"}) == "p"
        assert coerce_parent({"id": 7}) == "7"
        assert coerce_parent(None) is None

    def test_new_node_with_parent_is_modified(self):
        assert Node("c", parent="p").is_parent_modified
        assert not Node("c").is_parent_modified

    def test_loaded_node_tracks_changes(self):
        node = Node.from_document({"_id": "c", "parent": "p", "ancestry": "p"})
        assert not node.is_new
        assert not node.is_parent_modified

        node.parent = "q"
        assert node.is_parent_modified
        assert node.previous_parent == "p"

        node.parent = "p"
        assert not node.is_parent_modified

    def test_mark_saved_resets_tracking(self):
        node = Node("c", parent="p")
        node.mark_saved()
        assert not node.is_new
        assert not node.is_parent_modified

    def test_level_and_path(self):
        root = Node("a", is_new=False)
        assert root.level == 0
        assert root.path == "a"

        deep = Node("c", ancestry="a/b", is_new=False)
        assert deep.level == 2
        assert deep.path == "a/b/c"

    def test_empty_ancestry_normalized(self):
        assert Node("a", ancestry="").ancestry is None

    def test_document_round_trip_keeps_data(self):
        doc = {"_id": "c", "parent": "p", "ancestry": "p", "name": "C", "rank": 3}
        node = Node.from_document(doc)
        assert node.data == {"name": "C", "rank": 3}
        assert node.to_document() == doc


class TestTreeConfig:
    """Tests for TreeConfig."""

    def test_defaults(self):
        config = TreeConfig()
        assert config.ancestry_separator == "/"
        assert config.on_delete == OnDelete.DELETE
        assert config.num_workers == 5
        assert config.wrap_children_tree is False

    @pytest.mark.parametrize("separator", ["", "//", None])
    def test_invalid_separator(self, separator):
        with pytest.raises(ConfigurationError) as exc_info:
            TreeConfig(ancestry_separator=separator)
        assert exc_info.value.option == "ancestry_separator"

    @pytest.mark.parametrize("separator", ["a", "0", "f", "F"])
    def test_separator_from_generated_id_alphabet_rejected(self, separator):
        """Store-assigned ids are hex, so hex digits cannot separate segments."""
        with pytest.raises(ConfigurationError) as exc_info:
            TreeConfig(ancestry_separator=separator)
        assert exc_info.value.option == "ancestry_separator"

    def test_hex_separator_from_env_rejected(self, monkeypatch):
        monkeypatch.setenv("ANCESTRY_SEPARATOR", "a")
        with pytest.raises(ConfigurationError):
            TreeConfig.from_env()

    def test_invalid_on_delete(self):
        with pytest.raises(ConfigurationError):
            TreeConfig(on_delete="ORPHAN")

    @pytest.mark.parametrize("num_workers", [0, -3, "5"])
    def test_invalid_num_workers(self, num_workers):
        with pytest.raises(ConfigurationError):
            TreeConfig(num_workers=num_workers)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("ANCESTRY_SEPARATOR", "#")
        monkeypatch.setenv("TREE_ON_DELETE", "reparent")
        monkeypatch.setenv("TREE_NUM_WORKERS", "2")
        monkeypatch.setenv("TREE_WRAP_CHILDREN", "true")

        config = TreeConfig.from_env()

        assert config == TreeConfig(
            ancestry_separator="#",
            on_delete=OnDelete.REPARENT,
            num_workers=2,
            wrap_children_tree=True,
        )

    def test_from_env_rejects_unknown_policy(self, monkeypatch):
        monkeypatch.setenv("TREE_ON_DELETE", "ORPHAN")
        with pytest.raises(ConfigurationError):
            TreeConfig.from_env()


class TestSettings:
    """Tests for Settings and the store factory."""

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("STORE_BACKEND", "sqlite")
        monkeypatch.setenv("SQLITE_PATH", str(tmp_path / "tree.db"))
        monkeypatch.setenv("LOG_FORMAT", "json")

        settings = Settings.from_env()

        assert settings.storage.backend == StoreBackend.SQLITE
        assert settings.observability.log_format == "json"

    def test_invalid_log_format(self):
        settings = Settings(observability=ObservabilityConfig(log_format="xml"))
        with pytest.raises(ConfigurationError):
            settings.validate()

    def test_invalid_backend(self, monkeypatch):
        monkeypatch.setenv("STORE_BACKEND", "mongo")
        with pytest.raises(ConfigurationError):
            StorageConfig.from_env()

    def test_store_factory(self, tmp_path):
        assert isinstance(create_node_store(StorageConfig()), InMemoryNodeStore)
        store = create_node_store(
            StorageConfig(backend=StoreBackend.SQLITE, sqlite_path=str(tmp_path / "t.db"))
        )
        assert isinstance(store, SqliteNodeStore)

    def test_log_config(self, caplog):
        settings = Settings(tree=TreeConfig(on_delete=OnDelete.REPARENT))

        with caplog.at_level("INFO", logger="ancestree.config"):
            settings.log_config()

        record = caplog.records[-1]
        assert record.on_delete == "REPARENT"
        assert record.store_backend == "memory"
        assert record.sqlite_path is None
