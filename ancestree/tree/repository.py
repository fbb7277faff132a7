"""
Tree repository: the host persistence layer.

Wires the engine stages into explicit save/remove calls:

    save:   MutationPipeline.before_save  -> store.insert / store.update
    remove: RemovalPipeline.before_remove -> store.remove

A failed pre-stage aborts the write. Descendants may already have been
rewritten when that happens (see PartialCascadeError).

Invariants:
    - One save/remove per node at a time; callers serialize writes to a node
    - Node ids never contain the ancestry separator
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence, Union

from ..config import TreeConfig
from ..store.base import Filter, NodeStore
from .assembler import Entry
from .mutation import MutationPipeline
from .node import Node
from .path import validate_id
from .query import TreeQueries
from .removal import RemovalPipeline

logger = logging.getLogger(__name__)


class TreeRepository:
    """Tree-aware CRUD over a NodeStore.

    Example:
        >>> repo = TreeRepository(store, TreeConfig(on_delete=OnDelete.REPARENT))
        >>> root = await repo.create({"name": "root"})
        >>> child = await repo.create({"name": "child"}, parent=root)
        >>> child.ancestry == root.id
        True
    """

    def __init__(self, store: NodeStore, config: Optional[TreeConfig] = None) -> None:
        self.store = store
        self.config = config or TreeConfig()
        self.mutation = MutationPipeline(store, self.config)
        self.removal = RemovalPipeline(store, self.config)
        self.queries = TreeQueries(store, self.config)

    @property
    def separator(self) -> str:
        return self.config.ancestry_separator

    def new_node(
        self,
        data: Optional[dict[str, Any]] = None,
        parent: Any = None,
        id: Optional[str] = None,
    ) -> Node:
        """Build an unsaved node bound to this repository's separator."""
        return Node(id, parent, data, separator=self.separator)

    async def create(
        self,
        data: Optional[dict[str, Any]] = None,
        parent: Any = None,
        id: Optional[str] = None,
    ) -> Node:
        """Create and save a node."""
        return await self.save(self.new_node(data, parent, id))

    async def get(self, node_id: str) -> Optional[Node]:
        """Load a node by id."""
        doc = await self.store.find_one({"_id": node_id})
        return Node.from_document(doc, self.separator) if doc is not None else None

    async def save(self, node: Node) -> Node:
        """Persist a node, maintaining ancestry for it and its descendants.

        Raises:
            ValueError: If the node id contains the separator
            ParentNotFoundError: If the parent does not exist
            PartialCascadeError: If moving descendants failed part way
            StoreError: On store failures
        """
        if node.id is not None:
            validate_id(node.id, self.separator)

        await self.mutation.before_save(node)

        doc = node.to_document()
        if node.is_new:
            node.id = validate_id(await self.store.insert(doc), self.separator)
            logger.debug("Node created", extra={"node_id": node.id, "parent": node.parent})
        else:
            del doc["_id"]
            await self.store.update({"_id": node.id}, doc)
            logger.debug("Node updated", extra={"node_id": node.id, "parent": node.parent})

        node.mark_saved()
        return node

    async def remove(self, node: Node) -> None:
        """Remove a node after applying the on_delete policy to its descendants.

        Raises:
            PartialCascadeError: If the descendant rewrite failed part way
            StoreError: On store failures
        """
        if node.is_new:
            return
        await self.removal.before_remove(node)
        await self.store.remove({"_id": node.id})
        logger.debug("Node removed", extra={"node_id": node.id})

    async def get_parent(self, node: Node) -> Optional[Node]:
        return await self.queries.get_parent(node)

    async def get_children(
        self,
        node: Node,
        filters: Optional[Filter] = None,
        fields: Optional[Sequence[str]] = None,
        sort: Optional[Sequence[tuple[str, int]]] = None,
        recursive: bool = False,
    ) -> list[Node]:
        return await self.queries.get_children(node, filters, fields, sort, recursive)

    async def get_ancestors(
        self,
        node: Node,
        filters: Optional[Filter] = None,
        fields: Optional[Sequence[str]] = None,
    ) -> list[Node]:
        return await self.queries.get_ancestors(node, filters, fields)

    async def get_children_tree(
        self,
        root: Optional[Union[Node, Mapping[str, Any]]] = None,
        filters: Optional[Filter] = None,
        fields: Optional[Sequence[str]] = None,
        min_level: int = 1,
        recursive: bool = True,
        allow_empty_children: bool = True,
    ) -> list[Entry]:
        return await self.queries.get_children_tree(
            root, filters, fields, min_level, recursive, allow_empty_children
        )
