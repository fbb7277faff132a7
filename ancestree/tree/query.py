"""
Query surface: parent, children, ancestors and subtree lookups.

Every lookup is a single store query over `parent`, `ancestry` or `_id`.
Caller filters are merged with the engine's clause; on a key collision the
engine's clause wins.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence, Union

from ..config import TreeConfig
from ..store.base import Document, Filter, NodeStore
from .assembler import Entry, build_tree
from .node import Node
from .path import ancestor_ids, descendant_filter, path_of

logger = logging.getLogger(__name__)


class TreeQueries:
    """Read-side operations on a tree collection."""

    def __init__(self, store: NodeStore, config: TreeConfig) -> None:
        self.store = store
        self.config = config

    @property
    def separator(self) -> str:
        return self.config.ancestry_separator

    def _node(self, doc: Document) -> Node:
        return Node.from_document(doc, self.separator)

    @staticmethod
    def _merge(filters: Optional[Filter], clause: Filter) -> Filter:
        merged: Filter = dict(filters or {})
        merged.update(clause)
        return merged

    async def get_parent(self, node: Node) -> Optional[Node]:
        """The node's parent, or None for roots and dangling references."""
        if node.parent is None:
            return None
        doc = await self.store.find_one({"_id": node.parent})
        return self._node(doc) if doc is not None else None

    async def get_children(
        self,
        node: Node,
        filters: Optional[Filter] = None,
        fields: Optional[Sequence[str]] = None,
        sort: Optional[Sequence[tuple[str, int]]] = None,
        recursive: bool = False,
    ) -> list[Node]:
        """Direct children, or every descendant when `recursive`."""
        if recursive:
            clause = descendant_filter(path_of(node.id, node.ancestry, self.separator), self.separator)
        else:
            clause = {"parent": node.id}
        query = self._merge(filters, clause)
        return [self._node(doc) async for doc in self.store.find(query, fields=fields, sort=sort)]

    async def get_ancestors(
        self,
        node: Node,
        filters: Optional[Filter] = None,
        fields: Optional[Sequence[str]] = None,
    ) -> list[Node]:
        """Ancestors of the node, root first."""
        ids = ancestor_ids(node.ancestry, self.separator)
        if not ids:
            return []
        query = self._merge(filters, {"_id": {"$in": ids}})
        position = {node_id: index for index, node_id in enumerate(ids)}
        ancestors = [self._node(doc) async for doc in self.store.find(query, fields=fields)]
        ancestors.sort(key=lambda ancestor: position[ancestor.id])
        return ancestors

    async def get_children_tree(
        self,
        root: Optional[Union[Node, Mapping[str, Any]]] = None,
        filters: Optional[Filter] = None,
        fields: Optional[Sequence[str]] = None,
        min_level: int = 1,
        recursive: bool = True,
        allow_empty_children: bool = True,
    ) -> list[Entry]:
        """Nested subtree below `root`, or the whole forest without one.

        Args:
            root: Optional node whose descendants are returned
            filters: Extra filter clauses
            fields: Optional projection
            min_level: Depth, relative to root, of the top-level entries
            recursive: All descendants (True) or direct children only
            allow_empty_children: Give leaves an empty children list

        Returns:
            Dicts, or Nodes when wrap_children_tree is configured
        """
        query: Filter = dict(filters or {})
        if root is not None:
            root_doc = root.to_document() if isinstance(root, Node) else dict(root)
            if recursive:
                root_path = path_of(root_doc["_id"], root_doc.get("ancestry"), self.separator)
                query = self._merge(filters, descendant_filter(root_path, self.separator))
            else:
                query = self._merge(filters, {"parent": root_doc["_id"]})

        docs = [doc async for doc in self.store.find(query, fields=fields, sort=[("ancestry", 1)])]
        tree = build_tree(
            docs,
            min_level=min_level,
            root=root,
            allow_empty_children=allow_empty_children,
            wrap=self.config.wrap_children_tree,
            separator=self.separator,
        )
        logger.debug("Children tree built", extra={"fetched": len(docs), "top_level": len(tree)})
        return tree
