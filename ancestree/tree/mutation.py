"""
Mutation pipeline: the pre-save stage of the tree engine.

Computes a node's ancestry from its parent on create, and on a parent
change rewrites the ancestry of every existing descendant so that they
follow the node to its new position.

Invariants:
    - ancestry is derived from the stored parent, never taken from the caller
    - Descendant rewrites complete before before_save() returns
    - Only nodes inside the moved node's original subtree are touched
    - node.ancestry is only updated once the descendant rewrite succeeded,
      so retrying a failed save resumes the move

How to change safely:
    - Cyclic moves (onto an own descendant) are not detected here
    - Concurrent moves of overlapping subtrees race at the store
"""

from __future__ import annotations

import logging
from typing import Optional

from ..config import TreeConfig
from ..errors import ParentNotFoundError
from ..store.base import Document, NodeStore
from .node import Node
from .path import child_ancestry_under, descendant_filter, path_of, splice_prefix
from .worker import stream_worker

logger = logging.getLogger(__name__)


class MutationPipeline:
    """Pre-save hook maintaining `ancestry`.

    Example:
        >>> pipeline = MutationPipeline(store, TreeConfig())
        >>> node.parent = new_parent
        >>> await pipeline.before_save(node)   # node.ancestry updated, subtree moved
        >>> await store.update({"_id": node.id}, node.to_document())
    """

    def __init__(self, store: NodeStore, config: TreeConfig) -> None:
        self.store = store
        self.config = config

    @property
    def separator(self) -> str:
        return self.config.ancestry_separator

    async def before_save(self, node: Node) -> None:
        """Bring `node.ancestry` in line with `node.parent`.

        Raises:
            ParentNotFoundError: If the parent does not exist
            PartialCascadeError: If rewriting descendants failed part way
            StoreError: On store failures
        """
        is_parent_change = node.is_parent_modified and not node.is_new

        if not (node.is_new or is_parent_change):
            return

        previous_path: Optional[str] = None
        if is_parent_change and node.id is not None:
            previous_path = path_of(node.id, node.ancestry, self.separator)

        new_ancestry: Optional[str] = None
        if node.parent is None:
            if previous_path is None or node.ancestry is None:
                return
        else:
            parent = await self.store.find_one({"_id": node.parent})
            if parent is None:
                raise ParentNotFoundError(node.parent, node_id=node.id)
            new_ancestry = child_ancestry_under(
                parent["_id"], parent.get("ancestry"), self.separator
            )

        # node.ancestry keeps the old value until every descendant has moved.
        if previous_path is not None:
            new_path = path_of(node.id, new_ancestry, self.separator)
            await self._move_descendants(node, previous_path, new_path)
        node.ancestry = new_ancestry

    async def _move_descendants(self, node: Node, previous_path: str, new_path: str) -> None:
        """Splice `new_path` in place of `previous_path` on every descendant."""
        if previous_path == new_path:
            return

        async def rewrite(doc: Document) -> None:
            ancestry = splice_prefix(doc["ancestry"], previous_path, new_path)
            await self.store.update({"_id": doc["_id"]}, {"ancestry": ancestry})

        cursor = self.store.find(
            descendant_filter(previous_path, self.separator), fields=("ancestry",)
        )
        moved = await stream_worker(
            cursor,
            self.config.num_workers,
            rewrite,
            description=f"ancestry rewrite for {node.id}",
        )
        logger.info(
            "Subtree moved",
            extra={
                "node_id": node.id,
                "previous_path": previous_path,
                "new_path": new_path,
                "descendants": moved,
            },
        )
