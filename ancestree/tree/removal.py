"""
Removal pipeline: the pre-remove stage of the tree engine.

Two strategies, selected by TreeConfig.on_delete:
- CascadeDeleteStrategy: delete the whole subtree in one store call
- ReparentStrategy: hand direct children to the removed node's parent,
  then drop the removed node's segment from every deeper ancestry

Invariants:
    - Descendant changes complete before before_remove() returns
    - ReparentStrategy never starts stage 2 when stage 1 failed
    - Nothing is rolled back on failure

How to change safely:
    - Keep stage ordering: parents first, ancestry splice second
    - Test with removal of interior nodes, not just leaves and roots
"""

from __future__ import annotations

import logging
from typing import Protocol

from ..config import OnDelete, TreeConfig
from ..errors import ConfigurationError
from ..store.base import Document, NodeStore
from .node import Node
from .path import descendant_filter, path_of, remove_segment, segment_pattern
from .worker import stream_worker

logger = logging.getLogger(__name__)


class RemovalStrategy(Protocol):
    """Policy applied to a removed node's descendants."""

    async def remove_descendants(self, node: Node) -> None:
        ...


class CascadeDeleteStrategy:
    """Delete every descendant of the removed node."""

    def __init__(self, store: NodeStore, config: TreeConfig) -> None:
        self.store = store
        self.config = config

    async def remove_descendants(self, node: Node) -> None:
        path = path_of(node.id, node.ancestry, self.config.ancestry_separator)
        removed = await self.store.remove(
            descendant_filter(path, self.config.ancestry_separator)
        )
        logger.info("Subtree deleted", extra={"node_id": node.id, "descendants": removed})


class ReparentStrategy:
    """Promote the removed node's children one level up."""

    def __init__(self, store: NodeStore, config: TreeConfig) -> None:
        self.store = store
        self.config = config

    async def remove_descendants(self, node: Node) -> None:
        sep = self.config.ancestry_separator
        new_parent = node.parent
        new_ancestry = node.ancestry

        # Stage 1: direct children take over the removed node's position.
        async def reparent(doc: Document) -> None:
            await self.store.update(
                {"_id": doc["_id"]}, {"parent": new_parent, "ancestry": new_ancestry}
            )

        children = await stream_worker(
            self.store.find({"parent": node.id}, fields=()),
            self.config.num_workers,
            reparent,
            description=f"reparent children of {node.id}",
        )

        # Stage 2: deeper descendants lose the removed segment.
        async def drop_segment(doc: Document) -> None:
            ancestry = remove_segment(doc["ancestry"], node.id, sep)
            await self.store.update({"_id": doc["_id"]}, {"ancestry": ancestry})

        descendants = await stream_worker(
            self.store.find(
                {"ancestry": {"$regex": segment_pattern(node.id, sep)}}, fields=("ancestry",)
            ),
            self.config.num_workers,
            drop_segment,
            description=f"ancestry cleanup below {node.id}",
        )
        logger.info(
            "Children reparented",
            extra={
                "node_id": node.id,
                "new_parent": new_parent,
                "children": children,
                "descendants": descendants,
            },
        )


def removal_strategy_for(store: NodeStore, config: TreeConfig) -> RemovalStrategy:
    """Pick the removal strategy for a configuration.

    Raises:
        ConfigurationError: If on_delete is not a known policy
    """
    if config.on_delete == OnDelete.DELETE:
        return CascadeDeleteStrategy(store, config)
    elif config.on_delete == OnDelete.REPARENT:
        return ReparentStrategy(store, config)
    raise ConfigurationError(f"Unsupported on_delete policy: {config.on_delete!r}", option="on_delete")


class RemovalPipeline:
    """Pre-remove hook applying the configured removal strategy."""

    def __init__(self, store: NodeStore, config: TreeConfig) -> None:
        self.store = store
        self.config = config
        self.strategy = removal_strategy_for(store, config)

    async def before_remove(self, node: Node) -> None:
        """Deal with the node's descendants ahead of its own removal.

        Raises:
            PartialCascadeError: If a bulk rewrite failed part way
            StoreError: On store failures
        """
        if not node.ancestry and not await self._has_children(node):
            return
        await self.strategy.remove_descendants(node)

    async def _has_children(self, node: Node) -> bool:
        if node.id is None:
            return False
        return await self.store.find_one({"parent": node.id}) is not None
