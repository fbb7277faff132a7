"""
Ancestry-maintenance engine.

This module handles:
- Path codec (string math on ancestry paths)
- Bounded stream rewriting of descendants
- Pre-save and pre-remove pipeline stages
- Parent/children/ancestor queries and tree assembly

Invariants:
    - Every node's ancestry equals its parent's path
    - Bulk rewrites finish before the triggering write reports success
    - No locks and no transactions; failures leave partial rewrites in place

How to change safely:
    - Keep path matching anchored at segment boundaries
    - Test every on_delete policy against interior nodes
"""

from .assembler import build_tree
from .mutation import MutationPipeline
from .node import Node
from .query import TreeQueries
from .removal import (
    CascadeDeleteStrategy,
    RemovalPipeline,
    ReparentStrategy,
    removal_strategy_for,
)
from .repository import TreeRepository
from .worker import stream_worker

__all__ = [
    "Node",
    "TreeRepository",
    "TreeQueries",
    "MutationPipeline",
    "RemovalPipeline",
    "CascadeDeleteStrategy",
    "ReparentStrategy",
    "removal_strategy_for",
    "build_tree",
    "stream_worker",
]
