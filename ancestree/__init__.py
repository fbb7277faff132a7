"""
ancestree - materialized ancestry trees for document collections.

This package adds hierarchical semantics to records kept in a document store:
- Every record stores a `parent` reference and an `ancestry` string
- The ancestry string is the separator-joined chain of ancestor ids
- Subtree and ancestor lookups become single prefix/membership queries
- Structural changes (reparent, delete) rewrite descendant paths in bulk

Architecture:
    ┌──────────────────┐     ┌───────────────────────────────┐
    │  TreeRepository  │────▶│ MutationPipeline (pre-save)   │
    │  (host layer)    │────▶│ RemovalPipeline  (pre-remove) │
    └────────┬─────────┘     └───────────────┬───────────────┘
             │                               │ path codec + stream_worker
             ▼                               ▼
    ┌──────────────────┐     ┌───────────────────────────────┐
    │   TreeQueries    │────▶│   NodeStore (memory/sqlite)   │
    │  + build_tree    │     └───────────────────────────────┘
    └──────────────────┘

Invariants:
    - A node's ancestry equals its parent's path (parent ancestry + parent id)
    - Every descendant's ancestry starts with the ancestor's path
    - Identifiers never contain the ancestry separator
    - Descendant rewrites finish before the triggering save/remove returns

How to change safely:
    - Keep the NodeStore protocol narrow; new backends implement all of it
    - Path changes must stay prefix-preserving for existing data
    - Test reparenting with deep and wide subtrees
"""

from ._version import __version__
from .config import OnDelete, Settings, TreeConfig
from .errors import (
    ConfigurationError,
    ParentNotFoundError,
    PartialCascadeError,
    StoreError,
    TreeError,
)
from .store import InMemoryNodeStore, NodeStore, SqliteNodeStore, create_node_store
from .tree import Node, TreeRepository, build_tree

__all__ = [
    "__version__",
    # Configuration
    "TreeConfig",
    "OnDelete",
    "Settings",
    # Errors
    "TreeError",
    "ConfigurationError",
    "ParentNotFoundError",
    "PartialCascadeError",
    "StoreError",
    # Stores
    "NodeStore",
    "InMemoryNodeStore",
    "SqliteNodeStore",
    "create_node_store",
    # Tree
    "Node",
    "TreeRepository",
    "build_tree",
]
