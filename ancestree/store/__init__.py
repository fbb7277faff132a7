"""
Node store abstraction for ancestree.

This module provides a pluggable store interface supporting:
- SQLite (single database file)
- In-memory (for testing)

The store is the only shared mutable resource; the tree engine holds no
locks and keeps no state between calls.

Invariants:
    - All backends implement the NodeStore protocol
    - Filter semantics are identical across backends
    - Driver errors surface as StoreError

How to change safely:
    - New backends must implement NodeStore protocol
    - Run the integration suite against every backend
"""

from .base import Document, Filter, NodeStore, create_node_store
from .memory import InMemoryNodeStore
from .sqlite import SqliteNodeStore

__all__ = [
    # Protocol and types
    "NodeStore",
    "Document",
    "Filter",
    # Factory
    "create_node_store",
    # Implementations
    "InMemoryNodeStore",
    "SqliteNodeStore",
]
