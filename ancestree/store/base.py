"""
Base protocol for node store backends.

This module defines the NodeStore protocol that all backends must implement.
The tree engine only ever talks to a store through this interface.

Invariants:
    - Documents are dicts with `_id`, `parent`, `ancestry` plus data fields
    - `_id` is unique within a store and never changes after insert
    - find() cursors are lazy; callers may stop iterating early
    - Driver failures surface as StoreError

How to change safely:
    - Protocol changes require updating all implementations
    - Add new filter operators to every backend at once
"""

from __future__ import annotations

from abc import abstractmethod
from typing import (
    Any,
    AsyncIterator,
    Dict,
    Optional,
    Protocol,
    Sequence,
    TYPE_CHECKING,
    runtime_checkable,
)
import logging

if TYPE_CHECKING:
    from ..config import StorageConfig

logger = logging.getLogger(__name__)

Document = Dict[str, Any]
Filter = Dict[str, Any]


@runtime_checkable
class NodeStore(Protocol):
    """Protocol for node store backends.

    Filters support exact match, `$in` and `$regex` (see store.filters).

    Example:
        >>> store = InMemoryNodeStore()
        >>> await store.initialize()
        >>> node_id = await store.insert({"_id": "a", "parent": None, "ancestry": None})
        >>> async for doc in store.find({"parent": "a"}):
        ...     print(doc["_id"])
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the backend (create schema, open files).

        Must be called before any other operation.

        Raises:
            StoreError: If the backend cannot be prepared
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources."""
        ...

    @abstractmethod
    async def find_one(self, filter: Filter) -> Optional[Document]:
        """Return the first document matching the filter, or None."""
        ...

    @abstractmethod
    def find(
        self,
        filter: Filter,
        fields: Optional[Sequence[str]] = None,
        sort: Optional[Sequence[tuple[str, int]]] = None,
    ) -> AsyncIterator[Document]:
        """Iterate over documents matching the filter.

        Args:
            filter: Filter dict
            fields: Optional projection; tree fields are always included
            sort: Optional (field, direction) pairs, 1 ascending, -1 descending

        Yields:
            Matching documents (copies, safe to mutate)
        """
        ...

    @abstractmethod
    async def insert(self, document: Document) -> str:
        """Insert a document, assigning `_id` when absent.

        Returns:
            The document id

        Raises:
            StoreError: If the id already exists
        """
        ...

    @abstractmethod
    async def update(self, filter: Filter, values: Document) -> int:
        """Set fields on every matching document.

        Returns:
            Number of matched documents
        """
        ...

    @abstractmethod
    async def remove(self, filter: Filter) -> int:
        """Delete every matching document.

        Returns:
            Number of removed documents
        """
        ...


def create_node_store(config: "StorageConfig") -> NodeStore:
    """Factory function to create a node store from configuration.

    Args:
        config: Storage configuration

    Returns:
        Appropriate NodeStore implementation

    Raises:
        ConfigurationError: If backend is not supported
    """
    from ..config import StoreBackend
    from ..errors import ConfigurationError
    from .memory import InMemoryNodeStore
    from .sqlite import SqliteNodeStore

    if config.backend == StoreBackend.MEMORY:
        return InMemoryNodeStore()
    elif config.backend == StoreBackend.SQLITE:
        return SqliteNodeStore(
            config.sqlite_path,
            wal_mode=config.wal_mode,
            busy_timeout_ms=config.busy_timeout_ms,
        )
    else:
        raise ConfigurationError(f"Unsupported store backend: {config.backend}", option="backend")
