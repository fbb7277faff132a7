"""
In-memory node store implementation for testing.

This module provides a simple in-memory store backend for:
- Unit tests
- Integration tests
- Local development without a database file

Invariants:
    - All data is lost on close() or process exit
    - Every operation yields to the event loop (sleeping `latency`
      seconds), so concurrent callers interleave the way they would
      against a real database
    - find() iterates over a snapshot taken when iteration starts

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with NodeStore protocol
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from ..errors import StoreError
from .base import Document, Filter
from .filters import matches, project, sort_documents, validate_filter

logger = logging.getLogger(__name__)


@dataclass
class InjectedFailure:
    """A failure to raise from a store operation (testing helper)."""

    operation: str
    exception: Exception
    match: Optional[Filter] = None
    remaining: Optional[int] = None


class InMemoryNodeStore:
    """In-memory implementation of NodeStore for testing.

    Attributes:
        max_concurrent_updates: Highest number of update() calls seen in flight
        update_calls: Total number of update() calls

    Example:
        >>> store = InMemoryNodeStore()
        >>> await store.initialize()
        >>> await store.insert({"_id": "a", "parent": None, "ancestry": None})
        'a'
    """

    def __init__(self, latency: float = 0.0) -> None:
        """Initialize in-memory store.

        Args:
            latency: Seconds every operation waits, to simulate store round trips
        """
        self.latency = latency
        self._documents: Dict[str, Document] = {}
        self._initialized = False
        self._failures: List[InjectedFailure] = []
        self._updates_in_flight = 0
        self.max_concurrent_updates = 0
        self.update_calls = 0

    @property
    def is_initialized(self) -> bool:
        """Whether initialize() has been called."""
        return self._initialized

    async def initialize(self) -> None:
        """Initialize (no-op for in-memory)."""
        self._initialized = True
        logger.debug("InMemoryNodeStore initialized")

    async def close(self) -> None:
        """Close and clear all data."""
        self._initialized = False
        self._documents.clear()
        self._failures.clear()
        logger.debug("InMemoryNodeStore closed")

    def _check_initialized(self, operation: str) -> None:
        if not self._initialized:
            raise StoreError("Store not initialized", operation=operation)

    def _raise_injected(self, operation: str, targets: Sequence[Document]) -> None:
        for failure in self._failures:
            if failure.operation != operation:
                continue
            if failure.match is not None and not any(
                matches(doc, failure.match) for doc in targets
            ):
                continue
            if failure.remaining is not None:
                failure.remaining -= 1
                if failure.remaining <= 0:
                    self._failures.remove(failure)
            raise failure.exception

    async def find_one(self, filter: Filter) -> Optional[Document]:
        """Return a copy of the first matching document."""
        self._check_initialized("find_one")
        validate_filter(filter)
        await asyncio.sleep(self.latency)
        self._raise_injected("find_one", list(self._documents.values()))
        for doc in self._documents.values():
            if matches(doc, filter):
                return dict(doc)
        return None

    async def find(
        self,
        filter: Filter,
        fields: Optional[Sequence[str]] = None,
        sort: Optional[Sequence[tuple[str, int]]] = None,
    ) -> AsyncIterator[Document]:
        """Iterate over a snapshot of matching documents."""
        self._check_initialized("find")
        validate_filter(filter)
        self._raise_injected("find", list(self._documents.values()))

        snapshot = [dict(doc) for doc in self._documents.values() if matches(doc, filter)]
        for doc in sort_documents(snapshot, sort):
            await asyncio.sleep(self.latency)
            yield project(doc, fields)

    async def insert(self, document: Document) -> str:
        """Insert a copy of the document."""
        self._check_initialized("insert")
        await asyncio.sleep(self.latency)
        doc = dict(document)
        if doc.get("_id") is None:
            doc["_id"] = uuid.uuid4().hex
        node_id = str(doc["_id"])
        doc["_id"] = node_id
        self._raise_injected("insert", [doc])
        if node_id in self._documents:
            raise StoreError(f"Duplicate node id: {node_id}", operation="insert")
        self._documents[node_id] = doc
        return node_id

    async def update(self, filter: Filter, values: Document) -> int:
        """Set fields on matching documents."""
        self._check_initialized("update")
        validate_filter(filter)
        self.update_calls += 1
        self._updates_in_flight += 1
        self.max_concurrent_updates = max(self.max_concurrent_updates, self._updates_in_flight)
        try:
            await asyncio.sleep(self.latency)
            targets = [doc for doc in self._documents.values() if matches(doc, filter)]
            self._raise_injected("update", targets)
            for doc in targets:
                doc.update({k: v for k, v in values.items() if k != "_id"})
            return len(targets)
        finally:
            self._updates_in_flight -= 1

    async def remove(self, filter: Filter) -> int:
        """Delete matching documents."""
        self._check_initialized("remove")
        validate_filter(filter)
        await asyncio.sleep(self.latency)
        targets = [doc for doc in self._documents.values() if matches(doc, filter)]
        self._raise_injected("remove", targets)
        for doc in targets:
            del self._documents[doc["_id"]]
        logger.debug("Documents removed from in-memory store", extra={"count": len(targets)})
        return len(targets)

    # Testing helpers

    def get_document(self, node_id: str) -> Optional[Document]:
        """Get a copy of a stored document (testing helper)."""
        doc = self._documents.get(node_id)
        return dict(doc) if doc is not None else None

    def get_all_documents(self) -> List[Document]:
        """Get copies of all stored documents (testing helper)."""
        return [dict(doc) for doc in self._documents.values()]

    def count(self) -> int:
        """Number of stored documents (testing helper)."""
        return len(self._documents)

    def inject_failure(
        self,
        operation: str,
        exception: Exception,
        match: Optional[Filter] = None,
        times: Optional[int] = None,
    ) -> None:
        """Make an operation raise (testing helper).

        Args:
            operation: One of find_one, find, insert, update, remove
            exception: Exception to raise
            match: Only fail when a targeted document matches this filter
            times: Fail this many times, then stop (forever when None)
        """
        self._failures.append(InjectedFailure(operation, exception, match, times))

    def clear_failures(self) -> None:
        """Remove all injected failures (testing helper)."""
        self._failures.clear()
