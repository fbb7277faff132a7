"""
SQLite node store for ancestree.

This module keeps tree nodes in a single SQLite database file:
- Tree fields live in dedicated, indexed columns
- Remaining document fields are stored as a JSON object
- `$regex` filters run through a REGEXP function registered per connection

Invariants:
    - One connection per operation, closed when the operation ends
    - Every write is a single autocommitted statement
    - find() reads its full result before yielding, so callers may update
      matching rows while iterating

How to change safely:
    - Schema migrations must be backward compatible
    - Keep filter semantics identical to store.filters (memory backend)

Table schema:
    nodes:
        - node_id TEXT PRIMARY KEY
        - parent TEXT (indexed)
        - ancestry TEXT (indexed)
        - data_json TEXT
        - created_at INTEGER (Unix ms)
        - updated_at INTEGER (Unix ms)
"""

from __future__ import annotations

import json
import logging
import re
import sqlite3
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Optional, Sequence

from ..errors import StoreError
from .base import Document, Filter
from .filters import project, validate_filter

logger = logging.getLogger(__name__)

_COLUMNS = {"_id": "node_id", "parent": "parent", "ancestry": "ancestry"}


def _regexp(pattern: str, value: Any) -> bool:
    return isinstance(value, str) and re.search(pattern, value) is not None


def _json_path(key: str) -> str:
    return '$."' + key.replace('"', '\\"') + '"'


def _column(key: str) -> tuple[str, list[Any]]:
    """SQL expression and parameters addressing a document field."""
    if key in _COLUMNS:
        return _COLUMNS[key], []
    return "json_extract(data_json, ?)", [_json_path(key)]


def _compile_filter(filter: Filter) -> tuple[str, list[Any]]:
    """Translate a filter dict into a WHERE clause and parameters."""
    validate_filter(filter)
    clauses: list[str] = []
    params: list[Any] = []

    for key, condition in filter.items():
        expr, expr_params = _column(key)
        if isinstance(condition, dict):
            (op, operand), = condition.items()
            if op == "$in":
                values = list(operand)
                if not values:
                    clauses.append("0")
                    continue
                clauses.append(f"{expr} IN ({', '.join('?' for _ in values)})")
                params.extend(expr_params)
                params.extend(values)
            else:
                clauses.append(f"{expr} REGEXP ?")
                params.extend(expr_params)
                params.append(operand)
        elif condition is None:
            clauses.append(f"{expr} IS NULL")
            params.extend(expr_params)
        else:
            clauses.append(f"{expr} = ?")
            params.extend(expr_params)
            params.append(condition)

    where = " AND ".join(clauses) if clauses else "1"
    return where, params


class SqliteNodeStore:
    """SQLite-backed NodeStore.

    Thread safety:
        Each operation opens its own connection.
        SQLite handles concurrent access via WAL mode.

    Example:
        >>> store = SqliteNodeStore("/var/lib/ancestree/tree.db")
        >>> await store.initialize()
        >>> await store.insert({"_id": "a", "parent": None, "ancestry": None, "name": "A"})
        'a'
    """

    SCHEMA_VERSION = 1

    def __init__(
        self,
        db_path: str | Path,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        """Initialize the SQLite store.

        Args:
            db_path: Database file path
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
        """
        self.db_path = Path(db_path)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms

    @contextmanager
    def _get_connection(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Open a configured connection, translating driver errors.

        Raises:
            StoreError: If SQLite reports an error
        """
        try:
            conn = sqlite3.connect(
                str(self.db_path),
                timeout=self.busy_timeout_ms / 1000.0,
                isolation_level=None,
            )
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open database {self.db_path}: {e}", operation=operation) from e

        conn.row_factory = sqlite3.Row
        conn.create_function("REGEXP", 2, _regexp, deterministic=True)

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            yield conn
        except sqlite3.Error as e:
            raise StoreError(f"SQLite {operation} failed: {e}", operation=operation) from e
        finally:
            conn.close()

    async def initialize(self) -> None:
        """Create the database file and schema if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._get_connection("initialize") as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at INTEGER NOT NULL
                );

                CREATE TABLE IF NOT EXISTS nodes (
                    node_id TEXT PRIMARY KEY,
                    parent TEXT,
                    ancestry TEXT,
                    data_json TEXT NOT NULL DEFAULT '{}',
                    created_at INTEGER NOT NULL,
                    updated_at INTEGER NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_nodes_parent ON nodes(parent);
                CREATE INDEX IF NOT EXISTS idx_nodes_ancestry ON nodes(ancestry);

                INSERT OR IGNORE INTO schema_version (version, applied_at)
                VALUES (1, strftime('%s', 'now') * 1000);
            """)
        logger.info("Initialized node store", extra={"db_path": str(self.db_path)})

    async def close(self) -> None:
        """Nothing to release; connections are per operation."""

    @staticmethod
    def _row_to_document(row: sqlite3.Row) -> Document:
        doc: Document = json.loads(row["data_json"])
        doc["_id"] = row["node_id"]
        doc["parent"] = row["parent"]
        doc["ancestry"] = row["ancestry"]
        return doc

    async def find_one(self, filter: Filter) -> Optional[Document]:
        """Return the first matching document."""
        where, params = _compile_filter(filter)
        with self._get_connection("find_one") as conn:
            row = conn.execute(
                f"SELECT node_id, parent, ancestry, data_json FROM nodes WHERE {where} LIMIT 1",
                params,
            ).fetchone()
        return self._row_to_document(row) if row is not None else None

    async def find(
        self,
        filter: Filter,
        fields: Optional[Sequence[str]] = None,
        sort: Optional[Sequence[tuple[str, int]]] = None,
    ) -> AsyncIterator[Document]:
        """Iterate over matching documents."""
        where, params = _compile_filter(filter)
        order_parts: list[str] = []
        for key, direction in sort or ():
            expr, expr_params = _column(key)
            order_parts.append(f"{expr} {'DESC' if direction < 0 else 'ASC'}")
            params.extend(expr_params)
        order = f" ORDER BY {', '.join(order_parts)}" if order_parts else ""

        with self._get_connection("find") as conn:
            rows = conn.execute(
                f"SELECT node_id, parent, ancestry, data_json FROM nodes WHERE {where}{order}",
                params,
            ).fetchall()

        for row in rows:
            yield project(self._row_to_document(row), fields)

    async def insert(self, document: Document) -> str:
        """Insert a document, generating `_id` when absent."""
        doc = dict(document)
        node_id = doc.pop("_id", None)
        node_id = str(node_id) if node_id is not None else uuid.uuid4().hex
        parent = doc.pop("parent", None)
        ancestry = doc.pop("ancestry", None)
        now = int(time.time() * 1000)

        with self._get_connection("insert") as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO nodes (node_id, parent, ancestry, data_json, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (node_id, parent, ancestry, json.dumps(doc), now, now),
                )
            except sqlite3.IntegrityError as e:
                raise StoreError(f"Duplicate node id: {node_id}", operation="insert") from e
        return node_id

    async def update(self, filter: Filter, values: Document) -> int:
        """Set fields on matching documents."""
        where, where_params = _compile_filter(filter)
        assignments: list[str] = []
        params: list[Any] = []
        data_args: list[str] = []
        data_params: list[Any] = []

        for key, value in values.items():
            if key == "_id":
                continue
            if key in _COLUMNS:
                assignments.append(f"{_COLUMNS[key]} = ?")
                params.append(value)
            else:
                data_args.append("?, json(?)")
                data_params.extend([_json_path(key), json.dumps(value)])

        if data_args:
            assignments.append(f"data_json = json_set(data_json, {', '.join(data_args)})")
            params.extend(data_params)
        assignments.append("updated_at = ?")
        params.append(int(time.time() * 1000))

        with self._get_connection("update") as conn:
            cursor = conn.execute(
                f"UPDATE nodes SET {', '.join(assignments)} WHERE {where}",
                params + where_params,
            )
            return cursor.rowcount

    async def remove(self, filter: Filter) -> int:
        """Delete matching documents."""
        where, params = _compile_filter(filter)
        with self._get_connection("remove") as conn:
            cursor = conn.execute(f"DELETE FROM nodes WHERE {where}", params)
            removed = cursor.rowcount
        logger.debug("Documents removed from node store", extra={"count": removed})
        return removed
