"""
Tree CLI tool for ancestree.

This tool inspects a tree kept in an SQLite node store:
- show: Print the forest (or one subtree) as an indented outline
- check: Report nodes whose ancestry disagrees with their parent's path

Usage:
    python -m ancestree.tools.tree_cli --db tree.db show [--root ID]
    python -m ancestree.tools.tree_cli --db tree.db check

Invariants:
    - Read-only; nothing is rewritten
    - check exits non-zero when any inconsistency is found

How to change safely:
    - Keep output format stable for CI parsing
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from typing import Any, Optional, Sequence

from ..config import ObservabilityConfig, TreeConfig
from ..errors import TreeError
from ..observability import setup_logging
from ..store.base import NodeStore
from ..store.sqlite import SqliteNodeStore
from ..tree.node import Node
from ..tree.path import child_ancestry_under
from ..tree.repository import TreeRepository

logger = logging.getLogger(__name__)


class TreeCLI:
    """CLI commands over a node store.

    Example:
        >>> cli = TreeCLI(store, TreeConfig())
        >>> print(await cli.show())
        >>> ok, issues = await cli.check()
    """

    def __init__(self, store: NodeStore, config: TreeConfig) -> None:
        self.store = store
        self.config = config
        self.repository = TreeRepository(store, config)

    async def show(self, root_id: Optional[str] = None, label: str = "name") -> str:
        """Render the forest, or the subtree under `root_id`, as an outline.

        Raises:
            ValueError: If root_id does not exist
        """
        root = None
        if root_id is not None:
            root = await self.repository.get(root_id)
            if root is None:
                raise ValueError(f"Node not found: {root_id}")

        tree = await self.repository.get_children_tree(root)
        lines: list[str] = []
        self._render(tree, 0, label, lines)
        return "\n".join(lines)

    def _render(self, entries: list[Any], depth: int, label: str, lines: list[str]) -> None:
        for entry in entries:
            doc = entry.to_document() if isinstance(entry, Node) else entry
            text = doc.get(label)
            lines.append("  " * depth + (f"{doc['_id']} ({text})" if text is not None else doc["_id"]))
            children = entry.children if isinstance(entry, Node) else entry.get("children")
            self._render(children or [], depth + 1, label, lines)

    async def check(self) -> tuple[bool, list[str]]:
        """Verify every node's ancestry against its parent.

        Returns:
            Tuple of (is_consistent, list_of_issues)
        """
        sep = self.config.ancestry_separator
        documents = {doc["_id"]: doc async for doc in self.store.find({})}

        issues = []
        for node_id, doc in sorted(documents.items()):
            parent_id = doc.get("parent")
            if parent_id is None:
                if doc.get("ancestry"):
                    issues.append(f"{node_id}: root carries ancestry {doc['ancestry']!r}")
                continue
            parent = documents.get(parent_id)
            if parent is None:
                issues.append(f"{node_id}: parent {parent_id} does not exist")
                continue
            expected = child_ancestry_under(parent_id, parent.get("ancestry"), sep)
            if doc.get("ancestry") != expected:
                issues.append(
                    f"{node_id}: ancestry {doc.get('ancestry')!r}, expected {expected!r}"
                )

        return len(issues) == 0, issues


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ancestree", description="Inspect ancestry trees")
    parser.add_argument("--db", required=True, help="SQLite database file")
    parser.add_argument("--separator", default="/", help="Ancestry separator")
    parser.add_argument("--log-level", default="WARNING")
    subparsers = parser.add_subparsers(dest="command", required=True)

    show = subparsers.add_parser("show", help="Print the tree")
    show.add_argument("--root", help="Only print the subtree below this node id")
    show.add_argument("--label", default="name", help="Field printed next to each id")

    subparsers.add_parser("check", help="Verify ancestry consistency")
    return parser


async def run(args: argparse.Namespace) -> int:
    """Execute a parsed command.

    Raises:
        ConfigurationError: If the separator is invalid (before the database is opened)
        ValueError: If the database file does not exist
    """
    config = TreeConfig(ancestry_separator=args.separator)
    if not os.path.isfile(args.db):
        raise ValueError(f"Database not found: {args.db}")

    store = SqliteNodeStore(args.db, wal_mode=False)
    await store.initialize()
    cli = TreeCLI(store, config)
    try:
        if args.command == "show":
            print(await cli.show(args.root, args.label))
            return 0

        ok, issues = await cli.check()
        for issue in issues:
            print(issue)
        if ok:
            print("Tree is consistent")
        return 0 if ok else 1
    finally:
        await store.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(ObservabilityConfig(log_level=args.log_level, log_format="text"))
    try:
        return asyncio.run(run(args))
    except (ValueError, TreeError) as e:
        logger.error(str(e))
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
