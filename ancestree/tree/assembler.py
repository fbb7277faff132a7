"""
Tree assembler: nest a flat, ancestry-ordered result set.

Depth inside the assembler counts the node itself, so forest roots sit at
depth 1, their children at depth 2, and so on. Entries whose depth equals the
effective minimum level become top-level entries; deeper entries are placed by
walking down through the last entry appended at each depth.

Input fetched with `sort=[("ancestry", 1)]` is re-keyed by segment tuples
first: plain ancestry order groups siblings, but does not place a sibling's
subtree directly after it.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Union

from ..errors import ConfigurationError
from .node import Node
from .path import DEFAULT_SEPARATOR, ancestor_ids, level, path_key

Entry = Union[dict[str, Any], Node]


def _as_document(item: Union[Mapping[str, Any], Node]) -> dict[str, Any]:
    return item.to_document() if isinstance(item, Node) else dict(item)


def _entry_id(entry: Entry) -> Optional[str]:
    return entry.id if isinstance(entry, Node) else entry.get("_id")


def _children_of(entry: Entry) -> list[Entry]:
    if isinstance(entry, Node):
        if entry.children is None:
            entry.children = []
        return entry.children
    return entry.setdefault("children", [])


def _make_entry(doc: dict[str, Any], wrap: bool, allow_empty_children: bool, separator: str) -> Entry:
    entry: Entry
    if wrap:
        entry = Node.from_document(doc, separator)
        entry.children = [] if allow_empty_children else None
    else:
        entry = dict(doc)
        if allow_empty_children:
            entry["children"] = []
    return entry


def build_tree(
    nodes: Iterable[Union[Mapping[str, Any], Node]],
    min_level: int = 1,
    root: Optional[Union[Mapping[str, Any], Node]] = None,
    allow_empty_children: bool = True,
    wrap: bool = False,
    separator: str = DEFAULT_SEPARATOR,
) -> list[Entry]:
    """Nest nodes into a forest.

    Args:
        nodes: Documents or Nodes, ideally sorted by ancestry
        min_level: Depth (relative to `root` when given) of top-level entries
        root: Optional node the depths are relative to
        allow_empty_children: Give every entry a children list, even leaves
        wrap: Return Node objects instead of dicts
        separator: Ancestry separator

    Returns:
        Top-level entries, each with nested `children`

    Nodes whose placement target is missing (an excluded intermediate
    ancestor, or a depth above the minimum) are dropped.
    """
    if isinstance(min_level, bool) or not isinstance(min_level, int) or min_level < 1:
        raise ConfigurationError(f"min_level must be >= 1, got {min_level!r}", option="min_level")

    base = min_level
    if root is not None:
        base += level(_as_document(root).get("ancestry"), separator) + 1

    documents = [_as_document(node) for node in nodes]
    documents.sort(key=lambda doc: path_key(doc["_id"], doc.get("ancestry"), separator))

    tree: list[Entry] = []
    for doc in documents:
        ancestors = ancestor_ids(doc.get("ancestry"), separator)
        depth = len(ancestors) + 1
        if depth < base:
            continue

        container = tree
        for d in range(base, depth):
            if not container or _entry_id(container[-1]) != ancestors[d - 1]:
                container = None
                break
            container = _children_of(container[-1])

        if container is not None:
            container.append(_make_entry(doc, wrap, allow_empty_children, separator))

    return tree
