"""
Path codec: string math on ancestry paths.

An ancestry string is the separator-joined list of ancestor ids from the
forest root down to a node's parent. A node's *path* is its ancestry plus
its own id. No I/O happens here.

    path_of("c", "a/b")            -> "a/b/c"
    level("a/b")                   -> 2
    descendant_pattern("a/b")      -> r"^a/b(?:[/]|$)"
    splice_prefix("a/b/c", "a/b", "x/b") -> "x/b/c"
"""

from __future__ import annotations

import re
from typing import Any, Optional

DEFAULT_SEPARATOR = "/"


def validate_id(node_id: Any, sep: str = DEFAULT_SEPARATOR) -> str:
    """Return the id as a string, rejecting absent ids and ids holding `sep`."""
    if node_id is None or node_id == "":
        raise ValueError("Node id is required to build a path")
    node_id = str(node_id)
    if sep in node_id:
        raise ValueError(f"Node id {node_id!r} contains the ancestry separator {sep!r}")
    return node_id


def path_of(node_id: Any, ancestry: Optional[str], sep: str = DEFAULT_SEPARATOR) -> str:
    """Full path of a node: its ancestry followed by its own id."""
    node_id = validate_id(node_id, sep)
    return f"{ancestry}{sep}{node_id}" if ancestry else node_id


def child_ancestry_under(
    parent_id: Any, parent_ancestry: Optional[str], sep: str = DEFAULT_SEPARATOR
) -> str:
    """Ancestry a new child of the given parent receives."""
    return path_of(parent_id, parent_ancestry, sep)


def level(ancestry: Optional[str], sep: str = DEFAULT_SEPARATOR) -> int:
    """Number of ancestors encoded in an ancestry string."""
    return len(ancestry.split(sep)) if ancestry else 0


def ancestor_ids(ancestry: Optional[str], sep: str = DEFAULT_SEPARATOR) -> list[str]:
    """Ancestor ids, root first."""
    return ancestry.split(sep) if ancestry else []


def _sep_class(sep: str) -> str:
    return "[" + re.escape(sep) + "]"


def descendant_pattern(path: str, sep: str = DEFAULT_SEPARATOR) -> str:
    """Regex matching the ancestry of every descendant of the node at `path`.

    Direct children carry exactly `path`; deeper descendants start with
    `path` followed by the separator. A bare prefix would also match ids that
    merely start with the last segment (12 vs 123).
    """
    return "^" + re.escape(path) + "(?:" + _sep_class(sep) + "|$)"


def descendant_filter(path: str, sep: str = DEFAULT_SEPARATOR) -> dict[str, Any]:
    """Store filter selecting every descendant of the node at `path`."""
    return {"ancestry": {"$regex": descendant_pattern(path, sep)}}


def segment_pattern(node_id: Any, sep: str = DEFAULT_SEPARATOR) -> str:
    """Regex matching ancestries that hold `node_id` as a non-final segment."""
    node_id = validate_id(node_id, sep)
    return "(?:^|" + _sep_class(sep) + ")" + re.escape(node_id) + _sep_class(sep)


def splice_prefix(ancestry: str, old_path: str, new_path: str) -> str:
    """Replace the `old_path` prefix of a descendant ancestry with `new_path`.

    Raises:
        ValueError: If `ancestry` does not start with `old_path`
    """
    if not ancestry.startswith(old_path):
        raise ValueError(f"Ancestry {ancestry!r} does not start with {old_path!r}")
    return new_path + ancestry[len(old_path):]


def remove_segment(ancestry: str, node_id: Any, sep: str = DEFAULT_SEPARATOR) -> Optional[str]:
    """Drop the first occurrence of `node_id` from an ancestry string.

    Returns None when nothing is left (the node becomes a root).
    """
    node_id = validate_id(node_id, sep)
    segments = ancestry.split(sep)
    if node_id in segments:
        segments.remove(node_id)
    return sep.join(segments) or None


def path_key(node_id: Any, ancestry: Optional[str], sep: str = DEFAULT_SEPARATOR) -> tuple[str, ...]:
    """Sort key placing every node directly after its ancestors.

    Comparing segment tuples keeps a subtree contiguous even when sibling ids
    contain characters that sort below the separator.
    """
    return tuple(path_of(node_id, ancestry, sep).split(sep))
