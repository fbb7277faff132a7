"""
Filter evaluation for document-shaped node stores.

Filters are plain dicts mapping a field name to either a literal (exact
match) or a single-operator dict:

    {"parent": "a"}                         exact match, None matches missing
    {"_id": {"$in": ["a", "b"]}}            membership
    {"ancestry": {"$regex": "^a(?:[/]|$)"}} re.search against string values

All clauses of a filter must match.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, Mapping, Sequence

from ..errors import StoreError

OPERATORS = frozenset({"$in", "$regex"})

SortSpec = Sequence[tuple[str, int]]


def validate_filter(filter: Mapping[str, Any]) -> None:
    """Reject operators this store layer does not implement.

    Raises:
        StoreError: On unknown or malformed operators
    """
    for key, condition in filter.items():
        if not isinstance(condition, Mapping):
            continue
        if len(condition) != 1:
            raise StoreError(
                f"Filter on '{key}' must hold exactly one operator", operation="find"
            )
        (op, operand), = condition.items()
        if op not in OPERATORS:
            raise StoreError(f"Unsupported filter operator '{op}'", operation="find")
        if op == "$in" and isinstance(operand, (str, bytes)):
            raise StoreError("$in expects a list of values", operation="find")
        if op == "$regex" and not isinstance(operand, str):
            raise StoreError("$regex expects a pattern string", operation="find")


def _match_condition(value: Any, condition: Any) -> bool:
    if isinstance(condition, Mapping):
        (op, operand), = condition.items()
        if op == "$in":
            return value in operand
        # $regex
        return isinstance(value, str) and re.search(operand, value) is not None
    return value == condition


def matches(document: Mapping[str, Any], filter: Mapping[str, Any]) -> bool:
    """Whether a document satisfies every clause of the filter."""
    return all(
        _match_condition(document.get(key), condition) for key, condition in filter.items()
    )


def project(document: Mapping[str, Any], fields: Iterable[str] | None) -> dict[str, Any]:
    """Copy a document, keeping only the requested fields plus the tree fields.

    `_id`, `parent` and `ancestry` are always kept so results stay usable by
    the tree engine.
    """
    if fields is None:
        return dict(document)
    keep = {"_id", "parent", "ancestry", *fields}
    return {key: value for key, value in document.items() if key in keep}


def sort_documents(
    documents: list[dict[str, Any]], sort: SortSpec | None
) -> list[dict[str, Any]]:
    """Sort documents by (field, direction) pairs, 1 ascending and -1 descending.

    Missing values sort first in ascending order.
    """
    if not sort:
        return documents
    # Stable sort, so apply keys from least to most significant.
    for key, direction in reversed(list(sort)):
        documents.sort(
            key=lambda doc: (doc.get(key) is not None, doc.get(key) if doc.get(key) is not None else ""),
            reverse=direction < 0,
        )
    return documents
