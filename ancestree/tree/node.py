"""
Tree node model with parent change tracking.

A Node wraps one stored document. The `parent` setter accepts an id, a Node
or a mapping carrying `_id`, and remembers whether the value changed since
the node was loaded or last saved; the mutation pipeline keys off that flag.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from .path import DEFAULT_SEPARATOR, level as ancestry_level, path_of

_UNSET = object()


def coerce_parent(value: Any) -> Optional[str]:
    """Extract a parent id from an id, a Node or a document mapping."""
    if value is None:
        return None
    if isinstance(value, Node):
        return value.id
    if isinstance(value, Mapping):
        for key in ("_id", "id"):
            if value.get(key) is not None:
                return str(value[key])
        return None
    return str(value)


class Node:
    """A stored record with tree fields.

    Attributes:
        id: Node identifier (None until inserted when the store assigns it)
        ancestry: Separator-joined ancestor ids, None for roots
        data: Remaining document fields
        separator: Ancestry separator used for `level` and `path`
        children: Set by the tree assembler when wrapping results
    """

    def __init__(
        self,
        id: Optional[str] = None,
        parent: Any = None,
        data: Optional[dict[str, Any]] = None,
        *,
        ancestry: Optional[str] = None,
        separator: str = DEFAULT_SEPARATOR,
        is_new: bool = True,
    ) -> None:
        self.id = str(id) if id is not None else None
        self.ancestry = ancestry or None
        self.data: dict[str, Any] = dict(data or {})
        self.separator = separator
        self.is_new = is_new
        self.children: Optional[list[Any]] = None
        self._parent = coerce_parent(parent)
        self._saved_parent: Any = _UNSET if is_new else self._parent

    @classmethod
    def from_document(cls, document: Mapping[str, Any], separator: str = DEFAULT_SEPARATOR) -> Node:
        """Build a persisted (not new) node from a store document."""
        data = {k: v for k, v in document.items() if k not in ("_id", "parent", "ancestry")}
        return cls(
            document.get("_id"),
            document.get("parent"),
            data,
            ancestry=document.get("ancestry"),
            separator=separator,
            is_new=False,
        )

    def to_document(self) -> dict[str, Any]:
        """Document representation, tree fields first."""
        doc: dict[str, Any] = {"_id": self.id, "parent": self.parent, "ancestry": self.ancestry}
        doc.update(self.data)
        return doc

    @property
    def parent(self) -> Optional[str]:
        return self._parent

    @parent.setter
    def parent(self, value: Any) -> None:
        self._parent = coerce_parent(value)

    @property
    def is_parent_modified(self) -> bool:
        """Whether `parent` differs from the value last loaded or saved."""
        if self._saved_parent is _UNSET:
            return self._parent is not None
        return self._parent != self._saved_parent

    @property
    def previous_parent(self) -> Optional[str]:
        """Parent value as last loaded or saved."""
        return None if self._saved_parent is _UNSET else self._saved_parent

    @property
    def level(self) -> int:
        """Number of ancestors; 0 for roots."""
        return ancestry_level(self.ancestry, self.separator)

    @property
    def path(self) -> str:
        """Ancestry plus own id."""
        return path_of(self.id, self.ancestry, self.separator)

    def mark_saved(self) -> None:
        """Record the current state as persisted."""
        self.is_new = False
        self._saved_parent = self._parent

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Node):
            return NotImplemented
        return self.to_document() == other.to_document()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Node(id={self.id!r}, parent={self.parent!r}, ancestry={self.ancestry!r})"
