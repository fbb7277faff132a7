"""
Error types for ancestree.

This module defines all exception types raised by the tree engine:
- TreeError: Base exception
- ConfigurationError: Invalid options, raised before any I/O
- ParentNotFoundError: Referenced parent does not exist
- StoreError: Failure reported by a store backend
- PartialCascadeError: Bulk descendant rewrite failed part way

Invariants:
    - All errors inherit from TreeError
    - Errors include context for debugging
    - Nothing is rolled back; errors describe what was left behind
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class TreeError(Exception):
    """Base exception for all ancestree errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "TREE_ERROR"
        self.details = details or {}


class ConfigurationError(TreeError):
    """Invalid engine configuration.

    Raised when:
    - Separator is not a single character
    - on_delete policy is unknown
    - num_workers is not a positive integer
    - A required handler is missing
    """

    def __init__(self, message: str, option: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="CONFIGURATION_ERROR",
            details={"option": option},
        )
        self.option = option


class ParentNotFoundError(TreeError):
    """The parent referenced by a node does not resolve.

    The triggering save is aborted and the node is left unsaved.
    """

    def __init__(self, parent_id: str, node_id: Optional[str] = None) -> None:
        super().__init__(
            f"Parent node not found: {parent_id}",
            code="PARENT_NOT_FOUND",
            details={"parent_id": parent_id, "node_id": node_id},
        )
        self.parent_id = parent_id
        self.node_id = node_id


class StoreError(TreeError):
    """A store backend operation failed.

    Raised when:
    - The database cannot be opened
    - A query or write fails in the driver
    - A filter uses an unsupported operator
    """

    def __init__(self, message: str, operation: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="STORE_ERROR",
            details={"operation": operation},
        )
        self.operation = operation


class PartialCascadeError(TreeError):
    """A bulk descendant rewrite failed after it had started.

    Mutations applied before the failure are kept, so the tree may violate
    the ancestry invariants until a repair pass runs. The first failure is
    chained as __cause__.

    Attributes:
        completed: Items processed successfully
        failed: Items whose mutation raised
    """

    def __init__(self, message: str, completed: int, failed: int) -> None:
        super().__init__(
            message,
            code="PARTIAL_CASCADE",
            details={"completed": completed, "failed": failed},
        )
        self.completed = completed
        self.failed = failed
