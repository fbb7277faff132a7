"""
CLI tools for ancestree administration.

This module provides command-line tools for:
- show: Print a stored tree
- check: Verify ancestry consistency

Invariants:
    - Tools work offline against a store file
    - Tools never modify data
"""

from .tree_cli import TreeCLI

__all__ = ["TreeCLI"]
