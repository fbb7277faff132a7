"""
Configuration management for ancestree.

Configuration is passed explicitly into every engine instance. Each section
can also be loaded from environment variables for hosts that configure
through the environment.

Invariants:
    - All settings have sensible defaults for local development
    - Configuration objects are immutable once built
    - Invalid values fail fast with ConfigurationError, before any I/O

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Changing the separator for an existing collection invalidates stored paths
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


# Characters of the uuid4 hex ids the stores assign to new nodes.
GENERATED_ID_ALPHABET = "0123456789abcdef"


class OnDelete(Enum):
    """What happens to a node's descendants when it is removed."""

    DELETE = "DELETE"
    REPARENT = "REPARENT"


class StoreBackend(Enum):
    """Supported node store backends."""

    MEMORY = "memory"
    SQLITE = "sqlite"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class TreeConfig:
    """Tree engine configuration.

    Attributes:
        ancestry_separator: Single non-hex-digit character joining ancestor ids
        on_delete: Removal policy for descendants
        num_workers: Maximum descendant mutations in flight
        wrap_children_tree: Return Node objects from tree assembly instead of dicts
    """

    ancestry_separator: str = "/"
    on_delete: OnDelete = OnDelete.DELETE
    num_workers: int = 5
    wrap_children_tree: bool = False

    def __post_init__(self) -> None:
        self.validate()

    @classmethod
    def from_env(cls) -> TreeConfig:
        """Load configuration from environment variables."""
        on_delete_str = os.getenv("TREE_ON_DELETE", "DELETE").upper()
        try:
            on_delete = OnDelete(on_delete_str)
        except ValueError:
            raise ConfigurationError(
                f"Invalid TREE_ON_DELETE '{on_delete_str}'. Must be one of: DELETE, REPARENT",
                option="on_delete",
            )

        workers_str = os.getenv("TREE_NUM_WORKERS", "5")
        try:
            num_workers = int(workers_str)
        except ValueError:
            raise ConfigurationError(
                f"Invalid TREE_NUM_WORKERS '{workers_str}'", option="num_workers"
            )

        return cls(
            ancestry_separator=os.getenv("ANCESTRY_SEPARATOR", "/"),
            on_delete=on_delete,
            num_workers=num_workers,
            wrap_children_tree=_env_bool("TREE_WRAP_CHILDREN", "false"),
        )

    def validate(self) -> None:
        """Validate option values.

        Raises:
            ConfigurationError: If any option is invalid.
        """
        if not isinstance(self.ancestry_separator, str) or len(self.ancestry_separator) != 1:
            raise ConfigurationError(
                f"ancestry_separator must be a single character, got {self.ancestry_separator!r}",
                option="ancestry_separator",
            )
        if self.ancestry_separator.lower() in GENERATED_ID_ALPHABET:
            raise ConfigurationError(
                f"ancestry_separator {self.ancestry_separator!r} can occur in generated node ids",
                option="ancestry_separator",
            )
        if not isinstance(self.on_delete, OnDelete):
            raise ConfigurationError(
                f"on_delete must be an OnDelete value, got {self.on_delete!r}",
                option="on_delete",
            )
        if (
            isinstance(self.num_workers, bool)
            or not isinstance(self.num_workers, int)
            or self.num_workers < 1
        ):
            raise ConfigurationError(
                f"num_workers must be a positive integer, got {self.num_workers!r}",
                option="num_workers",
            )


@dataclass(frozen=True)
class StorageConfig:
    """Node store configuration.

    Attributes:
        backend: Which store backend to use
        sqlite_path: Database file for the SQLite backend
        busy_timeout_ms: SQLite busy timeout in milliseconds
        wal_mode: SQLite WAL journal mode enabled
    """

    backend: StoreBackend = StoreBackend.MEMORY
    sqlite_path: str = "ancestree.db"
    busy_timeout_ms: int = 5000
    wal_mode: bool = True

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        backend_str = os.getenv("STORE_BACKEND", "memory").lower()
        try:
            backend = StoreBackend(backend_str)
        except ValueError:
            raise ConfigurationError(
                f"Invalid STORE_BACKEND '{backend_str}'. Must be one of: memory, sqlite",
                option="backend",
            )

        return cls(
            backend=backend,
            sqlite_path=os.getenv("SQLITE_PATH", "ancestree.db"),
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
            wal_mode=_env_bool("SQLITE_WAL_MODE", "true"),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )


@dataclass
class Settings:
    """Complete configuration.

    Attributes:
        tree: Tree engine configuration
        storage: Node store configuration
        observability: Logging configuration
    """

    tree: TreeConfig = field(default_factory=TreeConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> Settings:
        """Load complete configuration from environment variables.

        Raises:
            ConfigurationError: If configuration is missing or invalid.
        """
        settings = cls(
            tree=TreeConfig.from_env(),
            storage=StorageConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ConfigurationError: If configuration is invalid.
        """
        self.tree.validate()

        if self.storage.backend == StoreBackend.SQLITE and not self.storage.sqlite_path:
            raise ConfigurationError(
                "SQLITE_PATH is required when STORE_BACKEND=sqlite", option="sqlite_path"
            )

        if self.observability.log_format not in ("json", "text"):
            raise ConfigurationError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text",
                option="log_format",
            )

    def log_config(self) -> None:
        """Log the effective configuration."""
        logger.info(
            "Tree configuration loaded",
            extra={
                "ancestry_separator": self.tree.ancestry_separator,
                "on_delete": self.tree.on_delete.value,
                "num_workers": self.tree.num_workers,
                "wrap_children_tree": self.tree.wrap_children_tree,
                "store_backend": self.storage.backend.value,
                "sqlite_path": self.storage.sqlite_path
                if self.storage.backend == StoreBackend.SQLITE
                else None,
                "log_level": self.observability.log_level,
            },
        )
