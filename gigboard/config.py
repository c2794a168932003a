"""
Configuration management for Gigboard.

All configuration is done via environment variables.
This module provides typed configuration classes with validation.
AI service settings live in gigboard.ai.config (pydantic-settings).

Invariants:
    - All settings have sensible defaults for local development
    - Secrets are never logged or exposed in error messages
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageConfig:
    """Local storage configuration.

    Attributes:
        data_dir: Directory for SQLite store files
        store_db_pattern: Pattern for store database files
        wal_mode: SQLite WAL mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
        cache_size_pages: SQLite cache size in pages (negative = KB)
        quota_bytes: Maximum bytes of document bodies plus attachments (0 = unlimited)
    """

    data_dir: str = "./gigboard-data"
    store_db_pattern: str = "store_{name}.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000
    cache_size_pages: int = -16000  # 16MB
    quota_bytes: int = 0

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        return cls(
            data_dir=os.getenv("GIGBOARD_DATA_DIR", "./gigboard-data"),
            store_db_pattern=os.getenv("GIGBOARD_STORE_DB_PATTERN", "store_{name}.db"),
            wal_mode=os.getenv("GIGBOARD_SQLITE_WAL_MODE", "true").lower() == "true",
            busy_timeout_ms=int(os.getenv("GIGBOARD_SQLITE_BUSY_TIMEOUT_MS", "5000")),
            cache_size_pages=int(os.getenv("GIGBOARD_SQLITE_CACHE_SIZE", "-16000")),
            quota_bytes=int(os.getenv("GIGBOARD_QUOTA_BYTES", "0")),
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
class AppConfig:
    """Complete application configuration.

    Attributes:
        store_name: Name of the store the job board opens
        storage: Local storage configuration
        observability: Logging configuration
    """

    store_name: str = "local-gig-connect"
    storage: StorageConfig = field(default_factory=StorageConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> AppConfig:
        """Load complete configuration from environment variables.

        Raises:
            ValueError: If configuration is invalid.
        """
        config = cls(
            store_name=os.getenv("GIGBOARD_STORE_NAME", "local-gig-connect"),
            storage=StorageConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not self.store_name.strip():
            raise ValueError("GIGBOARD_STORE_NAME must not be empty")
        if any(not (c.isalnum() or c in "-_") for c in self.store_name):
            raise ValueError(
                f"Invalid GIGBOARD_STORE_NAME '{self.store_name}'. "
                "Use only letters, digits, '-' and '_'"
            )
        if self.storage.quota_bytes < 0:
            raise ValueError("GIGBOARD_QUOTA_BYTES must be >= 0")
        if "{name}" not in self.storage.store_db_pattern:
            raise ValueError("GIGBOARD_STORE_DB_PATTERN must contain '{name}'")
        if self.observability.log_format not in ("json", "text"):
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text"
            )

        if not os.path.exists(self.storage.data_dir):
            logger.warning(
                f"Data directory does not exist: {self.storage.data_dir}. "
                "It will be created on first write."
            )

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Gigboard configuration loaded",
            extra={
                "store_name": self.store_name,
                "data_dir": self.storage.data_dir,
                "wal_mode": self.storage.wal_mode,
                "quota_bytes": self.storage.quota_bytes,
                "log_level": self.observability.log_level,
            },
        )
