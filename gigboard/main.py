"""
Gigboard application orchestrator.

Wires the configured database, the AI text service and the job board:
- Logging setup
- Database opened through the process-wide registry
- AI client created when an API key is configured

Invariants:
    - The database is torn down explicitly in stop()
    - The AI client is closed with the app

Example:
    >>> app = GigboardApp()
    >>> await app.start()
    >>> await app.board.watch_dashboard(render)
    >>> await app.stop()
"""

from __future__ import annotations

import logging

import json_log_formatter

from .ai.base import TextGenerator
from .ai.client import AiClient
from .ai.config import AiSettings
from .config import AppConfig
from .jobs.board import JobBoard
from .schema.registry import get_document_types
from .store.database import Database
from .store.registry import close_database, open_database

logger = logging.getLogger(__name__)


def setup_logging(config: AppConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Application configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


class GigboardApp:
    """Owns the lifecycle of the job board's components.

    Attributes:
        config: Application configuration
        ai_settings: AI service settings
        db: Open database (after start())
        board: Job board service (after start())
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        ai_settings: AiSettings | None = None,
        generator: TextGenerator | None = None,
    ) -> None:
        """Initialize the app.

        Args:
            config: Application configuration (loaded from env if not provided)
            ai_settings: AI settings (loaded from env if not provided)
            generator: Text generator overriding the configured AI client
        """
        self.config = config or AppConfig.from_env()
        self.ai_settings = ai_settings or AiSettings()
        self.generator = generator
        self.db: Database | None = None
        self.board: JobBoard | None = None
        self._ai_client: AiClient | None = None

    async def start(self) -> JobBoard:
        """Open the database and build the job board."""
        self.config.log_config()

        if self.generator is None and self.ai_settings.configured:
            self._ai_client = AiClient(self.ai_settings)
            self.generator = self._ai_client
        elif self.generator is None:
            logger.warning("No AI API key configured; AI actions are disabled")

        self.db = await open_database(
            self.config.store_name, self.config.storage, get_document_types()
        )
        self.board = JobBoard(self.db, self.generator)
        self.board.setup()

        logger.info(
            "Gigboard started",
            extra={"store": self.config.store_name, "ai_enabled": self.generator is not None},
        )
        return self.board

    async def stop(self) -> None:
        """Close the database and the AI client."""
        if self.db is not None:
            await close_database(self.config.store_name)
            self.db = None
        if self._ai_client is not None:
            await self._ai_client.close()
            self._ai_client = None
        self.board = None
        logger.info("Gigboard stopped")
