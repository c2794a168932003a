"""
Process-wide registry of named databases.

A database is created on first reference by name and lives until the
host tears it down with close_database() or close_all().

Example:
    >>> db = await open_database("local-gig-connect")
    >>> db is await open_database("local-gig-connect")
    True
    >>> await close_database("local-gig-connect")
"""

from __future__ import annotations

import logging
import threading

from ..config import StorageConfig
from ..schema.registry import DocumentTypes
from .database import Database

logger = logging.getLogger(__name__)

# Global registry
_databases: dict[str, Database] = {}
_registry_lock = threading.Lock()


def get_database(
    name: str,
    config: StorageConfig | None = None,
    types: DocumentTypes | None = None,
) -> Database:
    """Get the database for a name, creating it (unopened) on first reference.

    config and types only apply when the database is created.
    """
    with _registry_lock:
        db = _databases.get(name)
        if db is None:
            db = Database(name, config, types)
            _databases[name] = db
            logger.debug(f"Registered database '{name}'")
        return db


async def open_database(
    name: str,
    config: StorageConfig | None = None,
    types: DocumentTypes | None = None,
) -> Database:
    """Get the database for a name and make sure it is open."""
    db = get_database(name, config, types)
    await db.open()
    return db


async def close_database(name: str) -> bool:
    """Close and forget a database.

    Returns:
        True if a database was registered under the name
    """
    with _registry_lock:
        db = _databases.pop(name, None)
    if db is None:
        return False
    await db.close()
    return True


async def close_all() -> None:
    """Close and forget every database."""
    with _registry_lock:
        databases = list(_databases.values())
        _databases.clear()
    for db in databases:
        await db.close()


def registered_names() -> list[str]:
    with _registry_lock:
        return sorted(_databases)
