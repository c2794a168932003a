"""
Local document store with live queries.

Components:
- DocumentStore: append-only SQLite storage with attachments and tombstones
- IndexEngine: incrementally maintained secondary indexes
- LiveQueryHub: coalesced, always-current query subscriptions
- Database: binds the three under one commit lock
- open_database/close_database: process-wide registry by store name
"""

from .database import Database
from .document_store import (
    AttachmentHandle,
    AttachmentPayload,
    DocumentStore,
    PutResult,
    Revision,
)
from .index import IndexEngine, IndexEntry, IndexRow, IndexSpec
from .live import LiveQueryHub, LiveResult, Subscription
from .registry import close_all, close_database, get_database, open_database

__all__ = [
    "Database",
    "DocumentStore",
    "AttachmentHandle",
    "AttachmentPayload",
    "PutResult",
    "Revision",
    "IndexEngine",
    "IndexEntry",
    "IndexRow",
    "IndexSpec",
    "LiveQueryHub",
    "LiveResult",
    "Subscription",
    "get_database",
    "open_database",
    "close_database",
    "close_all",
]
