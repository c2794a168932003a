"""
Gigboard - local-first job board core.

This package implements a browser-style local document store with:
- Append-only per-record storage with attachments and tombstones (SQLite)
- Incrementally maintained secondary indexes
- Live queries that always deliver the current result set
- Draft documents bound to a form session and committed atomically

Architecture:
    ┌────────────────┐ submit ┌──────────────┐ put/delete ┌───────────────┐
    │ DraftController│───────▶│   Database   │───────────▶│ DocumentStore │
    └────────────────┘        │ (commit lock)│            │   (SQLite)    │
            ▲                 └──────┬───────┘            └───────────────┘
            │ merge                  │ apply
    ┌───────┴────────┐        ┌──────▼───────┐   notify   ┌───────────────┐
    │ TextGenerator  │        │ IndexEngine  │───────────▶│ LiveQueryHub  │
    └────────────────┘        └──────────────┘            └───────────────┘

Invariants:
    - Indexes are updated before any subscriber is notified of a commit
    - A failed write leaves store, indexes and drafts unchanged
    - Deleted documents leave a tombstone revision
"""

__version__ = "1.0.0"

from .draft import ActionGuard, Draft, DraftController, DraftState
from .errors import (
    BusyError,
    GenerationFailedError,
    GigboardError,
    InvalidArgumentError,
    NotFoundError,
    StorageFailureError,
    ValidationFailedError,
)
from .store import (
    AttachmentHandle,
    AttachmentPayload,
    Database,
    IndexSpec,
    LiveResult,
    PutResult,
    Subscription,
    close_all,
    close_database,
    get_database,
    open_database,
)

__all__ = [
    "__version__",
    # Store
    "Database",
    "AttachmentHandle",
    "AttachmentPayload",
    "IndexSpec",
    "LiveResult",
    "PutResult",
    "Subscription",
    "get_database",
    "open_database",
    "close_database",
    "close_all",
    # Drafts
    "ActionGuard",
    "Draft",
    "DraftController",
    "DraftState",
    # Errors
    "GigboardError",
    "InvalidArgumentError",
    "NotFoundError",
    "StorageFailureError",
    "ValidationFailedError",
    "GenerationFailedError",
    "BusyError",
]
