"""
Database facade: one document store, its indexes and its live queries.

Every commit runs as one logical unit under the commit lock:

    store transaction -> index update -> subscription recompute

Nothing inside that unit awaits a real suspension point, so no other
commit's effects can interleave between "index updated" and "listeners
notified". Callback delivery happens afterwards in subscription tasks.

Invariants:
    - Indexes are updated only after the store transaction committed
    - A failed write changes neither indexes nor subscriptions
    - Typed documents are validated before the transaction starts
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from ..config import StorageConfig
from ..schema.registry import DocumentTypes
from .document_store import DocumentStore, PutResult, Revision
from .index import IndexEngine, IndexRow, IndexSpec
from .live import LiveCallback, LiveQueryHub, Subscription

logger = logging.getLogger(__name__)


class Database:
    """Named local database.

    Attributes:
        name: Store name
        store: Durable document store
        indexes: Index engine
        live: Live query hub
        types: Typed document variants validated on put (optional)

    Example:
        >>> db = Database("jobs", StorageConfig(data_dir="/tmp/gigboard"))
        >>> await db.open()
        >>> db.register_index(IndexSpec("createdAt"))
        >>> sub = await db.subscribe("createdAt", render, descending=True)
        >>> await db.put({"title": "Fix sink", "createdAt": 100})
    """

    def __init__(
        self,
        name: str,
        config: StorageConfig | None = None,
        types: DocumentTypes | None = None,
    ) -> None:
        config = config or StorageConfig()
        self.name = name
        self.config = config
        self.types = types
        self.store = DocumentStore(
            config.data_dir,
            name,
            wal_mode=config.wal_mode,
            busy_timeout_ms=config.busy_timeout_ms,
            cache_size_pages=config.cache_size_pages,
            quota_bytes=config.quota_bytes,
            db_pattern=config.store_db_pattern,
        )
        self.indexes = IndexEngine()
        self.live = LiveQueryHub(self.indexes)
        self._lock = asyncio.Lock()
        self._opened = False

    @property
    def is_open(self) -> bool:
        return self._opened

    async def open(self) -> None:
        """Create the store if needed and load live documents into the engine."""
        if self._opened:
            return
        self.store.initialize()
        async with self._lock:
            for revision in await self.store.changes():
                self._apply(revision)
        self._opened = True
        logger.info(
            f"Opened database '{self.name}'",
            extra={"store": self.name, "seq": self.indexes.seq},
        )

    async def close(self) -> None:
        """Close all live queries."""
        await self.live.close()
        self._opened = False
        logger.info(f"Closed database '{self.name}'", extra={"store": self.name})

    def _apply(self, revision: Revision) -> set[str]:
        doc = None if revision.deleted else self.store.to_document(revision)
        changed = self.indexes.apply(revision, doc)
        self.live.notify(changed)
        return changed

    async def put(self, doc: Mapping[str, Any]) -> PutResult:
        """Create or update a document.

        Raises:
            InvalidArgumentError: Malformed document or id, or typed validation failure
            StorageFailureError: Write could not be committed
        """
        if self.types is not None and isinstance(doc, Mapping):
            self.types.validate(doc)

        async with self._lock:
            revision = await self.store.put(doc)
            changed = self._apply(revision)

        logger.debug(
            "Committed put",
            extra={"store": self.name, "doc_id": revision.doc_id, "indexes": sorted(changed)},
        )
        return PutResult(id=revision.doc_id, rev=revision.rev, seq=revision.seq)

    async def put_many(self, docs: list[Mapping[str, Any]]) -> list[PutResult]:
        """Create or update several documents as one commit.

        Every document is validated first; then all are written in one
        store transaction, or none are.

        Raises:
            InvalidArgumentError: Any malformed document (nothing written)
            StorageFailureError: Batch could not be committed (nothing written)
        """
        if self.types is not None:
            for doc in docs:
                if isinstance(doc, Mapping):
                    self.types.validate(doc)

        async with self._lock:
            revisions = await self.store.put_many(docs)
            changed: set[str] = set()
            for revision in revisions:
                doc = None if revision.deleted else self.store.to_document(revision)
                changed |= self.indexes.apply(revision, doc)
            self.live.notify(changed)

        logger.debug(
            f"Committed {len(revisions)} puts",
            extra={"store": self.name, "indexes": sorted(changed)},
        )
        return [PutResult(id=r.doc_id, rev=r.rev, seq=r.seq) for r in revisions]

    async def delete(self, doc_id: str) -> PutResult:
        """Write a tombstone; live queries drop the document.

        Raises:
            InvalidArgumentError: Malformed id
            NotFoundError: Absent or already deleted document
            StorageFailureError: Write could not be committed
        """
        async with self._lock:
            revision = await self.store.delete(doc_id)
            self._apply(revision)
        return PutResult(id=revision.doc_id, rev=revision.rev, seq=revision.seq)

    async def get(self, doc_id: str) -> dict[str, Any]:
        """Latest live revision of a document.

        Raises:
            NotFoundError: Absent or deleted document
        """
        return await self.store.get(doc_id)

    async def history(self, doc_id: str) -> list[Revision]:
        return await self.store.history(doc_id)

    async def changes(self, since: int = 0) -> list[Revision]:
        return await self.store.changes(since)

    async def all_docs(self) -> list[dict[str, Any]]:
        return await self.store.all_docs()

    async def compact(self, keep_revisions: int = 1) -> dict[str, int]:
        async with self._lock:
            return await self.store.compact(keep_revisions)

    def register_index(self, spec: IndexSpec) -> bool:
        """Register an index (idempotent for identical specs)."""
        return self.indexes.register(spec)

    def query(
        self,
        index: str,
        key: Any = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[IndexRow]:
        """Query an index at the current store revision."""
        return self.indexes.query(index, key=key, descending=descending, limit=limit)

    async def subscribe(
        self,
        index: str,
        callback: LiveCallback,
        key: Any = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> Subscription:
        """Subscribe to a live query; see LiveQueryHub.subscribe."""
        return await self.live.subscribe(
            index, callback, key=key, descending=descending, limit=limit
        )

    async def flush(self) -> None:
        """Wait for all pending live query deliveries."""
        await self.live.flush()
