"""
Append-only SQLite document store for Gigboard.

This module manages the per-store SQLite database that holds:
- Every revision ever written for every document (append-only)
- Tombstone revisions for deleted documents
- Content-addressed attachment payloads
- The attachment references of each revision

The latest revision of a document wins for reads. Older revisions stay
retrievable through history() until the host explicitly calls compact().

Invariants:
    - One SQLite file per store name
    - Every write is a single transaction: revision row, attachment rows
      and quota check commit together or not at all
    - seq is store-wide and strictly increasing, never reused
    - A document's generation increases by one per write

How to change safely:
    - Schema migrations must be backward compatible
    - Never UPDATE a revision row; write a new one
    - Keep the body JSON canonical (sorted keys) so revision digests are stable

Table schema:
    revisions:
        - seq INTEGER PRIMARY KEY AUTOINCREMENT
        - doc_id TEXT
        - generation INTEGER
        - rev TEXT ("<generation>-<digest>")
        - deleted INTEGER (0/1)
        - body_json TEXT
        - committed_at INTEGER (Unix ms)
        - INDEX on (doc_id, seq)

    attachments:
        - cid TEXT PRIMARY KEY (sha256 of data)
        - content_type TEXT
        - size INTEGER
        - data BLOB

    revision_files:
        - seq INTEGER
        - name TEXT
        - cid TEXT
        - PRIMARY KEY (seq, name)
"""

from __future__ import annotations

import hashlib
import json
import logging
import sqlite3
import time
import uuid
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..errors import InvalidArgumentError, NotFoundError, StorageFailureError

logger = logging.getLogger(__name__)

FILES_KEY = "_files"
ID_KEY = "_id"
REV_KEY = "_rev"


@dataclass(frozen=True)
class AttachmentPayload:
    """Binary content to be stored with a document.

    Attributes:
        data: Raw bytes
        content_type: MIME type
        filename: Original file name, if any
    """

    data: bytes
    content_type: str = "application/octet-stream"
    filename: str | None = None

    @property
    def cid(self) -> str:
        return "sha256:" + hashlib.sha256(self.data).hexdigest()


@dataclass(frozen=True)
class AttachmentHandle:
    """Lazy reference to a stored attachment.

    Content is only fetched when read() is awaited.

    Attributes:
        name: Attachment name within the document's _files map
        cid: Content identifier
        content_type: MIME type
        size: Size in bytes
        filename: Original file name, if any
    """

    name: str
    cid: str
    content_type: str
    size: int
    filename: str | None = None
    store: DocumentStore | None = field(default=None, repr=False, compare=False)

    async def read(self) -> bytes:
        """Fetch the attachment content.

        Raises:
            NotFoundError: If the content was garbage-collected
        """
        if self.store is None:
            raise NotFoundError(
                f"Attachment '{self.name}' is not bound to a store",
                resource_type="attachment",
                resource_id=self.cid,
            )
        return await self.store.get_attachment(self.cid)

    def to_meta(self) -> dict[str, Any]:
        meta: dict[str, Any] = {"cid": self.cid, "type": self.content_type, "size": self.size}
        if self.filename is not None:
            meta["filename"] = self.filename
        return meta


@dataclass
class Revision:
    """One committed state of a document.

    Attributes:
        seq: Store-wide commit sequence number
        doc_id: Document identifier
        generation: Per-document write counter, starting at 1
        rev: Revision marker
        deleted: Whether this revision is a tombstone
        body: User fields (attachment references as metadata)
        committed_at: Commit timestamp (Unix ms)
    """

    seq: int
    doc_id: str
    generation: int
    rev: str
    deleted: bool
    body: dict[str, Any]
    committed_at: int


@dataclass(frozen=True)
class PutResult:
    """Outcome of a put or delete."""

    id: str
    rev: str
    seq: int


def validate_store_name(name: Any) -> str:
    """Check that a store name maps to exactly one file name.

    Only letters, digits, '-' and '_' are allowed, so two distinct names
    never share a database file.

    Raises:
        InvalidArgumentError: If the name is empty or has other characters
    """
    if not isinstance(name, str) or not name:
        raise InvalidArgumentError("Store name must be a non-empty string", argument="name")
    if any(not (c.isalnum() or c in "-_") for c in name):
        raise InvalidArgumentError(
            f"Store name may only contain letters, digits, '-' and '_': {name!r}",
            argument="name",
        )
    return name


def validate_doc_id(doc_id: Any) -> str:
    """Check that an identifier is a non-blank string.

    Raises:
        InvalidArgumentError: If the identifier is malformed
    """
    if not isinstance(doc_id, str):
        raise InvalidArgumentError(
            f"Document id must be a string, got {type(doc_id).__name__}",
            argument=ID_KEY,
        )
    if not doc_id.strip():
        raise InvalidArgumentError("Document id must not be empty", argument=ID_KEY)
    return doc_id


@dataclass
class PendingWrite:
    """One revision to append within a transaction."""

    doc_id: str
    body: dict[str, Any]
    payloads: list[AttachmentPayload] = field(default_factory=list)
    deleted: bool = False
    must_exist: bool = False


def _check_value(value: Any, path: str) -> None:
    """Reject values that would not read back unchanged from JSON."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return
    if isinstance(value, list):
        for i, item in enumerate(value):
            _check_value(item, f"{path}[{i}]")
        return
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise InvalidArgumentError(
                    f"Field names must be strings, got {key!r} in '{path}'", argument=path
                )
            _check_value(item, f"{path}.{key}")
        return
    raise InvalidArgumentError(
        f"Unsupported value for '{path}': {type(value).__name__}", argument=path
    )


def _canonical_json(body: dict[str, Any]) -> str:
    try:
        return json.dumps(body, sort_keys=True, separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError) as e:
        raise InvalidArgumentError(f"Document is not serializable: {e}", argument="doc") from e


class DocumentStore:
    """Per-name SQLite store for documents and attachments.

    This class provides:
    - put/get/delete with revision tracking and tombstones
    - Attachment persistence separate from the field mapping
    - Change feed for rebuilding derived indexes
    - Explicit compaction of superseded revisions

    Thread safety:
        Each operation opens its own connection. Callers serialize
        writes (see Database), so no multi-writer conflict handling exists.

    Example:
        >>> store = DocumentStore("/tmp/gigboard", "jobs")
        >>> store.initialize()
        >>> result = await store.put({"title": "Fix sink"})
        >>> doc = await store.get(result.id)
    """

    SCHEMA_VERSION = 1

    def __init__(
        self,
        data_dir: str,
        name: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
        cache_size_pages: int = -16000,
        quota_bytes: int = 0,
        db_pattern: str = "store_{name}.db",
    ) -> None:
        """Initialize the document store.

        Args:
            data_dir: Directory for SQLite database files
            name: Store name
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
            cache_size_pages: SQLite cache size (negative = KB)
            quota_bytes: Byte quota for bodies plus attachments (0 = unlimited)
            db_pattern: File name pattern containing '{name}'

        Raises:
            InvalidArgumentError: If the store name is empty or has characters
                other than letters, digits, '-' and '_'
        """
        self.data_dir = Path(data_dir)
        self.name = validate_store_name(name)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self.cache_size_pages = cache_size_pages
        self.quota_bytes = quota_bytes
        self.db_pattern = db_pattern

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_pattern.format(name=self.name)

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Open a configured connection to the store database.

        Raises:
            StorageFailureError: If the database cannot be opened
        """
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                str(self.db_path),
                timeout=self.busy_timeout_ms / 1000.0,
                isolation_level=None,  # Autocommit by default, explicit transactions
            )
            conn.row_factory = sqlite3.Row
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            conn.execute(f"PRAGMA cache_size = {self.cache_size_pages}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
        except (OSError, sqlite3.Error) as e:
            raise StorageFailureError(
                f"Cannot open store '{self.name}': {e}", store_name=self.name, reason=str(e)
            ) from e

        try:
            yield conn
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create the database file and schema if they don't exist."""
        with self._get_connection() as conn:
            try:
                conn.executescript("""
                    CREATE TABLE IF NOT EXISTS schema_version (
                        version INTEGER PRIMARY KEY,
                        applied_at INTEGER NOT NULL
                    );

                    CREATE TABLE IF NOT EXISTS revisions (
                        seq INTEGER PRIMARY KEY AUTOINCREMENT,
                        doc_id TEXT NOT NULL,
                        generation INTEGER NOT NULL,
                        rev TEXT NOT NULL,
                        deleted INTEGER NOT NULL DEFAULT 0,
                        body_json TEXT NOT NULL DEFAULT '{}',
                        committed_at INTEGER NOT NULL
                    );

                    CREATE INDEX IF NOT EXISTS idx_revisions_doc ON revisions(doc_id, seq);

                    CREATE TABLE IF NOT EXISTS attachments (
                        cid TEXT PRIMARY KEY,
                        content_type TEXT NOT NULL,
                        size INTEGER NOT NULL,
                        data BLOB NOT NULL
                    );

                    CREATE TABLE IF NOT EXISTS revision_files (
                        seq INTEGER NOT NULL,
                        name TEXT NOT NULL,
                        cid TEXT NOT NULL,
                        PRIMARY KEY (seq, name)
                    );

                    CREATE INDEX IF NOT EXISTS idx_revision_files_cid ON revision_files(cid);

                    INSERT OR IGNORE INTO schema_version (version, applied_at)
                    VALUES (1, strftime('%s', 'now') * 1000);
                """)
            except sqlite3.Error as e:
                raise StorageFailureError(
                    f"Cannot create schema for store '{self.name}': {e}",
                    store_name=self.name,
                    reason=str(e),
                ) from e
        logger.info(f"Initialized document store: {self.name}", extra={"path": str(self.db_path)})

    def _prepare_files(
        self, files: Any
    ) -> tuple[dict[str, dict[str, Any]], list[AttachmentPayload]]:
        """Split a _files map into stored metadata and new payloads."""
        if not isinstance(files, Mapping):
            raise InvalidArgumentError(
                f"{FILES_KEY} must be a mapping, got {type(files).__name__}", argument=FILES_KEY
            )

        meta: dict[str, dict[str, Any]] = {}
        new_payloads: list[AttachmentPayload] = []
        for name, value in files.items():
            if not isinstance(name, str) or not name:
                raise InvalidArgumentError(
                    f"Attachment names must be non-empty strings, got {name!r}",
                    argument=FILES_KEY,
                )
            if isinstance(value, (bytes, bytearray, memoryview)):
                value = AttachmentPayload(bytes(value))
            if isinstance(value, AttachmentPayload):
                new_payloads.append(value)
                entry: dict[str, Any] = {
                    "cid": value.cid,
                    "type": value.content_type,
                    "size": len(value.data),
                }
                if value.filename is not None:
                    entry["filename"] = value.filename
                meta[name] = entry
            elif isinstance(value, AttachmentHandle):
                meta[name] = value.to_meta()
            elif isinstance(value, Mapping) and isinstance(value.get("cid"), str):
                meta[name] = dict(value)
                _check_value(meta[name], f"{FILES_KEY}.{name}")
            else:
                raise InvalidArgumentError(
                    f"Unsupported attachment value for '{name}': {type(value).__name__}",
                    argument=f"{FILES_KEY}.{name}",
                )
        return meta, new_payloads

    def _check_quota(self, conn: sqlite3.Connection) -> None:
        if not self.quota_bytes:
            return
        used = conn.execute(
            "SELECT COALESCE(SUM(LENGTH(body_json)), 0) FROM revisions"
        ).fetchone()[0]
        used += conn.execute("SELECT COALESCE(SUM(size), 0) FROM attachments").fetchone()[0]
        if used > self.quota_bytes:
            raise StorageFailureError(
                f"Quota exceeded for store '{self.name}': {used} > {self.quota_bytes} bytes",
                store_name=self.name,
                reason="quota_exceeded",
            )

    def _latest_row(self, conn: sqlite3.Connection, doc_id: str) -> sqlite3.Row | None:
        return conn.execute(
            "SELECT * FROM revisions WHERE doc_id = ? ORDER BY seq DESC LIMIT 1",
            (doc_id,),
        ).fetchone()

    def _append(self, conn: sqlite3.Connection, write: PendingWrite, now: int) -> Revision:
        """Insert one revision inside an open transaction."""
        latest = self._latest_row(conn, write.doc_id)
        if write.must_exist and (latest is None or latest["deleted"]):
            raise NotFoundError(
                f"Document not found: {write.doc_id}",
                resource_type="document",
                resource_id=write.doc_id,
            )

        for payload in write.payloads:
            conn.execute(
                """
                INSERT OR IGNORE INTO attachments (cid, content_type, size, data)
                VALUES (?, ?, ?, ?)
                """,
                (payload.cid, payload.content_type, len(payload.data), payload.data),
            )

        # References must resolve to content stored in this store
        for name, meta in write.body.get(FILES_KEY, {}).items():
            row = conn.execute(
                "SELECT content_type, size FROM attachments WHERE cid = ?", (meta["cid"],)
            ).fetchone()
            if row is None:
                raise InvalidArgumentError(
                    f"Attachment '{name}' references unknown content {meta['cid']}",
                    argument=f"{FILES_KEY}.{name}",
                )
            meta.setdefault("type", row["content_type"])
            meta["size"] = row["size"]

        body_json = _canonical_json(write.body)
        generation = (latest["generation"] if latest else 0) + 1
        digest = hashlib.sha256(f"{generation}:{body_json}".encode("utf-8")).hexdigest()
        rev = f"{generation}-{digest[:16]}"

        cursor = conn.execute(
            """
            INSERT INTO revisions (doc_id, generation, rev, deleted, body_json, committed_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (write.doc_id, generation, rev, int(write.deleted), body_json, now),
        )
        seq = cursor.lastrowid

        for name, meta in write.body.get(FILES_KEY, {}).items():
            conn.execute(
                "INSERT INTO revision_files (seq, name, cid) VALUES (?, ?, ?)",
                (seq, name, meta["cid"]),
            )

        return Revision(
            seq=seq,
            doc_id=write.doc_id,
            generation=generation,
            rev=rev,
            deleted=write.deleted,
            body=json.loads(body_json),
            committed_at=now,
        )

    def _commit(self, writes: list[PendingWrite]) -> list[Revision]:
        """Append revisions in a single transaction; all commit or none do."""
        now = int(time.time() * 1000)

        with self._get_connection() as conn:
            try:
                conn.execute("BEGIN IMMEDIATE")
                try:
                    revisions = [self._append(conn, write, now) for write in writes]
                    self._check_quota(conn)
                    conn.execute("COMMIT")

                except Exception:
                    conn.execute("ROLLBACK")
                    raise

            except sqlite3.Error as e:
                logger.error(
                    f"Write failed for store '{self.name}': {e}",
                    extra={"store": self.name, "doc_ids": [w.doc_id for w in writes]},
                )
                raise StorageFailureError(
                    f"Write failed for store '{self.name}': {e}",
                    store_name=self.name,
                    reason=str(e),
                ) from e

        return revisions

    def _prepare(self, doc: Mapping[str, Any]) -> PendingWrite:
        if not isinstance(doc, Mapping):
            raise InvalidArgumentError(
                f"Document must be a mapping, got {type(doc).__name__}", argument="doc"
            )

        doc_id = doc.get(ID_KEY)
        if doc_id is None:
            doc_id = str(uuid.uuid4())
        else:
            validate_doc_id(doc_id)

        body: dict[str, Any] = {}
        payloads: list[AttachmentPayload] = []
        for key, value in doc.items():
            if not isinstance(key, str):
                raise InvalidArgumentError(f"Field names must be strings, got {key!r}", argument="doc")
            if key in (ID_KEY, REV_KEY):
                continue
            if key == FILES_KEY:
                body[FILES_KEY], payloads = self._prepare_files(value)
            else:
                _check_value(value, key)
                body[key] = value

        return PendingWrite(doc_id=doc_id, body=body, payloads=payloads)

    async def put(self, doc: Mapping[str, Any]) -> Revision:
        """Create or update a document.

        Without an _id a new identifier is generated. _rev in the input is
        ignored. New attachment payloads under _files are stored out-of-band
        and replaced by references.

        Field values are limited to what reads back unchanged: None, bool,
        int, float (finite), str, lists of these and dicts with str keys.

        Args:
            doc: Document fields

        Returns:
            The committed Revision

        Raises:
            InvalidArgumentError: If the document, a value or its id is malformed,
                or an attachment reference is unknown to this store
            StorageFailureError: If the write could not be committed
        """
        [revision] = self._commit([self._prepare(doc)])

        logger.debug(
            "Put document",
            extra={
                "store": self.name,
                "doc_id": revision.doc_id,
                "rev": revision.rev,
                "seq": revision.seq,
            },
        )
        return revision

    async def put_many(self, docs: list[Mapping[str, Any]]) -> list[Revision]:
        """Create or update several documents in one transaction.

        Either every document is written or none is.

        Raises:
            InvalidArgumentError: If any document is malformed (nothing written)
            StorageFailureError: If the batch could not be committed (nothing written)
        """
        writes = [self._prepare(doc) for doc in docs]
        if not writes:
            return []
        revisions = self._commit(writes)

        logger.debug(
            f"Put {len(revisions)} documents",
            extra={"store": self.name, "last_seq": revisions[-1].seq},
        )
        return revisions

    async def delete(self, doc_id: str) -> Revision:
        """Write a tombstone for a document.

        Raises:
            InvalidArgumentError: If the id is malformed
            NotFoundError: If the document is absent or already deleted
            StorageFailureError: If the write could not be committed
        """
        validate_doc_id(doc_id)
        [revision] = self._commit(
            [PendingWrite(doc_id=doc_id, body={}, deleted=True, must_exist=True)]
        )
        logger.debug(
            "Deleted document",
            extra={"store": self.name, "doc_id": doc_id, "seq": revision.seq},
        )
        return revision

    async def get(self, doc_id: str) -> dict[str, Any]:
        """Get the latest live revision of a document.

        Raises:
            InvalidArgumentError: If the id is malformed
            NotFoundError: If the document is absent or deleted
        """
        validate_doc_id(doc_id)
        with self._get_connection() as conn:
            row = self._latest_row(conn, doc_id)

        if row is None or row["deleted"]:
            raise NotFoundError(
                f"Document not found: {doc_id}", resource_type="document", resource_id=doc_id
            )
        return self.to_document(self._row_to_revision(row))

    async def history(self, doc_id: str) -> list[Revision]:
        """Get every retained revision of a document, oldest first.

        Raises:
            NotFoundError: If no revision was ever written
        """
        validate_doc_id(doc_id)
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM revisions WHERE doc_id = ? ORDER BY seq",
                (doc_id,),
            ).fetchall()

        if not rows:
            raise NotFoundError(
                f"Document not found: {doc_id}", resource_type="document", resource_id=doc_id
            )
        return [self._row_to_revision(row) for row in rows]

    async def changes(self, since: int = 0) -> list[Revision]:
        """Get the latest revision of each document changed after a sequence.

        Tombstones are included so consumers can drop deleted documents.

        Args:
            since: Exclusive lower bound on seq

        Returns:
            Revisions in seq order
        """
        with self._get_connection() as conn:
            rows = conn.execute(
                """
                SELECT r.* FROM revisions r
                JOIN (SELECT doc_id, MAX(seq) AS seq FROM revisions GROUP BY doc_id) latest
                    ON r.seq = latest.seq
                WHERE r.seq > ?
                ORDER BY r.seq
                """,
                (since,),
            ).fetchall()
        return [self._row_to_revision(row) for row in rows]

    async def all_docs(self) -> list[dict[str, Any]]:
        """Get all live documents ordered by id."""
        revisions = [r for r in await self.changes() if not r.deleted]
        revisions.sort(key=lambda r: r.doc_id)
        return [self.to_document(r) for r in revisions]

    async def get_attachment(self, cid: str) -> bytes:
        """Get attachment content by content identifier.

        Raises:
            NotFoundError: If the attachment is not stored
        """
        with self._get_connection() as conn:
            row = conn.execute("SELECT data FROM attachments WHERE cid = ?", (cid,)).fetchone()
        if row is None:
            raise NotFoundError(
                f"Attachment not found: {cid}", resource_type="attachment", resource_id=cid
            )
        return bytes(row["data"])

    async def compact(self, keep_revisions: int = 1) -> dict[str, int]:
        """Purge superseded revisions and unreferenced attachments.

        Keeps the newest keep_revisions revisions of every document,
        tombstones included. Never called automatically.

        Args:
            keep_revisions: Revisions to keep per document (>= 1)

        Returns:
            Dictionary with removal counts
        """
        if keep_revisions < 1:
            raise InvalidArgumentError("keep_revisions must be >= 1", argument="keep_revisions")

        with self._get_connection() as conn:
            try:
                conn.execute("BEGIN IMMEDIATE")
                try:
                    purge = [
                        row[0]
                        for row in conn.execute(
                            """
                            SELECT seq FROM (
                                SELECT seq, ROW_NUMBER() OVER (
                                    PARTITION BY doc_id ORDER BY seq DESC
                                ) AS rn
                                FROM revisions
                            ) WHERE rn > ?
                            """,
                            (keep_revisions,),
                        ).fetchall()
                    ]
                    conn.executemany("DELETE FROM revision_files WHERE seq = ?", [(s,) for s in purge])
                    conn.executemany("DELETE FROM revisions WHERE seq = ?", [(s,) for s in purge])
                    cursor = conn.execute(
                        "DELETE FROM attachments WHERE cid NOT IN (SELECT cid FROM revision_files)"
                    )
                    attachments_removed = cursor.rowcount
                    conn.execute("COMMIT")
                except Exception:
                    conn.execute("ROLLBACK")
                    raise
            except sqlite3.Error as e:
                raise StorageFailureError(
                    f"Compaction failed for store '{self.name}': {e}",
                    store_name=self.name,
                    reason=str(e),
                ) from e

        logger.info(
            f"Compacted store '{self.name}'",
            extra={"revisions_removed": len(purge), "attachments_removed": attachments_removed},
        )
        return {"revisions_removed": len(purge), "attachments_removed": attachments_removed}

    async def stats(self) -> dict[str, int]:
        """Get statistics for the store.

        Returns:
            Dictionary with counts
        """
        with self._get_connection() as conn:
            stats = {}

            cursor = conn.execute(
                """
                SELECT COUNT(*) FROM revisions r
                JOIN (SELECT doc_id, MAX(seq) AS seq FROM revisions GROUP BY doc_id) latest
                    ON r.seq = latest.seq
                WHERE r.deleted = 0
                """
            )
            stats["documents"] = cursor.fetchone()[0]

            cursor = conn.execute("SELECT COUNT(*) FROM revisions")
            stats["revisions"] = cursor.fetchone()[0]

            cursor = conn.execute("SELECT COUNT(*), COALESCE(SUM(size), 0) FROM attachments")
            row = cursor.fetchone()
            stats["attachments"] = row[0]
            stats["attachment_bytes"] = row[1]

            cursor = conn.execute("SELECT COALESCE(MAX(seq), 0) FROM revisions")
            stats["last_seq"] = cursor.fetchone()[0]

            return stats

    def _row_to_revision(self, row: sqlite3.Row) -> Revision:
        return Revision(
            seq=row["seq"],
            doc_id=row["doc_id"],
            generation=row["generation"],
            rev=row["rev"],
            deleted=bool(row["deleted"]),
            body=json.loads(row["body_json"]),
            committed_at=row["committed_at"],
        )

    def to_document(self, revision: Revision) -> dict[str, Any]:
        """Build the caller-facing document for a revision.

        Attachment metadata under _files is turned into AttachmentHandles.
        """
        doc = dict(revision.body)
        if FILES_KEY in doc:
            doc[FILES_KEY] = {
                name: AttachmentHandle(
                    name=name,
                    cid=meta["cid"],
                    content_type=meta.get("type", "application/octet-stream"),
                    size=meta.get("size", 0),
                    filename=meta.get("filename"),
                    store=self,
                )
                for name, meta in doc[FILES_KEY].items()
            }
        doc[ID_KEY] = revision.doc_id
        doc[REV_KEY] = revision.rev
        return doc
