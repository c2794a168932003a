"""
Incrementally maintained secondary indexes.

An index projects every live document to an optional key and a sort value.
The engine applies each committed revision to all registered indexes
before any live query sees the commit.

Invariants:
    - Each live document with a non-None key has exactly one entry per index
    - Entries are updated synchronously with the commit that caused them
    - Ordering is total: values collate None < bool < number < str < other,
      and equal values break ties by document id ascending in both directions

How to change safely:
    - Projections must stay pure; they run inside the commit
    - Keep register() idempotent for identical specs
    - Rows carry copies; never hand out the engine's own document dicts
"""

from __future__ import annotations

import bisect
import copy
import itertools
import json
import logging
from collections import defaultdict
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from ..errors import InvalidArgumentError, NotFoundError
from .document_store import FILES_KEY, Revision

logger = logging.getLogger(__name__)


def collate(value: Any) -> tuple:
    """Map a field value to a totally ordered, hashable sort key."""
    if value is None:
        return (0,)
    if isinstance(value, bool):
        return (1, value)
    if isinstance(value, (int, float)):
        return (2, value)
    if isinstance(value, str):
        return (3, value)
    return (4, json.dumps(value, sort_keys=True, default=str))


def detach(doc: Mapping[str, Any]) -> dict[str, Any]:
    """Copy a document so callers can't edit engine state.

    Attachment handles are immutable and shared.
    """
    detached = {}
    for key, value in doc.items():
        if key == FILES_KEY and isinstance(value, Mapping):
            detached[key] = dict(value)
        else:
            detached[key] = copy.deepcopy(value)
    return detached


@dataclass(frozen=True)
class IndexSpec:
    """Definition of a secondary index.

    Attributes:
        key_field: Field whose value is the index key
        sort_field: Field to order by (defaults to the key field)
        name: Index name (defaults to the key field)
        projection: Optional pure function doc -> key, replacing key_field lookup

    Example:
        >>> IndexSpec("createdAt")                       # all docs by creation time
        >>> IndexSpec("type", sort_field="createdAt")    # docs of a type, newest first
    """

    key_field: str
    sort_field: str | None = None
    name: str = ""
    projection: Callable[[Mapping[str, Any]], Any] | None = None

    def __post_init__(self) -> None:
        if not self.key_field:
            raise InvalidArgumentError("Index key_field must not be empty", argument="key_field")
        if not self.name:
            object.__setattr__(self, "name", self.key_field)

    def key_of(self, doc: Mapping[str, Any]) -> Any:
        if self.projection is not None:
            return self.projection(doc)
        return doc.get(self.key_field)

    def value_of(self, doc: Mapping[str, Any]) -> Any:
        return doc.get(self.sort_field or self.key_field)


@dataclass(frozen=True)
class IndexEntry:
    """Entry derived from one document."""

    key: Any
    doc_id: str
    value: Any

    @property
    def sort_key(self) -> tuple[tuple, str]:
        return (collate(self.value), self.doc_id)


@dataclass(frozen=True)
class IndexRow:
    """Query result row: index entry plus the document payload."""

    key: Any
    id: str
    value: Any
    doc: dict[str, Any]


class Index:
    """Entries of one IndexSpec, kept sorted per key and overall."""

    def __init__(self, spec: IndexSpec) -> None:
        self.spec = spec
        self._entries: dict[str, IndexEntry] = {}
        self._by_key: dict[tuple, list[tuple[tuple, str]]] = defaultdict(list)
        self._all: list[tuple[tuple, str]] = []

    def __len__(self) -> int:
        return len(self._entries)

    def entry(self, doc_id: str) -> IndexEntry | None:
        return self._entries.get(doc_id)

    def _remove(self, entry: IndexEntry) -> None:
        sort_key = entry.sort_key
        bucket_key = collate(entry.key)
        bucket = self._by_key[bucket_key]
        del bucket[bisect.bisect_left(bucket, sort_key)]
        if not bucket:
            del self._by_key[bucket_key]
        del self._all[bisect.bisect_left(self._all, sort_key)]
        del self._entries[entry.doc_id]

    def _insert(self, entry: IndexEntry) -> None:
        sort_key = entry.sort_key
        bisect.insort(self._by_key[collate(entry.key)], sort_key)
        bisect.insort(self._all, sort_key)
        self._entries[entry.doc_id] = entry

    def update(self, doc_id: str, doc: Mapping[str, Any] | None) -> bool:
        """Apply a document's new state.

        Args:
            doc_id: Document identifier
            doc: Latest live document, or None if deleted

        Returns:
            True if the document had or now has an entry in this index
        """
        old = self._entries.get(doc_id)
        new = None
        if doc is not None:
            try:
                key = self.spec.key_of(doc)
            except Exception:
                logger.exception(
                    f"Projection failed for index '{self.spec.name}'",
                    extra={"index": self.spec.name, "doc_id": doc_id},
                )
                key = None
            if key is not None:
                new = IndexEntry(key=key, doc_id=doc_id, value=self.spec.value_of(doc))

        if old is not None:
            self._remove(old)
        if new is not None:
            self._insert(new)
        return old is not None or new is not None

    def ordered_ids(self, key: Any = None, descending: bool = False) -> list[str]:
        """Document ids for a key (all keys if None) in index order."""
        if key is None:
            items = self._all
        else:
            items = self._by_key.get(collate(key), [])

        if not descending:
            return [doc_id for _, doc_id in items]

        # Reverse the value order but keep equal values in ascending id order
        ids: list[str] = []
        for _, group in itertools.groupby(reversed(items), key=lambda item: item[0]):
            ids.extend(doc_id for _, doc_id in reversed(list(group)))
        return ids


class IndexEngine:
    """Registry of indexes plus the live document payloads they point at.

    Example:
        >>> engine = IndexEngine()
        >>> engine.register(IndexSpec("createdAt"))
        >>> engine.apply(revision, doc)
        {'createdAt'}
        >>> engine.query("createdAt", descending=True)
    """

    def __init__(self) -> None:
        self._indexes: dict[str, Index] = {}
        self._docs: dict[str, dict[str, Any]] = {}
        self.seq = 0

    @property
    def index_names(self) -> list[str]:
        return sorted(self._indexes)

    def register(self, spec: IndexSpec) -> bool:
        """Register an index and backfill it from the live documents.

        Returns:
            True if the index was created, False if an identical one existed

        Raises:
            InvalidArgumentError: If a different spec already uses the name
        """
        existing = self._indexes.get(spec.name)
        if existing is not None:
            if existing.spec == spec:
                return False
            raise InvalidArgumentError(
                f"Index '{spec.name}' is already registered with a different definition",
                argument="spec",
            )

        index = Index(spec)
        for doc_id, doc in self._docs.items():
            index.update(doc_id, doc)
        self._indexes[spec.name] = index

        logger.debug(
            f"Registered index '{spec.name}'",
            extra={"index": spec.name, "entries": len(index)},
        )
        return True

    def get_index(self, name: str) -> Index:
        index = self._indexes.get(name)
        if index is None:
            raise NotFoundError(f"Index not registered: {name}", resource_type="index", resource_id=name)
        return index

    def apply(self, revision: Revision, doc: dict[str, Any] | None) -> set[str]:
        """Update every index for one committed revision.

        Args:
            revision: The committed revision
            doc: Caller-facing document, or None for a tombstone

        Returns:
            Names of indexes whose entries were touched
        """
        if revision.seq <= self.seq:
            logger.warning(
                "Ignoring out-of-order revision",
                extra={"doc_id": revision.doc_id, "seq": revision.seq, "engine_seq": self.seq},
            )
            return set()
        self.seq = revision.seq

        if doc is None:
            self._docs.pop(revision.doc_id, None)
        else:
            self._docs[revision.doc_id] = doc

        return {
            name for name, index in self._indexes.items() if index.update(revision.doc_id, doc)
        }

    def query(
        self,
        name: str,
        key: Any = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[IndexRow]:
        """Query an index.

        Args:
            name: Index name
            key: Index key to match (None matches every key)
            descending: Order by value descending
            limit: Maximum rows

        Returns:
            Ordered rows with document payloads

        Raises:
            NotFoundError: If the index is not registered
        """
        index = self.get_index(name)
        ids = index.ordered_ids(key, descending)
        if limit is not None:
            ids = ids[:limit]

        rows = []
        for doc_id in ids:
            entry = index.entry(doc_id)
            rows.append(
                IndexRow(
                    key=copy.deepcopy(entry.key),
                    id=doc_id,
                    value=copy.deepcopy(entry.value),
                    doc=detach(self._docs[doc_id]),
                )
            )
        return rows
