"""
Unit tests for the secondary index engine.

Tests cover:
- Value ordering in both directions with id tie-breaks
- Key filtering and limits
- Incremental updates and deletions
- Registration and backfill
- Collation across value types
"""

import pytest

from gigboard.errors import InvalidArgumentError, NotFoundError
from gigboard.store.document_store import Revision
from gigboard.store.index import IndexEngine, IndexSpec, collate


def commit(engine, seq, doc_id, body=None):
    """Apply a revision of doc_id at seq; body None writes a tombstone."""
    revision = Revision(
        seq=seq,
        doc_id=doc_id,
        generation=1,
        rev=f"{seq}-test",
        deleted=body is None,
        body=body or {},
        committed_at=0,
    )
    doc = None if body is None else {**body, "_id": doc_id, "_rev": revision.rev}
    return engine.apply(revision, doc)


class TestCollate:
    """Tests for the cross-type sort order."""

    def test_types_order(self):
        values = ["b", 3, None, {"a": 1}, True, 1.5, "a"]
        ordered = sorted(values, key=collate)
        assert ordered == [None, True, 1.5, 3, "a", "b", {"a": 1}]

    def test_bool_is_not_a_number(self):
        assert collate(True) < collate(0)


class TestIndexEngine:
    """Tests for IndexEngine."""

    @pytest.fixture
    def engine(self):
        engine = IndexEngine()
        engine.register(IndexSpec("createdAt"))
        engine.register(IndexSpec("type", sort_field="createdAt"))
        return engine

    def test_descending_by_creation_time(self, engine):
        commit(engine, 1, "a", {"createdAt": 100})
        commit(engine, 2, "b", {"createdAt": 300})
        commit(engine, 3, "c", {"createdAt": 200})

        rows = engine.query("createdAt", descending=True)
        assert [row.value for row in rows] == [300, 200, 100]
        assert [row.id for row in rows] == ["b", "c", "a"]

        rows = engine.query("createdAt")
        assert [row.id for row in rows] == ["a", "c", "b"]

    def test_equal_values_break_ties_by_id(self, engine):
        commit(engine, 1, "z", {"createdAt": 5})
        commit(engine, 2, "m", {"createdAt": 5})
        commit(engine, 3, "a", {"createdAt": 5})
        commit(engine, 4, "q", {"createdAt": 9})

        assert [row.id for row in engine.query("createdAt")] == ["a", "m", "z", "q"]
        assert [row.id for row in engine.query("createdAt", descending=True)] == [
            "q",
            "a",
            "m",
            "z",
        ]

    def test_key_filter_orders_by_sort_field(self, engine):
        commit(engine, 1, "j1", {"type": "job", "createdAt": 10})
        commit(engine, 2, "n1", {"type": "note", "createdAt": 20})
        commit(engine, 3, "j2", {"type": "job", "createdAt": 30})

        rows = engine.query("type", key="job", descending=True)
        assert [row.id for row in rows] == ["j2", "j1"]
        assert all(row.key == "job" for row in rows)

        notes = engine.query("type", key="note")
        assert [row.doc["_id"] for row in notes] == ["n1"]

    def test_unknown_key_returns_empty(self, engine):
        commit(engine, 1, "j1", {"type": "job", "createdAt": 10})
        assert engine.query("type", key="invoice") == []

    def test_limit(self, engine):
        for seq, value in enumerate([5, 1, 4, 2, 3], start=1):
            commit(engine, seq, f"d{value}", {"createdAt": value})

        rows = engine.query("createdAt", descending=True, limit=2)
        assert [row.value for row in rows] == [5, 4]

    def test_documents_without_key_are_not_indexed(self, engine):
        commit(engine, 1, "a", {"title": "no timestamp"})
        commit(engine, 2, "b", {"createdAt": None})

        assert engine.query("createdAt") == []

    def test_missing_sort_field_sorts_first(self, engine):
        commit(engine, 1, "a", {"type": "job", "createdAt": 10})
        commit(engine, 2, "b", {"type": "job"})

        assert [row.id for row in engine.query("type", key="job")] == ["b", "a"]

    def test_update_moves_entry(self, engine):
        commit(engine, 1, "a", {"createdAt": 1})
        commit(engine, 2, "b", {"createdAt": 2})
        commit(engine, 3, "a", {"createdAt": 3})

        rows = engine.query("createdAt", descending=True)
        assert [row.id for row in rows] == ["a", "b"]
        assert rows[0].doc["_rev"] == "3-test"

    def test_update_changing_key_moves_between_buckets(self, engine):
        commit(engine, 1, "a", {"type": "job", "createdAt": 1})
        commit(engine, 2, "a", {"type": "note", "createdAt": 1})

        assert engine.query("type", key="job") == []
        assert [row.id for row in engine.query("type", key="note")] == ["a"]

    def test_deletion_removes_entry(self, engine):
        commit(engine, 1, "a", {"type": "job", "createdAt": 1})
        commit(engine, 2, "b", {"type": "job", "createdAt": 2})

        touched = commit(engine, 3, "a")

        assert touched == {"createdAt", "type"}
        assert [row.id for row in engine.query("createdAt")] == ["b"]
        assert [row.id for row in engine.query("type", key="job")] == ["b"]

    def test_apply_reports_touched_indexes_only(self, engine):
        touched = commit(engine, 1, "a", {"createdAt": 1})
        assert touched == {"createdAt"}

        touched = commit(engine, 2, "b", {"title": "unindexed"})
        assert touched == set()

    def test_out_of_order_revision_is_ignored(self, engine):
        commit(engine, 5, "a", {"createdAt": 1})

        touched = commit(engine, 3, "b", {"createdAt": 2})

        assert touched == set()
        assert engine.seq == 5
        assert [row.id for row in engine.query("createdAt")] == ["a"]

    def test_register_backfills_existing_documents(self, engine):
        commit(engine, 1, "a", {"status": "Open", "createdAt": 1})
        commit(engine, 2, "b", {"status": "Completed", "createdAt": 2})

        assert engine.register(IndexSpec("status", sort_field="createdAt")) is True

        assert [row.id for row in engine.query("status", key="Open")] == ["a"]

    def test_register_is_idempotent(self, engine):
        assert engine.register(IndexSpec("createdAt")) is False
        assert engine.index_names == ["createdAt", "type"]

    def test_register_conflicting_definition_fails(self, engine):
        with pytest.raises(InvalidArgumentError):
            engine.register(IndexSpec("other", name="createdAt"))

    def test_query_unknown_index(self, engine):
        with pytest.raises(NotFoundError) as exc_info:
            engine.query("missing")

        assert exc_info.value.resource_type == "index"

    def test_projection(self, engine):
        spec = IndexSpec(
            "status",
            sort_field="createdAt",
            name="job_status",
            projection=lambda doc: doc.get("status") if doc.get("type") == "job" else None,
        )
        engine.register(spec)

        commit(engine, 1, "j", {"type": "job", "status": "Open", "createdAt": 1})
        commit(engine, 2, "n", {"type": "note", "status": "Open", "createdAt": 2})

        assert [row.id for row in engine.query("job_status", key="Open")] == ["j"]

    def test_failing_projection_skips_document(self, engine):
        engine.register(IndexSpec("broken", projection=lambda doc: doc["missing"]))

        touched = commit(engine, 1, "a", {"createdAt": 1})

        assert touched == {"createdAt"}
        assert engine.query("broken") == []

    def test_editing_a_row_does_not_change_the_index(self, engine):
        """Rows are copies; edits never reach later queries."""
        commit(engine, 1, "a", {"createdAt": 100, "title": "x", "tags": ["t"]})
        commit(engine, 2, "b", {"createdAt": 200, "title": "y", "tags": ["u"]})

        rows = engine.query("createdAt", descending=True)
        rows[0].doc["createdAt"] = 1
        rows[0].doc["title"] = "mutated"
        rows[0].doc["_rev"] = "999-edited"
        rows[0].doc["tags"].append("extra")

        again = engine.query("createdAt", descending=True)
        assert [(row.id, row.doc["createdAt"], row.doc["title"]) for row in again] == [
            ("b", 200, "y"),
            ("a", 100, "x"),
        ]
        assert again[0].doc["_rev"] == "2-test"
        assert again[0].doc["tags"] == ["u"]

    def test_rows_of_separate_queries_are_independent(self, engine):
        commit(engine, 1, "j", {"type": "job", "createdAt": 1, "_files": {"img": "handle"}})

        first = engine.query("type", key="job")[0].doc
        second = engine.query("createdAt")[0].doc
        first["_files"]["img"] = "replaced"

        assert first is not second
        assert second["_files"] == {"img": "handle"}

    def test_mixed_value_types_sort_deterministically(self, engine):
        commit(engine, 1, "s", {"createdAt": "yesterday"})
        commit(engine, 2, "n", {"createdAt": 42})
        commit(engine, 3, "b", {"createdAt": False})

        assert [row.id for row in engine.query("createdAt")] == ["b", "n", "s"]


class TestIndexSpec:
    """Tests for IndexSpec."""

    def test_name_defaults_to_key_field(self):
        assert IndexSpec("createdAt").name == "createdAt"

    def test_empty_key_field_rejected(self):
        with pytest.raises(InvalidArgumentError):
            IndexSpec("")

    def test_value_defaults_to_key(self):
        spec = IndexSpec("createdAt")
        assert spec.value_of({"createdAt": 7}) == 7

        spec = IndexSpec("type", sort_field="createdAt")
        assert spec.key_of({"type": "job", "createdAt": 7}) == "job"
        assert spec.value_of({"type": "job", "createdAt": 7}) == 7
