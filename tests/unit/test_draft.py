"""
Unit tests for the draft document controller.

Tests cover:
- Seeding from defaults
- Merging fields and pending attachments
- Submit validation, success and failure
- Stale merges after submit or reset
- Busy guards
"""

import asyncio
import itertools
import tempfile

import pytest
import pytest_asyncio

from gigboard.config import StorageConfig
from gigboard.draft import ActionGuard, DraftController, DraftState
from gigboard.errors import (
    BusyError,
    InvalidArgumentError,
    StorageFailureError,
    ValidationFailedError,
)
from gigboard.store.database import Database
from gigboard.store.document_store import AttachmentHandle, AttachmentPayload, PutResult


class BlockingDb:
    """Database stand-in whose put waits until released."""

    def __init__(self):
        self.release = asyncio.Event()
        self.docs = []

    async def put(self, doc):
        await self.release.wait()
        self.docs.append(doc)
        return PutResult(id="blocked", rev="1-test", seq=len(self.docs))


class TestDraftController:
    """Tests for DraftController."""

    @pytest.fixture
    def data_dir(self):
        """Create temporary data directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield tmpdir

    @pytest_asyncio.fixture
    async def db(self, data_dir):
        database = Database("drafts", StorageConfig(data_dir=data_dir, wal_mode=False))
        await database.open()
        yield database
        await database.close()

    @pytest.fixture
    def defaults(self):
        clock = itertools.count(1000)
        return {
            "type": "job",
            "title": "",
            "category": "",
            "tags": [],
            "_files": {},
            "createdAt": lambda: next(clock),
        }

    def test_seeds_from_defaults(self, db, defaults):
        form = DraftController(db, defaults)

        assert form.draft.editing
        assert form.draft.fields["type"] == "job"
        assert form.draft.fields["createdAt"] == 1000
        assert form.draft.files == {}
        assert form.doc["_files"] == {}

    def test_callable_defaults_evaluated_per_draft(self, db, defaults):
        form = DraftController(db, defaults)
        first = form.draft.fields["createdAt"]

        form.reset()

        assert form.draft.fields["createdAt"] == first + 1

    def test_mutable_defaults_are_copied(self, db, defaults):
        form = DraftController(db, defaults)
        form.draft.fields["tags"].append("urgent")

        form.reset()

        assert form.draft.fields["tags"] == []
        assert defaults["tags"] == []

    def test_merge_is_shallow(self, db, defaults):
        form = DraftController(db, defaults)

        form.merge({"title": "Fix sink"})
        form.merge({"category": "Plumbing"})

        assert form.doc["title"] == "Fix sink"
        assert form.doc["category"] == "Plumbing"

    def test_merge_files_by_name(self, db, defaults):
        form = DraftController(db, defaults)

        form.merge({"_files": {"jobImage": b"first"}})
        form.merge({"_files": {"receipt": b"second"}})
        form.merge({"_files": {"jobImage": b"replaced"}})

        assert form.doc["_files"] == {"jobImage": b"replaced", "receipt": b"second"}

    def test_merge_rejects_non_mapping_files(self, db, defaults):
        form = DraftController(db, defaults)

        with pytest.raises(InvalidArgumentError):
            form.merge({"_files": [b"image"]})

    @pytest.mark.asyncio
    async def test_submit_missing_required_fields(self, db, defaults):
        form = DraftController(db, defaults, required=("title", "category"))
        form.merge({"title": "  "})
        before = form.doc

        with pytest.raises(ValidationFailedError) as exc_info:
            await form.submit()

        assert exc_info.value.missing == ["title", "category"]
        assert form.doc == before
        assert form.draft.editing
        assert await db.all_docs() == []

    @pytest.mark.asyncio
    async def test_submit_persists_and_starts_fresh_draft(self, db, defaults):
        form = DraftController(db, defaults, required=("title",))
        form.merge({"title": "Fix sink", "_files": {"jobImage": AttachmentPayload(b"png", "image/png")}})
        submitted = form.draft

        result = await form.submit()

        stored = await db.get(result.id)
        assert stored["title"] == "Fix sink"
        assert stored["createdAt"] == 1000
        assert isinstance(stored["_files"]["jobImage"], AttachmentHandle)
        assert await stored["_files"]["jobImage"].read() == b"png"

        assert submitted.state is DraftState.SUBMITTED
        assert form.draft is not submitted
        assert form.draft.editing
        assert form.draft.fields["title"] == ""
        assert form.draft.files == {}
        assert form.draft.fields["createdAt"] == 1001

    @pytest.mark.asyncio
    async def test_storage_failure_leaves_draft_unchanged(self, data_dir, defaults):
        database = Database(
            "tiny", StorageConfig(data_dir=data_dir, wal_mode=False, quota_bytes=64)
        )
        await database.open()
        form = DraftController(database, defaults)
        form.merge({"title": "x" * 500})
        draft = form.draft
        before = form.doc

        with pytest.raises(StorageFailureError):
            await form.submit()

        assert form.draft is draft
        assert form.draft.editing
        assert form.doc == before
        assert form.submitting is False
        await database.close()

    @pytest.mark.asyncio
    async def test_merge_if_current_drops_stale_draft(self, db, defaults):
        form = DraftController(db, defaults)
        form.merge({"title": "Fix sink"})
        stale = form.draft

        await form.submit()

        assert form.merge_if_current(stale, {"description": "late"}) is False
        assert "late" not in form.doc.values()
        assert stale.fields.get("description") is None

    def test_merge_if_current_after_reset(self, db, defaults):
        form = DraftController(db, defaults)
        stale = form.draft
        form.reset()

        assert form.merge_if_current(stale, {"description": "late"}) is False
        assert form.merge_if_current(form.draft, {"description": "fresh"}) is True
        assert form.doc["description"] == "fresh"

    @pytest.mark.asyncio
    async def test_concurrent_submit_is_busy(self, defaults):
        blocking = BlockingDb()
        form = DraftController(blocking, defaults)

        task = asyncio.create_task(form.submit())
        await asyncio.sleep(0)
        assert form.submitting is True

        with pytest.raises(BusyError):
            await form.submit()
        with pytest.raises(BusyError):
            form.merge({"title": "edit during submit"})
        with pytest.raises(BusyError):
            form.reset()

        blocking.release.set()
        result = await task

        assert result.id == "blocked"
        assert len(blocking.docs) == 1
        assert form.submitting is False

    @pytest.mark.asyncio
    async def test_merge_if_current_during_submit_is_dropped(self, defaults):
        """An async result arriving mid-submit is dropped, not raised."""
        blocking = BlockingDb()
        form = DraftController(blocking, defaults)
        issuing = form.draft

        task = asyncio.create_task(form.submit())
        await asyncio.sleep(0)

        assert form.merge_if_current(issuing, {"description": "late"}) is False

        blocking.release.set()
        await task

        assert "description" not in blocking.docs[0]
        assert form.draft.fields.get("description") is None


class TestActionGuard:
    """Tests for ActionGuard."""

    @pytest.mark.asyncio
    async def test_reentry_is_busy(self):
        guard = ActionGuard("generate_description")

        async with guard:
            assert guard.busy
            with pytest.raises(BusyError) as exc_info:
                async with guard:
                    pass
            assert exc_info.value.action == "generate_description"

        assert guard.busy is False

    @pytest.mark.asyncio
    async def test_released_after_failure(self):
        guard = ActionGuard("generate_demo_jobs")

        with pytest.raises(RuntimeError):
            async with guard:
                raise RuntimeError("boom")

        assert guard.busy is False
