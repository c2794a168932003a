"""
Job board service.

Application operations of the local job board on top of the database:
- The "post a job" form as a draft controller
- AI-written descriptions merged into the issuing draft only
- AI-generated demo listings
- Status updates, deletion and the newest-first dashboard
- Saved AI notes

Invariants:
    - Each AI action is guarded by its own busy flag
    - A failed description generation leaves the description untouched
    - Jobs and notes are told apart by their `type` field
"""

from __future__ import annotations

import logging
import random
from collections.abc import Mapping
from typing import Any

from ..ai.base import TextGenerator
from ..draft import ActionGuard, DraftController, now_ms
from ..errors import InvalidArgumentError, ValidationFailedError
from ..schema.types import JOB_CATEGORIES, DemoJobBatch, JobStatus
from ..store.database import Database
from ..store.document_store import AttachmentPayload, PutResult
from ..store.index import IndexSpec
from ..store.live import LiveCallback, Subscription

logger = logging.getLogger(__name__)

JOB_TYPE = "job"
NOTE_TYPE = "note"
JOB_IMAGE = "jobImage"
DAY_MS = 24 * 60 * 60 * 1000

REQUIRED_JOB_FIELDS = ("title", "category", "description", "location")

# All documents by creation time
CREATED_INDEX = IndexSpec("createdAt")
# Documents of one type, ordered by creation time
TYPE_INDEX = IndexSpec("type", sort_field="createdAt")
# Jobs of one status, ordered by creation time
STATUS_INDEX = IndexSpec(
    "status",
    sort_field="createdAt",
    name="job_status",
    projection=lambda doc: doc.get("status") if doc.get("type") == JOB_TYPE else None,
)

DESCRIPTION_PROMPT = """Create a detailed job description for a {category} job titled "{title}".
Include typical requirements, scope of work, and appropriate details a client might want to specify.
Keep it under 200 words and make it professional but approachable."""

DEMO_PROMPT = """Generate {count} local job listings in JSON format. Each job should have:
- title: creative but realistic local job title
- category: one of these categories [{categories}]
- description: detailed 2-3 sentence job description
- location: a realistic city and neighborhood
- budget: a reasonable dollar amount as a number
- budgetType: either "fixed" or "hourly"
- date: a future date in YYYY-MM-DD format
- time: a time range like "2:00 PM - 5:00 PM"
- status: "Open"
"""


def _job_status(status: str | JobStatus) -> JobStatus:
    try:
        return JobStatus(status)
    except ValueError as e:
        raise InvalidArgumentError(f"Unknown job status: {status!r}", argument="status") from e


def job_defaults() -> dict[str, Any]:
    """Seed values for a new job draft."""
    return {
        "type": JOB_TYPE,
        "title": "",
        "category": "",
        "description": "",
        "location": "",
        "budget": "",
        "budgetType": "fixed",
        "date": "",
        "time": "",
        "_files": {},
        "status": JobStatus.OPEN.value,
        "createdAt": now_ms,
    }


class JobBoard:
    """Local job board.

    Attributes:
        db: Database holding jobs and notes
        generator: AI text service (optional; AI actions need it)
        form: Draft controller for the "post a job" form

    Example:
        >>> board = JobBoard(db, generator=ai)
        >>> board.setup()
        >>> board.form.merge({"title": "Fix sink", "category": "Plumbing"})
        >>> await board.generate_description()
        >>> board.form.merge({"location": "Mission, SF"})
        >>> await board.submit_job()
    """

    def __init__(
        self,
        db: Database,
        generator: TextGenerator | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.db = db
        self.generator = generator
        self.form = DraftController(db, job_defaults(), required=REQUIRED_JOB_FIELDS)
        self._rng = rng or random.Random()
        self._describe_guard = ActionGuard("generate_description")
        self._demo_guard = ActionGuard("generate_demo_jobs")
        self._note_guard = ActionGuard("summarize_to_note")

    def setup(self) -> None:
        """Register the board's indexes."""
        for spec in (CREATED_INDEX, TYPE_INDEX, STATUS_INDEX):
            self.db.register_index(spec)

    def _require_generator(self) -> TextGenerator:
        if self.generator is None:
            raise InvalidArgumentError("No AI text service configured", argument="generator")
        return self.generator

    @property
    def describing(self) -> bool:
        return self._describe_guard.busy

    @property
    def generating_demo(self) -> bool:
        return self._demo_guard.busy

    def attach_image(
        self,
        data: bytes,
        content_type: str = "application/octet-stream",
        filename: str | None = None,
    ) -> None:
        """Add the job image to the form's pending attachments."""
        self.form.merge(
            {"_files": {JOB_IMAGE: AttachmentPayload(data, content_type, filename)}}
        )

    async def submit_job(self) -> PutResult:
        """Submit the form; see DraftController.submit."""
        return await self.form.submit()

    async def generate_description(self) -> bool:
        """Ask the AI service for a description of the form's job.

        Returns:
            True if merged, False if the form moved on while waiting

        Raises:
            ValidationFailedError: If title or category is blank
            BusyError: If a description is already being generated
            GenerationFailedError: If the AI call failed (description untouched)
        """
        generator = self._require_generator()
        async with self._describe_guard:
            draft = self.form.draft
            title = str(draft.fields.get("title") or "").strip()
            category = str(draft.fields.get("category") or "").strip()
            missing = [name for name, value in (("title", title), ("category", category)) if not value]
            if missing:
                raise ValidationFailedError(
                    "Enter a job title and category first", missing=missing
                )

            prompt = DESCRIPTION_PROMPT.format(category=category, title=title)
            description = await generator.generate(prompt)
            return self.form.merge_if_current(draft, {"description": description})

    async def generate_demo_jobs(self, count: int = 5) -> list[PutResult]:
        """Store AI-generated demo listings created within the last 24h.

        Raises:
            BusyError: If demo data is already being generated
            GenerationFailedError: If the AI call failed; nothing is stored
            StorageFailureError: If the batch could not be written; nothing is stored
        """
        generator = self._require_generator()
        async with self._demo_guard:
            prompt = DEMO_PROMPT.format(count=count, categories=", ".join(JOB_CATEGORIES))
            batch: DemoJobBatch = await generator.generate_structured(prompt, DemoJobBatch)

            now = now_ms()
            docs = []
            for job in batch.jobs:
                doc = job.model_dump(mode="json")
                doc["type"] = JOB_TYPE
                doc["createdAt"] = now - self._rng.randrange(DAY_MS)
                docs.append(doc)
            results = await self.db.put_many(docs)

        logger.info(f"Stored {len(results)} demo jobs", extra={"store": self.db.name})
        return results

    async def update_status(self, job: Mapping[str, Any], status: str | JobStatus) -> PutResult:
        """Write a new revision of a job with a different status.

        Raises:
            InvalidArgumentError: If the status is unknown or the job has no _id
        """
        status = _job_status(status)
        if "_id" not in job:
            raise InvalidArgumentError("Job has no _id", argument="_id")
        return await self.db.put({**job, "status": status.value})

    async def delete_job(self, job_id: str) -> PutResult:
        return await self.db.delete(job_id)

    def list_jobs(self, limit: int | None = None) -> list[dict[str, Any]]:
        """Jobs, newest first."""
        rows = self.db.query(TYPE_INDEX.name, key=JOB_TYPE, descending=True, limit=limit)
        return [row.doc for row in rows]

    def jobs_by_status(self, status: str | JobStatus) -> list[dict[str, Any]]:
        """Jobs with a status, newest first."""
        rows = self.db.query(STATUS_INDEX.name, key=_job_status(status).value, descending=True)
        return [row.doc for row in rows]

    async def watch_dashboard(self, callback: LiveCallback) -> Subscription:
        """Live list of jobs, newest first."""
        return await self.db.subscribe(TYPE_INDEX.name, callback, key=JOB_TYPE, descending=True)

    async def save_note(self, content: str) -> PutResult:
        return await self.db.put({"type": NOTE_TYPE, "content": content, "createdAt": now_ms()})

    async def summarize_to_note(self, prompt: str) -> PutResult:
        """Generate text and save it as a note.

        Raises:
            BusyError: If a note is already being generated
            GenerationFailedError: If the AI call failed; nothing is stored
        """
        generator = self._require_generator()
        async with self._note_guard:
            content = await generator.generate(prompt)
            return await self.save_note(content)

    async def watch_notes(self, callback: LiveCallback) -> Subscription:
        """Live list of notes, oldest first."""
        return await self.db.subscribe(TYPE_INDEX.name, callback, key=NOTE_TYPE)
