"""
Draft document controller.

Binds a form session to one in-flight, not yet persisted document. The
controller seeds drafts from defaults, merges partial edits into them and
commits them to the database as a single put.

State machine per draft instance:

    EDITING --submit()--> SUBMITTED   (a fresh EDITING draft replaces it)
    EDITING --reset()---> EDITING     (new instance, seeded from defaults)

Invariants:
    - Exactly one current draft per controller, always EDITING
    - submit() writes all fields plus pending attachments in one put, or nothing
    - A failed submit leaves the draft exactly as it was
    - Async results are merged only into the draft instance that requested them

Example:
    >>> form = DraftController(db, {"title": "", "createdAt": now_ms}, required=("title",))
    >>> form.merge({"title": "Fix sink"})
    >>> result = await form.submit()
"""

from __future__ import annotations

import itertools
import logging
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import BusyError, InvalidArgumentError, ValidationFailedError
from .store.database import Database
from .store.document_store import FILES_KEY, PutResult

logger = logging.getLogger(__name__)

_draft_ids = itertools.count(1)


class DraftState(Enum):
    EDITING = "editing"
    SUBMITTED = "submitted"


@dataclass
class Draft:
    """One form session's uncommitted document.

    Attributes:
        draft_id: Process-unique instance number
        fields: Field mapping (without _files)
        files: Pending attachments by name
        state: EDITING or SUBMITTED
    """

    draft_id: int
    fields: dict[str, Any] = field(default_factory=dict)
    files: dict[str, Any] = field(default_factory=dict)
    state: DraftState = DraftState.EDITING

    @property
    def editing(self) -> bool:
        return self.state is DraftState.EDITING

    def to_document(self) -> dict[str, Any]:
        doc = dict(self.fields)
        doc[FILES_KEY] = dict(self.files)
        return doc


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return not value
    return False


class DraftController:
    """Manages the current draft of one logical form.

    Defaults may hold zero-argument callables; they are called each time
    a draft is seeded (e.g. a creation timestamp).

    Attributes:
        db: Database drafts are committed to
        defaults: Seed values
        required: Fields that must be non-blank on submit
    """

    def __init__(
        self,
        db: Database,
        defaults: Mapping[str, Any] | None = None,
        required: Iterable[str] = (),
    ) -> None:
        self.db = db
        self.defaults = dict(defaults or {})
        self.required = tuple(required)
        self._submitting = False
        self._draft = self._seed()

    def _seed(self) -> Draft:
        fields: dict[str, Any] = {}
        files: dict[str, Any] = {}
        for key, value in self.defaults.items():
            if callable(value):
                value = value()
            if key == FILES_KEY:
                files = dict(value or {})
            elif isinstance(value, (dict, list)):
                fields[key] = type(value)(value)
            else:
                fields[key] = value
        return Draft(draft_id=next(_draft_ids), fields=fields, files=files)

    @property
    def draft(self) -> Draft:
        """The current EDITING draft."""
        return self._draft

    @property
    def doc(self) -> dict[str, Any]:
        """Snapshot of the current draft as a document (fields plus _files)."""
        return self._draft.to_document()

    @property
    def submitting(self) -> bool:
        return self._submitting

    def merge(self, partial: Mapping[str, Any]) -> None:
        """Shallow-merge fields into the current draft.

        Pending attachments under _files merge by name.

        Raises:
            BusyError: If a submit is in flight
        """
        self._merge_into(self._draft, partial)

    def merge_if_current(self, draft: Draft, partial: Mapping[str, Any]) -> bool:
        """Merge only if draft is still the current EDITING draft.

        A draft that is being submitted counts as moved on.

        Returns:
            True if merged, False if the draft has moved on
        """
        if draft is not self._draft or not draft.editing or self._submitting:
            logger.info(
                "Dropped merge for stale draft",
                extra={
                    "draft_id": draft.draft_id,
                    "current_draft_id": self._draft.draft_id,
                    "submitting": self._submitting,
                },
            )
            return False
        self._merge_into(draft, partial)
        return True

    def _merge_into(self, draft: Draft, partial: Mapping[str, Any]) -> None:
        if not draft.editing:
            raise InvalidArgumentError(
                f"Draft {draft.draft_id} is {draft.state.value}, not editing", argument="draft"
            )
        if self._submitting:
            raise BusyError("submit")
        for key, value in partial.items():
            if key == FILES_KEY:
                if not isinstance(value, Mapping):
                    raise InvalidArgumentError(f"{FILES_KEY} must be a mapping", argument=FILES_KEY)
                draft.files.update(value)
            else:
                draft.fields[key] = value

    def missing_fields(self) -> list[str]:
        return [name for name in self.required if is_blank(self._draft.fields.get(name))]

    async def submit(self) -> PutResult:
        """Validate and persist the current draft, then start a fresh one.

        Returns:
            PutResult of the stored document

        Raises:
            BusyError: If a submit is already in flight
            ValidationFailedError: If required fields are blank (draft unchanged)
            InvalidArgumentError, StorageFailureError: From the store (draft unchanged)
        """
        if self._submitting:
            raise BusyError("submit")

        draft = self._draft
        missing = self.missing_fields()
        if missing:
            raise ValidationFailedError(
                f"Required fields are empty: {', '.join(missing)}", missing=missing
            )

        self._submitting = True
        try:
            result = await self.db.put(draft.to_document())
        finally:
            self._submitting = False

        draft.state = DraftState.SUBMITTED
        self._draft = self._seed()

        logger.info(
            "Submitted draft",
            extra={"draft_id": draft.draft_id, "doc_id": result.id, "rev": result.rev},
        )
        return result

    def reset(self) -> None:
        """Discard edits and re-seed from defaults."""
        if self._submitting:
            raise BusyError("submit")
        self._draft = self._seed()


class ActionGuard:
    """Busy flag for a long-running action.

    Example:
        >>> guard = ActionGuard("generate_description")
        >>> async with guard:
        ...     await generator.generate(prompt)
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.busy = False

    async def __aenter__(self) -> ActionGuard:
        if self.busy:
            raise BusyError(self.name)
        self.busy = True
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.busy = False


def now_ms() -> int:
    """Current time in Unix milliseconds."""
    return int(time.time() * 1000)
