"""
Typed document variants stored by the job board.

Storage stays schema-less; these models only check documents whose
`type` field names a registered variant. Unknown extra fields are allowed.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field

JOB_CATEGORIES = (
    "Plumbing",
    "Tutoring",
    "Repairs",
    "Cleaning",
    "Moving",
    "Gardening",
    "Electrical",
    "Painting",
    "Carpentry",
    "Other",
)


class JobStatus(str, Enum):
    """Lifecycle of a posted job."""

    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class BudgetType(str, Enum):
    FIXED = "fixed"
    HOURLY = "hourly"


class JobDoc(BaseModel):
    """A local job posting."""

    model_config = ConfigDict(extra="allow")

    type: Literal["job"] = "job"
    title: str = ""
    category: str = ""
    description: str = ""
    location: str = ""
    # Form input is a string, AI demo data may be a number
    budget: Union[str, int, float] = ""
    budgetType: BudgetType = BudgetType.FIXED
    date: str = ""
    time: str = ""
    status: JobStatus = JobStatus.OPEN
    createdAt: int = Field(ge=0)


class NoteDoc(BaseModel):
    """Saved AI response."""

    model_config = ConfigDict(extra="allow")

    type: Literal["note"] = "note"
    content: str
    createdAt: int = Field(ge=0)


class DemoJob(BaseModel):
    """One job in an AI-generated demo batch."""

    title: str
    category: str
    description: str
    location: str
    budget: Union[str, int, float] = ""
    budgetType: BudgetType = BudgetType.FIXED
    date: str = ""
    time: str = ""
    status: JobStatus = JobStatus.OPEN


class DemoJobBatch(BaseModel):
    """Structured output shape for demo data generation."""

    jobs: list[DemoJob]
