"""
Typed document variants for Gigboard.

The store itself is schema-less; this package describes the known
document shapes (Job, Note) and validates them at the store boundary.
"""

from .registry import (
    DocumentTypes,
    DuplicateRegistrationError,
    RegistryFrozenError,
    get_document_types,
    reset_document_types,
)
from .types import (
    JOB_CATEGORIES,
    BudgetType,
    DemoJob,
    DemoJobBatch,
    JobDoc,
    JobStatus,
    NoteDoc,
)

__all__ = [
    "DocumentTypes",
    "DuplicateRegistrationError",
    "RegistryFrozenError",
    "get_document_types",
    "reset_document_types",
    "JOB_CATEGORIES",
    "BudgetType",
    "DemoJob",
    "DemoJobBatch",
    "JobDoc",
    "JobStatus",
    "NoteDoc",
]
