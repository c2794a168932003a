"""
Error types for Gigboard.

This module defines all exception types raised by the store, the draft
controller and the AI service layer:
- GigboardError: Base exception
- InvalidArgumentError: Malformed input to a store operation
- NotFoundError: Lookup or delete of an absent document
- StorageFailureError: SQLite or quota fault, write rolled back
- ValidationFailedError: Draft submitted with missing required fields
- GenerationFailedError: AI call failed or returned unusable output
- BusyError: Action re-entered while a previous run is in flight

Invariants:
    - All errors inherit from GigboardError
    - Errors include context for debugging
    - Store errors are raised unmodified to the caller
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class GigboardError(Exception):
    """Base exception for all Gigboard errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "GIGBOARD_ERROR"
        self.details = details or {}


class InvalidArgumentError(GigboardError):
    """Malformed input to a store operation.

    Raised when:
    - Document identifier is not a string or is blank
    - Document is not a mapping
    - Index spec conflicts with an already registered one
    - Typed document fails validation at the store boundary
    """

    def __init__(
        self,
        message: str,
        argument: Optional[str] = None,
        errors: Optional[List[str]] = None,
    ) -> None:
        super().__init__(
            message,
            code="INVALID_ARGUMENT",
            details={"argument": argument, "errors": errors or []},
        )
        self.argument = argument
        self.errors = errors or []


class NotFoundError(GigboardError):
    """Resource not found.

    Raised when:
    - Document doesn't exist or its latest revision is a tombstone
    - Attachment content is no longer stored
    - Index name is not registered
    """

    def __init__(
        self,
        message: str,
        resource_type: str,
        resource_id: str,
    ) -> None:
        super().__init__(
            message,
            code="NOT_FOUND",
            details={
                "resource_type": resource_type,
                "resource_id": resource_id,
            },
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class StorageFailureError(GigboardError):
    """Storage medium fault.

    The failed write is rolled back; the store keeps its pre-call state.
    """

    def __init__(
        self,
        message: str,
        store_name: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="STORAGE_FAILURE",
            details={"store": store_name, "reason": reason},
        )
        self.store_name = store_name
        self.reason = reason


class ValidationFailedError(GigboardError):
    """Draft submit with missing required fields."""

    def __init__(self, message: str, missing: Optional[List[str]] = None) -> None:
        super().__init__(
            message,
            code="VALIDATION_FAILED",
            details={"missing": missing or []},
        )
        self.missing = missing or []


class GenerationFailedError(GigboardError):
    """AI generation failed.

    Covers transport errors, non-2xx responses, malformed JSON and
    structured output that doesn't match the requested schema.
    """

    def __init__(self, message: str, prompt: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="GENERATION_FAILED",
            details={"prompt": prompt},
        )
        self.prompt = prompt


class BusyError(GigboardError):
    """An action was started again before its previous run finished."""

    def __init__(self, action: str) -> None:
        super().__init__(
            f"Action already in progress: {action}",
            code="BUSY",
            details={"action": action},
        )
        self.action = action
