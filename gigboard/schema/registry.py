"""
Registry of typed document variants.

Documents carrying a `type` field that names a registered variant are
validated against its pydantic model at the store boundary. Documents
without a registered type pass through untouched.

The registry can be frozen at startup to prevent runtime modifications.

Example:
    >>> types = DocumentTypes()
    >>> types.register(JobDoc)
    >>> types.validate({"type": "job", "title": "Fix sink", "createdAt": 1})
"""

from __future__ import annotations

import threading
from collections.abc import Iterator, Mapping
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..errors import InvalidArgumentError
from .types import JobDoc, NoteDoc

# Global registry
_global_types: DocumentTypes | None = None
_types_lock = threading.Lock()

_RESERVED_KEYS = ("_id", "_rev", "_files")


class RegistryFrozenError(Exception):
    """Registry is frozen and cannot be modified."""

    pass


class DuplicateRegistrationError(Exception):
    """A different model is already registered for this type name."""

    pass


def type_name_of(model: type[BaseModel]) -> str:
    """Read the variant name from the model's `type` field default."""
    type_field = model.model_fields.get("type")
    if type_field is None or not isinstance(type_field.default, str):
        raise ValueError(f"{model.__name__} needs a string default for its 'type' field")
    return type_field.default


class DocumentTypes:
    """Maps `type` values to pydantic models."""

    def __init__(self) -> None:
        self._models: dict[str, type[BaseModel]] = {}
        self._frozen = False
        self._lock = threading.Lock()

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, model: type[BaseModel]) -> str:
        """Register a document variant.

        Returns:
            The variant's type name

        Raises:
            RegistryFrozenError: If registry is frozen
            DuplicateRegistrationError: If another model owns the type name
        """
        name = type_name_of(model)
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError("Cannot register: registry is frozen")
            existing = self._models.get(name)
            if existing is not None and existing is not model:
                raise DuplicateRegistrationError(
                    f"type '{name}' already registered as '{existing.__name__}'"
                )
            self._models[name] = model
        return name

    def get(self, type_name: str) -> type[BaseModel] | None:
        return self._models.get(type_name)

    def names(self) -> Iterator[str]:
        yield from sorted(self._models)

    def freeze(self) -> None:
        with self._lock:
            self._frozen = True

    def validate(self, doc: Mapping[str, Any]) -> BaseModel | None:
        """Validate a document against its registered variant.

        Returns:
            The parsed model, or None if the document has no registered type

        Raises:
            InvalidArgumentError: If the document doesn't match its variant
        """
        type_name = doc.get("type")
        if not isinstance(type_name, str):
            return None
        model = self._models.get(type_name)
        if model is None:
            return None

        fields = {k: v for k, v in doc.items() if k not in _RESERVED_KEYS}
        try:
            return model.model_validate(fields)
        except PydanticValidationError as e:
            errors = [
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            ]
            raise InvalidArgumentError(
                f"Invalid '{type_name}' document: {'; '.join(errors)}",
                argument="doc",
                errors=errors,
            ) from e


def get_document_types() -> DocumentTypes:
    """Get the global registry, pre-populated with the job board variants."""
    global _global_types
    with _types_lock:
        if _global_types is None:
            _global_types = DocumentTypes()
            _global_types.register(JobDoc)
            _global_types.register(NoteDoc)
        return _global_types


def reset_document_types() -> None:
    """Reset the global registry (for testing only)."""
    global _global_types
    with _types_lock:
        _global_types = None
