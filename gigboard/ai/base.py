"""
Capability protocol for AI text generation.

The core treats the AI service as an opaque, fallible function:

    generate(prompt) -> str
    generate_structured(prompt, schema) -> dict | model instance

Every failure (transport, HTTP status, malformed or mismatching JSON)
surfaces as GenerationFailedError.
"""

from __future__ import annotations

import json
import re
from typing import Any, Protocol, Union, runtime_checkable

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..errors import GenerationFailedError

Schema = Union[dict, type[BaseModel]]

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


@runtime_checkable
class TextGenerator(Protocol):
    """Anything that can turn a prompt into text or structured data."""

    async def generate(self, prompt: str) -> str:
        ...

    async def generate_structured(self, prompt: str, schema: Schema) -> Any:
        ...


def json_schema_of(schema: Schema) -> dict[str, Any]:
    """JSON schema for a dict schema or pydantic model class."""
    if isinstance(schema, type) and issubclass(schema, BaseModel):
        return schema.model_json_schema()
    result = dict(schema)
    if "properties" in result:
        result.setdefault("type", "object")
    return result


def parse_structured(text: str, schema: Schema, prompt: str | None = None) -> Any:
    """Parse a structured response.

    Tolerates a surrounding markdown code fence.

    Returns:
        Model instance for a model schema, parsed JSON otherwise

    Raises:
        GenerationFailedError: If the text isn't JSON or doesn't match the schema
    """
    stripped = text.strip()
    match = _FENCE_RE.match(stripped)
    if match:
        stripped = match.group(1)

    try:
        data = json.loads(stripped)
    except ValueError as e:
        raise GenerationFailedError(f"Structured response is not valid JSON: {e}", prompt) from e

    if isinstance(schema, type) and issubclass(schema, BaseModel):
        try:
            return schema.model_validate(data)
        except PydanticValidationError as e:
            raise GenerationFailedError(
                f"Structured response doesn't match {schema.__name__}: {e.error_count()} errors",
                prompt,
            ) from e

    if "properties" in schema and not isinstance(data, dict):
        raise GenerationFailedError(
            f"Structured response must be an object, got {type(data).__name__}", prompt
        )
    return data
