"""
httpx client for an OpenAI-compatible chat completions API.

Implements the TextGenerator protocol. Structured generation sends the
schema as a json_schema response format and validates the reply locally.

Invariants:
    - Every failure is raised as GenerationFailedError
    - The API key is never logged
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..errors import GenerationFailedError
from .base import Schema, json_schema_of, parse_structured
from .config import AiSettings

logger = logging.getLogger(__name__)


class AiClient:
    """Async AI text client.

    Example:
        >>> async with AiClient(AiSettings()) as ai:
        ...     text = await ai.generate("Describe a plumbing job")
    """

    def __init__(
        self,
        settings: AiSettings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: AI settings (loaded from env if not provided)
            http_client: Preconfigured httpx client (e.g. with a mock transport)
        """
        self.settings = settings or AiSettings()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=self.settings.base_url,
            timeout=self.settings.timeout_seconds,
        )

    async def __aenter__(self) -> AiClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.settings.configured:
            headers["Authorization"] = f"Bearer {self.settings.api_key.get_secret_value()}"
        return headers

    async def _complete(self, prompt: str, response_format: dict[str, Any] | None = None) -> str:
        payload: dict[str, Any] = {
            "model": self.settings.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.settings.temperature,
            "max_tokens": self.settings.max_tokens,
        }
        if response_format is not None:
            payload["response_format"] = response_format

        try:
            response = await self._client.post(
                "/chat/completions", json=payload, headers=self._headers()
            )
            response.raise_for_status()
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except httpx.HTTPStatusError as e:
            logger.warning(
                f"AI request failed with status {e.response.status_code}",
                extra={"model": self.settings.model},
            )
            raise GenerationFailedError(
                f"AI service returned {e.response.status_code}", prompt
            ) from e
        except httpx.HTTPError as e:
            logger.warning(f"AI request failed: {e}", extra={"model": self.settings.model})
            raise GenerationFailedError(f"AI service unreachable: {e}", prompt) from e
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise GenerationFailedError(f"Malformed AI service response: {e}", prompt) from e

        if not isinstance(content, str) or not content.strip():
            raise GenerationFailedError("AI service returned empty content", prompt)
        return content

    async def generate(self, prompt: str) -> str:
        """Generate free text.

        Raises:
            GenerationFailedError: On any failure
        """
        text = await self._complete(prompt)
        logger.debug("Generated text", extra={"model": self.settings.model, "chars": len(text)})
        return text.strip()

    async def generate_structured(self, prompt: str, schema: Schema) -> Any:
        """Generate JSON matching a schema.

        Args:
            prompt: Prompt text
            schema: JSON schema dict or pydantic model class

        Returns:
            Model instance for a model schema, parsed JSON otherwise

        Raises:
            GenerationFailedError: On any failure, including schema mismatch
        """
        response_format = {
            "type": "json_schema",
            "json_schema": {"name": "result", "schema": json_schema_of(schema)},
        }
        text = await self._complete(prompt, response_format)
        return parse_structured(text, schema, prompt)
