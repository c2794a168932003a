"""
AI text service: capability protocol plus an httpx implementation.
"""

from .base import TextGenerator, json_schema_of, parse_structured
from .client import AiClient
from .config import AiSettings

__all__ = [
    "TextGenerator",
    "json_schema_of",
    "parse_structured",
    "AiClient",
    "AiSettings",
]
