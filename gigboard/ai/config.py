"""
Configuration for the AI text service.

Uses pydantic-settings for environment variable loading.
"""

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings


class AiSettings(BaseSettings):
    """AI service configuration loaded from environment."""

    # OpenAI-compatible chat completions endpoint
    base_url: str = Field(default="https://openrouter.ai/api/v1", description="API base URL")
    api_key: SecretStr = Field(default=SecretStr(""), description="Bearer token")
    model: str = Field(default="openai/gpt-4o-mini", description="Model identifier")

    # Request settings
    timeout_seconds: float = Field(default=60.0, description="Request timeout seconds")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=1024, description="Completion token limit")

    model_config = {"env_prefix": "GIGBOARD_AI_"}

    @property
    def configured(self) -> bool:
        """Whether an API key is set."""
        return bool(self.api_key.get_secret_value())
