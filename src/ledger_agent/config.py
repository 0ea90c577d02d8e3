"""Model provider configuration.

Settings are read from environment variables prefixed with ``LEDGER_AGENT_`` (and an optional ``.env`` file).
Persisted key storage belongs to the host application; it may also construct ``ModelSettings`` directly.
"""

from __future__ import annotations

from functools import lru_cache
import logging

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .types_.core import Provider

logger = logging.getLogger(__name__)


class ModelSettings(BaseSettings):
    """Chat model configuration for the agent."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_AGENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    provider: Provider = Field(default="openai", description="Model provider")
    api_key: SecretStr | None = Field(default=None, description="Provider API key")
    base_url: str | None = Field(default=None, description="Custom endpoint or base URL")
    model: str | None = Field(default=None, description="Model name; provider default when unset")
    max_tokens: int = Field(default=1000, ge=1)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    timeout: float = Field(default=60.0, gt=0, description="Per-request timeout in seconds")

    # Orchestration bounds
    max_iterations: int = Field(default=100, ge=1, description="Maximum model calls per message")
    history_size: int = Field(default=20, ge=1, description="Transcript capacity (turns)")
    recent_window: int = Field(default=10, ge=1, description="Turns sent to the model as context")
    max_retries: int = Field(default=2, ge=0, description="Extra attempts on transient transport failures")
    retry_delay: float = Field(default=1.0, ge=0.0, description="Linear backoff step in seconds")

    @field_validator("base_url")
    @classmethod
    def blank_base_url_is_unset(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v

    def is_configured(self) -> bool:
        """Whether an API key is available."""
        return self.api_key is not None and bool(self.api_key.get_secret_value().strip())


@lru_cache()
def get_settings() -> ModelSettings:
    """Get settings from the environment (cached).

    Call get_settings.cache_clear() to reload.
    """
    return ModelSettings()
