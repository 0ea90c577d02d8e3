"""Provider-specific request construction.

Builds authentication headers, the endpoint URL and the JSON request body from a normalized message list.
All providers are addressed through the OpenAI-compatible chat completions shape.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlsplit

from ..config import ModelSettings
from ..types_.core import Provider

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"

DEFAULT_ENDPOINTS: dict[str, str] = {
    "openai": "https://api.openai.com/v1/chat/completions",
    "anthropic": "https://api.anthropic.com/v1/messages",
    "deepseek": "https://api.deepseek.com/v1/chat/completions",
    "google": "https://generativelanguage.googleapis.com/v1beta/models/gemini-pro:generateContent",
    "custom": "https://api.openai.com/v1/chat/completions",
}

DEFAULT_MODELS: dict[str, str] = {
    "openai": "gpt-3.5-turbo",
    "anthropic": "claude-3-haiku-20240307",
    "deepseek": "deepseek-chat",
    "google": "gemini-pro",
    "custom": "gpt-3.5-turbo",
}


def default_endpoint(provider: Provider) -> str:
    return DEFAULT_ENDPOINTS.get(provider, DEFAULT_ENDPOINTS["openai"])


def default_model(provider: Provider) -> str:
    return DEFAULT_MODELS.get(provider, DEFAULT_MODELS["openai"])


def adjust_endpoint(base_url: str | None, provider: Provider) -> str:
    """Normalize a user-supplied base URL into a chat completions endpoint."""
    if not base_url or not base_url.strip():
        return default_endpoint(provider)

    url = base_url.strip().rstrip("/")

    if "/chat/completions" in url:
        return url
    if url.endswith("/v1"):
        return f"{url}/chat/completions"
    if "/v1/" in url:
        return url

    if not url.startswith(("http://", "https://")):
        logger.debug(f"Endpoint {url!r} has no scheme, assuming https")
        return f"https://{url}/v1/chat/completions"

    path = urlsplit(url).path
    if not path or path == "/":
        return f"{url}/v1/chat/completions"

    # custom gateways always get the compatible path appended
    if provider == "custom":
        return f"{url}/v1/chat/completions"

    logger.debug(f"Keeping custom endpoint path {path!r} for provider {provider}")
    return url


def resolve_endpoint(settings: ModelSettings) -> str:
    return adjust_endpoint(settings.base_url, settings.provider)


def build_headers(settings: ModelSettings) -> dict[str, str]:
    """Authentication headers for the configured provider."""
    api_key = settings.api_key.get_secret_value() if settings.api_key else ""
    headers = {"Content-Type": "application/json"}
    if settings.provider == "anthropic":
        headers["x-api-key"] = api_key
        headers["anthropic-version"] = ANTHROPIC_VERSION
    else:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


def build_request_body(
    settings: ModelSettings,
    messages: list[dict[str, str]],
    stream: bool = True,
    max_tokens: int | None = None,
    temperature: float | None = None,
) -> dict[str, Any]:
    """Build a chat completion request body.

    Parameters
    ----------
    settings : ModelSettings
        Source of the model name and sampling defaults.
    messages : list[dict[str, str]]
        Chat messages; only ``role`` and ``content`` are sent.
    stream : bool
        Request an event stream instead of a single JSON document.
    max_tokens, temperature : optional
        Per-call overrides of the configured values.
    """
    return {
        "model": settings.model or default_model(settings.provider),
        "messages": [{"role": m["role"], "content": m["content"]} for m in messages],
        "max_tokens": settings.max_tokens if max_tokens is None else max_tokens,
        "temperature": settings.temperature if temperature is None else temperature,
        "stream": stream,
    }


class ProviderAdapter:
    """Translate settings and messages into provider HTTP requests."""

    def __init__(self, settings: ModelSettings):
        self.settings = settings

    @property
    def endpoint(self) -> str:
        return resolve_endpoint(self.settings)

    @property
    def model(self) -> str:
        return self.settings.model or default_model(self.settings.provider)

    def headers(self) -> dict[str, str]:
        return build_headers(self.settings)

    def request_body(
        self,
        messages: list[dict[str, str]],
        stream: bool = True,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> dict[str, Any]:
        return build_request_body(self.settings, messages, stream, max_tokens, temperature)
