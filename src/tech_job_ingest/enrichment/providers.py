"""
Language-model providers, called over their REST APIs with httpx.

Every provider turns a prompt into response text or raises ProviderError.
A provider without an API key reports `has_credentials == False` and is
skipped by the enrichment client.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

logger = logging.getLogger(__name__)

AI_TIMEOUT = 30.0  # seconds


class ProviderError(Exception):
    """A provider call failed: transport error, HTTP error or unusable response."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class AIProvider(ABC):
    name: str
    default_model: str

    def __init__(
        self,
        api_key: str | None,
        model: str | None = None,
        timeout: float = AI_TIMEOUT,
    ) -> None:
        self.api_key = api_key or ""
        self.model = model or self.default_model
        self.timeout = timeout

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key)

    @abstractmethod
    def _request(self, prompt: str) -> tuple[str, dict[str, str], dict[str, Any]]:
        """Return (url, headers, json body) for a single-turn prompt."""

    @abstractmethod
    def _extract_text(self, data: dict[str, Any]) -> str:
        """Pull the answer text out of the decoded JSON response."""

    async def generate(self, prompt: str) -> str:
        url, headers, body = self._request(prompt)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, headers=headers, json=body)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise ProviderError(self.name, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"request failed: {e}") from e
        except ValueError as e:
            raise ProviderError(self.name, "response is not JSON") from e

        try:
            text = self._extract_text(data)
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(self.name, f"unexpected response shape: {e}") from e

        if not text or not text.strip():
            raise ProviderError(self.name, "empty response")
        return text.strip()


class GeminiProvider(AIProvider):
    name = "gemini"
    default_model = "gemini-2.0-flash"
    BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

    def _request(self, prompt: str) -> tuple[str, dict[str, str], dict[str, Any]]:
        return (
            f"{self.BASE_URL}/{self.model}:generateContent",
            {"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
            {
                "contents": [{"role": "user", "parts": [{"text": prompt}]}],
                "generationConfig": {"temperature": 0},
            },
        )

    def _extract_text(self, data: dict[str, Any]) -> str:
        parts = data["candidates"][0]["content"]["parts"]
        return "".join(part.get("text", "") for part in parts)


class OpenAIProvider(AIProvider):
    name = "openai"
    default_model = "gpt-4o-mini"
    URL = "https://api.openai.com/v1/chat/completions"

    def _request(self, prompt: str) -> tuple[str, dict[str, str], dict[str, Any]]:
        return (
            self.URL,
            {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
            {
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": 0,
            },
        )

    def _extract_text(self, data: dict[str, Any]) -> str:
        return data["choices"][0]["message"]["content"]


class AnthropicProvider(AIProvider):
    name = "anthropic"
    default_model = "claude-3-5-sonnet-20241022"
    URL = "https://api.anthropic.com/v1/messages"
    API_VERSION = "2023-06-01"

    def _request(self, prompt: str) -> tuple[str, dict[str, str], dict[str, Any]]:
        return (
            self.URL,
            {
                "x-api-key": self.api_key,
                "anthropic-version": self.API_VERSION,
                "Content-Type": "application/json",
            },
            {
                "model": self.model,
                "max_tokens": 1024,
                "temperature": 0,
                "messages": [{"role": "user", "content": prompt}],
            },
        )

    def _extract_text(self, data: dict[str, Any]) -> str:
        return "".join(block.get("text", "") for block in data["content"] if block.get("type") == "text")


PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    GeminiProvider.name: GeminiProvider,
    OpenAIProvider.name: OpenAIProvider,
    AnthropicProvider.name: AnthropicProvider,
}


def build_providers(api_keys: dict[str, str | None]) -> list[AIProvider]:
    """One provider per known name, keyed by the API key found for it (possibly none)."""
    return [cls(api_keys.get(name)) for name, cls in PROVIDER_CLASSES.items()]
