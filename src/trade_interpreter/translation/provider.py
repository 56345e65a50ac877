"""
Translation provider abstraction.

The interpreter treats machine translation as an untrusted external
collaborator: the provider only promises text-to-text translation, and
numeric fidelity is enforced by the caller.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from trade_interpreter.config import get_settings

logger = logging.getLogger(__name__)


class TranslationProviderError(Exception):
    """Raised when the translation provider fails (network, non-2xx, bad payload)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TranslationProviderBase(ABC):
    """Abstract base class for translation providers."""

    @abstractmethod
    async def translate(
        self,
        text: str,
        source_language: str,
        target_language: str,
        preserve: list[str] | None = None,
    ) -> str:
        """
        Translate text between two languages.

        Args:
            text: Source text.
            source_language: Source language tag.
            target_language: Target language tag.
            preserve: Substrings the provider is asked to keep verbatim.

        Returns:
            Translated text.

        Raises:
            TranslationProviderError: If the provider call fails.
        """
        ...

    async def close(self) -> None:
        """Release provider resources."""
        return None


class HTTPTranslationProvider(TranslationProviderBase):
    """
    Translation provider reached over HTTP.

    Posts ``{"original_text", "source_language", "target_language",
    "preserve_numbers"}`` to ``{endpoint}/translate`` and reads
    ``translated_text`` from the JSON response.
    """

    def __init__(
        self,
        endpoint: str | None = None,
        timeout: float | None = None,
        api_key: str | None = None,
    ) -> None:
        """
        Initialize the provider.

        Args:
            endpoint: Provider base URL (uses config if not provided).
            timeout: Request timeout in seconds (uses config if not provided).
            api_key: Bearer token (uses config if not provided).
        """
        settings = get_settings()
        self._endpoint = endpoint or settings.translation_endpoint
        self._timeout = timeout or settings.translation_timeout_s
        self._api_key = api_key if api_key is not None else settings.api_key.get_secret_value()
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
            self._client = httpx.AsyncClient(
                base_url=self._endpoint,
                timeout=self._timeout,
                headers=headers,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def translate(
        self,
        text: str,
        source_language: str,
        target_language: str,
        preserve: list[str] | None = None,
    ) -> str:
        client = await self._get_client()
        payload: dict[str, Any] = {
            "original_text": text,
            "source_language": source_language,
            "target_language": target_language,
            "preserve_numbers": preserve or [],
        }
        try:
            response = await client.post("/translate", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise TranslationProviderError(
                f"Translation provider returned {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise TranslationProviderError(f"Translation request failed: {e}") from e

        translated = data.get("translated_text") if isinstance(data, dict) else None
        if not isinstance(translated, str):
            raise TranslationProviderError("Translation response missing 'translated_text'")
        return translated
