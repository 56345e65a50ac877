"""
Device transports for the cross-device bridge.

A wearable leg receives synthesized audio; a browser leg receives the text
together with audio. Both are reached through a delivery gateway.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx
from pydantic import ValidationError

from trade_interpreter.bridge.presence import DevicePresence, DeviceUnreachableError
from trade_interpreter.config import get_settings

logger = logging.getLogger(__name__)


class DeviceTransportBase(ABC):
    """Abstract base class for wearable/browser delivery transports."""

    @abstractmethod
    async def send_audio(self, device_id: str, text: str, voice_id: str, language: str) -> None:
        """
        Play ``text`` as synthesized audio on a wearable device.

        Raises:
            DeviceUnreachableError: If the device cannot be reached.
        """
        ...

    @abstractmethod
    async def send_message(
        self,
        session_id: str,
        text: str,
        original_text: str,
        voice_id: str,
        notice: str | None = None,
    ) -> None:
        """
        Show ``text`` in a browser session and play it as audio.

        Raises:
            DeviceUnreachableError: If the session cannot be reached.
        """
        ...

    async def poll_presence(self, device_id: str) -> DevicePresence | None:
        """Fetch current presence telemetry for a wearable (None if unsupported)."""
        return None

    async def close(self) -> None:
        """Release transport resources."""
        return None


class HTTPDeviceTransport(DeviceTransportBase):
    """
    Delivery gateway reached over HTTP.

    Endpoints:
        POST {endpoint}/devices/{device_id}/audio
        POST {endpoint}/sessions/{session_id}/messages
        GET  {endpoint}/devices/{device_id}/status
    """

    def __init__(
        self,
        endpoint: str | None = None,
        timeout: float | None = None,
        api_key: str | None = None,
    ) -> None:
        settings = get_settings()
        self._endpoint = endpoint or settings.device_endpoint
        self._timeout = timeout or settings.delivery_timeout_s
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

    async def _request(self, device_id: str, method: str, url: str, **kwargs: Any) -> httpx.Response:
        client = await self._get_client()
        try:
            response = await client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DeviceUnreachableError(
                device_id, f"Gateway returned {e.response.status_code} for {device_id}"
            ) from e
        except httpx.HTTPError as e:
            raise DeviceUnreachableError(device_id, f"Gateway request for {device_id} failed: {e}") from e
        return response

    async def send_audio(self, device_id: str, text: str, voice_id: str, language: str) -> None:
        await self._request(
            device_id,
            "POST",
            f"/devices/{device_id}/audio",
            json={"text": text, "voice": voice_id, "language": language},
        )

    async def send_message(
        self,
        session_id: str,
        text: str,
        original_text: str,
        voice_id: str,
        notice: str | None = None,
    ) -> None:
        await self._request(
            session_id,
            "POST",
            f"/sessions/{session_id}/messages",
            json={
                "text": text,
                "original_text": original_text,
                "voice": voice_id,
                "notice": notice,
                "audio": True,
            },
        )

    async def poll_presence(self, device_id: str) -> DevicePresence | None:
        response = await self._request(device_id, "GET", f"/devices/{device_id}/status")
        try:
            data = response.json()
            return DevicePresence(device_id=device_id, **{k: v for k, v in data.items() if k != "device_id"})
        except (ValueError, AttributeError, ValidationError) as e:
            logger.warning(f"Unreadable presence payload for {device_id}: {e}")
            return None
