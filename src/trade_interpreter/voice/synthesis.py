"""
Voice synthesis provider and speech delivery targets.

A ``SpeechDelivery`` is where a room sends its outbound speak commands. The
default target speaks through a voice synthesis provider; the cross-device
bridge provides another one for wearable/browser legs.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from trade_interpreter.config import get_settings
from trade_interpreter.schemas import SpeakCommand, SpeechAck

logger = logging.getLogger(__name__)


class SynthesisError(Exception):
    """Raised when the voice synthesis provider rejects or fails a speak request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class VoiceSynthesisProviderBase(ABC):
    """Abstract base class for voice synthesis providers."""

    @abstractmethod
    async def speak(
        self,
        room_id: str,
        participant_id: str,
        text: str,
        voice_id: str,
    ) -> SpeechAck:
        """
        Speak ``text`` to one participant of a room.

        Args:
            room_id: Room the participant belongs to.
            participant_id: Receiving participant.
            text: Text to synthesize.
            voice_id: Synthesis voice identifier.

        Returns:
            Delivery acknowledgement.

        Raises:
            SynthesisError: If the request fails.
        """
        ...

    async def close(self) -> None:
        """Release provider resources."""
        return None


class HTTPVoiceSynthesisProvider(VoiceSynthesisProviderBase):
    """
    Voice synthesis provider reached over HTTP.

    Posts ``{"participant_id", "message", "voice", "bargeIn"}`` to
    ``{endpoint}/call/{room_id}/speak``.
    """

    def __init__(
        self,
        endpoint: str | None = None,
        timeout: float | None = None,
        api_key: str | None = None,
    ) -> None:
        settings = get_settings()
        self._endpoint = endpoint or settings.synthesis_endpoint
        self._timeout = timeout or settings.synthesis_timeout_s
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

    async def speak(
        self,
        room_id: str,
        participant_id: str,
        text: str,
        voice_id: str,
    ) -> SpeechAck:
        client = await self._get_client()
        payload: dict[str, Any] = {
            "participant_id": participant_id,
            "message": text,
            "voice": voice_id,
            "bargeIn": True,
        }
        try:
            response = await client.post(f"/call/{room_id}/speak", json=payload)
            response.raise_for_status()
            data = response.json() if response.content else {}
        except httpx.HTTPStatusError as e:
            raise SynthesisError(
                f"Synthesis provider returned {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise SynthesisError(f"Speak request failed: {e}") from e

        if not isinstance(data, dict):
            data = {}
        return SpeechAck(
            delivered=bool(data.get("delivered", True)),
            message_id=str(data.get("message_id", data.get("id", ""))),
        )


class SpeechDelivery(ABC):
    """Destination for a room's outbound speak commands."""

    @abstractmethod
    async def deliver(self, command: SpeakCommand) -> None:
        """
        Deliver one speak command.

        Implementations log failures instead of raising; a failed delivery
        never ends the room.
        """
        ...

    async def close(self) -> None:
        """Release delivery resources when the room ends."""
        return None


class SynthesisDelivery(SpeechDelivery):
    """Delivers speak commands through a voice synthesis provider."""

    def __init__(
        self,
        provider: VoiceSynthesisProviderBase,
        timeout_s: float | None = None,
    ) -> None:
        self._provider = provider
        self._timeout_s = timeout_s if timeout_s is not None else get_settings().synthesis_timeout_s

    async def deliver(self, command: SpeakCommand) -> None:
        text = command.text
        if command.notice:
            text = f"[{command.notice}] {text}"
        try:
            ack = await asyncio.wait_for(
                self._provider.speak(command.room_id, command.participant_id, text, command.voice_id),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Speak request timed out after {self._timeout_s:.2f}s "
                f"(room={command.room_id}, participant={command.participant_id})"
            )
            return
        except SynthesisError as e:
            logger.warning(f"Speak request failed (room={command.room_id}): {e}")
            return

        if not ack.delivered:
            logger.warning(f"Synthesis provider did not deliver seq={command.sequence} in room {command.room_id}")
        else:
            logger.debug(f"Spoke seq={command.sequence} to {command.participant_id} with {command.voice_id}")
