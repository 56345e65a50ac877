"""
Transcription webhook intake.

Converts speech transcription provider payloads into TranscriptEvents and
dispatches them to the owning room.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from trade_interpreter.orchestrator.trade_interpreter import TradeInterpreter
from trade_interpreter.schemas import TranscriptEvent, TranscriptEventKind

logger = logging.getLogger(__name__)


class InvalidEventError(ValueError):
    """Raised when a webhook payload cannot be turned into a TranscriptEvent."""


# Provider event type -> event kind
_EVENT_TYPES: dict[str, TranscriptEventKind] = {
    "transcript.final": TranscriptEventKind.FINAL,
    "transcript.partial": TranscriptEventKind.PARTIAL,
    "final": TranscriptEventKind.FINAL,
    "partial": TranscriptEventKind.PARTIAL,
    "call.started": TranscriptEventKind.CALL_START,
    "call-start": TranscriptEventKind.CALL_START,
    "call.ended": TranscriptEventKind.CALL_END,
    "call-end": TranscriptEventKind.CALL_END,
}

_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "room_id": ("room_id", "roomId", "call_id", "callId"),
    "speaker_id": ("speaker_id", "speakerId", "participant_id", "participantId", "speaker"),
    "text": ("text", "transcript"),
    "language": ("language", "detected_language", "lang"),
    "confidence": ("confidence",),
    "timestamp": ("timestamp",),
}


def _pick(data: dict[str, Any], field: str) -> Any:
    for key in _FIELD_ALIASES[field]:
        if data.get(key) is not None:
            return data[key]
    return None


class WebhookEventProcessor:
    """Routes transcription events to rooms through the coordinator."""

    def __init__(self, interpreter: TradeInterpreter) -> None:
        self._interpreter = interpreter

    @staticmethod
    def parse_payload(payload: Any) -> TranscriptEvent:
        """
        Convert a provider payload into a TranscriptEvent.

        Accepts envelopes (``{"type": "transcript.final", "payload": {...}}``),
        transcript messages (``{"message": {"type": "transcript",
        "transcriptType": "final", ...}}``) and flat dicts
        (``{"kind": "final", "room_id": ..., ...}``).

        Raises:
            InvalidEventError: If the payload is malformed.
        """
        if not isinstance(payload, dict):
            raise InvalidEventError("Webhook payload must be a JSON object")

        if isinstance(payload.get("message"), dict):
            message = payload["message"]
            event_type = message.get("transcriptType") if message.get("type") == "transcript" else message.get("type")
            data = dict(message)
            call = message.get("call")
            if isinstance(call, dict) and "room_id" not in data:
                data["room_id"] = call.get("id")
        elif isinstance(payload.get("payload"), dict):
            event_type = payload.get("type")
            data = payload["payload"]
        else:
            event_type = payload.get("kind") or payload.get("type")
            data = payload

        kind = _EVENT_TYPES.get(str(event_type or "").lower())
        if kind is None:
            raise InvalidEventError(f"Unsupported event type: {event_type!r}")

        fields: dict[str, Any] = {"kind": kind}
        for name in _FIELD_ALIASES:
            value = _pick(data, name)
            if value is not None:
                fields[name] = value

        if not fields.get("room_id"):
            raise InvalidEventError("Webhook payload has no room id")
        if kind in (TranscriptEventKind.FINAL, TranscriptEventKind.PARTIAL) and not fields.get("speaker_id"):
            raise InvalidEventError("Transcript event has no speaker id")

        try:
            return TranscriptEvent(**fields)
        except ValidationError as e:
            raise InvalidEventError(f"Invalid transcript event: {e}") from e

    async def handle(self, event: TranscriptEvent) -> bool:
        """
        Dispatch an event to its room.

        Args:
            event: Transcript or lifecycle event.

        Returns:
            True if a room accepted the event, False if it was dropped.
        """
        machine = self._interpreter.get_machine(event.room_id)
        if machine is None or machine.is_ended:
            logger.warning(f"Dropping {event.kind.value} event for unknown room {event.room_id}")
            return False

        if event.kind == TranscriptEventKind.CALL_START:
            return machine.activate()
        if event.kind == TranscriptEventKind.CALL_END:
            await self._interpreter.end_room(event.room_id)
            return True
        return machine.submit(event)

    async def handle_payload(self, payload: Any) -> bool:
        """Parse a provider payload and dispatch it."""
        return await self.handle(self.parse_payload(payload))
