"""
Pydantic schemas for the interpreter.

Defines data models for participants, trade terms, transcript events,
speak commands and room snapshots.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _now_utc() -> datetime:
    """Get current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


VoiceGender = Literal["male", "female"]


class ParticipantRole(str, Enum):
    """Role of a participant in the negotiation."""

    BUYER = "buyer"
    SELLER = "seller"


class RoomState(str, Enum):
    """Lifecycle states of a conversation room."""

    CREATED = "created"
    CONNECTING = "connecting"
    ACTIVE = "active"
    ENDED = "ended"


class TranscriptEventKind(str, Enum):
    """Kinds of events pushed by the speech transcription provider."""

    PARTIAL = "partial"
    FINAL = "final"
    CALL_START = "call-start"
    CALL_END = "call-end"


class DeliveryStatus(str, Enum):
    """How the text of a speak command was produced."""

    TRANSLATED = "translated"
    PASSTHROUGH = "passthrough"
    DEGRADED = "degraded"


class Participant(BaseModel):
    """One side of a two-party trade conversation."""

    model_config = ConfigDict(frozen=True)

    participant_id: str = Field(..., min_length=1, description="Opaque participant identifier")
    name: str = Field(default="", description="Display name")
    language: str = Field(..., min_length=1, description="Declared language tag (e.g. 'en', 'sr-RS')")
    location: str = Field(default="", description="Location label")
    role: ParticipantRole = Field(..., description="Buyer or seller")
    voice_gender: VoiceGender | None = Field(
        default=None,
        description="Preferred synthesis voice gender for speech addressed to this participant",
    )


class TradeTerm(BaseModel):
    """Numeric trade facts extracted from one utterance. Never mutated."""

    model_config = ConfigDict(frozen=True)

    quantity: float = Field(default=0.0, ge=0.0, description="Quantity mentioned")
    unit: str = Field(default="units", description="Unit of measurement")
    unit_price: float = Field(default=0.0, ge=0.0, description="Price per unit")
    currency: str = Field(default="USD", description="ISO-like currency code")
    total_value: float = Field(default=0.0, description="quantity * unit_price when both are known")


class TranscriptEvent(BaseModel):
    """A transcript or call lifecycle event for one room."""

    kind: TranscriptEventKind = Field(..., description="Event kind")
    room_id: str = Field(..., min_length=1, description="Target room")
    speaker_id: str = Field(default="", description="Speaking participant id")
    text: str = Field(default="", description="Raw transcript text")
    language: str | None = Field(default=None, description="Provider's detected-language hint")
    confidence: float = Field(default=1.0, ge=0.0, le=1.0, description="Transcription confidence")
    timestamp: datetime = Field(default_factory=_now_utc, description="When the event was produced")


class SpeakCommand(BaseModel):
    """Instruction to speak text to one participant with a given voice."""

    model_config = ConfigDict(frozen=True)

    room_id: str
    participant_id: str = Field(..., description="Receiving participant")
    speaker_id: str = Field(..., description="Participant whose utterance this renders")
    text: str = Field(..., description="Text to speak")
    original_text: str = Field(..., description="Source utterance")
    voice_id: str = Field(..., description="Synthesis voice identifier")
    source_language: str
    target_language: str
    status: DeliveryStatus = Field(default=DeliveryStatus.TRANSLATED)
    sequence: int = Field(default=0, ge=0, description="Per-room finalization order")

    @property
    def notice(self) -> str | None:
        """User-facing tag for degraded deliveries."""
        return "translation unavailable" if self.status == DeliveryStatus.DEGRADED else None


class SpeechAck(BaseModel):
    """Delivery confirmation returned by the voice synthesis provider."""

    delivered: bool = Field(default=True)
    message_id: str = Field(default="")


class Exchange(BaseModel):
    """One delivered utterance in a room's conversation log."""

    speaker_id: str
    listener_id: str
    original_text: str
    delivered_text: str
    source_language: str
    target_language: str
    status: DeliveryStatus
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    timestamp: datetime = Field(default_factory=_now_utc)


class RoomSnapshot(BaseModel):
    """Read-only copy of a room's state."""

    room_id: str
    state: RoomState
    participants: tuple[Participant, Participant]
    active_transcript: str = ""
    live_preview: str = ""
    last_translation: str = ""
    trade_terms: list[TradeTerm] = Field(default_factory=list)
    exchanges: list[Exchange] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now_utc)

    @model_validator(mode="after")
    def _distinct_participants(self) -> "RoomSnapshot":
        a, b = self.participants
        if a.participant_id == b.participant_id:
            raise ValueError("Room participants must have distinct ids")
        return self
