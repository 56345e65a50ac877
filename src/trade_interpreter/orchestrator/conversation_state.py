"""
Per-room conversation state machine.

Owns the mutable state of one two-party room and its interpretation hot
path: a final utterance is language-detected, mined for trade terms and
translated for the other participant. Translations run concurrently but are
delivered strictly in finalization order by a single per-room worker.

States: created -> connecting -> active -> ended (terminal).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from trade_interpreter.nlp.language_detector import LanguageDetector
from trade_interpreter.nlp.trade_extractor import TradeEntityExtractor
from trade_interpreter.schemas import (
    DeliveryStatus,
    Exchange,
    Participant,
    RoomSnapshot,
    RoomState,
    SpeakCommand,
    TradeTerm,
    TranscriptEvent,
    TranscriptEventKind,
)
from trade_interpreter.translation.preserving_translator import PreservingTranslator, TranslationOutcome
from trade_interpreter.voice.synthesis import SpeechDelivery
from trade_interpreter.voice.voice_router import VoiceRouter

logger = logging.getLogger(__name__)


@dataclass
class _PendingUtterance:
    sequence: int
    speaker: Participant
    listener: Participant
    text: str
    source_language: str
    confidence: float
    task: asyncio.Task[TranslationOutcome]


class ConversationStateMachine:
    """
    Manages one room: lifecycle state, transcript fields and ordered delivery.

    All mutation happens either synchronously inside ``submit`` or inside
    the room's delivery worker, so no lock is needed per room.
    """

    def __init__(
        self,
        room_id: str,
        participants: tuple[Participant, Participant],
        translator: PreservingTranslator,
        delivery: SpeechDelivery,
        detector: LanguageDetector | None = None,
        extractor: TradeEntityExtractor | None = None,
        voice_router: VoiceRouter | None = None,
    ) -> None:
        """
        Initialize the room.

        Args:
            room_id: Room identifier.
            participants: The two participants, in order.
            translator: Number-preserving translator.
            delivery: Destination for outbound speak commands.
            detector: Utterance language detector.
            extractor: Trade term extractor.
            voice_router: Voice selection table.

        Raises:
            ValueError: If both participants share an id.
        """
        a, b = participants
        if a.participant_id == b.participant_id:
            raise ValueError(f"Room participants must have distinct ids (got {a.participant_id!r} twice)")

        self._room_id = room_id
        self._participants = (a, b)
        self._translator = translator
        self._delivery = delivery
        self._detector = detector or LanguageDetector()
        self._extractor = extractor or TradeEntityExtractor()
        self._voice_router = voice_router or VoiceRouter()

        self._state = RoomState.CREATED
        self._created_at = datetime.now(timezone.utc)
        self._active_transcript = ""
        self._live_preview = ""
        self._last_translation = ""
        self._trade_terms: list[TradeTerm] = []
        self._exchanges: list[Exchange] = []
        self._next_sequence = 0

        self._queue: asyncio.Queue[_PendingUtterance] = asyncio.Queue()
        self._inflight: set[asyncio.Task[TranslationOutcome]] = set()
        self._worker: asyncio.Task[None] | None = None

    @property
    def room_id(self) -> str:
        """Get the room identifier."""
        return self._room_id

    @property
    def state(self) -> RoomState:
        """Get the current lifecycle state."""
        return self._state

    @property
    def participants(self) -> tuple[Participant, Participant]:
        """Get the room participants."""
        return self._participants

    @property
    def delivery(self) -> SpeechDelivery:
        """Get the delivery target of this room."""
        return self._delivery

    @property
    def trade_terms(self) -> list[TradeTerm]:
        """Get the extracted trade terms, oldest first."""
        return self._trade_terms.copy()

    @property
    def exchanges(self) -> list[Exchange]:
        """Get the delivered exchanges, oldest first."""
        return self._exchanges.copy()

    @property
    def is_ended(self) -> bool:
        """Check whether the room has ended."""
        return self._state == RoomState.ENDED

    def participant(self, participant_id: str) -> Participant | None:
        """Look up a participant of this room by id."""
        for p in self._participants:
            if p.participant_id == participant_id:
                return p
        return None

    def other_participant(self, participant_id: str) -> Participant | None:
        """Get the participant who is not ``participant_id``."""
        a, b = self._participants
        if participant_id == a.participant_id:
            return b
        if participant_id == b.participant_id:
            return a
        return None

    def start_connecting(self) -> None:
        """
        Move created -> connecting and start the delivery worker.

        Must be called from a running event loop.
        """
        if self._state != RoomState.CREATED:
            return
        self._state = RoomState.CONNECTING
        self._worker = asyncio.create_task(self._delivery_loop(), name=f"room-{self._room_id}-delivery")
        logger.info(f"Room {self._room_id} connecting")

    def activate(self) -> bool:
        """
        Move connecting -> active.

        Returns:
            True if the room is active after the call.
        """
        if self._state == RoomState.CONNECTING:
            self._state = RoomState.ACTIVE
            logger.info(f"Room {self._room_id} active")
        return self._state == RoomState.ACTIVE

    def submit(self, event: TranscriptEvent) -> bool:
        """
        Apply a partial or final transcript event.

        Final events start a translation immediately; delivery happens later
        on the room's worker, in the order events were submitted.

        Args:
            event: Transcript event for this room.

        Returns:
            True if the event was applied, False if it was dropped.

        Raises:
            ValueError: For lifecycle events, which the coordinator handles.
        """
        if event.kind in (TranscriptEventKind.CALL_START, TranscriptEventKind.CALL_END):
            raise ValueError(f"Lifecycle event {event.kind.value!r} must go through the coordinator")

        if self._state in (RoomState.ENDED, RoomState.CREATED):
            logger.debug(f"Room {self._room_id} is {self._state.value}; dropping {event.kind.value} event")
            return False

        speaker = self.participant(event.speaker_id)
        if speaker is None:
            logger.warning(f"Room {self._room_id}: speaker {event.speaker_id!r} is not a participant; dropping event")
            return False

        if event.kind == TranscriptEventKind.PARTIAL:
            self._live_preview = event.text
            return True

        text = event.text
        if not text.strip():
            logger.debug(f"Room {self._room_id}: empty final utterance from {speaker.participant_id}")
            return False

        listener = self.other_participant(speaker.participant_id)
        if listener is None:
            logger.warning(f"Room {self._room_id}: no listener for {speaker.participant_id}; dropping event")
            return False

        # A final utterance proves the transport is live.
        self.activate()

        source_language = self._resolve_language(text, event.language, speaker)

        term = self._extractor.extract(text)
        if term is not None:
            self._trade_terms.append(term)
            logger.info(
                f"Room {self._room_id}: trade term {term.quantity:g} {term.unit} @ "
                f"{term.unit_price:g} {term.currency}"
            )

        sequence = self._next_sequence
        self._next_sequence += 1
        task = asyncio.create_task(
            self._translator.translate_with_report(text, source_language, listener.language),
            name=f"room-{self._room_id}-translate-{sequence}",
        )
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

        self._queue.put_nowait(
            _PendingUtterance(
                sequence=sequence,
                speaker=speaker,
                listener=listener,
                text=text,
                source_language=source_language,
                confidence=event.confidence,
                task=task,
            )
        )
        return True

    def _resolve_language(self, text: str, hint: str | None, speaker: Participant) -> str:
        detection = self._detector.detect_with_confidence(text)
        if not detection.is_default:
            return detection.language
        fallback = hint or speaker.language
        logger.debug(f"Language detection ambiguous for {text[:40]!r}; using {fallback}")
        return fallback

    async def _delivery_loop(self) -> None:
        while True:
            pending = await self._queue.get()
            try:
                outcome = await pending.task
                self._record_exchange(pending, outcome)
                await self._delivery.deliver(self._build_command(pending, outcome))
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Room {self._room_id}: delivery of seq={pending.sequence} failed: {e}", exc_info=True)
            finally:
                self._queue.task_done()

    def _record_exchange(self, pending: _PendingUtterance, outcome: TranslationOutcome) -> None:
        self._active_transcript = pending.text
        self._last_translation = outcome.text
        self._exchanges.append(
            Exchange(
                speaker_id=pending.speaker.participant_id,
                listener_id=pending.listener.participant_id,
                original_text=pending.text,
                delivered_text=outcome.text,
                source_language=pending.source_language,
                target_language=pending.listener.language,
                status=outcome.status,
                confidence=pending.confidence,
            )
        )
        if outcome.status == DeliveryStatus.DEGRADED:
            logger.warning(f"Room {self._room_id}: seq={pending.sequence} delivered untranslated")

    def _build_command(self, pending: _PendingUtterance, outcome: TranslationOutcome) -> SpeakCommand:
        listener = pending.listener
        return SpeakCommand(
            room_id=self._room_id,
            participant_id=listener.participant_id,
            speaker_id=pending.speaker.participant_id,
            text=outcome.text,
            original_text=pending.text,
            voice_id=self._voice_router.voice_for(listener.language, listener.voice_gender),
            source_language=pending.source_language,
            target_language=listener.language,
            status=outcome.status,
            sequence=pending.sequence,
        )

    async def join(self) -> None:
        """Wait until every submitted final utterance has been delivered."""
        if self._worker is None or self._state == RoomState.ENDED:
            return
        await self._queue.join()

    async def end(self) -> None:
        """
        End the room: cancel in-flight translations and the delivery worker.

        Idempotent; later calls are no-ops.
        """
        if self._state == RoomState.ENDED:
            return
        self._state = RoomState.ENDED

        inflight = list(self._inflight)
        for task in inflight:
            task.cancel()
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()

        if self._worker is not None:
            self._worker.cancel()
            await asyncio.gather(self._worker, *inflight, return_exceptions=True)
            self._worker = None
        elif inflight:
            await asyncio.gather(*inflight, return_exceptions=True)

        try:
            await self._delivery.close()
        except Exception as e:
            logger.warning(f"Room {self._room_id}: closing delivery target failed: {e}")
        logger.info(f"Room {self._room_id} ended after {len(self._exchanges)} exchange(s)")

    def snapshot(self) -> RoomSnapshot:
        """Get a read-only copy of the room state."""
        return RoomSnapshot(
            room_id=self._room_id,
            state=self._state,
            participants=self._participants,
            active_transcript=self._active_transcript,
            live_preview=self._live_preview,
            last_translation=self._last_translation,
            trade_terms=list(self._trade_terms),
            exchanges=list(self._exchanges),
            created_at=self._created_at,
        )
