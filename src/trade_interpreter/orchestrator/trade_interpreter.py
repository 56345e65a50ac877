"""
Trade interpreter coordinator.

Owns the registry of active rooms and exposes the room lifecycle API:
starting a two-party room, ending it, and reading a snapshot of its state.
"""

from __future__ import annotations

import asyncio
import logging
from uuid import uuid4

from trade_interpreter.nlp.language_detector import LanguageDetector
from trade_interpreter.nlp.trade_extractor import TradeEntityExtractor
from trade_interpreter.orchestrator.conversation_state import ConversationStateMachine
from trade_interpreter.schemas import Participant, RoomSnapshot
from trade_interpreter.translation.preserving_translator import PreservingTranslator
from trade_interpreter.voice.synthesis import (
    HTTPVoiceSynthesisProvider,
    SpeechDelivery,
    SynthesisDelivery,
    VoiceSynthesisProviderBase,
)
from trade_interpreter.voice.voice_router import VoiceRouter

logger = logging.getLogger(__name__)


class TradeInterpreter:
    """
    Coordinates the rooms of one process.

    Registry insertion and removal are serialized by a lock; lookups are
    plain dictionary reads. Ended rooms are evicted from the registry.
    """

    def __init__(
        self,
        translator: PreservingTranslator,
        synthesis: VoiceSynthesisProviderBase | None = None,
        detector: LanguageDetector | None = None,
        extractor: TradeEntityExtractor | None = None,
        voice_router: VoiceRouter | None = None,
    ) -> None:
        """
        Initialize the coordinator.

        Args:
            translator: Number-preserving translator shared by all rooms.
            synthesis: Voice synthesis provider for the default delivery target.
            detector: Language detector shared by all rooms.
            extractor: Trade term extractor shared by all rooms.
            voice_router: Voice table shared by all rooms.
        """
        self._translator = translator
        self._synthesis = synthesis or HTTPVoiceSynthesisProvider()
        self._detector = detector or LanguageDetector()
        self._extractor = extractor or TradeEntityExtractor()
        self._voice_router = voice_router or VoiceRouter()

        self._rooms: dict[str, ConversationStateMachine] = {}
        self._registry_lock = asyncio.Lock()

    @property
    def translator(self) -> PreservingTranslator:
        """Get the shared translator."""
        return self._translator

    @property
    def room_ids(self) -> list[str]:
        """Get the ids of all active rooms."""
        return list(self._rooms)

    async def start_room(
        self,
        participant_a: Participant,
        participant_b: Participant,
        *,
        delivery: SpeechDelivery | None = None,
    ) -> str:
        """
        Create a room for two participants and start connecting it.

        Args:
            participant_a: First participant.
            participant_b: Second participant.
            delivery: Delivery target for speak commands (defaults to the
                voice synthesis provider).

        Returns:
            The new room id.

        Raises:
            ValueError: If both participants share an id.
        """
        if participant_a.participant_id == participant_b.participant_id:
            raise ValueError(
                f"Room participants must have distinct ids (got {participant_a.participant_id!r} twice)"
            )

        room_id = uuid4().hex
        machine = ConversationStateMachine(
            room_id=room_id,
            participants=(participant_a, participant_b),
            translator=self._translator,
            delivery=delivery or SynthesisDelivery(self._synthesis),
            detector=self._detector,
            extractor=self._extractor,
            voice_router=self._voice_router,
        )

        async with self._registry_lock:
            self._rooms[room_id] = machine
        machine.start_connecting()

        logger.info(
            f"Started room {room_id}: {participant_a.participant_id} ({participant_a.language}) <-> "
            f"{participant_b.participant_id} ({participant_b.language})"
        )
        return room_id

    async def end_room(self, room_id: str) -> None:
        """
        End a room and evict it from the registry.

        Idempotent: unknown or already-ended rooms are ignored.
        """
        async with self._registry_lock:
            machine = self._rooms.pop(room_id, None)
        if machine is None:
            logger.debug(f"end_room: room {room_id} is not active")
            return
        await machine.end()

    def get_machine(self, room_id: str) -> ConversationStateMachine | None:
        """Get the state machine of an active room."""
        return self._rooms.get(room_id)

    def get_conversation(self, room_id: str) -> RoomSnapshot | None:
        """Get a snapshot of an active room, or None if it is unknown or ended."""
        machine = self._rooms.get(room_id)
        if machine is None:
            return None
        return machine.snapshot()

    async def shutdown(self) -> None:
        """End every active room and release provider resources."""
        for room_id in list(self._rooms):
            await self.end_room(room_id)
        await self._synthesis.close()
        await self._translator.provider.close()
        logger.info("Trade interpreter shut down")
