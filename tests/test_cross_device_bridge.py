"""
Tests for the wearable + browser cross-device bridge.
"""

import asyncio

import pytest

from trade_interpreter.bridge import CrossDeviceBridge, DevicePresence, DeviceTransportBase, DeviceUnreachableError
from trade_interpreter.orchestrator import TradeInterpreter
from trade_interpreter.schemas import Participant, ParticipantRole, RoomState, TranscriptEvent, TranscriptEventKind
from trade_interpreter.translation.preserving_translator import PreservingTranslator
from trade_interpreter.translation.provider import TranslationProviderBase


class EchoProvider(TranslationProviderBase):
    async def translate(self, text, source_language, target_language, preserve=None):
        return f"[{target_language}] {text}"


class FakeTransport(DeviceTransportBase):
    def __init__(self, audio_failures: int = 0) -> None:
        self._audio_failures = audio_failures
        self.audio_attempts = 0
        self.audio: list[tuple[str, str, str, str]] = []
        self.messages: list[tuple[str, str, str, str, str | None]] = []
        self.polls = 0

    async def send_audio(self, device_id, text, voice_id, language):
        self.audio_attempts += 1
        if self.audio_attempts <= self._audio_failures:
            raise DeviceUnreachableError(device_id)
        self.audio.append((device_id, text, voice_id, language))

    async def send_message(self, session_id, text, original_text, voice_id, notice=None):
        self.messages.append((session_id, text, original_text, voice_id, notice))

    async def poll_presence(self, device_id):
        self.polls += 1
        return DevicePresence(device_id=device_id, connected=True, location="Novi Sad, Serbia", battery_level=70)


@pytest.fixture
def wearable() -> Participant:
    return Participant(
        participant_id="omi-1",
        name="Marko",
        language="sr-RS",
        location="Belgrade, Serbia",
        role=ParticipantRole.SELLER,
    )


@pytest.fixture
def browser() -> Participant:
    return Participant(
        participant_id="web-1",
        name="Alice",
        language="en-US",
        location="San Francisco, USA",
        role=ParticipantRole.BUYER,
    )


def _bridge(transport: FakeTransport, poll_interval_s: float = 0.0) -> tuple[CrossDeviceBridge, TradeInterpreter]:
    translator = PreservingTranslator(EchoProvider(), timeout_s=1.0, max_retries=1, backoff_s=0.0)
    interpreter = TradeInterpreter(translator=translator)
    bridge = CrossDeviceBridge(
        interpreter,
        transport=transport,
        delivery_timeout_s=0.5,
        poll_interval_s=poll_interval_s,
        backoff_s=0.01,
        max_attempts=3,
    )
    return bridge, interpreter


class TestCrossDeviceDelivery:
    @pytest.mark.asyncio
    async def test_browser_speech_plays_on_wearable(self, wearable, browser) -> None:
        transport = FakeTransport()
        bridge, interpreter = _bridge(transport)
        room_id = await bridge.start_cross_device_room(wearable, browser)
        machine = interpreter.get_machine(room_id)

        event = TranscriptEvent(
            kind=TranscriptEventKind.FINAL,
            room_id=room_id,
            speaker_id="web-1",
            text="What are your current prices?",
        )
        assert machine.submit(event)
        await machine.join()

        ((device_id, text, voice_id, language),) = transport.audio
        assert device_id == "omi-1"
        assert text == "[sr-RS] What are your current prices?"
        assert voice_id == "sr-RS-SophieNeural"
        assert language == "sr-RS"
        assert transport.messages == []
        await bridge.end_room(room_id)

    @pytest.mark.asyncio
    async def test_wearable_transcript_reaches_browser(self, wearable, browser) -> None:
        transport = FakeTransport()
        bridge, interpreter = _bridge(transport)
        room_id = await bridge.start_cross_device_room(wearable, browser)

        assert await bridge.process_device_transcript("omi-1", "Cena je 3,50 evra po kilogramu.", confidence=0.95)
        await interpreter.get_machine(room_id).join()

        ((session_id, text, original_text, voice_id, notice),) = transport.messages
        assert session_id == "web-1"
        assert "3,50" in text
        assert original_text == "Cena je 3,50 evra po kilogramu."
        assert voice_id == "en-US-AriaNeural"
        assert notice is None

        snapshot = interpreter.get_conversation(room_id)
        assert snapshot.exchanges[0].confidence == pytest.approx(0.95)
        assert snapshot.trade_terms[0].currency == "EUR"
        await bridge.end_room(room_id)

    @pytest.mark.asyncio
    async def test_transcript_from_unknown_device_is_dropped(self, wearable, browser) -> None:
        bridge, _ = _bridge(FakeTransport())
        assert await bridge.process_device_transcript("omi-404", "Zdravo") is False

    @pytest.mark.asyncio
    async def test_wearable_delivery_is_retried(self, wearable, browser) -> None:
        transport = FakeTransport(audio_failures=1)
        bridge, interpreter = _bridge(transport)
        room_id = await bridge.start_cross_device_room(wearable, browser)
        machine = interpreter.get_machine(room_id)

        machine.submit(TranscriptEvent(kind=TranscriptEventKind.FINAL, room_id=room_id, speaker_id="web-1", text="Hello"))
        await machine.join()

        assert transport.audio_attempts == 2
        assert len(transport.audio) == 1
        assert bridge.get_presence("omi-1").connected is True
        await bridge.end_room(room_id)

    @pytest.mark.asyncio
    async def test_unreachable_wearable_disconnects_without_ending_room(self, wearable, browser) -> None:
        transport = FakeTransport(audio_failures=100)
        bridge, interpreter = _bridge(transport)
        room_id = await bridge.start_cross_device_room(wearable, browser)
        machine = interpreter.get_machine(room_id)

        machine.submit(TranscriptEvent(kind=TranscriptEventKind.FINAL, room_id=room_id, speaker_id="web-1", text="Hello"))
        await machine.join()

        assert transport.audio_attempts == 3
        assert transport.audio == []
        assert bridge.get_presence("omi-1").connected is False
        snapshot = interpreter.get_conversation(room_id)
        assert snapshot is not None
        assert snapshot.state == RoomState.ACTIVE
        assert len(snapshot.exchanges) == 1
        await bridge.end_room(room_id)


class TestPresence:
    @pytest.mark.asyncio
    async def test_room_start_registers_presence(self, wearable, browser) -> None:
        bridge, _ = _bridge(FakeTransport())
        room_id = await bridge.start_cross_device_room(wearable, browser)

        presence = bridge.get_presence("omi-1")
        assert presence.connected is True
        assert presence.location == "Belgrade, Serbia"
        assert bridge.room_for_device("omi-1") == room_id
        await bridge.end_room(room_id)
        assert bridge.room_for_device("omi-1") is None

    @pytest.mark.asyncio
    async def test_device_cannot_join_two_rooms(self, wearable, browser) -> None:
        bridge, _ = _bridge(FakeTransport())
        room_id = await bridge.start_cross_device_room(wearable, browser)
        with pytest.raises(ValueError):
            await bridge.start_cross_device_room(wearable, browser)
        await bridge.end_room(room_id)

    @pytest.mark.asyncio
    async def test_report_presence_updates_presence_only(self, wearable, browser) -> None:
        bridge, interpreter = _bridge(FakeTransport())
        room_id = await bridge.start_cross_device_room(wearable, browser)

        presence = bridge.report_device_presence("omi-1", connected=False, battery_level=40)
        assert presence.connected is False
        assert presence.battery_level == 40
        assert presence.location == "Belgrade, Serbia"

        presence = bridge.report_device_presence("omi-1", connected=True)
        assert presence.battery_level == 40
        assert interpreter.get_conversation(room_id).state == RoomState.CONNECTING
        await bridge.end_room(room_id)

    def test_report_presence_for_new_device(self) -> None:
        bridge, _ = _bridge(FakeTransport())
        presence = bridge.report_device_presence("omi-9", connected=True, location="Prague", battery_level=99)
        assert bridge.get_presence("omi-9") == presence

    @pytest.mark.asyncio
    async def test_presence_poller_stops_with_room(self, wearable, browser) -> None:
        transport = FakeTransport()
        bridge, _ = _bridge(transport, poll_interval_s=0.01)
        room_id = await bridge.start_cross_device_room(wearable, browser)

        await asyncio.sleep(0.1)
        assert transport.polls >= 1
        assert bridge.get_presence("omi-1").battery_level == 70

        await bridge.end_room(room_id)
        polls = transport.polls
        await asyncio.sleep(0.05)
        assert transport.polls == polls
