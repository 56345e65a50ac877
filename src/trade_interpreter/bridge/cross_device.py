"""
Cross-device bridge.

Runs a room whose participants sit on different device types: a wearable
(audio playback only) and a browser session (text plus audio). Speak
commands are framed per leg, wearable presence is tracked, and a wearable
that stops answering is marked disconnected instead of failing the room.
"""

from __future__ import annotations

import asyncio
import logging

from trade_interpreter.bridge.presence import DevicePresence, DeviceUnreachableError
from trade_interpreter.bridge.transport import DeviceTransportBase, HTTPDeviceTransport
from trade_interpreter.config import get_settings
from trade_interpreter.orchestrator.trade_interpreter import TradeInterpreter
from trade_interpreter.schemas import (
    Participant,
    SpeakCommand,
    TranscriptEvent,
    TranscriptEventKind,
    _now_utc,
)
from trade_interpreter.voice.synthesis import SpeechDelivery

logger = logging.getLogger(__name__)


class BridgeDelivery(SpeechDelivery):
    """Delivery target for one cross-device room."""

    def __init__(
        self,
        bridge: CrossDeviceBridge,
        wearable: Participant,
        device_id: str,
        browser: Participant,
    ) -> None:
        self._bridge = bridge
        self._wearable = wearable
        self._device_id = device_id
        self._browser = browser
        self._poller: asyncio.Task[None] | None = None

    @property
    def device_id(self) -> str:
        return self._device_id

    def start_polling(self, interval_s: float) -> None:
        """Start the presence poller for this room's wearable (0 disables)."""
        if interval_s > 0 and self._poller is None:
            self._poller = asyncio.create_task(
                self._bridge.poll_presence_loop(self._device_id, interval_s),
                name=f"presence-{self._device_id}",
            )

    async def deliver(self, command: SpeakCommand) -> None:
        if command.participant_id == self._wearable.participant_id:
            await self._bridge.send_to_wearable(self._device_id, command)
        else:
            await self._bridge.send_to_browser(self._browser.participant_id, command)

    async def close(self) -> None:
        if self._poller is not None:
            self._poller.cancel()
            await asyncio.gather(self._poller, return_exceptions=True)
            self._poller = None
        self._bridge.release_device(self._device_id)


class CrossDeviceBridge:
    """
    Starts wearable + browser rooms and owns their device state.

    Wearable deliveries are retried with backoff inside ``delivery_timeout_s``;
    when the budget is spent the device is marked disconnected and the
    utterance is dropped for that leg.
    """

    def __init__(
        self,
        interpreter: TradeInterpreter,
        transport: DeviceTransportBase | None = None,
        delivery_timeout_s: float | None = None,
        poll_interval_s: float | None = None,
        backoff_s: float | None = None,
        max_attempts: int = 3,
    ) -> None:
        """
        Initialize the bridge.

        Args:
            interpreter: Room coordinator.
            transport: Device transport (defaults to the HTTP gateway).
            delivery_timeout_s: Budget for one wearable delivery (uses config if None).
            poll_interval_s: Presence poll interval, 0 disables (uses config if None).
            backoff_s: Base backoff between delivery attempts (uses config if None).
            max_attempts: Upper bound on wearable delivery attempts.
        """
        settings = get_settings()
        self._interpreter = interpreter
        self._transport = transport or HTTPDeviceTransport()
        self._delivery_timeout_s = (
            delivery_timeout_s if delivery_timeout_s is not None else settings.delivery_timeout_s
        )
        self._poll_interval_s = poll_interval_s if poll_interval_s is not None else settings.presence_poll_interval_s
        self._backoff_s = backoff_s if backoff_s is not None else settings.retry_backoff_s
        self._max_attempts = max(1, max_attempts)

        self._presence: dict[str, DevicePresence] = {}
        self._device_rooms: dict[str, str] = {}

    async def start_cross_device_room(
        self,
        wearable: Participant,
        browser: Participant,
        *,
        device_id: str | None = None,
    ) -> str:
        """
        Start a room between a wearable leg and a browser leg.

        Args:
            wearable: Participant wearing the device.
            browser: Participant in the browser session (participant id is the session id).
            device_id: Wearable device id (defaults to the wearable participant id).

        Returns:
            The new room id.

        Raises:
            ValueError: If the participants share an id or the device is already in a room.
        """
        device_id = device_id or wearable.participant_id
        if device_id in self._device_rooms:
            raise ValueError(f"Device {device_id} is already bridged into room {self._device_rooms[device_id]}")

        delivery = BridgeDelivery(self, wearable, device_id, browser)
        room_id = await self._interpreter.start_room(wearable, browser, delivery=delivery)

        self._device_rooms[device_id] = room_id
        self._presence.setdefault(device_id, DevicePresence(device_id=device_id, location=wearable.location))
        delivery.start_polling(self._poll_interval_s)

        logger.info(f"Cross-device room {room_id}: wearable {device_id} <-> browser {browser.participant_id}")
        return room_id

    async def end_room(self, room_id: str) -> None:
        """End a cross-device room (idempotent)."""
        await self._interpreter.end_room(room_id)

    def release_device(self, device_id: str) -> None:
        """Forget the room binding of a device whose room has ended."""
        self._device_rooms.pop(device_id, None)

    def room_for_device(self, device_id: str) -> str | None:
        """Get the room a wearable is bridged into."""
        return self._device_rooms.get(device_id)

    def get_presence(self, device_id: str) -> DevicePresence | None:
        """Get the last known presence of a device."""
        return self._presence.get(device_id)

    def report_device_presence(
        self,
        device_id: str,
        connected: bool,
        location: str | None = None,
        battery_level: int | None = None,
    ) -> DevicePresence:
        """
        Record presence telemetry pushed by a device.

        Only presence is updated; room state is never touched.
        """
        previous = self._presence.get(device_id)
        presence = DevicePresence(
            device_id=device_id,
            connected=connected,
            location=location if location is not None else (previous.location if previous else ""),
            battery_level=battery_level if battery_level is not None else (previous.battery_level if previous else None),
        )
        self._presence[device_id] = presence
        if previous is not None and previous.connected != connected:
            logger.info(f"Device {device_id} {'connected' if connected else 'disconnected'}")
        return presence

    async def process_device_transcript(
        self,
        device_id: str,
        text: str,
        confidence: float = 1.0,
        language: str | None = None,
    ) -> bool:
        """
        Feed a final transcript captured by a wearable into its room.

        Returns:
            True if the room accepted the utterance.
        """
        room_id = self._device_rooms.get(device_id)
        machine = self._interpreter.get_machine(room_id) if room_id else None
        if machine is None:
            logger.warning(f"No active room for device {device_id}; dropping transcript")
            return False

        self._touch(device_id)
        wearable = machine.participants[0]
        event = TranscriptEvent(
            kind=TranscriptEventKind.FINAL,
            room_id=machine.room_id,
            speaker_id=wearable.participant_id,
            text=text,
            language=language,
            confidence=confidence,
        )
        return machine.submit(event)

    async def send_to_wearable(self, device_id: str, command: SpeakCommand) -> bool:
        """
        Play a speak command on a wearable, retrying within the delivery budget.

        Returns:
            True if delivered; False after marking the device disconnected.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._delivery_timeout_s
        attempts = 0

        while attempts < self._max_attempts:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            attempts += 1
            try:
                await asyncio.wait_for(
                    self._transport.send_audio(device_id, command.text, command.voice_id, command.target_language),
                    timeout=remaining,
                )
                self._touch(device_id)
                return True
            except asyncio.TimeoutError:
                logger.warning(f"Audio delivery to {device_id} timed out (attempt {attempts})")
            except DeviceUnreachableError as e:
                logger.warning(f"Audio delivery to {device_id} failed (attempt {attempts}): {e}")

            if attempts < self._max_attempts:
                await asyncio.sleep(min(self._backoff_s * attempts, max(deadline - loop.time(), 0.0)))

        logger.error(f"Device {device_id} unreachable after {attempts} attempt(s); seq={command.sequence} not played")
        self._mark_disconnected(device_id)
        return False

    async def send_to_browser(self, session_id: str, command: SpeakCommand) -> bool:
        """Show and play a speak command in a browser session."""
        try:
            await asyncio.wait_for(
                self._transport.send_message(
                    session_id,
                    command.text,
                    command.original_text,
                    command.voice_id,
                    notice=command.notice,
                ),
                timeout=self._delivery_timeout_s,
            )
        except (asyncio.TimeoutError, DeviceUnreachableError) as e:
            logger.warning(f"Browser delivery to {session_id} failed: {e or 'timeout'}")
            return False
        return True

    async def poll_presence_loop(self, device_id: str, interval_s: float) -> None:
        """Poll presence telemetry for a wearable until cancelled."""
        while True:
            await asyncio.sleep(interval_s)
            try:
                presence = await asyncio.wait_for(
                    self._transport.poll_presence(device_id),
                    timeout=self._delivery_timeout_s,
                )
            except (asyncio.TimeoutError, DeviceUnreachableError) as e:
                logger.warning(f"Presence poll for {device_id} failed: {e or 'timeout'}")
                self._mark_disconnected(device_id)
                continue
            if presence is not None:
                self._presence[device_id] = presence

    def _touch(self, device_id: str) -> None:
        presence = self._presence.get(device_id)
        if presence is None:
            self._presence[device_id] = DevicePresence(device_id=device_id)
        else:
            self._presence[device_id] = presence.model_copy(update={"connected": True, "last_seen": _now_utc()})

    def _mark_disconnected(self, device_id: str) -> None:
        presence = self._presence.get(device_id)
        if presence is None:
            self._presence[device_id] = DevicePresence(device_id=device_id, connected=False)
        elif presence.connected:
            self._presence[device_id] = presence.model_copy(update={"connected": False})
            logger.warning(f"Device {device_id} marked disconnected")

    async def close(self) -> None:
        """Release transport resources."""
        await self._transport.close()
