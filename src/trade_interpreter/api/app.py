"""
HTTP surface.

Exposes the transcription webhook intake, the room lifecycle API and the
device telemetry intake over FastAPI.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Body, FastAPI, HTTPException, Response, status
from pydantic import BaseModel, Field

from trade_interpreter import __version__
from trade_interpreter.bridge.cross_device import CrossDeviceBridge
from trade_interpreter.bridge.presence import DevicePresence
from trade_interpreter.orchestrator.trade_interpreter import TradeInterpreter
from trade_interpreter.orchestrator.webhook_processor import InvalidEventError, WebhookEventProcessor
from trade_interpreter.schemas import Participant, RoomSnapshot

logger = logging.getLogger(__name__)


class CreateRoomRequest(BaseModel):
    participants: tuple[Participant, Participant]


class CreateCrossDeviceRoomRequest(BaseModel):
    wearable: Participant
    browser: Participant
    device_id: str | None = None


class RoomCreated(BaseModel):
    room_id: str


class EventAccepted(BaseModel):
    accepted: bool


class PresenceReport(BaseModel):
    connected: bool
    location: str | None = None
    battery_level: int | None = Field(default=None, ge=0, le=100)


class DeviceTranscript(BaseModel):
    text: str = Field(..., min_length=1)
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    language: str | None = None


def create_app(
    interpreter: TradeInterpreter,
    processor: WebhookEventProcessor | None = None,
    bridge: CrossDeviceBridge | None = None,
) -> FastAPI:
    """
    Build the FastAPI application around already-constructed components.

    Args:
        interpreter: Room coordinator.
        processor: Webhook processor (built from ``interpreter`` if None).
        bridge: Cross-device bridge (built from ``interpreter`` if None).
    """
    processor = processor or WebhookEventProcessor(interpreter)
    bridge = bridge or CrossDeviceBridge(interpreter)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Trade interpreter API starting")
        yield
        await interpreter.shutdown()
        await bridge.close()
        logger.info("Trade interpreter API stopped")

    app = FastAPI(
        title="Trade Interpreter",
        description="Real-time bilingual interpretation for trade negotiations.",
        version=__version__,
        lifespan=lifespan,
    )

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {"status": "ok", "active_rooms": len(interpreter.room_ids)}

    @app.post("/webhooks/transcription", response_model=EventAccepted)
    async def transcription_webhook(payload: Any = Body(...)) -> EventAccepted:
        """Ingest one event from the speech transcription provider."""
        try:
            event = processor.parse_payload(payload)
        except InvalidEventError as e:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
        return EventAccepted(accepted=await processor.handle(event))

    @app.post("/rooms", response_model=RoomCreated, status_code=status.HTTP_201_CREATED)
    async def create_room(request: CreateRoomRequest) -> RoomCreated:
        a, b = request.participants
        try:
            room_id = await interpreter.start_room(a, b)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
        return RoomCreated(room_id=room_id)

    @app.post("/rooms/cross-device", response_model=RoomCreated, status_code=status.HTTP_201_CREATED)
    async def create_cross_device_room(request: CreateCrossDeviceRoomRequest) -> RoomCreated:
        try:
            room_id = await bridge.start_cross_device_room(
                request.wearable, request.browser, device_id=request.device_id
            )
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
        return RoomCreated(room_id=room_id)

    @app.get("/rooms/{room_id}", response_model=RoomSnapshot)
    async def get_room(room_id: str) -> RoomSnapshot:
        snapshot = interpreter.get_conversation(room_id)
        if snapshot is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Room {room_id} not found")
        return snapshot

    @app.delete("/rooms/{room_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_room(room_id: str) -> Response:
        await interpreter.end_room(room_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post("/devices/{device_id}/presence", response_model=DevicePresence)
    async def report_presence(device_id: str, report: PresenceReport) -> DevicePresence:
        return bridge.report_device_presence(
            device_id,
            connected=report.connected,
            location=report.location,
            battery_level=report.battery_level,
        )

    @app.get("/devices/{device_id}/presence", response_model=DevicePresence)
    async def get_presence(device_id: str) -> DevicePresence:
        presence = bridge.get_presence(device_id)
        if presence is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Device {device_id} not known")
        return presence

    @app.post("/devices/{device_id}/transcript", response_model=EventAccepted)
    async def device_transcript(device_id: str, transcript: DeviceTranscript) -> EventAccepted:
        accepted = await bridge.process_device_transcript(
            device_id,
            transcript.text,
            confidence=transcript.confidence,
            language=transcript.language,
        )
        return EventAccepted(accepted=accepted)

    app.state.interpreter = interpreter
    app.state.processor = processor
    app.state.bridge = bridge
    return app
