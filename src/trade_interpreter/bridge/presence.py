"""Wearable device presence telemetry."""

from datetime import datetime

from pydantic import BaseModel, Field

from trade_interpreter.schemas import _now_utc


class DeviceUnreachableError(Exception):
    """Raised by a device transport when a device cannot be reached."""

    def __init__(self, device_id: str, message: str = "") -> None:
        super().__init__(message or f"Device {device_id} is unreachable")
        self.device_id = device_id


class DevicePresence(BaseModel):
    """Last known state of a wearable device."""

    device_id: str = Field(..., min_length=1)
    connected: bool = Field(default=True)
    last_seen: datetime = Field(default_factory=_now_utc)
    location: str = Field(default="", description="Location label reported by the device")
    battery_level: int | None = Field(default=None, ge=0, le=100, description="Battery percentage")
