"""
Cross-device bridge.

Connects a wearable leg and a browser leg into one interpreted room.
"""

from trade_interpreter.bridge.cross_device import BridgeDelivery, CrossDeviceBridge
from trade_interpreter.bridge.presence import DevicePresence, DeviceUnreachableError
from trade_interpreter.bridge.transport import DeviceTransportBase, HTTPDeviceTransport

__all__ = [
    "BridgeDelivery",
    "CrossDeviceBridge",
    "DevicePresence",
    "DeviceUnreachableError",
    "DeviceTransportBase",
    "HTTPDeviceTransport",
]
