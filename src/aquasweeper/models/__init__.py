"""Data models for AquaSweeper."""

from aquasweeper.models.device import (
    DeviceCommand,
    DeviceInfo,
    DeviceRecord,
    DeviceRegistry,
    DeviceStatus,
    DiscoveryInfo,
    HomeCredentials,
    default_display_name,
    normalize_mac,
)
from aquasweeper.models.state import (
    ConnectionPhase,
    ConnectionState,
    PairingSession,
    PairingStep,
)

__all__ = [
    "ConnectionPhase",
    "ConnectionState",
    "DeviceCommand",
    "DeviceInfo",
    "DeviceRecord",
    "DeviceRegistry",
    "DeviceStatus",
    "DiscoveryInfo",
    "HomeCredentials",
    "PairingSession",
    "PairingStep",
    "default_display_name",
    "normalize_mac",
]
