from __future__ import annotations

import string
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator

DEVICE_NAME_PREFIX = "AquaSweeper-"


def normalize_mac(value: str) -> str:
    """Return ``value`` as an upper-case, colon separated MAC address.

    Accepts the usual spellings (``aa:bb:..``, ``AA-BB-..``,
    ``aabb.ccdd.eeff`` and bare hex). Raises ``ValueError`` for anything that
    does not contain exactly twelve hex digits.
    """
    cleaned = value.strip().replace(":", "").replace("-", "").replace(".", "")
    if len(cleaned) != 12 or not all(ch in string.hexdigits for ch in cleaned):
        raise ValueError(f"Not a hardware address: {value!r}")
    pairs = [cleaned[i : i + 2] for i in range(0, 12, 2)]
    return ":".join(pair.upper() for pair in pairs)


def default_display_name(identity: str) -> str:
    return f"{DEVICE_NAME_PREFIX}{identity.replace(':', '')[-4:]}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _WirePayload(BaseModel):
    model_config = {"populate_by_name": True, "extra": "allow"}

    def _identity_from(self, value: str | None) -> str | None:
        if not value:
            return None
        try:
            return normalize_mac(value)
        except ValueError:
            return None


class DiscoveryInfo(_WirePayload):
    """Self-description returned by ``GET /discover``."""

    device_type: str = Field(validation_alias=AliasChoices("deviceType", "device_type"))
    ip: str | None = None
    name: str | None = None
    mac_address: str | None = Field(
        default=None,
        validation_alias=AliasChoices("macAddress", "mac_address", "mac"),
    )
    firmware_version: str | None = Field(
        default=None,
        validation_alias=AliasChoices("firmwareVersion", "firmware_version"),
    )

    @property
    def identity(self) -> str | None:
        return self._identity_from(self.mac_address)


class DeviceStatus(_WirePayload):
    """Live state returned by ``GET /status``."""

    operating_state: str = Field(
        validation_alias=AliasChoices("operatingState", "operating_state")
    )
    battery_level: float = Field(
        validation_alias=AliasChoices("batteryLevel", "battery_level")
    )
    is_running: bool | None = Field(
        default=None, validation_alias=AliasChoices("isRunning", "is_running")
    )
    is_paused: bool | None = Field(
        default=None, validation_alias=AliasChoices("isPaused", "is_paused")
    )
    wifi_connected: bool | None = None
    ip: str | None = None
    mode: str | None = None

    def summary(self) -> dict[str, Any]:
        return {
            "state": self.operating_state,
            "battery": self.battery_level,
            "is_running": self.is_running,
            "is_paused": self.is_paused,
        }


class DeviceInfo(_WirePayload):
    """Static metadata returned by ``GET /info`` (or ``GET /device``)."""

    mac_address: str | None = Field(
        default=None,
        validation_alias=AliasChoices("macAddress", "mac_address", "mac"),
    )
    name: str | None = None
    firmware_version: str | None = Field(
        default=None,
        validation_alias=AliasChoices("firmwareVersion", "firmware_version"),
    )
    ip_address: str | None = Field(
        default=None, validation_alias=AliasChoices("ipAddress", "ip_address", "ip")
    )
    wifi_ssid: str | None = Field(
        default=None, validation_alias=AliasChoices("wifiSSID", "wifi_ssid", "ssid")
    )

    @property
    def identity(self) -> str | None:
        return self._identity_from(self.mac_address)


class DeviceCommand(IntEnum):
    STOP = 0
    START = 1
    PAUSE = 2


class HomeCredentials(BaseModel):
    model_config = {"extra": "forbid"}

    ssid: str
    password: str
    saved_at: datetime = Field(default_factory=utcnow)


class DeviceRecord(BaseModel):
    """One paired device as known to the app."""

    model_config = {"extra": "forbid", "validate_assignment": True}

    identity: str = Field(frozen=True)
    display_name: str
    current_address: str
    firmware_version: str | None = None
    paired_at: datetime = Field(default_factory=utcnow)
    last_seen_at: datetime | None = None

    @field_validator("identity")
    @classmethod
    def _normalize_identity(cls, value: str) -> str:
        return normalize_mac(value)


class DeviceRegistry(BaseModel):
    model_config = {"extra": "forbid"}

    devices: dict[str, DeviceRecord] = Field(default_factory=dict)
    last_connected: str | None = None
