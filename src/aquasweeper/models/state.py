from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .device import DeviceInfo, DeviceStatus, DiscoveryInfo, HomeCredentials


class ConnectionPhase(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


@dataclass
class ConnectionState:
    phase: ConnectionPhase = ConnectionPhase.DISCONNECTED
    consecutive_failures: int = 0
    last_status: DeviceStatus | None = None


class PairingStep(str, Enum):
    COLLECT_HOME_CREDENTIALS = "collect_home_credentials"
    AWAIT_AP_CONNECTION = "await_ap_connection"
    CONFIGURE_HOME_WIFI = "configure_home_wifi"
    AWAIT_HOME_RECONNECTION = "await_home_reconnection"
    FINALIZE = "finalize"
    COMPLETE = "complete"
    ABANDONED = "abandoned"


@dataclass
class PairingSession:
    """Transient state of one pairing flow. Never persisted."""

    step: PairingStep = PairingStep.COLLECT_HOME_CREDENTIALS
    home_credentials: HomeCredentials | None = None
    ap_link_detected: bool = False
    discovery: DiscoveryInfo | None = None
    provisional_info: DeviceInfo | None = None
    ap_status: DeviceStatus | None = None
    home_address: str | None = None
    manual_entry_offered: bool = False
    last_error: str | None = None

    @property
    def provisional_identity(self) -> str | None:
        for source in (self.provisional_info, self.discovery):
            if source is not None and source.identity:
                return source.identity
        return None
