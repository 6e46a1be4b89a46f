"""aquasweeper - Discover, pair and stay connected to AquaSweeper pool robots."""

from __future__ import annotations

from importlib.metadata import version

from .config import Settings, get_settings
from .core import (
    AddressCache,
    ConnectionManager,
    DeviceProbe,
    DiscoveryScanner,
    NetworkState,
    PairingWorkflow,
    StaticNetworkObserver,
    SystemNetworkObserver,
)
from .models import (
    ConnectionPhase,
    DeviceCommand,
    DeviceRecord,
    DeviceStatus,
    PairingStep,
)
from .services import AquaSweeperServices
from .storage import Database

__all__ = [
    "AddressCache",
    "AquaSweeperServices",
    "ConnectionManager",
    "ConnectionPhase",
    "Database",
    "DeviceCommand",
    "DeviceProbe",
    "DeviceRecord",
    "DeviceStatus",
    "DiscoveryScanner",
    "NetworkState",
    "PairingStep",
    "PairingWorkflow",
    "Settings",
    "StaticNetworkObserver",
    "SystemNetworkObserver",
    "__version__",
    "get_settings",
]

__version__ = version("aquasweeper")
