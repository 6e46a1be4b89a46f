from __future__ import annotations

from .cache import AddressCache
from .connection import ConnectionManager
from .network import (
    NetworkObserver,
    NetworkState,
    StaticNetworkObserver,
    SystemNetworkObserver,
)
from .pairing import PairingWorkflow
from .probe import DeviceProbe
from .scanner import DiscoveryResult, DiscoveryScanner, subnet_candidates

__all__ = [
    "AddressCache",
    "ConnectionManager",
    "DeviceProbe",
    "DiscoveryResult",
    "DiscoveryScanner",
    "NetworkObserver",
    "NetworkState",
    "PairingWorkflow",
    "StaticNetworkObserver",
    "SystemNetworkObserver",
    "subnet_candidates",
]
