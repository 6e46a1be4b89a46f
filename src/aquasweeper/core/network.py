from __future__ import annotations

import ipaddress
import logging
import socket
import subprocess
from typing import Protocol

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class NetworkState(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    connected: bool = False
    wifi: bool = False
    ssid: str | None = None
    local_ip: str | None = None


class NetworkObserver(Protocol):
    def current(self) -> NetworkState: ...


def is_device_ap(ssid: str | None, prefix: str) -> bool:
    return ssid is not None and ssid.startswith(prefix)


def subnet_prefix(ip: str) -> str:
    """``192.168.1.37`` -> ``192.168.1``; assumes a /24 like most home networks."""
    network = ipaddress.ip_network(f"{ip}/24", strict=False)
    return str(network.network_address).rsplit(".", 1)[0]


def detect_local_ip() -> str | None:
    try:
        # no packet is sent; connecting a UDP socket only selects the interface
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("8.8.8.8", 80))
            local_ip = sock.getsockname()[0]
    except OSError as exc:
        logger.debug("Could not detect local IP: %s", exc)
        return None
    logger.debug("Detected local IP: %s", local_ip)
    return local_ip


def detect_ssid() -> str | None:
    try:
        result = subprocess.run(
            ["iwgetid", "-r"], capture_output=True, text=True, timeout=2, check=True
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("Could not read Wi-Fi SSID: %s", exc)
        return None
    return result.stdout.strip() or None


class SystemNetworkObserver:
    """Reads the host's interface address and Wi-Fi SSID on demand."""

    def current(self) -> NetworkState:
        local_ip = detect_local_ip()
        ssid = detect_ssid()
        return NetworkState(
            connected=local_ip is not None,
            wifi=ssid is not None,
            ssid=ssid,
            local_ip=local_ip,
        )


class StaticNetworkObserver:
    """Network state supplied by the embedding app (or a test)."""

    def __init__(self, state: NetworkState | None = None) -> None:
        self._state = state or NetworkState()

    def current(self) -> NetworkState:
        return self._state

    def update(self, state: NetworkState) -> None:
        self._state = state
