"""Locate a device's current address on whichever network is active.

No multicast discovery is assumed. Candidates are probed one at a time in
a fixed priority order and the scan stops at the first device that answers
``/discover`` with our device family:

1. the cached address for the identity,
2. the device's own access-point address, when the phone is on its AP,
3. the phone's own /24, likely DHCP bands first, then the rest,
4. common home subnets, likely bands only.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from dataclasses import dataclass

from aquasweeper.config import DiscoveryConfig
from aquasweeper.errors import DeviceNotFound, NetworkUnavailable, ProbeError
from aquasweeper.models import DiscoveryInfo, normalize_mac

from .cache import AddressCache
from .network import NetworkObserver, NetworkState, is_device_ap, subnet_prefix
from .probe import DeviceProbe

logger = logging.getLogger(__name__)

PRIORITY_BANDS = ((2, 20), (100, 150))
REMAINDER_BANDS = ((21, 99), (151, 254))

SOURCE_CACHE = "cache"
SOURCE_ACCESS_POINT = "access-point"
SOURCE_SUBNET = "subnet"
SOURCE_COMMON = "common-subnet"


@dataclass(frozen=True)
class DiscoveryResult:
    address: str
    info: DiscoveryInfo
    source: str


def subnet_candidates(prefix: str, include_remainder: bool = True) -> Iterator[str]:
    bands = PRIORITY_BANDS + REMAINDER_BANDS if include_remainder else PRIORITY_BANDS
    for first, last in bands:
        for host in range(first, last + 1):
            yield f"{prefix}.{host}"


class DiscoveryScanner:
    def __init__(
        self,
        probe: DeviceProbe,
        cache: AddressCache,
        observer: NetworkObserver,
        config: DiscoveryConfig | None = None,
    ) -> None:
        self._probe = probe
        self._cache = cache
        self._observer = observer
        self._config = config or DiscoveryConfig()
        self._inflight: dict[str, asyncio.Task[DiscoveryResult]] = {}

    def is_scanning(self, identity: str | None = None) -> bool:
        return self._key(identity) in self._inflight

    async def find(
        self,
        identity: str | None = None,
        *,
        include_common: bool = True,
        cancel: asyncio.Event | None = None,
    ) -> DiscoveryResult:
        """Find the device, joining a scan already running for ``identity``.

        A joining caller receives the running scan's result; its own
        ``include_common`` and ``cancel`` arguments are ignored.
        """
        key = self._key(identity)
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(
                self._scan(
                    normalize_mac(identity) if identity else None, include_common, cancel
                )
            )
            self._inflight[key] = task
            task.add_done_callback(lambda done: self._finished(key, done))
        else:
            logger.debug("Joining running scan for %s", key)
        return await asyncio.shield(task)

    def candidates(
        self, identity: str | None, state: NetworkState, include_common: bool = True
    ) -> Iterator[tuple[str, float, str]]:
        """Yield ``(address, timeout, source)`` in probe order, without duplicates."""
        config = self._config
        seen: set[str] = set()

        def fresh(address: str) -> bool:
            if address in seen:
                return False
            seen.add(address)
            return True

        if identity:
            cached = self._cache.get(identity)
            if cached and fresh(cached):
                yield cached, config.cached_timeout, SOURCE_CACHE

        if state.wifi and is_device_ap(state.ssid, config.ap_ssid_prefix):
            if fresh(config.ap_address):
                yield config.ap_address, config.ap_timeout, SOURCE_ACCESS_POINT
            return

        own_prefix = subnet_prefix(state.local_ip) if state.local_ip else None
        if own_prefix:
            for address in subnet_candidates(own_prefix):
                if fresh(address):
                    yield address, config.sweep_timeout, SOURCE_SUBNET

        if not include_common:
            return
        for prefix in config.common_subnets:
            if prefix == own_prefix:
                continue
            for address in subnet_candidates(prefix, include_remainder=False):
                if fresh(address):
                    yield address, config.sweep_timeout, SOURCE_COMMON

    async def _scan(
        self,
        identity: str | None,
        include_common: bool,
        cancel: asyncio.Event | None,
    ) -> DiscoveryResult:
        state = self._observer.current()
        if not state.connected:
            raise NetworkUnavailable("No active network connection")

        logger.info("Scanning for device %s", identity or "(any)")
        probed = 0
        for address, timeout, source in self.candidates(identity, state, include_common):
            if cancel is not None and cancel.is_set():
                logger.info("Scan for %s cancelled after %d probe(s)", identity, probed)
                raise asyncio.CancelledError()
            probed += 1
            logger.debug("Checking %s", address)
            try:
                info = await self._probe.discover(address, timeout=timeout)
            except ProbeError as exc:
                if source == SOURCE_ACCESS_POINT:
                    raise DeviceNotFound(
                        "Connected to the device's network but it does not answer "
                        f"at {address}"
                    ) from exc
                continue

            if identity and info.identity and info.identity != identity:
                logger.debug("Skipping %s: it is %s", address, info.identity)
                continue

            logger.info("Found device at %s via %s after %d probe(s)", address, source, probed)
            key = identity or info.identity
            if key and source != SOURCE_ACCESS_POINT:
                self._cache.put(key, address)
            return DiscoveryResult(address=address, info=info, source=source)

        raise DeviceNotFound(f"Device not found on network after {probed} probe(s)")

    def _finished(self, key: str, task: asyncio.Task[DiscoveryResult]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled():
            # mark the exception retrieved when every waiter has gone away
            task.exception()

    @staticmethod
    def _key(identity: str | None) -> str:
        return normalize_mac(identity) if identity else "*"
