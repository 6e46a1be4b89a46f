"""Application-lifetime wiring of the device services."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import httpx

from aquasweeper.config import Settings, data_dir_from_settings
from aquasweeper.core import (
    AddressCache,
    ConnectionManager,
    DeviceProbe,
    DiscoveryScanner,
    NetworkObserver,
    PairingWorkflow,
    SystemNetworkObserver,
)
from aquasweeper.errors import AquaSweeperError
from aquasweeper.models import DeviceRecord, DeviceStatus
from aquasweeper.storage import Database

logger = logging.getLogger(__name__)


@dataclass
class AquaSweeperServices:
    """Everything one app session needs, constructed once and passed around."""

    settings: Settings
    database: Database
    cache: AddressCache
    observer: NetworkObserver
    probe: DeviceProbe
    scanner: DiscoveryScanner
    connection: ConnectionManager

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        observer: NetworkObserver | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> AquaSweeperServices:
        database = Database(data_dir_from_settings(settings))
        cache = AddressCache(database)
        cache.load_all()
        observer = observer or SystemNetworkObserver()
        probe = DeviceProbe(settings.probe, settings.discovery, transport=transport)
        scanner = DiscoveryScanner(probe, cache, observer, settings.discovery)
        connection = ConnectionManager(
            probe, cache, database, settings.connection, scanner=scanner
        )
        return cls(
            settings=settings,
            database=database,
            cache=cache,
            observer=observer,
            probe=probe,
            scanner=scanner,
            connection=connection,
        )

    def new_pairing(
        self, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ) -> PairingWorkflow:
        return PairingWorkflow(
            self.probe,
            self.scanner,
            self.observer,
            self.database,
            self.cache,
            config=self.settings.pairing,
            discovery=self.settings.discovery,
            manager=self.connection,
            sleep=sleep,
        )

    def last_device(self) -> DeviceRecord | None:
        return self.database.load_last_device()

    async def restore_last_device(
        self, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ) -> DeviceStatus | None:
        """Reconnect to the most recently used device at startup.

        A failed first attempt is retried once, through rediscovery, after
        ``restore_retry_delay`` seconds. Returns ``None`` when there is no
        device to restore or both attempts fail.
        """
        record = self.last_device()
        if record is None:
            logger.info("No previously connected device")
            return None

        logger.info("Restoring session with %s at %s", record.display_name, record.current_address)
        try:
            return await self.connection.connect(record)
        except AquaSweeperError as exc:
            logger.warning("Restore attempt failed: %s", exc)

        await sleep(self.settings.connection.restore_retry_delay)
        try:
            return await self.connection.reconnect()
        except AquaSweeperError as exc:
            logger.warning("Could not restore %s: %s", record.display_name, exc)
            return None
