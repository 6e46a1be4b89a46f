"""Live session with one paired device.

``Disconnected -> Connecting -> Connected -> (Reconnecting <-> Connected)
-> Disconnected``. Individual poll failures are logged and counted, never
raised; only the phase transitions they cause reach subscribers.

One status subscriber and one connection subscriber are supported; setting
a new callback replaces the previous one.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from dataclasses import replace

from aquasweeper.config import ConnectionConfig
from aquasweeper.errors import AquaSweeperError, NotConnected, ProbeError
from aquasweeper.models import (
    ConnectionPhase,
    ConnectionState,
    DeviceCommand,
    DeviceRecord,
    DeviceStatus,
)
from aquasweeper.models.device import utcnow
from aquasweeper.storage import Database

from .cache import AddressCache
from .network import NetworkState
from .probe import DeviceProbe
from .scanner import DiscoveryScanner

logger = logging.getLogger(__name__)

StatusCallback = Callable[[DeviceStatus], None]
ConnectionCallback = Callable[[ConnectionPhase], None]

ACTIVE_PHASES = (ConnectionPhase.CONNECTED, ConnectionPhase.RECONNECTING)


class ConnectionManager:
    def __init__(
        self,
        probe: DeviceProbe,
        cache: AddressCache,
        database: Database,
        config: ConnectionConfig | None = None,
        scanner: DiscoveryScanner | None = None,
    ) -> None:
        self._probe = probe
        self._cache = cache
        self._database = database
        self._config = config or ConnectionConfig()
        self._scanner = scanner

        self._state = ConnectionState()
        self._record: DeviceRecord | None = None
        self._candidate_address: str | None = None
        self._poll_task: asyncio.Task[None] | None = None
        self._probe_in_flight = False
        self._user_disconnected = False

        self._on_status: StatusCallback | None = None
        self._on_connection: ConnectionCallback | None = None

    @property
    def state(self) -> ConnectionState:
        return replace(self._state)

    @property
    def phase(self) -> ConnectionPhase:
        return self._state.phase

    @property
    def record(self) -> DeviceRecord | None:
        return self._record

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def on_status(self, callback: StatusCallback | None) -> None:
        self._on_status = callback

    def on_connection_change(self, callback: ConnectionCallback | None) -> None:
        self._on_connection = callback
        if callback is not None:
            self._emit_connection()

    async def connect(self, record: DeviceRecord) -> DeviceStatus:
        """Probe ``record`` once; on success start polling.

        A failed first probe leaves the manager ``Disconnected`` and
        propagates the specific probe error.
        """
        return await self._open(record, record.current_address)

    async def reconnect(self) -> DeviceStatus:
        """Rediscover the current device, then connect at whatever address it has."""
        if self._record is None:
            raise NotConnected("No device to reconnect to")
        record = self._record
        address = await self.rediscover()
        return await self._open(record, address or record.current_address)

    async def _open(self, record: DeviceRecord, address: str) -> DeviceStatus:
        await self._stop_polling()
        self._record = record
        self._candidate_address = None
        self._user_disconnected = False
        self._state.consecutive_failures = 0
        self._set_phase(ConnectionPhase.CONNECTING)

        try:
            status = await self._probe.status(address, timeout=self._config.status_timeout)
        except ProbeError as exc:
            logger.warning("Could not connect to %s at %s: %s", record.identity, address, exc)
            self._set_phase(ConnectionPhase.DISCONNECTED)
            raise

        self._mark_seen(address, status)
        self._set_phase(ConnectionPhase.CONNECTED)
        self._start_polling()
        return status

    async def rediscover(self) -> str | None:
        """Run one scan for the device; a hit becomes the next polling address.

        The record's address is only replaced once a status poll succeeds
        there.
        """
        if self._scanner is None or self._record is None:
            return None
        try:
            result = await self._scanner.find(self._record.identity)
        except AquaSweeperError as exc:
            logger.warning("Rediscovery of %s failed: %s", self._record.identity, exc)
            return None
        if result.address != self._record.current_address:
            logger.info(
                "Device %s now answers at %s", self._record.identity, result.address
            )
            self._candidate_address = result.address
        else:
            self._candidate_address = None
        return result.address

    async def poll_once(self) -> None:
        """One polling tick; skipped while a previous probe is outstanding."""
        if self._record is None or self._state.phase not in ACTIVE_PHASES:
            return
        if self._probe_in_flight:
            logger.debug("Previous status probe still running, skipping tick")
            return

        address = self._candidate_address or self._record.current_address
        self._probe_in_flight = True
        try:
            status = await self._probe.status(address, timeout=self._config.status_timeout)
        except ProbeError as exc:
            await self._register_failure(exc)
            return
        finally:
            self._probe_in_flight = False

        self._state.consecutive_failures = 0
        self._mark_seen(address, status)
        if self._state.phase == ConnectionPhase.RECONNECTING:
            logger.info("Connection to %s recovered", self._record.identity)
            self._set_phase(ConnectionPhase.CONNECTED)

    async def send_command(self, command: DeviceCommand) -> DeviceStatus | None:
        """Send ``command`` now; refuses unless ``Connected``."""
        if self._record is None or self._state.phase != ConnectionPhase.CONNECTED:
            raise NotConnected(f"Cannot send {command.name.lower()}: not connected")
        await self._probe.send_command(
            self._record.current_address, command, timeout=self._config.command_timeout
        )
        logger.info("Command %s accepted by %s", command.name, self._record.identity)
        await self.poll_once()
        return self._state.last_status

    async def factory_reset(self) -> None:
        if self._record is None or self._state.phase != ConnectionPhase.CONNECTED:
            raise NotConnected("Cannot reset: not connected")
        await self._probe.factory_reset(
            self._record.current_address, timeout=self._config.command_timeout
        )
        await self.disconnect()

    async def disconnect(self) -> None:
        await self._stop_polling()
        self._user_disconnected = True
        self._candidate_address = None
        self._state.consecutive_failures = 0
        self._state.phase = ConnectionPhase.DISCONNECTED
        logger.info("Disconnected from device")
        self._emit_connection()

    async def handle_network_change(self, state: NetworkState) -> None:
        """Reconnect when connectivity returns after a lost session."""
        if (
            state.connected
            and self._record is not None
            and self._state.phase == ConnectionPhase.DISCONNECTED
            and not self._user_disconnected
        ):
            logger.info("Network is back, reconnecting to %s", self._record.identity)
            try:
                await self.reconnect()
            except AquaSweeperError as exc:
                logger.warning("Reconnect after network change failed: %s", exc)

    async def _register_failure(self, exc: ProbeError) -> None:
        self._state.consecutive_failures += 1
        failures = self._state.consecutive_failures
        threshold = self._config.failure_threshold
        logger.debug("Status poll failed (%d in a row): %s", failures, exc)

        if failures >= self._config.abandon_after:
            logger.warning("Giving up on %s after %d failed polls", self._record_id(), failures)
            self._state.phase = ConnectionPhase.DISCONNECTED
            self._emit_connection()
            self._cancel_poll_task()
            return

        if failures >= threshold and self._state.phase == ConnectionPhase.CONNECTED:
            logger.warning("Lost contact with %s, reconnecting", self._record_id())
            self._set_phase(ConnectionPhase.RECONNECTING)

        if failures % threshold == 0:
            await self.rediscover()

    def _mark_seen(self, address: str, status: DeviceStatus) -> None:
        assert self._record is not None
        self._state.last_status = status
        self._record.last_seen_at = utcnow()
        if address != self._record.current_address:
            logger.info("Device %s moved to %s", self._record.identity, address)
            self._record.current_address = address
            self._persist_record()
        self._candidate_address = None
        self._cache.put(self._record.identity, address)
        if self._on_status is not None:
            try:
                self._on_status(status)
            except Exception:
                logger.exception("Status subscriber failed")

    def _persist_record(self) -> None:
        assert self._record is not None
        try:
            self._database.save_device_record(self._record)
        except OSError as exc:
            logger.warning("Could not persist device record: %s", exc)

    def _set_phase(self, phase: ConnectionPhase) -> None:
        if self._state.phase == phase:
            return
        logger.info("Connection phase: %s -> %s", self._state.phase.value, phase.value)
        self._state.phase = phase
        self._emit_connection()

    def _emit_connection(self) -> None:
        if self._on_connection is None:
            return
        try:
            self._on_connection(self._state.phase)
        except Exception:
            logger.exception("Connection subscriber failed")

    def _record_id(self) -> str:
        return self._record.identity if self._record else "device"

    def _start_polling(self) -> None:
        self._poll_task = asyncio.create_task(self._poll_loop())

    async def _poll_loop(self) -> None:
        while self._state.phase in ACTIVE_PHASES:
            await asyncio.sleep(self._config.poll_interval)
            await self.poll_once()

    def _cancel_poll_task(self) -> None:
        # may run inside the loop itself, which then exits on its phase check
        task, self._poll_task = self._poll_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def _stop_polling(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is None:
            return
        if task is asyncio.current_task():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        self._probe_in_flight = False
