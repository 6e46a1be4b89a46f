"""Hand a new device over from its own access point to the home network.

Steps, each explicit and user driven::

    COLLECT_HOME_CREDENTIALS  submit_home_credentials()
    AWAIT_AP_CONNECTION       refresh_ap_link(), confirm_ap_connection()
    CONFIGURE_HOME_WIFI       configure_home_wifi()
    AWAIT_HOME_RECONNECTION   locate_on_home_network() / use_manual_address()
    FINALIZE                  finalize()
    COMPLETE

A failed operation leaves the session on its step with ``last_error`` set;
the caller may retry as often as it likes. ``abandon()`` discards whatever
is in flight and nothing is persisted before ``finalize`` succeeds.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from aquasweeper.config import DiscoveryConfig, PairingConfig
from aquasweeper.errors import (
    AquaSweeperError,
    CommandRejected,
    DeviceNotFound,
    DeviceUnreachable,
    IdentityMismatch,
    MalformedResponse,
    IdentityUnknown,
    NetworkSwitchPending,
    PairingAbandoned,
    PairingStepError,
    ProbeError,
    ProbeTimeout,
)
from aquasweeper.models import (
    DeviceInfo,
    DeviceRecord,
    DeviceStatus,
    DiscoveryInfo,
    HomeCredentials,
    PairingSession,
    PairingStep,
    default_display_name,
)
from aquasweeper.models.device import utcnow
from aquasweeper.storage import Database
from aquasweeper.utils.redaction import mask_secret

from .cache import AddressCache
from .connection import ConnectionManager
from .network import NetworkObserver, is_device_ap
from .probe import DeviceProbe
from .scanner import DiscoveryResult, DiscoveryScanner

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PairingWorkflow:
    def __init__(
        self,
        probe: DeviceProbe,
        scanner: DiscoveryScanner,
        observer: NetworkObserver,
        database: Database,
        cache: AddressCache,
        config: PairingConfig | None = None,
        discovery: DiscoveryConfig | None = None,
        manager: ConnectionManager | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._probe = probe
        self._scanner = scanner
        self._observer = observer
        self._database = database
        self._cache = cache
        self._config = config or PairingConfig()
        self._discovery = discovery or DiscoveryConfig()
        self._manager = manager
        self._sleep = sleep

        self._session = PairingSession()
        self._cancel = asyncio.Event()
        self._pending: set[asyncio.Future[object]] = set()

    @property
    def session(self) -> PairingSession:
        return self._session

    @property
    def step(self) -> PairingStep:
        return self._session.step

    @property
    def ap_address(self) -> str:
        return self._discovery.ap_address

    # S0

    def resume_credentials(self) -> HomeCredentials | None:
        """Credentials saved by a recent, interrupted attempt, if still fresh."""
        self._expect(PairingStep.COLLECT_HOME_CREDENTIALS)
        try:
            return self._database.load_home_credentials(self._config.credentials_ttl)
        except OSError as exc:
            logger.warning("Could not read saved home credentials: %s", exc)
            return None

    def submit_home_credentials(self, ssid: str, password: str) -> None:
        self._expect(PairingStep.COLLECT_HOME_CREDENTIALS)
        if not ssid or not password:
            raise ValueError("Both the Wi-Fi name and password are required")

        credentials = HomeCredentials(ssid=ssid, password=password)
        self._session.home_credentials = credentials
        logger.info(
            "Home network set: ssid=%s password=%s", ssid, mask_secret(password)
        )
        try:
            self._database.save_home_credentials(credentials)
        except OSError as exc:
            logger.warning("Could not save home credentials: %s", exc)
        self._advance(PairingStep.AWAIT_AP_CONNECTION)

    # S1

    def refresh_ap_link(self) -> bool:
        """Re-read the network state; True once the phone is on a device AP.

        This only lights up the "looks connected" hint. The user still has
        to call :meth:`confirm_ap_connection`.
        """
        self._expect(PairingStep.AWAIT_AP_CONNECTION)
        state = self._observer.current()
        detected = state.wifi and is_device_ap(state.ssid, self._discovery.ap_ssid_prefix)
        if detected != self._session.ap_link_detected:
            logger.info("Device access point %s", "detected" if detected else "lost")
        self._session.ap_link_detected = detected
        return detected

    async def confirm_ap_connection(self) -> DeviceStatus:
        """Validate the access-point link: ``/discover`` then ``/status``."""
        self._expect(PairingStep.AWAIT_AP_CONNECTION)
        address = self.ap_address
        timeout = self._config.validate_timeout

        discovery: DiscoveryInfo | None = None
        try:
            discovery = await self._call(self._probe.discover(address, timeout=timeout))
        except IdentityMismatch as exc:
            self._record_error(exc)
            raise
        except (DeviceUnreachable, MalformedResponse) as exc:
            logger.info("Discovery at %s failed (%s), trying status directly", address, exc)

        try:
            status = await self._call(self._probe.status(address, timeout=timeout))
        except ProbeError as exc:
            self._record_error(exc)
            raise
        info = await self._call(self._probe.info(address, timeout=timeout))

        logger.info(
            "Device AP link validated: state=%s battery=%s mode=%s",
            status.operating_state,
            status.battery_level,
            status.mode,
        )
        self._session.discovery = discovery
        self._session.ap_status = status
        if info is not None:
            self._session.provisional_info = info
        self._advance(PairingStep.CONFIGURE_HOME_WIFI)
        return status

    # S2

    async def configure_home_wifi(self) -> None:
        """Provision the home credentials over the AP link.

        A timeout advances exactly like success: the device often drops the
        AP link to join the home network before it answers. The next step
        re-verifies.
        """
        self._expect(PairingStep.CONFIGURE_HOME_WIFI)
        credentials = self._session.home_credentials
        if credentials is None:
            raise PairingStepError("no home network credentials were submitted")

        try:
            message = await self._call(
                self._probe.configure_wifi(
                    self.ap_address, credentials, timeout=self._config.wifi_timeout
                )
            )
        except ProbeTimeout:
            logger.warning(
                "No answer to Wi-Fi configuration, assuming the device is switching networks"
            )
        except (ProbeError, CommandRejected) as exc:
            self._record_error(exc)
            raise
        else:
            logger.info("Device accepted Wi-Fi configuration: %s", message or "ok")
        self._advance(PairingStep.AWAIT_HOME_RECONNECTION)

    # S3

    async def locate_on_home_network(self) -> str:
        """Wait for the device to settle, then find it on the phone's subnet."""
        self._expect(PairingStep.AWAIT_HOME_RECONNECTION)
        if self._config.settle_delay > 0:
            logger.info(
                "Waiting %.1fs for the device to join the home network",
                self._config.settle_delay,
            )
            await self._call(self._sleep(self._config.settle_delay))

        try:
            result = await self._rescan()
        except DeviceNotFound as exc:
            self._session.manual_entry_offered = True
            self._record_error(exc)
            raise
        except AquaSweeperError as exc:
            self._record_error(exc)
            raise
        self._session.discovery = result.info
        self._arrive(result.address)
        return result.address

    async def use_manual_address(self, address: str) -> str:
        """Accept an address typed by the user once it answers status and info."""
        self._expect(PairingStep.AWAIT_HOME_RECONNECTION)
        address = address.strip()
        ipaddress.ip_address(address)
        timeout = self._config.validate_timeout

        try:
            self._reject_ap_address(address)
            await self._call(self._probe.status(address, timeout=timeout))
            info = await self._call(self._probe.info(address, timeout=timeout))
            if info is not None:
                self._check_identity(address, info.identity)
                self._session.provisional_info = info
        except AquaSweeperError as exc:
            self._record_error(exc)
            raise
        self._arrive(address)
        return address

    # S4

    async def finalize(self) -> DeviceRecord:
        """Re-verify the device, persist its record and hand it over."""
        self._expect(PairingStep.FINALIZE)
        address = self._session.home_address
        if address is None:
            raise PairingStepError("no home network address is known for the device")
        timeout = self._config.validate_timeout

        try:
            try:
                await self._call(self._probe.status(address, timeout=timeout))
            except ProbeError as exc:
                logger.info("Device stopped answering at %s (%s), rediscovering", address, exc)
                result = await self._rescan()
                address = result.address
                self._session.discovery = result.info
                await self._call(self._probe.status(address, timeout=timeout))

            info = await self._call(self._probe.info(address, timeout=timeout))
            discovery = await self._optional_discover(address, timeout)
            record = self._build_record(address, info, discovery)
        except AquaSweeperError as exc:
            self._record_error(exc)
            raise

        try:
            self._database.save_device_record(record)
            self._database.clear_home_credentials()
        except OSError as exc:
            logger.warning("Could not persist paired device: %s", exc)
        self._cache.put(record.identity, record.current_address)
        self._advance(PairingStep.COMPLETE)
        logger.info("Paired %s (%s) at %s", record.display_name, record.identity, address)

        if self._manager is not None:
            try:
                await self._manager.connect(record)
            except ProbeError as exc:
                logger.warning("Paired device did not accept a session yet: %s", exc)
        return record

    def abandon(self) -> None:
        """Drop the session; in-flight requests are cancelled and their results discarded."""
        if self._session.step in (PairingStep.COMPLETE, PairingStep.ABANDONED):
            return
        logger.info("Pairing abandoned at step %s", self._session.step.value)
        self._session.step = PairingStep.ABANDONED
        self._cancel.set()
        for future in list(self._pending):
            future.cancel()

    # helpers

    def _build_record(
        self,
        address: str,
        info: DeviceInfo | None,
        discovery: DiscoveryInfo | None,
    ) -> DeviceRecord:
        sources: list[DeviceInfo | DiscoveryInfo] = [
            source
            for source in (
                info,
                discovery,
                self._session.provisional_info,
                self._session.discovery,
            )
            if source is not None
        ]
        identity = next((s.identity for s in sources if s.identity), None)
        if identity is None:
            raise IdentityUnknown("Device did not report its hardware address")
        self._check_identity(address, identity)

        name = next((s.name for s in sources if s.name), None)
        firmware = next((s.firmware_version for s in sources if s.firmware_version), None)
        now = utcnow()
        return DeviceRecord(
            identity=identity,
            display_name=name or default_display_name(identity),
            current_address=address,
            firmware_version=firmware,
            paired_at=now,
            last_seen_at=now,
        )

    async def _optional_discover(self, address: str, timeout: float) -> DiscoveryInfo | None:
        try:
            return await self._call(self._probe.discover(address, timeout=timeout))
        except ProbeError as exc:
            logger.debug("Fresh discovery at %s unavailable: %s", address, exc)
            return None

    async def _rescan(self) -> DiscoveryResult:
        result = await self._call(
            self._scanner.find(
                self._session.provisional_identity,
                include_common=False,
                cancel=self._cancel,
            )
        )
        self._reject_ap_address(result.address)
        return result

    def _reject_ap_address(self, address: str) -> None:
        if address == self.ap_address:
            raise NetworkSwitchPending(
                "Device still answers on its own access point; "
                "reconnect to your home Wi-Fi and try again"
            )

    def _check_identity(self, address: str, identity: str | None) -> None:
        expected = self._session.provisional_identity
        if identity and expected and identity != expected:
            raise IdentityMismatch(address, f"expected {expected}, found {identity}")

    def _arrive(self, address: str) -> None:
        self._session.home_address = address
        self._session.manual_entry_offered = False
        self._advance(PairingStep.FINALIZE)

    async def _call(self, awaitable: Awaitable[T]) -> T:
        if self._cancel.is_set():
            raise PairingAbandoned("Pairing was abandoned")
        future = asyncio.ensure_future(awaitable)
        self._pending.add(future)
        try:
            result = await future
        except asyncio.CancelledError:
            if self._cancel.is_set():
                raise PairingAbandoned("Pairing was abandoned") from None
            raise
        finally:
            self._pending.discard(future)
        if self._cancel.is_set():
            raise PairingAbandoned("Pairing was abandoned")
        return result

    def _expect(self, step: PairingStep) -> None:
        if self._session.step != step:
            raise PairingStepError(
                f"Cannot do that during {self._session.step.value}; expected {step.value}"
            )

    def _advance(self, step: PairingStep) -> None:
        logger.info("Pairing step: %s -> %s", self._session.step.value, step.value)
        self._session.step = step
        self._session.last_error = None

    def _record_error(self, exc: Exception) -> None:
        if isinstance(exc, PairingAbandoned):
            return
        self._session.last_error = str(exc)
        logger.warning("Pairing step %s failed: %s", self._session.step.value, exc)
