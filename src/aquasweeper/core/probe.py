"""Single-request interrogation of one candidate device address.

Every call is bounded by its timeout. Failures are raised as
:class:`~aquasweeper.errors.ProbeError` subclasses so that a sweep can treat
them all as "try the next address" while a direct caller can still tell a
silent address (:class:`DeviceUnreachable`) from a wrong answer
(:class:`MalformedResponse`, :class:`IdentityMismatch`).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from aquasweeper.config import DiscoveryConfig, ProbeConfig
from aquasweeper.errors import (
    CommandRejected,
    DeviceUnreachable,
    IdentityMismatch,
    MalformedResponse,
    ProbeTimeout,
)
from aquasweeper.models import (
    DeviceCommand,
    DeviceInfo,
    DeviceStatus,
    DiscoveryInfo,
    HomeCredentials,
)
from aquasweeper.utils.redaction import mask_secret

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"
REQUEST_HEADERS = {"Accept": JSON_CONTENT_TYPE, "Cache-Control": "no-cache"}
INFO_PATHS = ("/info", "/device")


class DeviceProbe:
    def __init__(
        self,
        config: ProbeConfig | None = None,
        discovery: DiscoveryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or ProbeConfig()
        self._discovery = discovery or DiscoveryConfig()
        self._transport = transport

    @property
    def device_type(self) -> str:
        return self._discovery.device_type

    def url(self, address: str, path: str) -> str:
        host = address
        if ":" not in address and self._config.port != 80:
            host = f"{address}:{self._config.port}"
        return f"http://{host}{path}"

    async def discover(self, address: str, timeout: float | None = None) -> DiscoveryInfo:
        """Ask ``address`` who it is; only our device family is accepted."""
        payload = await self._request_json("GET", address, "/discover", timeout)
        declared = payload.get("deviceType", payload.get("device_type"))
        if declared != self.device_type:
            raise IdentityMismatch(
                address, f"expected deviceType {self.device_type!r}, got {declared!r}"
            )
        payload.setdefault("ip", address)
        try:
            info = DiscoveryInfo.model_validate(payload)
        except ValidationError as exc:
            raise MalformedResponse(address, f"invalid discovery payload: {exc}") from exc
        logger.debug("Found device at %s", address)
        return info

    async def status(self, address: str, timeout: float | None = None) -> DeviceStatus:
        payload = await self._request_json("GET", address, "/status", timeout)
        try:
            return DeviceStatus.model_validate(payload)
        except ValidationError as exc:
            raise MalformedResponse(
                address, "status lacks operatingState/batteryLevel"
            ) from exc

    async def info(self, address: str, timeout: float | None = None) -> DeviceInfo | None:
        """Fetch static metadata, or ``None`` when neither endpoint provides it.

        Reachability is established by ``discover``/``status``; a missing
        info endpoint does not fail the caller.
        """
        for path in INFO_PATHS:
            try:
                payload = await self._request_json("GET", address, path, timeout)
                return DeviceInfo.model_validate(payload)
            except (MalformedResponse, ValidationError) as exc:
                logger.debug("%s%s unavailable: %s", address, path, exc)
            except DeviceUnreachable as exc:
                logger.debug("Info probe of %s failed: %s", address, exc)
                break
        logger.info("Device info unavailable at %s", address)
        return None

    async def configure_wifi(
        self,
        address: str,
        credentials: HomeCredentials,
        timeout: float | None = None,
    ) -> str | None:
        """Send home network credentials; returns the device's message."""
        logger.debug(
            "Sending Wi-Fi config to %s: ssid=%s password=%s",
            address,
            credentials.ssid,
            mask_secret(credentials.password),
        )
        payload = await self._request_json(
            "POST",
            address,
            "/wifi",
            timeout,
            body={"ssid": credentials.ssid, "password": credentials.password},
        )
        return self._require_success(address, payload)

    async def send_command(
        self, address: str, command: DeviceCommand, timeout: float | None = None
    ) -> str | None:
        body = {"numericCommand": int(command), "action": command.name.lower()}
        logger.debug("Sending command %s to %s", command.name, address)
        payload = await self._request_json("POST", address, "/control", timeout, body=body)
        return self._require_success(address, payload)

    async def factory_reset(self, address: str, timeout: float | None = None) -> None:
        response = await self._send("POST", address, "/factory-reset", timeout)
        if not response.is_success:
            raise MalformedResponse(
                address,
                f"factory reset refused with HTTP {response.status_code}",
                status_code=response.status_code,
            )
        logger.info("Factory reset accepted by %s", address)

    @staticmethod
    def _require_success(address: str, payload: dict[str, Any]) -> str | None:
        success = payload.get("success")
        if not isinstance(success, bool):
            raise MalformedResponse(address, "response lacks a boolean 'success'")
        message = payload.get("message") or payload.get("error")
        if not success:
            raise CommandRejected(address, message)
        return message

    async def _request_json(
        self,
        method: str,
        address: str,
        path: str,
        timeout: float | None,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        response = await self._send(method, address, path, timeout, body)
        if not response.is_success:
            raise MalformedResponse(
                address,
                f"{path} answered HTTP {response.status_code}",
                status_code=response.status_code,
            )
        content_type = response.headers.get("content-type", "")
        if JSON_CONTENT_TYPE not in content_type:
            raise MalformedResponse(
                address,
                f"{path} answered with content type {content_type!r}",
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedResponse(address, f"{path} answered invalid JSON") from exc
        if not isinstance(payload, dict):
            raise MalformedResponse(address, f"{path} answered a non-object JSON value")
        return payload

    async def _send(
        self,
        method: str,
        address: str,
        path: str,
        timeout: float | None,
        body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        limit = timeout if timeout is not None else self._config.default_timeout
        try:
            async with asyncio.timeout(limit):
                async with httpx.AsyncClient(
                    transport=self._transport,
                    headers=REQUEST_HEADERS,
                    timeout=limit,
                ) as client:
                    return await client.request(method, self.url(address, path), json=body)
        except (TimeoutError, httpx.TimeoutException) as exc:
            logger.debug("No response from %s (timeout)", address)
            raise ProbeTimeout(address, f"{path} timed out after {limit:.2f}s") from exc
        except httpx.HTTPError as exc:
            logger.debug("Failed to connect to %s: %s", address, exc)
            raise DeviceUnreachable(address, f"{path} failed: {exc}") from exc
