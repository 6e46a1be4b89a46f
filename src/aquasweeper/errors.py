"""Exception hierarchy for device discovery, pairing and connection."""

from __future__ import annotations


class AquaSweeperError(Exception):
    """Base class for every error raised by this package."""


class ProbeError(AquaSweeperError):
    """A single request to a candidate address failed."""

    def __init__(self, address: str, message: str) -> None:
        super().__init__(f"{address}: {message}")
        self.address = address


class DeviceUnreachable(ProbeError):
    """Nothing answered at the address (refused, reset, no route)."""


class ProbeTimeout(DeviceUnreachable, TimeoutError):
    """The request did not complete within its timeout."""


class MalformedResponse(ProbeError):
    """Something answered, but not with a usable device payload."""

    def __init__(
        self, address: str, message: str, status_code: int | None = None
    ) -> None:
        super().__init__(address, message)
        self.status_code = status_code


class IdentityMismatch(ProbeError):
    """A device answered, but it is not the one (or the kind) we expected."""


class CommandRejected(AquaSweeperError):
    """The device replied with ``success: false``."""

    def __init__(self, address: str, message: str | None = None) -> None:
        detail = message or "device rejected the request"
        super().__init__(f"{address}: {detail}")
        self.address = address
        self.device_message = message


class DeviceNotFound(AquaSweeperError):
    """A scan exhausted every candidate address without a match."""


class NetworkUnavailable(AquaSweeperError):
    """The network observer reports no active connection."""


class NotConnected(AquaSweeperError):
    """A command was issued while no device session is connected."""


class PairingStepError(AquaSweeperError):
    """The requested pairing operation does not belong to the current step."""


class NetworkSwitchPending(AquaSweeperError):
    """The device still answers at its access-point address."""


class IdentityUnknown(AquaSweeperError):
    """No hardware address is known for the device being paired."""


class PairingAbandoned(AquaSweeperError):
    """The pairing session was abandoned while a request was in flight."""
