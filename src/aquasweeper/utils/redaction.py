from __future__ import annotations

from dataclasses import dataclass, field

SECRET_MASK = "********"


def mask_secret(value: str | None) -> str | None:
    """Mask a secret for log output; empty stays empty."""
    if not value:
        return value
    return SECRET_MASK


@dataclass
class Redactor:
    enabled: bool = True
    _mac_map: dict[str, int] = field(default_factory=dict)
    _mac_counter: int = 0

    def redact_ip(self, ip: str | None) -> str:
        if ip is None:
            return ""
        if not self.enabled:
            return ip
        parts = ip.split(".")
        if len(parts) == 4 and all(part.isdigit() for part in parts):
            return f"x.x.x.{parts[3]}"
        return ip

    def redact_mac(self, mac: str | None) -> str:
        if mac is None:
            return ""
        if not self.enabled:
            return mac
        parts = mac.split(":")
        if len(parts) != 6:
            return mac
        prefix = ":".join(parts[:3])
        counter = self._mac_map.get(mac)
        if counter is None:
            self._mac_counter += 1
            counter = self._mac_counter
            self._mac_map[mac] = counter
        return f"{prefix}:xx:xx:{counter:02d}"

