from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import timedelta
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from aquasweeper.models import DeviceRecord, DeviceRegistry, HomeCredentials
from aquasweeper.models.device import normalize_mac, utcnow

logger = logging.getLogger(__name__)

DEVICES_FILE = "devices.json"
ADDRESS_CACHE_FILE = "address_cache.json"
PAIRING_FILE = "pairing.json"


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "w") as handle:
            json.dump(data, handle, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _read_json(path: Path) -> Any | None:
    if not path.exists():
        return None
    try:
        with path.open("r") as handle:
            return json.load(handle)
    except ValueError as exc:
        logger.warning("Ignoring corrupted %s: %s", path, exc)
        return None


class Database:
    """File-backed store for paired devices, the address cache and pending
    pairing credentials. Writes replace whole files atomically."""

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir
        self._devices_path = data_dir / DEVICES_FILE
        self._address_cache_path = data_dir / ADDRESS_CACHE_FILE
        self._pairing_path = data_dir / PAIRING_FILE

    @property
    def path(self) -> Path:
        return self._data_dir

    @property
    def devices_path(self) -> Path:
        return self._devices_path

    @property
    def address_cache_path(self) -> Path:
        return self._address_cache_path

    def ensure_dirs(self) -> None:
        self._data_dir.mkdir(parents=True, exist_ok=True)

    def init(self) -> bool:
        created = not self._devices_path.exists()
        self.ensure_dirs()
        if created:
            self.save_devices(DeviceRegistry())
        return created

    # Paired devices

    def load_devices(self) -> DeviceRegistry:
        data = _read_json(self._devices_path)
        if data is None:
            return DeviceRegistry()
        try:
            return DeviceRegistry.model_validate(data)
        except ValidationError as exc:
            logger.warning("Ignoring invalid devices file %s: %s", self._devices_path, exc)
            return DeviceRegistry()

    def save_devices(self, registry: DeviceRegistry) -> None:
        _write_json(self._devices_path, registry.model_dump(mode="json"))

    def save_device_record(self, record: DeviceRecord, make_current: bool = True) -> None:
        registry = self.load_devices()
        registry.devices[record.identity] = record
        if make_current:
            registry.last_connected = record.identity
        self.save_devices(registry)

    def load_last_device(self) -> DeviceRecord | None:
        registry = self.load_devices()
        if registry.last_connected is None:
            return None
        return registry.devices.get(registry.last_connected)

    def remove_device(self, identity: str) -> bool:
        identity = normalize_mac(identity)
        registry = self.load_devices()
        if identity not in registry.devices:
            return False
        del registry.devices[identity]
        if registry.last_connected == identity:
            registry.last_connected = None
        self.save_devices(registry)

        cache = self.load_address_cache()
        if cache.pop(identity, None) is not None:
            self.save_address_cache(cache)
        return True

    # Address cache

    def load_address_cache(self) -> dict[str, str]:
        data = _read_json(self._address_cache_path)
        if not isinstance(data, dict):
            return {}
        return {str(key): str(value) for key, value in data.items()}

    def save_address_cache(self, entries: dict[str, str]) -> None:
        _write_json(self._address_cache_path, dict(sorted(entries.items())))

    # Pending pairing credentials

    def save_home_credentials(self, credentials: HomeCredentials) -> None:
        _write_json(self._pairing_path, credentials.model_dump(mode="json"))

    def load_home_credentials(self, max_age: float) -> HomeCredentials | None:
        data = _read_json(self._pairing_path)
        if data is None:
            return None
        try:
            credentials = HomeCredentials.model_validate(data)
        except ValidationError as exc:
            logger.warning("Ignoring invalid pairing file %s: %s", self._pairing_path, exc)
            return None
        if utcnow() - credentials.saved_at > timedelta(seconds=max_age):
            logger.debug("Discarding expired home credentials")
            self.clear_home_credentials()
            return None
        return credentials

    def clear_home_credentials(self) -> None:
        self._pairing_path.unlink(missing_ok=True)
