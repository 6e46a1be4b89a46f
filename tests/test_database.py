"""Tests for Database class."""

from __future__ import annotations

from datetime import timedelta

from aquasweeper.models import DeviceRecord, HomeCredentials
from aquasweeper.models.device import utcnow
from aquasweeper.storage import Database

MAC = "AA:BB:CC:11:22:33"


def _record(identity: str = MAC, address: str = "192.168.1.42") -> DeviceRecord:
    return DeviceRecord(identity=identity, display_name="Pool Bot", current_address=address)


def test_init_creates_empty_registry(tmp_path):
    db = Database(tmp_path / "data")

    assert db.init() is True
    assert db.init() is False
    assert db.load_devices().devices == {}


def test_device_record_roundtrip(tmp_path):
    db = Database(tmp_path)
    db.save_device_record(_record())

    loaded = db.load_last_device()
    assert loaded is not None
    assert loaded.identity == MAC
    assert loaded.current_address == "192.168.1.42"


def test_save_without_making_current(tmp_path):
    db = Database(tmp_path)
    db.save_device_record(_record())
    db.save_device_record(_record("DE:AD:BE:EF:00:01"), make_current=False)

    assert db.load_last_device().identity == MAC
    assert len(db.load_devices().devices) == 2


def test_remove_device_drops_cache_entry(tmp_path):
    db = Database(tmp_path)
    db.save_device_record(_record())
    db.save_address_cache({MAC: "192.168.1.42"})

    assert db.remove_device("aa:bb:cc:11:22:33") is True
    assert db.remove_device(MAC) is False
    assert db.load_last_device() is None
    assert db.load_address_cache() == {}


def test_corrupted_devices_file_is_ignored(tmp_path):
    db = Database(tmp_path)
    db.devices_path.write_text("[1, 2")

    assert db.load_devices().devices == {}


def test_undecodable_devices_file_is_ignored(tmp_path):
    db = Database(tmp_path)
    db.devices_path.write_bytes(b"\xff\xfe{garbage")

    assert db.load_devices().devices == {}
    assert db.load_last_device() is None


def test_home_credentials_expire(tmp_path):
    db = Database(tmp_path)
    stale = HomeCredentials(
        ssid="HomeNet", password="secret123", saved_at=utcnow() - timedelta(minutes=10)
    )
    db.save_home_credentials(stale)

    assert db.load_home_credentials(max_age=300) is None
    assert db.load_home_credentials(max_age=3600) is None


def test_home_credentials_cleared(tmp_path):
    db = Database(tmp_path)
    db.save_home_credentials(HomeCredentials(ssid="HomeNet", password="secret123"))
    assert db.load_home_credentials(max_age=300) is not None

    db.clear_home_credentials()
    db.clear_home_credentials()

    assert db.load_home_credentials(max_age=300) is None
