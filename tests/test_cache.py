from __future__ import annotations

from aquasweeper.core import AddressCache
from aquasweeper.storage import Database


def test_put_get_survives_restart(tmp_path):
    cache = AddressCache(Database(tmp_path))
    cache.put("aa:bb:cc:11:22:33", "192.168.1.42")

    reloaded = AddressCache(Database(tmp_path))
    reloaded.load_all()

    assert reloaded.get("AA:BB:CC:11:22:33") == "192.168.1.42"


def test_last_write_wins(tmp_path):
    cache = AddressCache(Database(tmp_path))
    cache.put("AA:BB:CC:11:22:33", "192.168.1.42")
    cache.put("AA:BB:CC:11:22:33", "192.168.1.77")

    assert cache.get("aabbcc112233") == "192.168.1.77"
    assert len(cache) == 1


def test_forget_removes_entry_on_disk(tmp_path):
    db = Database(tmp_path)
    cache = AddressCache(db)
    cache.put("AA:BB:CC:11:22:33", "192.168.1.42")

    cache.forget("AA:BB:CC:11:22:33")

    assert cache.get("AA:BB:CC:11:22:33") is None
    assert db.load_address_cache() == {}


def test_write_failure_keeps_memory_entry(tmp_path, monkeypatch, caplog):
    db = Database(tmp_path)
    cache = AddressCache(db)

    def _fail(_entries):
        raise PermissionError("read-only filesystem")

    monkeypatch.setattr(db, "save_address_cache", _fail)
    cache.put("AA:BB:CC:11:22:33", "192.168.1.42")

    assert cache.get("AA:BB:CC:11:22:33") == "192.168.1.42"
    assert "Could not persist address cache" in caplog.text


def test_corrupt_file_loads_empty(tmp_path):
    db = Database(tmp_path)
    db.address_cache_path.write_text("{not json")

    cache = AddressCache(db)
    cache.load_all()

    assert len(cache) == 0


def test_bad_identity_in_file_is_dropped(tmp_path):
    db = Database(tmp_path)
    db.save_address_cache({"not-a-mac": "192.168.1.5", "AA:BB:CC:11:22:33": "192.168.1.42"})

    cache = AddressCache(db)
    cache.load_all()

    assert cache.entries() == {"AA:BB:CC:11:22:33": "192.168.1.42"}


def test_undecodable_file_loads_empty(tmp_path):
    db = Database(tmp_path)
    db.address_cache_path.write_bytes(b"\xff\xfe{garbage")

    cache = AddressCache(db)
    cache.load_all()

    assert len(cache) == 0
