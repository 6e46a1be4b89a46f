from __future__ import annotations

import pytest

from aquasweeper.config import (
    ConnectionConfig,
    DatabaseConfig,
    PairingConfig,
    Settings,
    get_settings,
)
from aquasweeper.core import NetworkState, StaticNetworkObserver
from aquasweeper.storage import Database
from fakes import FakeNetwork


@pytest.fixture(autouse=True)
def _isolate_settings_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("AQUASWEEPER_CONFIG", raising=False)
    monkeypatch.delenv("LOGLEVEL", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def network() -> FakeNetwork:
    return FakeNetwork()


@pytest.fixture
def home_state() -> NetworkState:
    return NetworkState(connected=True, wifi=True, ssid="HomeNet", local_ip="192.168.1.10")


@pytest.fixture
def observer(home_state: NetworkState) -> StaticNetworkObserver:
    return StaticNetworkObserver(home_state)


@pytest.fixture
def database(tmp_path) -> Database:
    return Database(tmp_path / "data")


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database=DatabaseConfig(path=str(tmp_path / "data")),
        connection=ConnectionConfig(poll_interval=3600, restore_retry_delay=0),
        pairing=PairingConfig(settle_delay=0),
    )
