"""Tests for the command line interface."""

from __future__ import annotations

import httpx
from typer.testing import CliRunner

import aquasweeper.cli.control as control_cmd
import aquasweeper.cli.pair as pair_cmd
import aquasweeper.cli.scan as scan_cmd
import aquasweeper.cli.status as status_cmd
from aquasweeper import __version__
from aquasweeper.cli.app import app
from aquasweeper.config import get_settings, write_settings
from aquasweeper.core import NetworkState, StaticNetworkObserver
from aquasweeper.models import DeviceRecord
from aquasweeper.services import AquaSweeperServices
from aquasweeper.storage import Database
from fakes import MAC, FakeSweeper

runner = CliRunner()

HOST = "192.168.1.42"


def _use_config(settings, tmp_path, monkeypatch) -> None:
    path = tmp_path / "config.toml"
    write_settings(settings, path)
    monkeypatch.setenv("AQUASWEEPER_CONFIG", str(path))
    monkeypatch.setenv("COLUMNS", "200")
    get_settings.cache_clear()


def _fake_services(monkeypatch, network, default_observer, *modules) -> None:
    def _build(settings, observer=None):
        return AquaSweeperServices.from_settings(
            settings, observer=observer or default_observer, transport=network.transport
        )

    for module in modules:
        monkeypatch.setattr(module, "build_services", _build)


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert f"aquasweeper version {__version__}" in result.stdout


def test_version_short():
    result = runner.invoke(app, ["-v"])
    assert result.exit_code == 0
    assert f"aquasweeper version {__version__}" in result.stdout


def test_config_init_and_show(tmp_path, monkeypatch):
    path = tmp_path / "config.toml"
    data_dir = tmp_path / "sweeper-data"
    monkeypatch.setenv("AQUASWEEPER_CONFIG", str(path))

    result = runner.invoke(app, ["config", "init", "--data-dir", str(data_dir)])
    assert result.exit_code == 0
    assert path.exists()
    assert f"Device data will be kept in {data_dir}" in result.stdout

    get_settings.cache_clear()
    result = runner.invoke(app, ["config", "show"])
    assert result.exit_code == 0
    assert f"Config source: {path} (from AQUASWEEPER_CONFIG)" in result.stdout
    assert f"Data directory: {data_dir}" in result.stdout
    assert 'ap_address = "192.168.4.1"' in result.stdout


def test_config_show_single_section(settings, tmp_path, monkeypatch):
    _use_config(settings, tmp_path, monkeypatch)

    result = runner.invoke(app, ["config", "show", "--section", "connection"])
    assert result.exit_code == 0
    assert "[connection]" in result.stdout
    assert "[discovery]" not in result.stdout

    result = runner.invoke(app, ["config", "show", "--section", "wifi"])
    assert result.exit_code == 1


def test_config_check_reports_polling_budget(settings, tmp_path, monkeypatch):
    _use_config(settings, tmp_path, monkeypatch)

    result = runner.invoke(app, ["config", "check"])

    assert result.exit_code == 0
    assert "Configuration is valid" in result.stdout
    assert "Reconnecting after 3 missed polls" in result.stdout
    assert "Giving up after 10 missed polls" in result.stdout


def test_config_check_rejects_inverted_thresholds(tmp_path, monkeypatch):
    path = tmp_path / "config.toml"
    path.write_text("[connection]\nfailure_threshold = 4\nabandon_after = 2\n")
    monkeypatch.setenv("AQUASWEEPER_CONFIG", str(path))
    get_settings.cache_clear()

    result = runner.invoke(app, ["config", "check"])

    assert result.exit_code == 1


def test_init_creates_data_dir(settings, tmp_path, monkeypatch):
    _use_config(settings, tmp_path, monkeypatch)

    result = runner.invoke(app, ["init"])

    assert result.exit_code == 0
    assert (tmp_path / "data" / "devices.json").exists()


def test_scan_shows_found_device(settings, tmp_path, monkeypatch, network, observer):
    _use_config(settings, tmp_path, monkeypatch)
    _fake_services(monkeypatch, network, observer, scan_cmd)
    network.add(HOST, FakeSweeper())

    result = runner.invoke(app, ["scan", "--identity", MAC.lower(), "--no-common"])

    assert result.exit_code == 0, result.stdout
    assert HOST in result.stdout
    assert "Pool Bot" in result.stdout


def test_scan_rejects_bad_identity(settings, tmp_path, monkeypatch):
    _use_config(settings, tmp_path, monkeypatch)

    result = runner.invoke(app, ["scan", "--identity", "pool-bot"])

    assert result.exit_code == 1


def test_scan_not_found_exits_with_error(settings, tmp_path, monkeypatch, network, observer):
    _use_config(settings, tmp_path, monkeypatch)
    _fake_services(monkeypatch, network, observer, scan_cmd)

    result = runner.invoke(app, ["scan", "--no-common"])

    assert result.exit_code == 1
    assert "not found" in result.output


def test_devices_list_and_forget(settings, tmp_path, monkeypatch):
    _use_config(settings, tmp_path, monkeypatch)
    Database(tmp_path / "data").save_device_record(
        DeviceRecord(identity=MAC, display_name="Pool Bot", current_address=HOST)
    )

    result = runner.invoke(app, ["devices", "list", "--redact"])
    assert result.exit_code == 0
    assert "Pool Bot" in result.stdout
    assert HOST not in result.stdout

    result = runner.invoke(app, ["devices", "forget", MAC])
    assert result.exit_code == 0
    result = runner.invoke(app, ["devices", "forget", MAC])
    assert result.exit_code == 1


def test_status_without_paired_device(settings, tmp_path, monkeypatch):
    _use_config(settings, tmp_path, monkeypatch)

    result = runner.invoke(app, ["status"])

    assert result.exit_code == 1


def test_status_shows_device_state(settings, tmp_path, monkeypatch, network, observer):
    _use_config(settings, tmp_path, monkeypatch)
    _fake_services(monkeypatch, network, observer, status_cmd)
    network.add(HOST, FakeSweeper(battery=64))
    Database(tmp_path / "data").save_device_record(
        DeviceRecord(identity=MAC, display_name="Pool Bot", current_address=HOST)
    )

    result = runner.invoke(app, ["status"])

    assert result.exit_code == 0, result.stdout
    assert "idle" in result.stdout
    assert "64%" in result.stdout


def test_control_start(settings, tmp_path, monkeypatch, network, observer):
    _use_config(settings, tmp_path, monkeypatch)
    _fake_services(monkeypatch, network, observer, control_cmd)
    sweeper = FakeSweeper()
    network.add(HOST, sweeper)
    Database(tmp_path / "data").save_device_record(
        DeviceRecord(identity=MAC, display_name="Pool Bot", current_address=HOST)
    )

    result = runner.invoke(app, ["control", "start"])

    assert result.exit_code == 0, result.stdout
    assert sweeper.commands == [{"numericCommand": 1, "action": "start"}]
    assert "cleaning" in result.stdout


def test_pair_walks_through_every_step(settings, tmp_path, monkeypatch, network):
    _use_config(settings, tmp_path, monkeypatch)
    observer = StaticNetworkObserver(
        NetworkState(connected=True, wifi=True, ssid="AquaSweeper-2233", local_ip="192.168.4.2")
    )
    _fake_services(monkeypatch, network, observer, pair_cmd)
    sweeper = FakeSweeper()

    def _accept_and_switch(request: httpx.Request) -> httpx.Response:
        network.remove("192.168.4.1")
        network.add("192.168.1.105", sweeper)
        observer.update(
            NetworkState(connected=True, wifi=True, ssid="HomeNet", local_ip="192.168.1.10")
        )
        return httpx.Response(200, json={"success": True})

    sweeper.wifi_response = _accept_and_switch
    network.add("192.168.4.1", sweeper)

    result = runner.invoke(app, ["pair"], input="HomeNet\nsecret123\ny\ny\n")

    assert result.exit_code == 0, result.output
    assert "Paired Pool Bot" in result.stdout
    assert sweeper.wifi_posts == [{"ssid": "HomeNet", "password": "secret123"}]
    stored = Database(tmp_path / "data").load_last_device()
    assert stored is not None
    assert stored.current_address == "192.168.1.105"
