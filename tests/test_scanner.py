from __future__ import annotations

import asyncio

import httpx
import pytest

from aquasweeper.config import DiscoveryConfig
from aquasweeper.core import (
    AddressCache,
    DeviceProbe,
    DiscoveryScanner,
    NetworkState,
    StaticNetworkObserver,
    subnet_candidates,
)
from aquasweeper.core.scanner import SOURCE_ACCESS_POINT, SOURCE_CACHE, SOURCE_SUBNET
from aquasweeper.errors import DeviceNotFound, NetworkUnavailable
from fakes import MAC, FakeNetwork, FakeSweeper

OTHER_MAC = "DE:AD:BE:EF:00:01"


def _scanner(network: FakeNetwork, observer, database) -> DiscoveryScanner:
    probe = DeviceProbe(transport=network.transport)
    return DiscoveryScanner(probe, AddressCache(database), observer, DiscoveryConfig())


def test_candidate_order_prefers_dhcp_bands():
    addresses = list(subnet_candidates("192.168.1"))

    assert addresses[:2] == ["192.168.1.2", "192.168.1.3"]
    assert addresses.index("192.168.1.100") == 19
    assert addresses.index("192.168.1.21") > addresses.index("192.168.1.150")
    assert addresses[-1] == "192.168.1.254"
    assert len(addresses) == 253


def test_finds_device_and_stops_probing(network, observer, database):
    network.add("192.168.1.77", FakeSweeper())
    scanner = _scanner(network, observer, database)

    result = asyncio.run(scanner.find(MAC))

    assert result.address == "192.168.1.77"
    assert result.source == SOURCE_SUBNET
    probed = network.probed("/discover")
    assert probed[-1] == "192.168.1.77"
    assert probed.count("192.168.1.77") == 1
    assert "192.168.0.2" not in probed


def test_found_address_is_cached(network, observer, database):
    network.add("192.168.1.120", FakeSweeper())
    scanner = _scanner(network, observer, database)

    asyncio.run(scanner.find(MAC))

    assert database.load_address_cache() == {MAC: "192.168.1.120"}


def test_cached_address_is_tried_first(network, observer, database):
    network.add("192.168.1.200", FakeSweeper())
    cache = AddressCache(database)
    cache.put(MAC, "192.168.1.200")
    scanner = DiscoveryScanner(DeviceProbe(transport=network.transport), cache, observer)

    result = asyncio.run(scanner.find(MAC))

    assert result.source == SOURCE_CACHE
    assert network.probed() == ["192.168.1.200"]


def test_other_devices_of_the_family_are_skipped(network, observer, database):
    network.add("192.168.1.5", FakeSweeper(mac=OTHER_MAC))
    network.add("192.168.1.110", FakeSweeper())
    scanner = _scanner(network, observer, database)

    result = asyncio.run(scanner.find(MAC))

    assert result.address == "192.168.1.110"


def test_on_device_access_point_only_ap_address_is_probed(network, database):
    observer = StaticNetworkObserver(
        NetworkState(connected=True, wifi=True, ssid="AquaSweeper-3322", local_ip="192.168.4.2")
    )
    network.add("192.168.4.1", FakeSweeper())
    scanner = _scanner(network, observer, database)

    result = asyncio.run(scanner.find())

    assert result.source == SOURCE_ACCESS_POINT
    assert network.probed() == ["192.168.4.1"]
    assert database.load_address_cache() == {}


def test_silent_access_point_fails_fast(network, database):
    observer = StaticNetworkObserver(
        NetworkState(connected=True, wifi=True, ssid="AquaSweeper-3322", local_ip="192.168.4.2")
    )
    scanner = _scanner(network, observer, database)

    with pytest.raises(DeviceNotFound):
        asyncio.run(scanner.find())
    assert network.probed() == ["192.168.4.1"]


def test_common_subnets_are_swept_after_own(network, database):
    observer = StaticNetworkObserver(NetworkState(connected=True, local_ip="172.16.5.9"))
    network.add("10.0.0.101", FakeSweeper())
    scanner = _scanner(network, observer, database)

    result = asyncio.run(scanner.find(MAC))

    assert result.address == "10.0.0.101"
    probed = network.probed()
    assert probed[0] == "172.16.5.2"
    assert "192.168.1.2" in probed
    assert "192.168.1.21" not in probed


def test_exhausted_scan_raises_device_not_found(network, observer, database):
    scanner = _scanner(network, observer, database)

    with pytest.raises(DeviceNotFound):
        asyncio.run(scanner.find(MAC, include_common=False))
    assert len(network.probed()) == 253


def test_no_network_raises(network, database):
    scanner = _scanner(network, StaticNetworkObserver(), database)

    with pytest.raises(NetworkUnavailable):
        asyncio.run(scanner.find(MAC))
    assert network.requests == []


def test_concurrent_scans_for_same_identity_share_one_sweep(network, observer, database):
    network.add("192.168.1.130", FakeSweeper())
    scanner = _scanner(network, observer, database)

    async def _run():
        first = asyncio.create_task(scanner.find(MAC))
        await asyncio.sleep(0)
        assert scanner.is_scanning(MAC)
        second = await scanner.find(MAC.lower())
        return await first, second

    first, second = asyncio.run(_run())

    assert first == second
    assert network.probed().count("192.168.1.130") == 1
    assert not scanner.is_scanning(MAC)


def test_cancel_event_stops_the_sweep(network, observer, database):
    scanner = _scanner(network, observer, database)
    cancel = asyncio.Event()
    seen: list[str] = []

    def _cancel_after_three(request):
        seen.append(request.url.host)
        if len(seen) == 3:
            cancel.set()
        raise httpx.ConnectError("Connection refused", request=request)

    for host in subnet_candidates("192.168.1"):
        network.add(host, _cancel_after_three)

    with pytest.raises(asyncio.CancelledError):
        asyncio.run(scanner.find(MAC, cancel=cancel))
    assert len(seen) == 3
