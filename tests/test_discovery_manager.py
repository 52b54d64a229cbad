"""End-to-end tests for the discovery cycle with a scripted browser and mock devices."""

import asyncio
import dataclasses
import io

import pytest

from config_loader import DiscoveryConfig
from discovery.manager import ShellyDiscovery
from discovery.mdns_browser import DiscoveryError
from discovery.models import ServiceRecord
from report_formatter import HEADER_ROW

from conftest import FakeBrowser, RoutedClient, SHELLY_RECORD, WORKSTATION_RECORD


def _lines(output: io.StringIO):
    return output.getvalue().split("\n")


@pytest.mark.asyncio
async def test_end_to_end_single_shelly_row(discovery_config, mock_server):
    mock_server.add_device("192.168.1.10")
    mock_server.add_device("192.168.1.20")
    client = RoutedClient(mock_server)
    browser = FakeBrowser([SHELLY_RECORD, WORKSTATION_RECORD])
    output = io.StringIO()

    discovery = ShellyDiscovery(discovery_config, client=client, browser=browser, output=output)
    result = await discovery.run_cycle()

    assert _lines(output) == [
        HEADER_ROW,
        '"shelly1-ABCDEF";"http://192.168.1.10";"-50";"22.30";"dhcp";'
        '"\t192.168.1.10";"255.255.255.0";"192.168.1.1"',
        "",
        "",
    ]
    assert client.queried == ["192.168.1.10"]
    assert result.records_seen == 2
    assert result.devices_matched == 1
    assert result.rows_emitted == 1
    assert browser.service_type == "_http._tcp.local."
    assert browser.stopped == 1


@pytest.mark.asyncio
async def test_non_matching_records_emit_nothing(discovery_config, mock_server):
    records = [
        WORKSTATION_RECORD,
        ServiceRecord(name="printer", hostname="printer.local.", address="192.168.1.30"),
        # match is case-sensitive
        ServiceRecord(name="Shelly", hostname="Shelly-Upper.local.", address="192.168.1.31"),
        # only the first label counts
        ServiceRecord(name="nas", hostname="nas.shelly.local.", address="192.168.1.32"),
    ]
    client = RoutedClient(mock_server)
    output = io.StringIO()

    discovery = ShellyDiscovery(discovery_config, client=client,
                                browser=FakeBrowser(records), output=output)
    result = await discovery.run_cycle()

    assert _lines(output) == [HEADER_ROW, "", ""]
    assert client.queried == []
    assert result.records_seen == 4
    assert result.rows_emitted == 0


@pytest.mark.asyncio
async def test_unreachable_device_still_emits_row(discovery_config, mock_server):
    client = RoutedClient(mock_server, unreachable={"192.168.1.10"})
    output = io.StringIO()

    discovery = ShellyDiscovery(discovery_config, client=client,
                                browser=FakeBrowser([SHELLY_RECORD]), output=output)
    result = await discovery.run_cycle()

    assert _lines(output) == [
        HEADER_ROW,
        '"shelly1-ABCDEF";"http://192.168.1.10";"0";"";"";"\t192.168.1.10";"";""',
        "",
        "",
    ]
    assert result.rows_emitted == 1
    assert result.devices_with_errors == 1


@pytest.mark.asyncio
async def test_skip_policy_drops_failed_devices(discovery_config, mock_server):
    mock_server.add_device("192.168.1.11")
    second = ServiceRecord(name="shellyplug", hostname="shellyplug-s-1A2B3C.local.",
                           address="192.168.1.11")
    client = RoutedClient(mock_server, unreachable={"192.168.1.10"})
    config = dataclasses.replace(discovery_config, on_error="skip")
    output = io.StringIO()

    discovery = ShellyDiscovery(config, client=client,
                                browser=FakeBrowser([SHELLY_RECORD, second]), output=output)
    result = await discovery.run_cycle()

    lines = _lines(output)
    assert len(lines) == 4
    assert lines[1].startswith('"shellyplug-s-1A2B3C";')
    assert result.rows_skipped == 1
    assert result.rows_emitted == 1


@pytest.mark.asyncio
async def test_rows_follow_arrival_order(discovery_config, mock_server):
    records = [
        ServiceRecord(name=f"shelly{i}", hostname=f"shellydimmer-{i}.local.", address=f"10.0.0.{i}")
        for i in (3, 1, 2)
    ]
    for record in records:
        mock_server.add_device(record.address)
    output = io.StringIO()

    discovery = ShellyDiscovery(discovery_config, client=RoutedClient(mock_server),
                                browser=FakeBrowser(records), output=output)
    await discovery.run_cycle()

    hostnames = [line.split(";")[0] for line in _lines(output)[1:4]]
    assert hostnames == ['"shellydimmer-3"', '"shellydimmer-1"', '"shellydimmer-2"']


@pytest.mark.asyncio
async def test_records_after_window_are_dropped(mock_server):
    late = ServiceRecord(name="late", hostname="shelly1-LATE.local.", address="192.168.1.99")
    mock_server.add_device("192.168.1.99")
    client = RoutedClient(mock_server)
    browser = FakeBrowser([late], delay=0.5)
    output = io.StringIO()

    discovery = ShellyDiscovery(DiscoveryConfig(wait_seconds=0.1), client=client,
                                browser=browser, output=output)
    result = await discovery.run_cycle()

    assert _lines(output) == [HEADER_ROW, "", ""]
    assert result.rows_emitted == 0
    assert client.queried == []


@pytest.mark.asyncio
async def test_in_flight_device_completes_after_window(mock_server):
    mock_server.add_device("192.168.1.10")
    mock_server.delay = 0.2
    client = RoutedClient(mock_server)
    output = io.StringIO()

    discovery = ShellyDiscovery(DiscoveryConfig(wait_seconds=0.1), client=client,
                                browser=FakeBrowser([SHELLY_RECORD]), output=output)
    result = await discovery.run_cycle()

    lines = _lines(output)
    assert lines[0] == HEADER_ROW
    assert lines[1].startswith('"shelly1-ABCDEF";')
    assert lines[2:] == ["", ""]
    assert result.rows_emitted == 1


@pytest.mark.asyncio
async def test_browse_failure_raises(discovery_config):
    output = io.StringIO()
    discovery = ShellyDiscovery(discovery_config, browser=FakeBrowser(fail=True), output=output)

    with pytest.raises(DiscoveryError):
        await discovery.run_cycle()


@pytest.mark.asyncio
async def test_header_and_trailer_once_per_cycle(discovery_config, mock_server):
    mock_server.add_device("192.168.1.10")
    output = io.StringIO()
    discovery = ShellyDiscovery(discovery_config, client=RoutedClient(mock_server),
                                browser=FakeBrowser([SHELLY_RECORD]), output=output)

    await discovery.run_cycle()
    await discovery.run_cycle()

    lines = _lines(output)
    assert lines.count(HEADER_ROW) == 2
    assert lines == [HEADER_ROW, lines[1], "", HEADER_ROW, lines[1], "", ""]


@pytest.mark.asyncio
async def test_cancelled_cycle_stops_browser(mock_server):
    browser = FakeBrowser()
    discovery = ShellyDiscovery(DiscoveryConfig(wait_seconds=30), client=RoutedClient(mock_server),
                                browser=browser, output=io.StringIO())

    task = asyncio.ensure_future(discovery.run_cycle())
    await asyncio.sleep(0.05)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert browser.stopped == 1
