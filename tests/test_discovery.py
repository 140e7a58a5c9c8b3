import pytest

from uwave_monitor import config
from uwave_monitor.ble import DeviceFilter, TransportError, UserCancelled
from uwave_monitor.discovery import UWAVE_FILTER, DiscoveryGateway
from uwave_monitor.registry import ConnectionState

from .conftest import FakeDevice, FakeTransport


async def test_discover_adds_disconnected_record(registry):
    device = FakeDevice(name="UWAVE")
    gateway = DiscoveryGateway(FakeTransport([device]), registry)

    record = await gateway.discover()

    assert record.id == device.id
    assert record.name == "UWAVE"
    assert record.handle is device
    assert record.state is ConnectionState.DISCONNECTED
    assert registry.snapshot() == (record,)


async def test_nameless_device_gets_default_name(registry):
    gateway = DiscoveryGateway(FakeTransport([FakeDevice(name=None)]), registry)
    record = await gateway.discover()
    assert record.name == "Unknown Device"


async def test_duplicate_discovery_is_a_no_op(registry):
    first = FakeDevice(name="UWAVE")
    again = FakeDevice(name="renamed")
    gateway = DiscoveryGateway(FakeTransport([first, again]), registry)

    await gateway.discover()
    record = await gateway.discover()

    assert len(registry) == 1
    assert record.name == "UWAVE"
    assert record.handle is first


async def test_request_uses_uwave_filter(registry):
    transport = FakeTransport([FakeDevice()])
    await DiscoveryGateway(transport, registry).discover()

    (used,) = transport.filters
    assert used is UWAVE_FILTER
    assert used.services == (config.MEASUREMENT_SERVICE_UUID,)
    assert used.names == ("UWAVE",)
    assert set(used.optional_services) == {
        config.GENERIC_ACCESS_SERVICE_UUID,
        config.BATTERY_SERVICE_UUID,
    }


@pytest.mark.parametrize("error", [UserCancelled("dismissed"), TransportError("adapter off")])
async def test_transport_errors_propagate(registry, error):
    gateway = DiscoveryGateway(FakeTransport(error=error), registry)
    with pytest.raises(type(error)):
        await gateway.discover()
    assert len(registry) == 0


def test_filter_matches_name_or_service():
    device_filter = DeviceFilter(services=("7EAFD361-F150-4785-B307-47D34ED52C3C",), names=("UWAVE",))
    assert device_filter.matches("UWAVE", [])
    assert device_filter.matches(None, [config.MEASUREMENT_SERVICE_UUID])
    assert not device_filter.matches("UWAVE-2", ["0000180f-0000-1000-8000-00805f9b34fb"])
    assert not device_filter.matches(None, [])
