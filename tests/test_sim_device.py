import asyncio

import pytest

from uwave_monitor.device_manager import DeviceManager
from uwave_monitor.discovery import DiscoveryGateway
from uwave_monitor.registry import ConnectionState, DeviceRegistry
from uwave_monitor.sim_device import DEFAULT_SENSORS, SimulatedTransport


@pytest.fixture
def sim_setup():
    registry = DeviceRegistry()
    measurements = []
    manager = DeviceManager(
        registry=registry,
        on_measurement=lambda device_id, value: measurements.append((device_id, value)),
    )
    gateway = DiscoveryGateway(SimulatedTransport(), registry)
    return registry, manager, gateway, measurements


async def test_sensors_are_handed_out_in_turn(sim_setup):
    registry, _, gateway, _ = sim_setup
    for _ in range(3):
        await gateway.discover()
    assert [r.id for r in registry.snapshot()] == [s.address for s in DEFAULT_SENSORS]


async def test_simulated_sensor_streams_measurements(sim_setup):
    registry, manager, gateway, measurements = sim_setup
    record = await gateway.discover()

    await manager.connect(record.id)
    await asyncio.sleep(0.25)

    connected = registry.get(record.id)
    assert connected.state is ConnectionState.CONNECTED
    assert connected.name == DEFAULT_SENSORS[0].device_name
    assert connected.battery_level == DEFAULT_SENSORS[0].battery_level
    assert connected.measurement is not None
    assert measurements

    await manager.disconnect(record.id)
    count = len(measurements)
    await asyncio.sleep(0.25)
    assert len(measurements) == count


async def test_off_stops_simulated_streams(sim_setup):
    registry, manager, gateway, measurements = sim_setup
    for _ in DEFAULT_SENSORS:
        record = await gateway.discover()
        await manager.connect(record.id)

    await manager.disconnect_all()
    count = len(measurements)
    await asyncio.sleep(0.25)

    assert len(measurements) == count
    assert all(r.state is ConnectionState.DISCONNECTED for r in registry.snapshot())
