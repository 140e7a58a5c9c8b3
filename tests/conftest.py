from __future__ import annotations

import asyncio
from typing import Dict, List, Optional

import pytest

from uwave_monitor import config
from uwave_monitor.ble import (
    Characteristic,
    DeviceFilter,
    Link,
    Service,
    Transport,
    TransportDevice,
    TransportError,
)
from uwave_monitor.device_manager import DeviceManager
from uwave_monitor.registry import DeviceRecord, DeviceRegistry


class FakeCharacteristic(Characteristic):
    def __init__(self, value: bytes = b"", fail: bool = False) -> None:
        self.value = value
        self.fail = fail
        self.callback = None
        self.unsubscribed = 0
        self.gate: Optional[asyncio.Event] = None
        self.waiting = 0

    async def read_value(self) -> bytes:
        if self.gate is not None:
            self.waiting += 1
            await self.gate.wait()
        if self.fail:
            raise TransportError("read rejected")
        return self.value

    async def subscribe(self, on_change) -> None:
        if self.fail:
            raise TransportError("subscribe rejected")
        self.callback = on_change

    async def unsubscribe(self) -> None:
        self.unsubscribed += 1
        self.callback = None

    def notify(self, data: bytes) -> None:
        assert self.callback is not None, "not subscribed"
        self.callback(data)


class FakeService(Service):
    def __init__(self, characteristics: Dict[str, FakeCharacteristic]) -> None:
        self.characteristics = characteristics

    async def get_characteristic(self, uuid: str) -> Characteristic:
        if uuid not in self.characteristics:
            raise TransportError(f"no characteristic {uuid}")
        return self.characteristics[uuid]


class FakeLink(Link):
    def __init__(self, services: Dict[str, FakeService]) -> None:
        self.services = services
        self.connected = True
        self.disconnects = 0

    @property
    def is_connected(self) -> bool:
        return self.connected

    async def disconnect(self) -> None:
        self.disconnects += 1
        self.connected = False

    async def get_service(self, uuid: str) -> Service:
        if uuid not in self.services:
            raise TransportError(f"no service {uuid}")
        return self.services[uuid]


class FakeDevice(TransportDevice):
    def __init__(
        self,
        device_id: str = "AA:BB:CC:DD:EE:01",
        name: Optional[str] = "UWAVE",
        device_name: bytes = b"UWAVE-1",
        battery: bytes = b"\x55",
        fail_at: Optional[str] = None,
    ) -> None:
        self.id = device_id
        self.name = name
        self.fail_at = fail_at
        self.on_disconnect = None
        self.name_char = FakeCharacteristic(device_name, fail=fail_at == "name")
        self.measurement_char = FakeCharacteristic(fail=fail_at == "measurement")
        self.battery_char = FakeCharacteristic(battery, fail=fail_at == "battery")
        self.link: Optional[FakeLink] = None
        self.links: List[FakeLink] = []
        self.disconnect_callbacks = []

    async def connect(self, on_disconnect=None) -> Link:
        if self.fail_at == "connect":
            raise TransportError("connect rejected")
        self.on_disconnect = on_disconnect
        self.disconnect_callbacks.append(on_disconnect)
        self.link = FakeLink(
            {
                config.GENERIC_ACCESS_SERVICE_UUID: FakeService(
                    {config.DEVICE_NAME_CHAR_UUID: self.name_char}
                ),
                config.MEASUREMENT_SERVICE_UUID: FakeService(
                    {config.MEASUREMENT_CHAR_UUID: self.measurement_char}
                ),
                config.BATTERY_SERVICE_UUID: FakeService(
                    {config.BATTERY_LEVEL_CHAR_UUID: self.battery_char}
                ),
            }
        )
        self.links.append(self.link)
        return self.link

    def drop(self) -> None:
        """Behave like the peripheral going out of range."""
        self.link.connected = False
        self.on_disconnect()


class FakeTransport(Transport):
    def __init__(self, devices: List[TransportDevice] = (), error: Exception = None) -> None:
        self.devices = list(devices)
        self.error = error
        self.filters: List[DeviceFilter] = []

    async def request_device(self, device_filter: DeviceFilter) -> TransportDevice:
        self.filters.append(device_filter)
        if self.error is not None:
            raise self.error
        return self.devices.pop(0)


@pytest.fixture
def registry() -> DeviceRegistry:
    return DeviceRegistry()


@pytest.fixture
def statuses() -> List[str]:
    return []


@pytest.fixture
def measurements() -> list:
    return []


@pytest.fixture
def manager(registry, statuses, measurements) -> DeviceManager:
    return DeviceManager(
        registry=registry,
        on_status=statuses.append,
        on_measurement=lambda device_id, value: measurements.append((device_id, value)),
    )


@pytest.fixture
def add_device(registry):
    def _add(**kwargs) -> FakeDevice:
        device = FakeDevice(**kwargs)
        registry.add(DeviceRecord(id=device.id, name=device.name or "Unknown Device", handle=device))
        return device

    return _add
