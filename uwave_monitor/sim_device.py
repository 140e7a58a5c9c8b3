"""In-memory transport that emulates UWAVE sensors."""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from . import config
from .ble import (
    Characteristic,
    DeviceFilter,
    DisconnectCallback,
    Link,
    NotificationCallback,
    Service,
    Transport,
    TransportDevice,
    TransportError,
    UserCancelled,
)
from .simulator import measurement_waveform_generator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulatedSensor:
    address: str
    advertised_name: str
    device_name: str
    battery_level: int = 100
    offset: float = 0.0


DEFAULT_SENSORS = (
    SimulatedSensor("SIM:00:00:01", config.ADVERTISED_NAME, "UWAVE-A1", 87, 12.0),
    SimulatedSensor("SIM:00:00:02", config.ADVERTISED_NAME, "07UWAVE-B2", 54, -3.0),
)


class _ReadOnlyCharacteristic(Characteristic):
    def __init__(self, value: bytes) -> None:
        self._value = value

    async def read_value(self) -> bytes:
        return self._value

    async def subscribe(self, on_change: NotificationCallback) -> None:
        raise TransportError("Characteristic does not support notifications")

    async def unsubscribe(self) -> None:
        return None


class _MeasurementCharacteristic(Characteristic):
    def __init__(self, sensor: SimulatedSensor) -> None:
        self._sensor = sensor
        self._task: Optional[asyncio.Task[None]] = None

    async def read_value(self) -> bytes:
        raise TransportError("Measurement characteristic is notify-only")

    async def subscribe(self, on_change: NotificationCallback) -> None:
        await self.unsubscribe()
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(on_change))

    async def unsubscribe(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _run(self, on_change: NotificationCallback) -> None:
        payloads = measurement_waveform_generator(
            self._sensor.device_name, offset=self._sensor.offset
        )
        period = 1.0 / config.SAMPLE_RATE_HZ
        while True:
            on_change(next(payloads))
            await asyncio.sleep(period)


class _SimulatedService(Service):
    def __init__(self, characteristics: Dict[str, Characteristic]) -> None:
        self._characteristics = characteristics

    async def get_characteristic(self, uuid: str) -> Characteristic:
        try:
            return self._characteristics[uuid]
        except KeyError:
            raise TransportError(f"Characteristic {uuid} not found") from None


class SimulatedLink(Link):
    def __init__(
        self, sensor: SimulatedSensor, on_disconnect: Optional[DisconnectCallback]
    ) -> None:
        self._on_disconnect = on_disconnect
        self._connected = True
        self._measurement = _MeasurementCharacteristic(sensor)
        self._services = {
            config.GENERIC_ACCESS_SERVICE_UUID: _SimulatedService(
                {
                    config.DEVICE_NAME_CHAR_UUID: _ReadOnlyCharacteristic(
                        sensor.device_name.encode("utf-8")
                    )
                }
            ),
            config.MEASUREMENT_SERVICE_UUID: _SimulatedService(
                {config.MEASUREMENT_CHAR_UUID: self._measurement}
            ),
            config.BATTERY_SERVICE_UUID: _SimulatedService(
                {
                    config.BATTERY_LEVEL_CHAR_UUID: _ReadOnlyCharacteristic(
                        bytes([sensor.battery_level])
                    )
                }
            ),
        }

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def disconnect(self) -> None:
        await self._measurement.unsubscribe()
        self._connected = False

    async def drop(self) -> None:
        """Simulate the sensor going out of range."""
        await self.disconnect()
        if self._on_disconnect:
            self._on_disconnect()

    async def get_service(self, uuid: str) -> Service:
        if not self._connected:
            raise TransportError("Not connected")
        try:
            return self._services[uuid]
        except KeyError:
            raise TransportError(f"Service {uuid} not found") from None


class SimulatedDevice(TransportDevice):
    def __init__(self, sensor: SimulatedSensor) -> None:
        self.sensor = sensor
        self.id = sensor.address
        self.name = sensor.advertised_name

    async def connect(
        self, on_disconnect: Optional[DisconnectCallback] = None
    ) -> Link:
        logger.debug("Simulated connect to %s", self.id)
        return SimulatedLink(self.sensor, on_disconnect)


class SimulatedTransport(Transport):
    """Hand out the simulated sensors in turn, one per request."""

    def __init__(self, sensors: Sequence[SimulatedSensor] = DEFAULT_SENSORS) -> None:
        self._sensors = list(sensors)
        self._cycle = itertools.cycle(range(len(self._sensors)))

    async def request_device(self, device_filter: DeviceFilter) -> TransportDevice:
        for _ in range(len(self._sensors)):
            sensor = self._sensors[next(self._cycle)]
            if device_filter.matches(sensor.advertised_name, [config.MEASUREMENT_SERVICE_UUID]):
                return SimulatedDevice(sensor)
        raise UserCancelled("No simulated sensor matches the filter")
