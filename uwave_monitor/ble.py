"""Bluetooth Low Energy transport built on top of bleak.

The core only talks to the abstract classes below; ``BleakTransport`` is the
real backend and ``sim_device.SimulatedTransport`` the in-memory one.
"""

from __future__ import annotations

import abc
import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Iterator, List, Optional, Tuple

from bleak import BleakClient, BleakScanner
from bleak.backends.device import BLEDevice
from bleak.exc import BleakError

from . import config

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """A transport call was rejected."""


class UserCancelled(Exception):
    """Device selection was dismissed without choosing a device."""


NotificationCallback = Callable[[bytes], None]
DisconnectCallback = Callable[[], None]


@dataclass(frozen=True)
class DeviceFilter:
    """Which advertisements a device request accepts.

    A device matches when it advertises any of ``services`` or its name is
    one of ``names``. ``optional_services`` are the extra services the
    caller intends to read after connecting."""

    services: Tuple[str, ...] = ()
    names: Tuple[str, ...] = ()
    optional_services: Tuple[str, ...] = ()

    def matches(self, name: Optional[str], service_uuids: Iterable[str]) -> bool:
        if name and name in self.names:
            return True
        wanted = {uuid.lower() for uuid in self.services}
        return any(uuid.lower() in wanted for uuid in service_uuids)


class Characteristic(abc.ABC):
    @abc.abstractmethod
    async def read_value(self) -> bytes:
        ...

    @abc.abstractmethod
    async def subscribe(self, on_change: NotificationCallback) -> None:
        ...

    @abc.abstractmethod
    async def unsubscribe(self) -> None:
        ...


class Service(abc.ABC):
    @abc.abstractmethod
    async def get_characteristic(self, uuid: str) -> Characteristic:
        ...


class Link(abc.ABC):
    """A live GATT connection to one device."""

    @property
    @abc.abstractmethod
    def is_connected(self) -> bool:
        ...

    @abc.abstractmethod
    async def disconnect(self) -> None:
        ...

    @abc.abstractmethod
    async def get_service(self, uuid: str) -> Service:
        ...


class TransportDevice(abc.ABC):
    id: str
    name: Optional[str]

    @abc.abstractmethod
    async def connect(
        self, on_disconnect: Optional[DisconnectCallback] = None
    ) -> Link:
        ...


class Transport(abc.ABC):
    @abc.abstractmethod
    async def request_device(self, device_filter: DeviceFilter) -> TransportDevice:
        ...


@contextlib.contextmanager
def _transport_errors(action: str) -> Iterator[None]:
    try:
        yield
    except (BleakError, asyncio.TimeoutError, OSError) as exc:
        raise TransportError(f"{action} failed: {exc}") from exc


# --------------------------------------------------------------- bleak --
@dataclass
class BleDeviceInfo:
    """Snapshot of a BLE device discovered during a scan."""

    name: str
    address: str
    rssi: Optional[int]
    device: BLEDevice


Chooser = Callable[[List[BleDeviceInfo]], Awaitable[Optional[BleDeviceInfo]]]


async def choose_first(candidates: List[BleDeviceInfo]) -> Optional[BleDeviceInfo]:
    """Pick the strongest candidate without asking."""
    if not candidates:
        return None
    return max(candidates, key=lambda info: info.rssi if info.rssi is not None else -999)


class BleakCharacteristic(Characteristic):
    def __init__(self, client: BleakClient, characteristic) -> None:
        self._client = client
        self._characteristic = characteristic

    async def read_value(self) -> bytes:
        with _transport_errors(f"Reading {self._characteristic.uuid}"):
            return bytes(await self._client.read_gatt_char(self._characteristic))

    async def subscribe(self, on_change: NotificationCallback) -> None:
        with _transport_errors(f"Subscribing to {self._characteristic.uuid}"):
            await self._client.start_notify(
                self._characteristic, lambda _, data: on_change(bytes(data))
            )

    async def unsubscribe(self) -> None:
        with _transport_errors(f"Unsubscribing from {self._characteristic.uuid}"):
            await self._client.stop_notify(self._characteristic)


class BleakService(Service):
    def __init__(self, client: BleakClient, service) -> None:
        self._client = client
        self._service = service

    async def get_characteristic(self, uuid: str) -> Characteristic:
        with _transport_errors(f"Looking up characteristic {uuid}"):
            characteristic = self._service.get_characteristic(uuid)
        if characteristic is None:
            raise TransportError(f"Characteristic {uuid} not found")
        return BleakCharacteristic(self._client, characteristic)


class BleakLink(Link):
    def __init__(self, client: BleakClient) -> None:
        self._client = client

    @property
    def is_connected(self) -> bool:
        return self._client.is_connected

    async def disconnect(self) -> None:
        with _transport_errors("Disconnect"):
            await self._client.disconnect()

    async def get_service(self, uuid: str) -> Service:
        with _transport_errors(f"Looking up service {uuid}"):
            service = self._client.services.get_service(uuid)
        if service is None:
            if uuid == config.GENERIC_ACCESS_SERVICE_UUID:
                # BlueZ and CoreBluetooth keep 0x1800 to themselves.
                logger.warning(
                    "Generic Access service is hidden by the OS Bluetooth stack; "
                    "the device name cannot be read over GATT"
                )
                raise TransportError(
                    f"Service {uuid} (Generic Access) not exposed by the host"
                )
            raise TransportError(f"Service {uuid} not found")
        return BleakService(self._client, service)


class BleakTransportDevice(TransportDevice):
    def __init__(self, device: BLEDevice, name: Optional[str]) -> None:
        self._device = device
        self.id = device.address
        self.name = name

    async def connect(
        self, on_disconnect: Optional[DisconnectCallback] = None
    ) -> Link:
        callback = (lambda _: on_disconnect()) if on_disconnect else None
        client = BleakClient(self._device, disconnected_callback=callback)
        with _transport_errors(f"Connecting to {self.id}"):
            await client.connect()
        return BleakLink(client)


class BleakTransport(Transport):
    """Scan with bleak and let ``chooser`` pick among matching devices."""

    def __init__(
        self,
        chooser: Chooser = choose_first,
        scan_timeout: float = config.DEFAULT_SCAN_TIMEOUT,
    ) -> None:
        self._chooser = chooser
        self.scan_timeout = scan_timeout

    async def scan(self, device_filter: DeviceFilter) -> List[BleDeviceInfo]:
        """Scan for BLE devices accepted by ``device_filter``."""
        with _transport_errors("Scan"):
            found = await BleakScanner.discover(
                timeout=self.scan_timeout, return_adv=True
            )

        result = []
        for device, adv_data in found.values():
            name = adv_data.local_name or device.name
            if not device_filter.matches(name, adv_data.service_uuids):
                continue
            result.append(
                BleDeviceInfo(
                    name=name or config.DEFAULT_DEVICE_NAME,
                    address=device.address,
                    rssi=adv_data.rssi,
                    device=device,
                )
            )
        logger.debug("Scan found %d matching device(s)", len(result))
        return result

    async def request_device(self, device_filter: DeviceFilter) -> TransportDevice:
        candidates = await self.scan(device_filter)
        chosen = await self._chooser(candidates)
        if chosen is None:
            raise UserCancelled("No device selected")
        return BleakTransportDevice(chosen.device, chosen.name)
