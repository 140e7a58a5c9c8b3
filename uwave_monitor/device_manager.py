"""High-level controller orchestrating sensor connections and notifications."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from . import config, data_parser
from .ble import Characteristic, Link, TransportError
from .registry import (
    ConnectionState,
    DeviceRegistry,
    DeviceUpdate,
    NotFound,
    disconnected_update,
)

logger = logging.getLogger(__name__)


MeasurementCallback = Callable[[str, float], None]
StatusCallback = Callable[[str], None]


class ConnectionFailed(Exception):
    """Opening the link or reading the device name failed."""


class SecondaryFeatureFailed(Exception):
    """Measurement subscription or battery read failed after connecting."""


class _Superseded(Exception):
    """A connect attempt lost its claim on the device id."""


@dataclass
class _Session:
    link: Link
    attempt: object = None
    measurement_char: Optional[Characteristic] = None


@dataclass
class DeviceManager:
    """Manage per-device connect, subscribe and disconnect steps."""

    registry: DeviceRegistry
    on_status: StatusCallback = lambda msg: None
    on_measurement: MeasurementCallback = lambda device_id, value: None

    _sessions: Dict[str, _Session] = field(init=False, default_factory=dict)
    # Connects still in steps 2-3; disconnect and "Off" drop the entry.
    _attempts: Dict[str, object] = field(init=False, default_factory=dict)

    def is_live(self, device_id: str) -> bool:
        return device_id in self._sessions

    async def connect(self, device_id: str) -> None:
        record = self.registry.get(device_id)
        if record.state is not ConnectionState.DISCONNECTED:
            logger.info("%s is already %s", device_id, record.state.value)
            return

        attempt = object()
        self._attempts[device_id] = attempt
        self.registry.update_status(
            device_id,
            DeviceUpdate(
                state=ConnectionState.CONNECTING, measurement=None, battery_level=None
            ),
        )
        self.on_status(f"Connecting to {record.name}...")

        try:
            link = await record.handle.connect(
                on_disconnect=lambda: self._handle_disconnect(device_id, attempt)
            )
        except TransportError as exc:
            self._abandon(device_id, attempt)
            raise ConnectionFailed(f"Could not connect to {record.name}: {exc}") from exc

        try:
            self._claim(device_id, attempt)
            name = await self._read_name(link) or record.name
            self._claim(device_id, attempt)
            self._sessions[device_id] = _Session(link=link, attempt=attempt)
            self.registry.update_status(
                device_id, DeviceUpdate(state=ConnectionState.CONNECTED, name=name)
            )
        except (TransportError, data_parser.InvalidPayload, NotFound, _Superseded) as exc:
            session = self._sessions.get(device_id)
            if session is not None and session.link is link:
                del self._sessions[device_id]
            await self._close_link(device_id, link)
            self._abandon(device_id, attempt)
            raise ConnectionFailed(f"Could not set up {record.name}: {exc}") from exc
        del self._attempts[device_id]

        logger.info("Connected to %s (%s)", name, device_id)
        self.on_status(f"Connected to {name}")

        for step in (self._subscribe_measurement, self._read_battery):
            try:
                await step(device_id, name, link)
            except SecondaryFeatureFailed as exc:
                logger.warning("%s: %s", name, exc)

    async def disconnect(self, device_id: str) -> None:
        """Tear down the link and drop the record from the registry."""
        self._attempts.pop(device_id, None)
        await self._teardown(device_id)
        self.registry.remove(device_id)
        self.on_status(f"Removed {device_id}")

    async def disconnect_all(self) -> None:
        """Tear down every live link and reset all records, keeping them."""
        self._attempts.clear()
        for device_id in list(self._sessions):
            await self._teardown(device_id)
        self.registry.reset_all()
        self.on_status("All devices disconnected")

    # ---------------------------------------------------------- Steps --
    async def _read_name(self, link: Link) -> str:
        service = await link.get_service(config.GENERIC_ACCESS_SERVICE_UUID)
        characteristic = await service.get_characteristic(config.DEVICE_NAME_CHAR_UUID)
        return data_parser.decode_device_name(await characteristic.read_value())

    async def _subscribe_measurement(self, device_id: str, name: str, link: Link) -> None:
        try:
            service = await link.get_service(config.MEASUREMENT_SERVICE_UUID)
            characteristic = await service.get_characteristic(config.MEASUREMENT_CHAR_UUID)
            await characteristic.subscribe(
                lambda data: self._handle_notification(device_id, name, data)
            )
        except TransportError as exc:
            raise SecondaryFeatureFailed(f"measurement subscription failed: {exc}") from exc

        session = self._sessions.get(device_id)
        if session is None or session.link is not link:
            # Torn down while subscribing.
            await self._unsubscribe(device_id, characteristic)
            return
        session.measurement_char = characteristic

    async def _read_battery(self, device_id: str, name: str, link: Link) -> None:
        try:
            service = await link.get_service(config.BATTERY_SERVICE_UUID)
            characteristic = await service.get_characteristic(config.BATTERY_LEVEL_CHAR_UUID)
            level = data_parser.decode_battery_level(await characteristic.read_value())
        except (TransportError, data_parser.InvalidPayload) as exc:
            raise SecondaryFeatureFailed(f"battery read failed: {exc}") from exc

        if not self._owns(device_id, link):
            return
        self.registry.update_status(device_id, DeviceUpdate(battery_level=level))
        logger.info("%s battery at %d%%", name, level)

    # -------------------------------------------------------- Helpers --
    def _owns(self, device_id: str, link: Link) -> bool:
        session = self._sessions.get(device_id)
        return session is not None and session.link is link and device_id in self.registry

    def _claim(self, device_id: str, attempt: object) -> None:
        if self._attempts.get(device_id) is not attempt:
            raise _Superseded(f"connect to {device_id} was cancelled")
        if device_id in self._sessions:
            raise _Superseded(f"{device_id} already has a live link")
        if device_id not in self.registry:
            raise NotFound(device_id)

    def _abandon(self, device_id: str, attempt: object) -> None:
        # Only the attempt still holding the id may touch the record.
        if self._attempts.get(device_id) is attempt:
            del self._attempts[device_id]
            self._revert(device_id)

    def _revert(self, device_id: str) -> None:
        if device_id in self.registry:
            self.registry.update_status(device_id, disconnected_update())

    async def _teardown(self, device_id: str) -> None:
        session = self._sessions.pop(device_id, None)
        if session is None:
            return
        if session.measurement_char is not None:
            await self._unsubscribe(device_id, session.measurement_char)
        await self._close_link(device_id, session.link)

    async def _unsubscribe(self, device_id: str, characteristic: Characteristic) -> None:
        try:
            await characteristic.unsubscribe()
        except TransportError:
            logger.debug("unsubscribe failed for %s", device_id, exc_info=True)

    async def _close_link(self, device_id: str, link: Link) -> None:
        if not link.is_connected:
            return
        try:
            await link.disconnect()
        except TransportError:
            logger.warning("Disconnect failed for %s", device_id, exc_info=True)

    def _handle_disconnect(self, device_id: str, attempt: object) -> None:
        session = self._sessions.get(device_id)
        if session is None or session.attempt is not attempt:
            return
        del self._sessions[device_id]
        logger.info("%s dropped the connection", device_id)
        self._revert(device_id)
        self.on_status(f"{device_id} disconnected")

    def _handle_notification(self, device_id: str, name: str, data: bytes) -> None:
        try:
            value = data_parser.decode_measurement(data, name)
        except data_parser.InvalidPayload:
            logger.debug("Failed to parse measurement", exc_info=True)
            return
        if device_id not in self._sessions or device_id not in self.registry:
            return
        self.registry.update_status(device_id, DeviceUpdate(measurement=value))
        self.on_measurement(device_id, value)
