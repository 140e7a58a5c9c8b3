"""Discovery of UWAVE sensors through the transport's device request."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from . import config
from .ble import DeviceFilter, Transport
from .registry import DeviceRecord, DeviceRegistry, DuplicateDevice

logger = logging.getLogger(__name__)


UWAVE_FILTER = DeviceFilter(
    services=(config.MEASUREMENT_SERVICE_UUID,),
    names=(config.ADVERTISED_NAME,),
    optional_services=(
        config.GENERIC_ACCESS_SERVICE_UUID,
        config.BATTERY_SERVICE_UUID,
    ),
)


@dataclass
class DiscoveryGateway:
    transport: Transport
    registry: DeviceRegistry
    device_filter: DeviceFilter = UWAVE_FILTER

    async def discover(self) -> DeviceRecord:
        """Ask the transport for a sensor and register it if it is new.

        Raises UserCancelled or TransportError from the transport."""
        device = await self.transport.request_device(self.device_filter)
        record = DeviceRecord(
            id=device.id,
            name=device.name or config.DEFAULT_DEVICE_NAME,
            handle=device,
        )
        try:
            return self.registry.add(record)
        except DuplicateDevice:
            logger.debug("%s is already registered", device.id)
            return self.registry.get(device.id)
