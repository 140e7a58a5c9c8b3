"""In-memory registry of discovered UWAVE sensors."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from . import config

logger = logging.getLogger(__name__)


class ConnectionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class DuplicateDevice(Exception):
    """Raised when a device id is already registered."""


class NotFound(Exception):
    """Raised when no record matches a device id."""


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


@dataclass(frozen=True)
class DeviceRecord:
    """Snapshot of one sensor as shown to the user."""

    id: str
    name: str = config.DEFAULT_DEVICE_NAME
    handle: Any = None
    state: ConnectionState = ConnectionState.DISCONNECTED
    measurement: Optional[float] = None
    battery_level: Optional[int] = None

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED


@dataclass(frozen=True)
class DeviceUpdate:
    """Partial update of a DeviceRecord.

    Fields left as UNSET are kept; any other value, None included, replaces
    the record's field."""

    name: Any = UNSET
    state: Any = UNSET
    measurement: Any = UNSET
    battery_level: Any = UNSET

    def apply(self, record: DeviceRecord) -> DeviceRecord:
        changes = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not UNSET
        }
        return replace(record, **changes)


def disconnected_update() -> DeviceUpdate:
    """Patch returning a record to its initial, disconnected values."""
    return DeviceUpdate(
        state=ConnectionState.DISCONNECTED, measurement=None, battery_level=None
    )


Listener = Callable[[Tuple[DeviceRecord, ...]], None]


class DeviceRegistry:
    """Insertion-ordered collection of device records keyed by id.

    Records are immutable; every mutation swaps in a new object."""

    def __init__(self) -> None:
        self._records: Dict[str, DeviceRecord] = {}
        self._listeners: List[Listener] = []

    def __contains__(self, device_id: object) -> bool:
        return device_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def get(self, device_id: str) -> DeviceRecord:
        try:
            return self._records[device_id]
        except KeyError:
            raise NotFound(device_id) from None

    def snapshot(self) -> Tuple[DeviceRecord, ...]:
        return tuple(self._records.values())

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with a fresh snapshot after every change.

        Returns a function removing the listener."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def add(self, record: DeviceRecord) -> DeviceRecord:
        if record.id in self._records:
            raise DuplicateDevice(record.id)
        self._records[record.id] = record
        logger.debug("Registered %s (%s)", record.id, record.name)
        self._notify()
        return record

    def update_status(self, device_id: str, update: DeviceUpdate) -> DeviceRecord:
        record = update.apply(self.get(device_id))
        self._records[device_id] = record
        self._notify()
        return record

    def remove(self, device_id: str) -> DeviceRecord:
        record = self._records.pop(device_id, None)
        if record is None:
            raise NotFound(device_id)
        logger.debug("Removed %s", device_id)
        self._notify()
        return record

    def reset_all(self) -> None:
        """Return every record to disconnected without removing any."""
        patch = disconnected_update()
        self._records = {
            device_id: patch.apply(record)
            for device_id, record in self._records.items()
        }
        self._notify()

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)
