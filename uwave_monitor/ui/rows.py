"""Table row contents for the device list, kept free of Qt."""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from ..registry import ConnectionState, DeviceRecord


def row_texts(record: DeviceRecord) -> Tuple[str, str, str]:
    """Name, measurement and battery cells of one record."""
    measurement = "N/A" if record.measurement is None else f"{record.measurement}"
    battery = "N/A" if record.battery_level is None else f"{record.battery_level}%"
    return record.name, measurement, battery


def stale_action_rows(
    shown: Sequence[Tuple[str, Optional[ConnectionState]]],
    snapshot: Sequence[DeviceRecord],
) -> List[int]:
    """Rows whose Connect/Disconnect widget no longer matches the record.

    ``shown`` holds the (id, state) each row's action widget was built for.
    Measurement and battery updates leave the widget alone."""
    stale = []
    for row, record in enumerate(snapshot):
        if row >= len(shown) or shown[row] != (record.id, record.state):
            stale.append(row)
    return stale
