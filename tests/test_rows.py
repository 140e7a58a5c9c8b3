from dataclasses import replace

from uwave_monitor.registry import ConnectionState, DeviceRecord
from uwave_monitor.ui.rows import row_texts, stale_action_rows


def test_row_texts_for_fresh_record():
    assert row_texts(DeviceRecord(id="a")) == ("Unknown Device", "N/A", "N/A")


def test_row_texts_for_connected_record():
    record = DeviceRecord(id="a", name="07X", measurement=0.1, battery_level=85)
    assert row_texts(record) == ("07X", "0.1", "85%")


def test_measurement_updates_keep_action_widgets():
    record = DeviceRecord(id="a", state=ConnectionState.CONNECTED)
    shown = [("a", ConnectionState.CONNECTED)]
    updated = replace(record, measurement=4.2, battery_level=50)
    assert stale_action_rows(shown, [updated]) == []


def test_state_change_rebuilds_only_that_row():
    first = DeviceRecord(id="a", state=ConnectionState.CONNECTED)
    second = DeviceRecord(id="b", state=ConnectionState.CONNECTING)
    shown = [("a", ConnectionState.CONNECTED), ("b", ConnectionState.DISCONNECTED)]
    assert stale_action_rows(shown, [first, second]) == [1]


def test_new_and_shifted_rows_are_rebuilt():
    a, b, c = (DeviceRecord(id=i) for i in "abc")
    shown = [("a", a.state), ("b", b.state), ("c", c.state)]
    # "a" removed: remaining rows moved up.
    assert stale_action_rows(shown, [b, c]) == [0, 1]
    assert stale_action_rows(shown[:1], [a, b]) == [1]
