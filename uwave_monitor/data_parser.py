"""Utilities for decoding UWAVE binary payloads into readings."""

from __future__ import annotations

from typing import Sequence

from . import config


MEASUREMENT_OFFSET = 3
MEASUREMENT_WIDTH = 3
MIN_MEASUREMENT_LENGTH = MEASUREMENT_OFFSET + MEASUREMENT_WIDTH


class InvalidPayload(Exception):
    """Signals that an incoming payload cannot be decoded."""


def _combine_signed(bytes_seq: Sequence[int], bits: int) -> int:
    """Combine little-endian bytes into a signed integer."""
    value = 0
    for shift, byte in enumerate(bytes_seq):
        value |= byte << (8 * shift)
    sign_bit = 1 << (bits - 1)
    return value - (1 << bits) if value & sign_bit else value


def _is_deci_scaled(device_name: str | None) -> bool:
    return bool(device_name) and device_name.startswith(config.DECI_SCALE_PREFIX)


def decode_measurement(raw: bytes, device_name: str | None) -> float:
    """Decode a measurement notification.

    Bytes 3..5 hold a signed 24-bit little-endian value in hundredths.
    Sensors whose name starts with "07" report one more decimal place, so
    their reading is divided by ten again and rounded to three decimals.

    Raises InvalidPayload when the payload is too short."""
    if len(raw) < MIN_MEASUREMENT_LENGTH:
        raise InvalidPayload(
            f"Expected at least {MIN_MEASUREMENT_LENGTH} bytes, got {len(raw)}"
        )
    chunk = raw[MEASUREMENT_OFFSET : MEASUREMENT_OFFSET + MEASUREMENT_WIDTH]
    value = _combine_signed(chunk, 8 * MEASUREMENT_WIDTH) / 100
    if _is_deci_scaled(device_name):
        value = round(value / 10, 3)
    return value


def encode_measurement(value: float, device_name: str | None = None) -> bytes:
    """Build a measurement payload that decodes back to ``value``."""
    if _is_deci_scaled(device_name):
        value *= 10
    counts = round(value * 100)
    limit = 1 << (8 * MEASUREMENT_WIDTH - 1)
    if not -limit <= counts < limit:
        raise ValueError(f"Measurement {value} does not fit in 24 bits")
    counts &= (1 << (8 * MEASUREMENT_WIDTH)) - 1
    return bytes(MEASUREMENT_OFFSET) + counts.to_bytes(MEASUREMENT_WIDTH, "little")


def decode_battery_level(raw: bytes) -> int:
    """Return the battery percentage carried in the first byte."""
    if not raw:
        raise InvalidPayload("Battery payload is empty")
    return raw[0]


def decode_device_name(raw: bytes) -> str:
    """Decode the Generic Access device name characteristic."""
    try:
        return bytes(raw).decode("utf-8").rstrip("\x00").strip()
    except UnicodeDecodeError as exc:
        raise InvalidPayload(f"Device name is not valid UTF-8: {raw!r}") from exc
