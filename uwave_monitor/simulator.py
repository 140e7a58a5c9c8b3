"""Generate mock UWAVE payloads for development without hardware."""

from __future__ import annotations

import math
import random
import time
from typing import Iterator

from .data_parser import encode_measurement


def measurement_waveform_generator(
    device_name: str,
    frequency_hz: float = 0.2,
    amplitude: float = 25.0,
    offset: float = 0.0,
    noise_level: float = 0.5,
) -> Iterator[bytes]:
    """Yield encoded measurement notifications following a noisy sine."""
    phase = random.random() * math.pi
    start = time.monotonic()
    while True:
        t = time.monotonic() - start
        value = offset + math.sin(2 * math.pi * frequency_hz * t + phase) * amplitude
        value += random.gauss(0, noise_level)
        yield encode_measurement(value, device_name)
