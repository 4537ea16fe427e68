"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

DEFAULT_SENSOR_ID = "null"


@dataclass(frozen=True, slots=True)
class Point:
    """A single air-quality reading as received from one sensor.

    Fields the sensor did not send are zero, which cannot be told apart from
    a genuine zero reading.
    """

    sensor_id: str
    observed_at: datetime
    wifi: int = 0
    co2: int = 0
    pm01: int = 0
    pm02: int = 0
    pm10: int = 0
    pm003_count: int = 0
    tvoc_index: int = 0
    nox_index: int = 0
    temperature: float = 0.0
    humidity: int = 0
