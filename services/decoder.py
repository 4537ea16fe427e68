"""Turns raw sensor submissions into :class:`Point` records."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError

from app.schemas import MeasurementPayload
from models.records import DEFAULT_SENSOR_ID, Point

SENSOR_ID_DELIMITER = ":"


class DecodeError(ValueError):
    """Raised when a request body is not a valid measurement."""


def resolve_sensor_id(raw: Optional[str]) -> str:
    """Return ``<id>`` from a ``<type>:<id>`` path segment.

    Anything other than exactly one delimiter resolves to ``"null"``.
    """
    if not raw:
        return DEFAULT_SENSOR_ID
    parts = raw.split(SENSOR_ID_DELIMITER)
    if len(parts) != 2 or not parts[1]:
        return DEFAULT_SENSOR_ID
    return parts[1]


def decode_measurement(
    body: bytes,
    sensor_id: str,
    observed_at: Optional[datetime] = None,
) -> Point:
    try:
        payload = MeasurementPayload.model_validate_json(body)
    except ValidationError as exc:
        raise DecodeError(_summarize(exc)) from exc

    return Point(
        sensor_id=sensor_id or DEFAULT_SENSOR_ID,
        observed_at=observed_at or datetime.now(timezone.utc),
        wifi=payload.wifi,
        co2=payload.co2,
        pm01=payload.pm01,
        pm02=payload.pm02,
        pm10=payload.pm10,
        pm003_count=payload.pm003_count,
        tvoc_index=payload.tvoc_index,
        nox_index=payload.nox_index,
        temperature=float(payload.temperature),
        humidity=payload.humidity,
    )


def _summarize(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "body"
    return f"{location}: {first.get('msg', 'invalid value')}"
