"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    field_validator,
    model_validator,
)


class MeasurementPayload(BaseModel):
    """JSON body pushed by a sensor to ``/sensors/{id}/measures``.

    Every field is optional; missing and ``null`` values read as zero. Keys
    match case-insensitively, an exact-case key winning over other spellings.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    wifi: StrictInt = Field(default=0, alias="wifi", description="WiFi signal strength (dBm).")
    co2: StrictInt = Field(default=0, alias="rco2", description="CO2 concentration (ppm).")
    pm01: StrictInt = Field(default=0, alias="pm01", description="PM1.0 (ug/m3).")
    pm02: StrictInt = Field(default=0, alias="pm02", description="PM2.5 (ug/m3).")
    pm10: StrictInt = Field(default=0, alias="pm10", description="PM10 (ug/m3).")
    pm003_count: StrictInt = Field(
        default=0, alias="pm003_count", description="Particle count at 0.3um."
    )
    tvoc_index: StrictInt = Field(default=0, alias="tvoc_index", description="VOC index.")
    nox_index: StrictInt = Field(default=0, alias="nox_index", description="NOx index.")
    temperature: StrictFloat | StrictInt = Field(
        default=0.0, alias="atmp", description="Ambient temperature (degrees C)."
    )
    humidity: StrictInt = Field(default=0, alias="rhum", description="Relative humidity (%).")

    @model_validator(mode="before")
    @classmethod
    def _lowercase_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        normalized: dict[str, Any] = {}
        for key, value in data.items():
            if isinstance(key, str) and key != key.lower():
                normalized.setdefault(key.lower(), value)
        for key, value in data.items():
            if not isinstance(key, str) or key == key.lower():
                normalized[key] = value
        return normalized

    @field_validator("*", mode="before")
    @classmethod
    def _null_is_zero(cls, value: Any) -> Any:
        return 0 if value is None else value
