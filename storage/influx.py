"""InfluxDB-backed store client built on the batching ``WriteApi``."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Any, Optional, Tuple

from influxdb_client import InfluxDBClient, Point as InfluxPoint, WriteOptions
from influxdb_client.client.write_api import WriteApi

from models.records import Point
from settings import DEFAULT_FLUSH_INTERVAL, ConfigurationError, InfluxSettings
from storage.base import StoreClient, StoreWriteError

logger = logging.getLogger(__name__)

MEASUREMENT_NAME = "air_quality"


class WriteDestinationError(ConfigurationError):
    def __init__(self) -> None:
        super().__init__("must configure at least one of bucket or database/retention policy")


class StoreConnectionError(Exception):
    """Raised when the InfluxDB client cannot be constructed."""


def resolve_auth(settings: InfluxSettings) -> str:
    """Token wins over username/password; v1 credentials use ``user:password``."""
    if settings.token:
        return settings.token
    if settings.username and settings.password:
        return f"{settings.username}:{settings.password}"
    return ""


def resolve_write_destination(settings: InfluxSettings) -> str:
    """Bucket wins over database/retention policy."""
    if settings.bucket:
        return settings.bucket
    if settings.database and settings.retention_policy:
        return f"{settings.database}/{settings.retention_policy}"
    raise WriteDestinationError()


def resolve_flush_interval(settings: InfluxSettings) -> int:
    """Flush interval in seconds, falling back to the default when unset."""
    return settings.flush_interval if settings.flush_interval > 0 else DEFAULT_FLUSH_INTERVAL


def to_influx_point(point: Point, measurement_prefix: str = "") -> InfluxPoint:
    return (
        InfluxPoint(f"{measurement_prefix}{MEASUREMENT_NAME}")
        .tag("id", point.sensor_id)
        .field("wifi", point.wifi)
        .field("co2", point.co2)
        .field("pm1", point.pm01)
        .field("pm25", point.pm02)
        .field("pm10", point.pm10)
        .field("pm003", point.pm003_count)
        .field("tvoc", point.tvoc_index)
        .field("nox", point.nox_index)
        .field("temp", point.temperature)
        .field("rel_humidity", point.humidity)
        .time(point.observed_at)
    )


class InfluxStore(StoreClient):

    def __init__(
        self,
        client: InfluxDBClient,
        destination: str,
        organization: Optional[str] = None,
        measurement_prefix: str = "",
        flush_interval: int = DEFAULT_FLUSH_INTERVAL,
        batch_size: int = 5000,
    ) -> None:
        super().__init__()
        self.client = client
        self.destination = destination
        self.organization = organization
        self.measurement_prefix = measurement_prefix
        self.write_options = WriteOptions(
            batch_size=batch_size,
            flush_interval=flush_interval * 1000,
        )
        self._write_lock = Lock()
        self._write_api: Optional[WriteApi] = self._open_write_api()

    def write_point(self, point: Point) -> None:
        record = to_influx_point(point, self.measurement_prefix)
        with self._write_lock:
            if self._write_api is None:
                raise RuntimeError("store client is closed")
            self._write_api.write(bucket=self.destination, org=self.organization, record=record)

    def flush(self) -> None:
        """Push every buffered batch now and keep accepting writes afterwards.

        The batching ``WriteApi`` only drains its buffer on close, so the
        current instance is closed and replaced.
        """
        with self._write_lock:
            current = self._write_api
            if current is None:
                return
            self._write_api = self._open_write_api()
        current.close()

    def close(self) -> None:
        with self._write_lock:
            current, self._write_api = self._write_api, None
        try:
            if current is not None:
                current.close()
            self.client.close()
        finally:
            super().close()

    def _open_write_api(self) -> WriteApi:
        return self.client.write_api(
            write_options=self.write_options,
            error_callback=self._on_error,
        )

    def _on_error(self, conf: Tuple[str, str, str], data: Any, exception: Exception) -> None:
        bucket = conf[0] if conf else self.destination
        if isinstance(data, bytes):
            data = data.decode("utf-8", errors="replace")
        lines = len(str(data).splitlines()) if data else 0
        self.report_error(StoreWriteError(destination=bucket, detail=str(exception), points=lines))


def connect_store(settings: InfluxSettings) -> InfluxStore:
    """Build the InfluxDB client and write API described by ``settings``."""
    destination = resolve_write_destination(settings)
    flush_interval = resolve_flush_interval(settings)
    try:
        client = InfluxDBClient(
            url=settings.address,
            token=resolve_auth(settings),
            org=settings.organization or None,
            verify_ssl=not settings.skip_verify_ssl,
        )
        store = InfluxStore(
            client=client,
            destination=destination,
            organization=settings.organization or None,
            measurement_prefix=settings.measurement_prefix,
            flush_interval=flush_interval,
            batch_size=settings.batch_size,
        )
    except (ValueError, TypeError) as exc:
        raise StoreConnectionError(f"unable to create InfluxDB client for {settings.address!r}: {exc}") from exc

    logger.info(
        "configured InfluxDB write destination",
        extra={"op": "store.connect", "destination": destination},
    )
    return store
