from __future__ import annotations

from typing import List

import pytest

from logging_config import configure_logging
from models.records import Point
from storage.base import StoreClient

_ENV_NAMES = (
    "COLLECTOR_CONFIG",
    "COLLECTOR_QUEUE_SIZE",
    "COLLECTOR_BASE_URL",
    "COLLECTOR_CLIENT_TIMEOUT",
    "LOG_LEVEL",
    "SERVER_LISTEN_ADDR",
    "SERVER_REQUEST_TIMEOUT",
    "INFLUXDB_ADDRESS",
    "INFLUXDB_USERNAME",
    "INFLUXDB_PASSWORD",
    "INFLUXDB_MEASUREMENT_PREFIX",
    "INFLUXDB_DATABASE",
    "INFLUXDB_RETENTION_POLICY",
    "INFLUXDB_TOKEN",
    "INFLUXDB_ORGANIZATION",
    "INFLUXDB_BUCKET",
    "INFLUXDB_SKIP_VERIFY_SSL",
    "INFLUXDB_FLUSH_INTERVAL",
    "INFLUXDB_BATCH_SIZE",
)


class RecordingStore(StoreClient):
    """Store double that keeps every submitted point in memory."""

    def __init__(self, fail_for: tuple[str, ...] = ()) -> None:
        super().__init__()
        self.fail_for = fail_for
        self.points: List[Point] = []
        self.events: List[str] = []
        self.flush_calls = 0
        self.closed = False

    def write_point(self, point: Point) -> None:
        if point.sensor_id in self.fail_for:
            raise RuntimeError(f"rejected point for {point.sensor_id}")
        self.points.append(point)
        self.events.append("write")

    def flush(self) -> None:
        self.flush_calls += 1
        self.events.append("flush")

    def close(self) -> None:
        self.closed = True
        self.events.append("close")
        super().close()


@pytest.fixture(autouse=True, scope="session")
def _configured_logging() -> None:
    configure_logging("INFO")


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch) -> None:
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def make_store():
    return RecordingStore
