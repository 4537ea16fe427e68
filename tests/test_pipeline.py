from __future__ import annotations

import asyncio
import logging
import threading
from datetime import datetime, timezone

import pytest

from models.records import Point
from services.handoff import QueueClosed
from services.pipeline import IngestPipeline, LifecycleState, build_pipeline
from settings import Settings


def _point(sensor_id: str) -> Point:
    return Point(sensor_id=sensor_id, observed_at=datetime.now(timezone.utc))


def test_pipeline_moves_through_lifecycle_states(store) -> None:
    pipeline = IngestPipeline(store=store)
    states = [pipeline.state]

    async def scenario() -> None:
        await pipeline.start()
        states.append(pipeline.state)
        await pipeline.submit(_point("a"))
        await pipeline.shutdown()
        states.append(pipeline.state)

    asyncio.run(scenario())

    assert states == [
        LifecycleState.initializing,
        LifecycleState.serving,
        LifecycleState.terminated,
    ]


def test_shutdown_writes_queued_points_then_flushes_and_closes(store) -> None:
    pipeline = IngestPipeline(store=store, queue_size=4)

    async def scenario() -> None:
        await pipeline.start()
        for sensor_id in ("a", "b", "c"):
            await pipeline.submit(_point(sensor_id))
        await pipeline.shutdown()

    asyncio.run(scenario())

    assert [point.sensor_id for point in store.points] == ["a", "b", "c"]
    assert store.flush_calls == 1
    assert store.events[-2:] == ["flush", "close"]
    assert store.closed is True


def test_shutdown_is_idempotent(store) -> None:
    pipeline = IngestPipeline(store=store)

    async def scenario() -> None:
        await pipeline.start()
        await pipeline.shutdown()
        await pipeline.shutdown()

    asyncio.run(scenario())

    assert store.flush_calls == 1


def test_submit_after_shutdown_is_rejected(store) -> None:
    pipeline = IngestPipeline(store=store)

    async def scenario() -> None:
        await pipeline.start()
        await pipeline.shutdown()
        with pytest.raises(QueueClosed):
            await pipeline.submit(_point("late"))

    asyncio.run(scenario())
    assert store.points == []


def test_failed_flush_still_closes_store(make_store, caplog) -> None:
    class FailingFlushStore(make_store):
        def flush(self) -> None:
            super().flush()
            raise ConnectionError("influx unavailable")

    store = FailingFlushStore()
    pipeline = IngestPipeline(store=store)

    async def scenario() -> None:
        await pipeline.start()
        await pipeline.shutdown()

    with caplog.at_level(logging.ERROR):
        asyncio.run(scenario())

    assert store.closed is True
    assert pipeline.state is LifecycleState.terminated
    assert any(
        record.getMessage() == "final flush failed" and "influx unavailable" in record.error
        for record in caplog.records
    )


def test_start_twice_is_an_error(store) -> None:
    pipeline = IngestPipeline(store=store)

    async def scenario() -> None:
        await pipeline.start()
        try:
            with pytest.raises(RuntimeError):
                await pipeline.start()
        finally:
            await pipeline.shutdown()

    asyncio.run(scenario())


def test_build_pipeline_uses_configured_queue_size(store) -> None:
    pipeline = build_pipeline(Settings(queue_size=3), store=store)

    assert pipeline.store is store
    assert pipeline.queue.maxsize == 3


def test_store_flush_and_close_run_off_the_event_loop_thread(make_store) -> None:
    class ThreadRecordingStore(make_store):
        def __init__(self) -> None:
            super().__init__()
            self.threads: dict[str, int] = {}

        def flush(self) -> None:
            self.threads["flush"] = threading.get_ident()
            super().flush()

        def close(self) -> None:
            self.threads["close"] = threading.get_ident()
            super().close()

    store = ThreadRecordingStore()
    pipeline = IngestPipeline(store=store)

    async def scenario() -> int:
        await pipeline.start()
        await pipeline.shutdown()
        return threading.get_ident()

    loop_thread = asyncio.run(scenario())

    assert set(store.threads) == {"flush", "close"}
    assert store.threads["flush"] != loop_thread
    assert store.threads["close"] != loop_thread
    assert pipeline.state is LifecycleState.terminated


def test_failed_close_still_terminates_pipeline(make_store, caplog) -> None:
    class FailingCloseStore(make_store):
        def close(self) -> None:
            self.events.append("close")
            raise ConnectionError("socket already gone")

    store = FailingCloseStore()
    pipeline = IngestPipeline(store=store, drain_timeout=1.0)

    async def scenario() -> None:
        await pipeline.start()
        await pipeline.shutdown()

    with caplog.at_level(logging.WARNING):
        asyncio.run(scenario())

    assert store.events == ["flush", "close"]
    assert pipeline.state is LifecycleState.terminated
    assert any(
        record.getMessage() == "closing store failed" and "socket already gone" in record.error
        for record in caplog.records
    )
    assert not any(
        record.getMessage() == "abandoning background task after timeout" for record in caplog.records
    )
