"""Ingestion pipeline lifecycle: handoff queue, writer task and error drain."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Optional

from models.records import Point
from services.handoff import HandoffQueue
from services.writer import BatchWriter, drain_errors
from settings import Settings
from storage.base import StoreClient
from storage.influx import connect_store

logger = logging.getLogger(__name__)


class LifecycleState(str, Enum):
    """Pipeline lifecycle states, in order."""

    initializing = "initializing"
    serving = "serving"
    draining = "draining"
    terminated = "terminated"


class IngestPipeline:
    """Owns the queue between request handlers and the single store writer."""

    def __init__(
        self,
        store: StoreClient,
        queue_size: int = 1,
        drain_timeout: float = 5.0,
    ) -> None:
        self.store = store
        self.queue = HandoffQueue(maxsize=queue_size)
        self.writer = BatchWriter(self.queue, store)
        self.drain_timeout = drain_timeout
        self.state = LifecycleState.initializing
        self._writer_task: Optional[asyncio.Task[int]] = None
        self._errors_task: Optional[asyncio.Task[int]] = None

    async def start(self) -> None:
        if self.state is not LifecycleState.initializing:
            raise RuntimeError(f"cannot start pipeline in state {self.state.value}")
        self.store.attach(asyncio.get_running_loop())
        self._writer_task = asyncio.create_task(self.writer.run(), name="batch-writer")
        self._errors_task = asyncio.create_task(drain_errors(self.store), name="store-errors")
        self.state = LifecycleState.serving
        logger.info(
            "ingestion pipeline started",
            extra={"state": self.state.value, "queue_size": self.queue.maxsize},
        )

    async def submit(self, point: Point) -> None:
        """Hand a point to the writer, waiting while the queue is full."""
        await self.queue.put(point)

    async def shutdown(self) -> None:
        """Force a final store flush and stop the background tasks."""
        if self.state in (LifecycleState.draining, LifecycleState.terminated):
            return
        self.state = LifecycleState.draining
        logger.info(
            "flushing data to InfluxDB",
            extra={"op": "pipeline.shutdown", "state": self.state.value, "points": self.queue.qsize()},
        )

        await self.queue.close()
        await self._join(self._writer_task)

        try:
            await asyncio.to_thread(self.store.flush)
        except Exception as exc:  # noqa: BLE001 - shutdown continues after a failed flush
            logger.error(
                "final flush failed",
                extra={"op": "pipeline.flush", "error": str(exc)},
            )
        try:
            await asyncio.to_thread(self.store.close)
        except Exception as exc:  # noqa: BLE001 - the error stream still has to be joined
            logger.error(
                "closing store failed",
                extra={"op": "pipeline.close", "error": str(exc)},
            )
            self.store.close_errors()

        await self._join(self._errors_task)
        self.state = LifecycleState.terminated
        logger.info("ingestion pipeline stopped", extra={"state": self.state.value})

    async def _join(self, task: Optional[asyncio.Task[int]]) -> None:
        if task is None:
            return
        try:
            await asyncio.wait_for(task, timeout=self.drain_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "abandoning background task after timeout",
                extra={"op": "pipeline.join", "reason": task.get_name()},
            )
        except asyncio.CancelledError:
            if not task.cancelled():
                raise
        except Exception as exc:  # noqa: BLE001 - report and keep shutting down
            logger.error(
                "background task failed",
                extra={"op": "pipeline.join", "reason": task.get_name(), "error": str(exc)},
            )


def build_pipeline(settings: Settings, store: Optional[StoreClient] = None) -> IngestPipeline:
    """Wire the pipeline with the configured InfluxDB store."""
    if store is None:
        store = connect_store(settings.influxdb)
    return IngestPipeline(store=store, queue_size=settings.queue_size)
