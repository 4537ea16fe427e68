"""Single consumer that moves points from the handoff queue into the store."""

from __future__ import annotations

import logging

from services.handoff import HandoffQueue, QueueClosed
from storage.base import StoreClient

logger = logging.getLogger(__name__)


class BatchWriter:
    """Drains the handoff queue into the store client's buffered write API.

    Batching and flush timing belong to the store client; the writer only
    submits one point at a time and never retries.
    """

    def __init__(self, queue: HandoffQueue, store: StoreClient) -> None:
        self.queue = queue
        self.store = store
        self.submitted = 0

    async def run(self) -> int:
        while True:
            try:
                point = await self.queue.get()
            except QueueClosed:
                break

            try:
                self.store.write_point(point)
            except Exception as exc:  # noqa: BLE001 - one bad write must not stop the writer
                logger.error(
                    "failed to submit point to store",
                    extra={
                        "op": "writer.write_point",
                        "sensor_id": point.sensor_id,
                        "error": str(exc),
                    },
                )
                continue
            self.submitted += 1

        logger.info(
            "writer stopped",
            extra={"op": "writer.run", "points": self.submitted},
        )
        return self.submitted


async def drain_errors(store: StoreClient) -> int:
    """Log every write failure the store reports until its error stream ends."""
    count = 0
    async for error in store.errors():
        count += 1
        logger.error(
            "encountered error on writing to InfluxDB",
            extra={
                "op": "store.write",
                "destination": error.destination,
                "points": error.points,
                "error": error.detail,
            },
        )
    return count
