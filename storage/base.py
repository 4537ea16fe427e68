"""Store client contract shared by the InfluxDB client and test doubles."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import AsyncIterator, Optional

from models.records import Point

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreWriteError:
    """A write failure reported by the store client after the point was accepted."""

    destination: str
    detail: str
    points: int = 0
    reported_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class StoreClient:
    """Write-only time-series client with an out-of-band error stream.

    ``write_point`` must not block: implementations buffer internally and
    deliver failures later through :meth:`report_error`, which may be called
    from any thread. Consumers read those failures with :meth:`errors`.
    """

    def __init__(self) -> None:
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._errors: Optional[asyncio.Queue[Optional[StoreWriteError]]] = None
        self._errors_closed = False
        self._lock = Lock()

    def write_point(self, point: Point) -> None:
        raise NotImplementedError

    def flush(self) -> None:
        raise NotImplementedError

    def close(self) -> None:
        self.close_errors()

    def attach(self, loop: asyncio.AbstractEventLoop) -> None:
        """Bind the error stream to the event loop that will consume it."""
        with self._lock:
            self._loop = loop
            self._errors = asyncio.Queue()
            self._errors_closed = False

    def report_error(self, error: StoreWriteError) -> None:
        with self._lock:
            loop, errors, closed = self._loop, self._errors, self._errors_closed
        if loop is None or errors is None or closed or loop.is_closed():
            logger.error(
                "store write failed with no error consumer attached",
                extra={"op": "store.report_error", "destination": error.destination, "error": error.detail},
            )
            return
        loop.call_soon_threadsafe(errors.put_nowait, error)

    def close_errors(self) -> None:
        with self._lock:
            loop, errors, closed = self._loop, self._errors, self._errors_closed
            self._errors_closed = True
        if loop is None or errors is None or closed or loop.is_closed():
            return
        loop.call_soon_threadsafe(errors.put_nowait, None)

    async def errors(self) -> AsyncIterator[StoreWriteError]:
        if self._errors is None:
            raise RuntimeError("store client is not attached to an event loop")
        while True:
            error = await self._errors.get()
            if error is None:
                return
            yield error
