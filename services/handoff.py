"""Bounded queue carrying points from request handlers to the writer."""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Deque

from models.records import Point


class QueueClosed(Exception):
    """Raised by :class:`HandoffQueue` once it has been closed."""


class HandoffQueue:
    """Small FIFO with many producers and a single consumer.

    ``put`` waits while the queue is full, so a slow consumer pushes back on
    the request handlers that feed it. Closing the queue fails every producer,
    including those already waiting for a slot, while the consumer still
    receives the points that were accepted before the close.
    """

    def __init__(self, maxsize: int = 1) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self._maxsize = maxsize
        self._items: Deque[Point] = deque()
        self._changed = asyncio.Condition()
        self._closed = False

    @property
    def maxsize(self) -> int:
        return self._maxsize

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return len(self._items)

    async def put(self, point: Point) -> None:
        async with self._changed:
            while not self._closed and len(self._items) >= self._maxsize:
                await self._changed.wait()
            if self._closed:
                raise QueueClosed("handoff queue is closed")
            self._items.append(point)
            self._changed.notify_all()

    async def get(self) -> Point:
        async with self._changed:
            while not self._items:
                if self._closed:
                    raise QueueClosed("handoff queue is closed")
                await self._changed.wait()
            point = self._items.popleft()
            self._changed.notify_all()
            return point

    async def close(self) -> None:
        """Stop accepting points and wake every waiting producer and consumer."""
        async with self._changed:
            if self._closed:
                return
            self._closed = True
            self._changed.notify_all()
