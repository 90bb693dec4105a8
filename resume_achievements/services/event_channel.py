"""Ordered, per-connection delivery of pipeline events."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Protocol

from resume_achievements.schemas.events import PipelineEvent


class EventSink(Protocol):
    async def publish(self, event: PipelineEvent) -> None: ...


class EventChannel:
    """FIFO queue drained by the connection's sender task.

    Publishing never blocks on the client; events are delivered in the order
    they were published.
    """

    _CLOSED = object()

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    async def publish(self, event: PipelineEvent) -> None:
        if self._closed:
            return
        self._queue.put_nowait(event)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(self._CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aiter__(self) -> AsyncIterator[PipelineEvent]:
        while True:
            item = await self._queue.get()
            if item is self._CLOSED:
                return
            yield item


__all__ = ["EventChannel", "EventSink"]
