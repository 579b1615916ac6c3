"""Phase-transition events streamed to callers while a session runs."""

import asyncio
from enum import Enum
from typing import AsyncIterator, Callable

from pydantic import BaseModel


class Phase(str, Enum):
    """Named pipeline phases."""

    REPLAYING = "replaying"
    CAPTURING = "capturing"
    SCANNING = "scanning"
    ANALYZING = "analyzing"
    REPORTING = "reporting"


class ProgressEvent(BaseModel):
    """One progress update."""

    phase: Phase
    message: str
    step: int | None = None
    total: int | None = None
    snapshot_count: int = 0


class ProgressChannel:
    """Ordered stream of progress events.

    The pipeline publishes without awaiting consumers; callers read events
    from the channel at their own pace, or attach a callback.

    Usage:
        channel = ProgressChannel()
        task = asyncio.create_task(run_session(actions, progress=channel))
        async for event in channel:
            print(event.phase, event.message)
        result = await task
    """

    def __init__(self, callback: Callable[[ProgressEvent], None] | None = None):
        self._queue: asyncio.Queue[ProgressEvent | None] = asyncio.Queue()
        self._callback = callback
        self._closed = False

    def publish(
        self,
        phase: Phase,
        message: str,
        step: int | None = None,
        total: int | None = None,
        snapshot_count: int = 0,
    ) -> None:
        if self._closed:
            return
        event = ProgressEvent(phase=phase, message=message, step=step, total=total, snapshot_count=snapshot_count)
        self._queue.put_nowait(event)
        if self._callback:
            self._callback(event)

    def close(self) -> None:
        """Signal the end of the stream."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    async def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event

    def drain(self) -> list[ProgressEvent]:
        """Return all queued events without waiting."""
        events = []
        while not self._queue.empty():
            event = self._queue.get_nowait()
            if event is not None:
                events.append(event)
        return events
