"""Per-subscriber delivery buffer."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog

if TYPE_CHECKING:
    from buzzer.messaging.events import Event

logger = structlog.get_logger()

DEFAULT_SINK_BUFFER_SIZE = 64


class Sink:
    """Bounded event buffer between a dispatch loop and one open stream.

    deliver() never blocks: when the buffer is full the oldest pending
    event is dropped, so one stalled stream cannot hold up fan-out to the
    rest of its session.
    """

    def __init__(self, participant_id: int | None = None, maxsize: int = DEFAULT_SINK_BUFFER_SIZE) -> None:
        if maxsize < 1:
            raise ValueError(f"sink buffer size must be at least 1, got {maxsize}")
        self.participant_id = participant_id
        self.sink_id = str(uuid4())
        self._queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=maxsize)
        self._dropped = 0

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def dropped(self) -> int:
        return self._dropped

    def deliver(self, event: Event) -> bool:
        """Buffer an event. Return False if an older event had to be dropped."""
        dropped = False
        if self._queue.full():
            self._queue.get_nowait()
            self._dropped += 1
            dropped = True
            logger.warning(
                "sink full, dropped oldest event",
                sink_id=self.sink_id,
                participant_id=self.participant_id,
                dropped_total=self._dropped,
            )
        self._queue.put_nowait(event)
        return not dropped

    async def receive(self) -> Event:
        return await self._queue.get()
