from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog
from starlette.background import BackgroundTask
from starlette.responses import StreamingResponse

from buzzer.messaging.encoder import KEEPALIVE_COMMENT
from buzzer.messaging.protocol import StreamConnection

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from buzzer.session.lifecycle import ConnectionLifecycle, Subscription

logger = structlog.get_logger()

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class SseConnection(StreamConnection):
    """Server-Sent Events stream backed by an outbound chunk queue.

    The lifecycle writes frames with send_text(); the HTTP response body
    drains them with chunks(). The transport calls mark_closed() when the
    client goes away, which releases wait_closed().
    """

    def __init__(self, connection_id: str | None = None, keepalive_seconds: float = 15.0) -> None:
        self._connection_id = connection_id or str(uuid4())
        self._keepalive_seconds = keepalive_seconds
        self._outbox: asyncio.Queue[str | None] = asyncio.Queue()
        self._closed = asyncio.Event()

    @property
    def connection_id(self) -> str:
        return self._connection_id

    @property
    def is_closed(self) -> bool:
        return self._closed.is_set()

    async def send_text(self, data: str) -> None:
        if self._closed.is_set():
            raise ConnectionError("stream already closed")
        self._outbox.put_nowait(data)

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def close(self) -> None:
        if not self._closed.is_set():
            self._closed.set()
            self._outbox.put_nowait(None)

    def mark_closed(self) -> None:
        self._closed.set()

    async def release(self) -> None:
        self.mark_closed()

    async def chunks(self) -> AsyncIterator[str]:
        """Yield queued frames until closed, with a keep-alive comment when idle.

        The keep-alive write is what surfaces a dead client on transports
        that only notice a disconnect when sending.
        """
        try:
            while True:
                try:
                    chunk = await asyncio.wait_for(self._outbox.get(), timeout=self._keepalive_seconds)
                except TimeoutError:
                    yield KEEPALIVE_COMMENT
                    continue
                if chunk is None:
                    return
                yield chunk
        finally:
            self.mark_closed()


def stream_response(
    lifecycle: ConnectionLifecycle,
    subscription: Subscription,
    keepalive_seconds: float = 15.0,
) -> StreamingResponse:
    """Start serving a subscription and return its SSE response."""
    connection = SseConnection(keepalive_seconds=keepalive_seconds)
    logger.info(
        "stream opened",
        connection_id=connection.connection_id,
        session_code=subscription.session_code,
        role=subscription.role,
    )
    lifecycle.spawn(subscription, connection)
    return StreamingResponse(
        connection.chunks(),
        media_type="text/event-stream",
        headers=_SSE_HEADERS,
        background=BackgroundTask(connection.release),
    )
