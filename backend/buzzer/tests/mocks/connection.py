import asyncio
import json
from typing import Any
from uuid import uuid4

from buzzer.messaging.protocol import StreamConnection


class MockStreamConnection(StreamConnection):
    def __init__(self, connection_id: str | None = None) -> None:
        self._connection_id = connection_id or str(uuid4())
        self._outbox: list[dict[str, Any]] = []
        self._closed = asyncio.Event()
        self._server_closed = False
        self.fail_sends = False

    @property
    def connection_id(self) -> str:
        return self._connection_id

    @property
    def sent_frames(self) -> list[dict[str, Any]]:
        return self._outbox.copy()

    @property
    def is_closed(self) -> bool:
        return self._closed.is_set()

    @property
    def closed_by_server(self) -> bool:
        return self._server_closed

    async def send_text(self, data: str) -> None:
        if self._closed.is_set():
            raise RuntimeError("Connection is closed")
        if self.fail_sends:
            raise ConnectionError("simulated transport failure")
        # strip the SSE framing and store the decoded frame for test inspection
        assert data.startswith("data: ")
        assert data.endswith("\n\n")
        self._outbox.append(json.loads(data[len("data: ") : -2]))

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def close(self) -> None:
        self._server_closed = True
        self._closed.set()

    def simulate_disconnect(self) -> None:
        """
        Simulate the client going away.
        """
        self._closed.set()

    async def wait_for_frames(self, count: int, timeout: float = 2.0) -> list[dict[str, Any]]:
        """
        Wait until at least count frames have been sent.
        """

        async def _poll() -> None:
            while len(self._outbox) < count:
                await asyncio.sleep(0.001)

        await asyncio.wait_for(_poll(), timeout=timeout)
        return self.sent_frames
