"""Abstract streaming connection used by the lifecycle manager."""

from abc import ABC, abstractmethod
from typing import Any

from buzzer.messaging.encoder import encode_frame


class StreamConnection(ABC):
    """
    One-way stream from the server to a single client.

    Lets the connection lifecycle be tested without a real HTTP transport.
    Frames are serialized as SSE `data:` records.
    """

    @property
    @abstractmethod
    def connection_id(self) -> str:
        """Unique identifier for this connection."""
        ...

    @abstractmethod
    async def send_text(self, data: str) -> None:
        """
        Write and flush one serialized frame. Raise ConnectionError if the stream is gone.
        """
        ...

    @abstractmethod
    async def wait_closed(self) -> None:
        """
        Block until the transport reports that the stream has closed.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """
        Close the stream from the server side.
        """
        ...

    async def send_message(self, data: dict[str, Any]) -> None:
        """
        Serialize a frame and send it.
        """
        await self.send_text(encode_frame(data))
