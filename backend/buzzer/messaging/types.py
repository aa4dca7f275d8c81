"""Wire models: outbound SSE frames and inbound HTTP request/response bodies.

Field names are snake_case in Python and camelCase on the wire, matching
what existing buzzer clients already parse.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from buzzer.exceptions import DecodeError
from buzzer.messaging.events import EventKind


def frame_timestamp() -> str:
    return datetime.now(UTC).isoformat()


class Frame(BaseModel):
    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class JoinAckFrame(Frame):
    """First frame on a player stream: tells the client who it is."""

    time: str = Field(default_factory=frame_timestamp)
    session_code: int = Field(serialization_alias="sessionCode")
    player_id: int = Field(serialization_alias="playerID")
    player_name: str = Field(serialization_alias="playerName")


class EventFrame(Frame):
    """An event as seen by players and the host.

    player_id and player_name describe the participant that caused the
    event; both are None for session-level events (lock, reset, host left).
    """

    time: str = Field(default_factory=frame_timestamp)
    session_code: int = Field(serialization_alias="sessionCode")
    player_id: int | None = Field(default=None, serialization_alias="playerID")
    player_name: str | None = Field(default=None, serialization_alias="playerName")
    action: EventKind


class HostInfoFrame(Frame):
    """Initial frame and idle heartbeat on the host stream."""

    session_code: int = Field(serialization_alias="sessionCode")
    time: str = Field(default_factory=frame_timestamp)


class CreateSessionResponse(Frame):
    session_code: int = Field(serialization_alias="sessionCode")


class BuzzRequest(BaseModel):
    # Older clients also send gameID and action; they are implied by the URL.
    model_config = ConfigDict(extra="ignore")

    player_id: int = Field(validation_alias="playerID", ge=0, strict=True)


def parse_buzz_request(data: dict[str, Any]) -> BuzzRequest:
    """Validate a decoded buzz body. Raises DecodeError on invalid input."""
    try:
        return BuzzRequest.model_validate(data)
    except ValidationError as e:
        raise DecodeError(f"invalid buzz request: {e.error_count()} validation error(s)") from e
