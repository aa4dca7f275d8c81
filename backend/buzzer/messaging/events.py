"""Inbound event model and routing targets.

Events are constructed at the point of submission, consumed once by each
dispatch loop they are routed to, and never persisted. Disconnects are
ordinary events: cleanup happens in the dispatch loops, not in a separate
code path.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, field_validator

# ---------------------------------------------------------------------------
# Typed routing targets
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PlayersTarget:
    """Event is fanned out to every player subscriber of the session."""


@dataclass(frozen=True)
class HostTarget:
    """Event is delivered to the session's single host subscriber."""


EventTarget = PlayersTarget | HostTarget


class EventKind(StrEnum):
    JOINED = "joined"
    BUZZ = "buzz"
    DISCONNECT = "disconnect"
    LOCK = "lock"
    RESET = "reset"


class Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    session_code: int
    kind: EventKind
    participant_id: int | None = None

    @field_validator("participant_id")
    @classmethod
    def _zero_means_no_participant(cls, v: int | None) -> int | None:
        # Participant ids start at 100000; a zero id addresses the whole session.
        return v or None

    @property
    def is_session_level(self) -> bool:
        """True for events with no participant: host control and host teardown."""
        return self.participant_id is None


def route_event(event: Event) -> tuple[EventTarget, ...]:
    """Return the dispatch loops an event is submitted to.

    Player actions reach both loops so every player and the host observe
    them. Host-issued control actions and the host's own disconnect only
    reach players. A join is only interesting to the host.
    """
    if event.kind is EventKind.JOINED:
        return (HostTarget(),)
    if event.kind in (EventKind.LOCK, EventKind.RESET):
        return (PlayersTarget(),)
    if event.kind is EventKind.DISCONNECT and event.is_session_level:
        return (PlayersTarget(),)
    return (PlayersTarget(), HostTarget())
