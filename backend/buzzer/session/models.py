from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from buzzer.session.sink import Sink


@dataclass
class Participant:
    """A player known to the server.

    Created when a player stream opens. Records are never deleted, even
    after the player disconnects or the session ends.
    """

    participant_id: int
    session_code: int
    name: str


@dataclass
class Session:
    """One live game: an ordered list of player sinks and at most one host sink.

    player_sinks is kept in join order. It only shrinks when a player's
    disconnect event is dispatched or when the whole session is removed.
    """

    session_code: int
    player_sinks: list[Sink] = field(default_factory=list)
    host_sink: Sink | None = None

    @property
    def player_count(self) -> int:
        return len(self.player_sinks)

    @property
    def has_host(self) -> bool:
        return self.host_sink is not None
