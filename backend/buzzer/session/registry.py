"""Registry of live sessions and known participants."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from buzzer.exceptions import IdentifierCollisionError, ParticipantNotFoundError, SessionNotFoundError
from buzzer.session.ids import ID_MAX, ID_MIN, IdentifierGenerator
from buzzer.session.models import Participant, Session

if TYPE_CHECKING:
    from buzzer.session.sink import Sink

logger = structlog.get_logger()


class SessionRegistry:
    """Own all session and participant state.

    Every operation runs under a single lock, so connection tasks (which
    write on connect) and dispatch loops (which read and prune) never see
    a half-applied change. The lock is injectable so callers can share one
    across collaborating components.
    """

    def __init__(
        self,
        id_generator: IdentifierGenerator | None = None,
        lock: asyncio.Lock | None = None,
    ) -> None:
        self._id_generator = id_generator or IdentifierGenerator()
        self._lock = lock or asyncio.Lock()
        self._sessions: dict[int, Session] = {}  # session_code -> Session
        self._participants: dict[int, Participant] = {}  # participant_id -> Participant

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    @property
    def participant_count(self) -> int:
        return len(self._participants)

    def generate_id(self) -> int:
        return self._id_generator.generate(ID_MIN, ID_MAX)

    async def create_session(self) -> int:
        """Install an empty session under a fresh code and return the code.

        A code that names a live session is a hard failure, not a retry.
        """
        async with self._lock:
            code = self.generate_id()
            if code in self._sessions:
                raise IdentifierCollisionError("session code", code)
            self._sessions[code] = Session(session_code=code)
        logger.info("session created", session_code=code)
        return code

    async def exists(self, session_code: int) -> bool:
        async with self._lock:
            return session_code in self._sessions

    async def add_player_subscriber(self, session_code: int, sink: Sink) -> None:
        async with self._lock:
            session = self._require_session(session_code)
            session.player_sinks.append(sink)
            count = session.player_count
        logger.debug("player subscribed", session_code=session_code, sink_id=sink.sink_id, players=count)

    async def remove_player_subscriber(self, session_code: int, participant_id: int) -> bool:
        """Drop every player sink owned by participant_id. Return True if any was removed."""
        async with self._lock:
            session = self._sessions.get(session_code)
            if session is None:
                return False
            before = session.player_count
            session.player_sinks = [s for s in session.player_sinks if s.participant_id != participant_id]
            return session.player_count != before

    async def set_host_subscriber(self, session_code: int, sink: Sink) -> None:
        async with self._lock:
            session = self._require_session(session_code)
            replaced = session.host_sink is not None
            session.host_sink = sink
        logger.debug("host subscribed", session_code=session_code, sink_id=sink.sink_id, replaced=replaced)

    async def remove_session(self, session_code: int) -> None:
        async with self._lock:
            session = self._sessions.pop(session_code, None)
        if session is not None:
            logger.info("session removed", session_code=session_code, players=session.player_count)

    async def player_sinks(self, session_code: int) -> list[Sink]:
        """Snapshot of the session's player sinks in join order, empty if the session is gone."""
        async with self._lock:
            session = self._sessions.get(session_code)
            return list(session.player_sinks) if session is not None else []

    async def host_sink(self, session_code: int) -> Sink | None:
        async with self._lock:
            session = self._sessions.get(session_code)
            return session.host_sink if session is not None else None

    async def register_participant(self, participant_id: int, session_code: int, name: str) -> Participant:
        async with self._lock:
            if participant_id in self._participants:
                raise IdentifierCollisionError("player id", participant_id)
            participant = Participant(participant_id=participant_id, session_code=session_code, name=name)
            self._participants[participant_id] = participant
        return participant

    async def get_participant(self, participant_id: int) -> Participant | None:
        async with self._lock:
            return self._participants.get(participant_id)

    async def lookup_participant(self, participant_id: int) -> str:
        participant = await self.get_participant(participant_id)
        if participant is None:
            raise ParticipantNotFoundError(participant_id)
        return participant.name

    def _require_session(self, session_code: int) -> Session:
        """Caller must hold the lock."""
        session = self._sessions.get(session_code)
        if session is None:
            raise SessionNotFoundError(session_code)
        return session
