"""Bind streaming connections to registry subscriptions, from open to close."""

from __future__ import annotations

import asyncio
import contextlib
import re
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

import structlog

from buzzer.exceptions import BadRequestError, EncodeError, IdentifierCollisionError, SessionNotFoundError
from buzzer.messaging.events import Event, EventKind
from buzzer.messaging.types import EventFrame, HostInfoFrame, JoinAckFrame
from buzzer.session.sink import DEFAULT_SINK_BUFFER_SIZE, Sink

if TYPE_CHECKING:
    from buzzer.messaging.protocol import StreamConnection
    from buzzer.messaging.router import EventRouter
    from buzzer.session.models import Participant
    from buzzer.session.registry import SessionRegistry

logger = structlog.get_logger()

DEFAULT_HOST_HEARTBEAT_SECONDS = 1.0
DEFAULT_PARTICIPANT_ID_ATTEMPTS = 5

_SESSION_CODE_PATTERN = re.compile(r"[0-9]+")


class StreamRole(StrEnum):
    HOST = "host"
    PLAYER = "player"


@dataclass
class Subscription:
    """A registry slot claimed for one stream, ready to be served."""

    session_code: int
    role: StreamRole
    sink: Sink
    participant: Participant | None = None

    @property
    def participant_id(self) -> int | None:
        return self.participant.participant_id if self.participant is not None else None

    def disconnect_event(self) -> Event:
        return Event(session_code=self.session_code, kind=EventKind.DISCONNECT, participant_id=self.participant_id)


def parse_session_code(raw: str) -> int:
    """Parse a session code from a URL path parameter. Raises BadRequestError.

    Only plain ASCII digits are accepted: int() alone would also take signs,
    underscores, surrounding whitespace and non-ASCII digits.
    """
    if not isinstance(raw, str) or _SESSION_CODE_PATTERN.fullmatch(raw) is None:
        raise BadRequestError(f"failed to convert session code [{raw}] to int")
    return int(raw)


class ConnectionLifecycle:
    """
    Govern host and player streams.

    open_player/open_host validate the session and claim a subscription.
    serve() then runs the stream: a receive task forwards sink events to
    the connection while serve itself waits for the transport to close,
    at which point it submits a disconnect event through the router so
    cleanup happens in the dispatch loops like any other traffic.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        router: EventRouter,
        *,
        sink_buffer_size: int = DEFAULT_SINK_BUFFER_SIZE,
        host_heartbeat_seconds: float = DEFAULT_HOST_HEARTBEAT_SECONDS,
        participant_id_attempts: int = DEFAULT_PARTICIPANT_ID_ATTEMPTS,
    ) -> None:
        self._registry = registry
        self._router = router
        self._sink_buffer_size = sink_buffer_size
        self._host_heartbeat_seconds = host_heartbeat_seconds
        self._participant_id_attempts = participant_id_attempts
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def active_streams(self) -> int:
        return len(self._tasks)

    async def open_player(self, raw_session_code: str, name: str) -> Subscription:
        session_code = await self._require_session(raw_session_code)
        participant = await self._register_participant(session_code, name)
        sink = Sink(participant_id=participant.participant_id, maxsize=self._sink_buffer_size)
        await self._registry.add_player_subscriber(session_code, sink)
        logger.info(
            "player joined",
            session_code=session_code,
            participant_id=participant.participant_id,
            player_name=name,
        )
        return Subscription(session_code=session_code, role=StreamRole.PLAYER, sink=sink, participant=participant)

    async def open_host(self, raw_session_code: str) -> Subscription:
        session_code = await self._require_session(raw_session_code)
        sink = Sink(maxsize=self._sink_buffer_size)
        await self._registry.set_host_subscriber(session_code, sink)
        logger.info("host listening", session_code=session_code)
        return Subscription(session_code=session_code, role=StreamRole.HOST, sink=sink)

    def spawn(self, subscription: Subscription, connection: StreamConnection) -> asyncio.Task[None]:
        """Serve a stream in the background, keeping a reference until it finishes."""
        task = asyncio.create_task(self.serve(subscription, connection))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def shutdown(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def serve(self, subscription: Subscription, connection: StreamConnection) -> None:
        structlog.contextvars.bind_contextvars(
            session_code=subscription.session_code,
            role=subscription.role,
            participant_id=subscription.participant_id,
            connection_id=connection.connection_id,
        )
        if subscription.role is StreamRole.PLAYER:
            # joined must reach the host queue before any disconnect for this player.
            await self._router.submit(
                Event(
                    session_code=subscription.session_code,
                    kind=EventKind.JOINED,
                    participant_id=subscription.participant_id,
                ),
            )
        receive_task = asyncio.create_task(self._receive(subscription, connection))
        try:
            await connection.wait_closed()
            logger.info("stream closed")
            if await self._owns_session_slot(subscription):
                await self._router.submit(subscription.disconnect_event())
        finally:
            receive_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await receive_task

    async def _owns_session_slot(self, subscription: Subscription) -> bool:
        # A host stream that has been replaced by a newer one must not end the game.
        if subscription.role is StreamRole.PLAYER:
            return True
        current = await self._registry.host_sink(subscription.session_code)
        if current is not subscription.sink:
            logger.info("replaced host stream closed, session kept")
            return False
        return True

    async def _receive(self, subscription: Subscription, connection: StreamConnection) -> None:
        try:
            if subscription.role is StreamRole.PLAYER:
                await self._player_loop(subscription, connection)
            else:
                await self._host_loop(subscription, connection)
        except (EncodeError, ConnectionError, RuntimeError) as e:
            logger.warning("stream send failed, closing", error=str(e))
        except Exception:
            logger.exception("unexpected error in stream receive loop")
        await connection.close()

    async def _player_loop(self, subscription: Subscription, connection: StreamConnection) -> None:
        participant = subscription.participant
        if participant is None:
            raise ValueError("player subscription has no participant")
        ack = JoinAckFrame(
            session_code=subscription.session_code,
            player_id=participant.participant_id,
            player_name=participant.name,
        )
        await connection.send_message(ack.to_wire())
        while True:
            event = await subscription.sink.receive()
            frame = await self._event_frame(event)
            await connection.send_message(frame.to_wire())

    async def _host_loop(self, subscription: Subscription, connection: StreamConnection) -> None:
        await connection.send_message(HostInfoFrame(session_code=subscription.session_code).to_wire())
        while True:
            try:
                event = await asyncio.wait_for(subscription.sink.receive(), timeout=self._host_heartbeat_seconds)
            except TimeoutError:
                await connection.send_message(HostInfoFrame(session_code=subscription.session_code).to_wire())
                continue
            frame = await self._event_frame(event)
            await connection.send_message(frame.to_wire())

    async def _event_frame(self, event: Event) -> EventFrame:
        player_name = None
        if event.participant_id is not None:
            participant = await self._registry.get_participant(event.participant_id)
            player_name = participant.name if participant is not None else None
        return EventFrame(
            session_code=event.session_code,
            player_id=event.participant_id,
            player_name=player_name,
            action=event.kind,
        )

    async def _require_session(self, raw_session_code: str) -> int:
        session_code = parse_session_code(raw_session_code)
        if not await self._registry.exists(session_code):
            raise SessionNotFoundError(session_code)
        return session_code

    async def _register_participant(self, session_code: int, name: str) -> Participant:
        """Register under a fresh id, retrying on collisions in the shared id namespace."""
        last_error: IdentifierCollisionError | None = None
        for _ in range(self._participant_id_attempts):
            participant_id = self._registry.generate_id()
            try:
                return await self._registry.register_participant(participant_id, session_code, name)
            except IdentifierCollisionError as e:
                logger.warning("player id collision, retrying", participant_id=participant_id)
                last_error = e
        if last_error is None:
            raise ValueError("participant_id_attempts must be at least 1")
        raise last_error
