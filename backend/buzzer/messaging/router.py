"""Dispatch loops that route inbound events to subscriber sinks."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

import structlog

from buzzer.messaging.events import EventKind, HostTarget, PlayersTarget, route_event

if TYPE_CHECKING:
    from buzzer.messaging.events import Event
    from buzzer.session.registry import SessionRegistry

logger = structlog.get_logger()

DEFAULT_EVENT_QUEUE_SIZE = 1024

DispatchHandler = Callable[["Event"], Awaitable[None]]


class EventRouter:
    """
    Route events through two independent single-consumer loops.

    The player loop fans each event out to every player sink of the
    session, in join order. The host loop delivers each event to the
    session's host sink, dropping it when no host is subscribed. Each loop
    drains its own queue, so per-session order is FIFO within a loop.

    Session teardown is driven by events: a session-level disconnect
    removes the session after the fan-out, and a player's disconnect
    removes that player's sink before it.
    """

    def __init__(self, registry: SessionRegistry, queue_size: int = DEFAULT_EVENT_QUEUE_SIZE) -> None:
        self._registry = registry
        self._player_queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=queue_size)
        self._host_queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=queue_size)
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(self._run(self._player_queue, self._dispatch_to_players), name="player-fanout"),
            asyncio.create_task(self._run(self._host_queue, self._dispatch_to_host), name="host-delivery"),
        ]
        logger.info("event router started")

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if tasks:
            logger.info("event router stopped")

    async def submit(self, event: Event) -> None:
        """Enqueue an event on every loop its kind is routed to."""
        for target in route_event(event):
            if isinstance(target, PlayersTarget):
                await self.submit_to_players(event)
            elif isinstance(target, HostTarget):
                await self.submit_to_host(event)

    async def submit_to_players(self, event: Event) -> None:
        await self._player_queue.put(event)

    async def submit_to_host(self, event: Event) -> None:
        await self._host_queue.put(event)

    async def drain(self) -> None:
        """Wait until every event submitted so far has been dispatched."""
        await self._player_queue.join()
        await self._host_queue.join()

    async def _run(self, queue: asyncio.Queue[Event], dispatch: DispatchHandler) -> None:
        while True:
            event = await queue.get()
            try:
                await dispatch(event)
            except Exception:
                logger.exception("failed to dispatch event", session_code=event.session_code, kind=event.kind)
            finally:
                queue.task_done()

    async def _dispatch_to_players(self, event: Event) -> None:
        is_disconnect = event.kind is EventKind.DISCONNECT
        if is_disconnect and event.participant_id is not None:
            removed = await self._registry.remove_player_subscriber(event.session_code, event.participant_id)
            if removed:
                logger.info(
                    "player unsubscribed",
                    session_code=event.session_code,
                    participant_id=event.participant_id,
                )

        sinks = await self._registry.player_sinks(event.session_code)
        for sink in sinks:
            sink.deliver(event)
        logger.debug("event fanned out", session_code=event.session_code, kind=event.kind, players=len(sinks))

        if is_disconnect and event.is_session_level:
            await self._registry.remove_session(event.session_code)

    async def _dispatch_to_host(self, event: Event) -> None:
        sink = await self._registry.host_sink(event.session_code)
        if sink is None:
            logger.debug("no host subscribed, event dropped", session_code=event.session_code, kind=event.kind)
            return
        sink.deliver(event)
