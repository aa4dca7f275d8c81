from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import ClientDisconnect
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from buzzer.exceptions import (
    BadRequestError,
    BuzzerError,
    DecodeError,
    NotFoundError,
    ParticipantNotFoundError,
    PayloadTooLargeError,
    SessionNotFoundError,
)
from buzzer.messaging.encoder import MAX_BODY_LEN, decode_body
from buzzer.messaging.events import Event, EventKind
from buzzer.messaging.router import EventRouter
from buzzer.messaging.types import CreateSessionResponse, parse_buzz_request
from buzzer.server.settings import BuzzerServerSettings
from buzzer.server.sse import stream_response
from buzzer.session.lifecycle import ConnectionLifecycle, parse_session_code
from buzzer.session.registry import SessionRegistry
from shared.build_info import APP_VERSION, GIT_COMMIT
from shared.logging import setup_logging

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from starlette.requests import Request


def _error_response(error: BuzzerError) -> JSONResponse:
    if isinstance(error, PayloadTooLargeError):
        status_code = 413
    elif isinstance(error, BadRequestError):
        status_code = 400
    elif isinstance(error, NotFoundError):
        status_code = 404
    else:
        status_code = 500
    return JSONResponse({"error": str(error)}, status_code=status_code)


async def _read_request_body(request: Request) -> dict:
    raw_body = b""
    async for chunk in request.stream():
        raw_body += chunk
        if len(raw_body) > MAX_BODY_LEN:
            break
    return decode_body(raw_body)


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "version": APP_VERSION, "commit": GIT_COMMIT})


async def status(request: Request) -> JSONResponse:
    registry: SessionRegistry = request.app.state.registry
    lifecycle: ConnectionLifecycle = request.app.state.lifecycle
    settings: BuzzerServerSettings = request.app.state.settings
    return JSONResponse(
        {
            "status": "ok",
            "version": APP_VERSION,
            "commit": GIT_COMMIT,
            "active_sessions": registry.session_count,
            "known_players": registry.participant_count,
            "open_streams": lifecycle.active_streams,
            "max_sessions": settings.max_sessions,
        },
    )


async def create_session(request: Request) -> JSONResponse:
    registry: SessionRegistry = request.app.state.registry
    settings: BuzzerServerSettings = request.app.state.settings

    if registry.session_count >= settings.max_sessions:
        return JSONResponse({"error": "Server at capacity"}, status_code=503)

    try:
        session_code = await registry.create_session()
    except BuzzerError as e:
        logger.error("failed to create session", error=str(e))
        return _error_response(e)

    return JSONResponse(CreateSessionResponse(session_code=session_code).to_wire(), status_code=201)


async def host_stream(request: Request) -> Response:
    lifecycle: ConnectionLifecycle = request.app.state.lifecycle
    settings: BuzzerServerSettings = request.app.state.settings
    try:
        subscription = await lifecycle.open_host(request.path_params["session_code"])
    except BuzzerError as e:
        logger.info("host stream rejected", error=str(e))
        return _error_response(e)
    return stream_response(lifecycle, subscription, keepalive_seconds=settings.stream_keepalive_seconds)


async def player_stream(request: Request) -> Response:
    lifecycle: ConnectionLifecycle = request.app.state.lifecycle
    settings: BuzzerServerSettings = request.app.state.settings
    player_name = request.query_params.get("name", "")
    try:
        subscription = await lifecycle.open_player(request.path_params["session_code"], player_name)
    except BuzzerError as e:
        logger.info("player stream rejected", error=str(e))
        return _error_response(e)
    return stream_response(lifecycle, subscription, keepalive_seconds=settings.stream_keepalive_seconds)


async def buzz(request: Request) -> JSONResponse:
    registry: SessionRegistry = request.app.state.registry
    router: EventRouter = request.app.state.router

    try:
        session_code = parse_session_code(request.path_params["session_code"])
        await _require_live_session(registry, session_code)
        body = parse_buzz_request(await _read_request_body(request))
        participant = await registry.get_participant(body.player_id)
        if participant is None or participant.session_code != session_code:
            raise ParticipantNotFoundError(body.player_id)
    except ClientDisconnect:
        return JSONResponse({"error": "client disconnected"}, status_code=400)
    except BuzzerError as e:
        if isinstance(e, DecodeError):
            logger.warning("invalid buzz request", error=str(e))
        return _error_response(e)

    logger.info("buzz detected", session_code=session_code, participant_id=participant.participant_id)
    await router.submit(
        Event(session_code=session_code, kind=EventKind.BUZZ, participant_id=participant.participant_id),
    )
    return JSONResponse({"status": "accepted"}, status_code=201)


async def _host_control(request: Request, kind: EventKind) -> JSONResponse:
    registry: SessionRegistry = request.app.state.registry
    router: EventRouter = request.app.state.router

    try:
        session_code = parse_session_code(request.path_params["session_code"])
        await _require_live_session(registry, session_code)
    except BuzzerError as e:
        return _error_response(e)

    logger.info("host control", session_code=session_code, kind=kind)
    await router.submit(Event(session_code=session_code, kind=kind))
    return JSONResponse({"status": "accepted"}, status_code=202)


async def lock(request: Request) -> JSONResponse:
    return await _host_control(request, EventKind.LOCK)


async def reset(request: Request) -> JSONResponse:
    return await _host_control(request, EventKind.RESET)


async def _require_live_session(registry: SessionRegistry, session_code: int) -> None:
    if not await registry.exists(session_code):
        raise SessionNotFoundError(session_code)


def create_app(
    settings: BuzzerServerSettings | None = None,
    registry: SessionRegistry | None = None,
    router: EventRouter | None = None,
    lifecycle: ConnectionLifecycle | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = BuzzerServerSettings()

    if registry is None:
        registry = SessionRegistry()

    if router is None:
        router = EventRouter(registry, queue_size=settings.event_queue_size)

    if lifecycle is None:
        lifecycle = ConnectionLifecycle(
            registry,
            router,
            sink_buffer_size=settings.sink_buffer_size,
            host_heartbeat_seconds=settings.host_heartbeat_seconds,
            participant_id_attempts=settings.participant_id_attempts,
        )

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        router.start()
        try:
            yield
        finally:
            await lifecycle.shutdown()
            await router.stop()

    routes = [
        Route("/", health, methods=["GET"]),
        Route("/health", health, methods=["GET"]),
        Route("/status", status, methods=["GET"]),
        Route("/host", create_session, methods=["POST"]),
        Route("/host/{session_code}", host_stream, methods=["GET"]),
        Route("/host/{session_code}/lock", lock, methods=["POST"]),
        Route("/host/{session_code}/reset", reset, methods=["POST"]),
        Route("/play/{session_code}", player_stream, methods=["GET"]),
        Route("/play/{session_code}/buzz", buzz, methods=["POST"]),
    ]

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.registry = registry
    app.state.router = router
    app.state.lifecycle = lifecycle

    logger.info("buzzer server ready")
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (uvicorn --factory buzzer.server.app:get_app)."""
    _settings = BuzzerServerSettings()
    setup_logging(log_dir=_settings.log_dir)
    return create_app(settings=_settings)
