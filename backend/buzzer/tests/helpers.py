import asyncio
from collections.abc import Awaitable, Callable

from buzzer.session.lifecycle import ConnectionLifecycle, Subscription
from buzzer.tests.mocks import MockStreamConnection


async def join_player(
    lifecycle: ConnectionLifecycle,
    session_code: int,
    name: str,
) -> tuple[Subscription, MockStreamConnection]:
    """Open and serve a player stream, waiting for its acknowledgement frame."""
    subscription = await lifecycle.open_player(str(session_code), name)
    conn = MockStreamConnection()
    lifecycle.spawn(subscription, conn)
    await conn.wait_for_frames(1)
    return subscription, conn


async def connect_host(lifecycle: ConnectionLifecycle, session_code: int) -> tuple[Subscription, MockStreamConnection]:
    """Open and serve a host stream, waiting for its initial info frame."""
    subscription = await lifecycle.open_host(str(session_code))
    conn = MockStreamConnection()
    lifecycle.spawn(subscription, conn)
    await conn.wait_for_frames(1)
    return subscription, conn


def actions(frames: list[dict]) -> list[str]:
    """Actions of event frames, skipping ack and host info frames."""
    return [f["action"] for f in frames if "action" in f]


async def wait_until(condition: Callable[[], Awaitable[bool]], timeout: float = 2.0) -> None:
    """Poll an async condition until it holds."""

    async def _poll() -> None:
        while not await condition():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_poll(), timeout=timeout)
