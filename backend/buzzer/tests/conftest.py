import pytest

from buzzer.messaging.router import EventRouter
from buzzer.server.app import create_app
from buzzer.server.settings import BuzzerServerSettings
from buzzer.session.lifecycle import ConnectionLifecycle
from buzzer.session.registry import SessionRegistry
from buzzer.tests.mocks import SequenceIdGenerator


@pytest.fixture
def id_generator():
    return SequenceIdGenerator([])


@pytest.fixture
def registry(id_generator):
    return SessionRegistry(id_generator=id_generator)


@pytest.fixture
async def router(registry):
    router = EventRouter(registry, queue_size=64)
    router.start()
    yield router
    await router.stop()


@pytest.fixture
async def lifecycle(registry, router):
    lifecycle = ConnectionLifecycle(registry, router, sink_buffer_size=16, host_heartbeat_seconds=30.0)
    yield lifecycle
    await lifecycle.shutdown()


@pytest.fixture
def settings():
    return BuzzerServerSettings(max_sessions=5, host_heartbeat_seconds=30.0)


@pytest.fixture
def app(settings, registry):
    return create_app(settings=settings, registry=registry)
