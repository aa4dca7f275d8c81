import asyncio

import pytest

from buzzer.messaging.events import Event, EventKind
from buzzer.session.sink import Sink


def _event(participant_id: int) -> Event:
    return Event(session_code=123456, kind=EventKind.BUZZ, participant_id=participant_id)


class TestSink:
    async def test_receive_in_delivery_order(self):
        sink = Sink()
        for i in (1, 2, 3):
            assert sink.deliver(_event(i)) is True
        received = [await sink.receive() for _ in range(3)]
        assert [e.participant_id for e in received] == [1, 2, 3]

    async def test_full_buffer_drops_oldest(self):
        sink = Sink(maxsize=2)
        sink.deliver(_event(1))
        sink.deliver(_event(2))

        assert sink.deliver(_event(3)) is False
        assert sink.dropped == 1
        assert sink.pending == 2
        assert (await sink.receive()).participant_id == 2
        assert (await sink.receive()).participant_id == 3

    async def test_receive_waits_for_delivery(self):
        sink = Sink()
        waiter = asyncio.create_task(sink.receive())
        await asyncio.sleep(0)
        assert not waiter.done()

        sink.deliver(_event(7))
        event = await asyncio.wait_for(waiter, timeout=1.0)
        assert event.participant_id == 7

    def test_sinks_have_distinct_ids(self):
        assert Sink().sink_id != Sink().sink_id

    def test_rejects_empty_buffer(self):
        with pytest.raises(ValueError, match="at least 1"):
            Sink(maxsize=0)
