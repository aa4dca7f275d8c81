from datetime import datetime

import pytest

from buzzer.exceptions import DecodeError
from buzzer.messaging.events import EventKind
from buzzer.messaging.types import (
    CreateSessionResponse,
    EventFrame,
    HostInfoFrame,
    JoinAckFrame,
    parse_buzz_request,
)


class TestFrames:
    def test_join_ack_wire_shape(self):
        wire = JoinAckFrame(session_code=482913, player_id=555555, player_name="Ann").to_wire()
        assert set(wire) == {"time", "sessionCode", "playerID", "playerName"}
        assert wire["sessionCode"] == 482913
        assert wire["playerID"] == 555555
        assert wire["playerName"] == "Ann"

    def test_timestamp_is_iso_utc(self):
        wire = HostInfoFrame(session_code=482913).to_wire()
        parsed = datetime.fromisoformat(wire["time"])
        assert parsed.utcoffset() is not None
        assert parsed.utcoffset().total_seconds() == 0

    def test_event_frame_carries_action(self):
        wire = EventFrame(session_code=1, player_id=2, player_name="Ann", action=EventKind.BUZZ).to_wire()
        assert wire["action"] == "buzz"
        assert wire["playerName"] == "Ann"

    def test_session_level_event_frame_has_null_player(self):
        wire = EventFrame(session_code=1, action=EventKind.LOCK).to_wire()
        assert wire["playerID"] is None
        assert wire["playerName"] is None

    def test_host_info_wire_shape(self):
        assert set(HostInfoFrame(session_code=1).to_wire()) == {"sessionCode", "time"}

    def test_create_session_response(self):
        assert CreateSessionResponse(session_code=482913).to_wire() == {"sessionCode": 482913}


class TestParseBuzzRequest:
    def test_valid_request(self):
        assert parse_buzz_request({"playerID": 555555}).player_id == 555555

    def test_legacy_fields_ignored(self):
        request = parse_buzz_request({"playerID": 555555, "gameID": 482913, "action": "buzz"})
        assert request.player_id == 555555

    @pytest.mark.parametrize(
        "data",
        [
            {},
            {"playerID": "555555"},
            {"playerID": -1},
            {"playerID": 1.5},
            {"player_id": 555555},
        ],
    )
    def test_invalid_requests(self, data):
        with pytest.raises(DecodeError, match="invalid buzz request"):
            parse_buzz_request(data)
