import json

import pytest

from buzzer.exceptions import BadRequestError, DecodeError, EncodeError, PayloadTooLargeError
from buzzer.messaging.encoder import KEEPALIVE_COMMENT, MAX_BODY_LEN, decode_body, encode_frame


class TestEncodeFrame:
    def test_single_sse_data_record(self):
        encoded = encode_frame({"sessionCode": 482913, "action": "buzz"})
        assert encoded == 'data: {"sessionCode":482913,"action":"buzz"}\n\n'

    def test_payload_stays_on_one_line(self):
        encoded = encode_frame({"playerName": "line\nbreak"})
        assert encoded.count("\n") == 2
        assert json.loads(encoded[len("data: ") : -2]) == {"playerName": "line\nbreak"}

    def test_unserializable_frame_raises(self):
        with pytest.raises(EncodeError):
            encode_frame({"value": object()})

    def test_nan_rejected(self):
        with pytest.raises(EncodeError):
            encode_frame({"value": float("nan")})

    def test_keepalive_is_a_comment(self):
        assert KEEPALIVE_COMMENT.startswith(":")
        assert KEEPALIVE_COMMENT.endswith("\n\n")


class TestDecodeBody:
    def test_decodes_object(self):
        assert decode_body(b'{"playerID": 555555}') == {"playerID": 555555}

    def test_invalid_json(self):
        with pytest.raises(DecodeError, match="invalid JSON"):
            decode_body(b"{not json")

    def test_invalid_utf8(self):
        with pytest.raises(DecodeError):
            decode_body(b"\xff\xfe\xfd")

    def test_non_object(self):
        with pytest.raises(DecodeError, match="expected JSON object, got list"):
            decode_body(b"[1, 2]")

    def test_body_too_large(self):
        with pytest.raises(PayloadTooLargeError, match="too large"):
            decode_body(b" " * (MAX_BODY_LEN + 1))

    def test_decode_errors_are_bad_requests(self):
        assert issubclass(DecodeError, BadRequestError)
        assert issubclass(PayloadTooLargeError, DecodeError)
