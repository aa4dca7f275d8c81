"""JSON wire format for Server-Sent Events frames and action request bodies."""

import json
from typing import Any

from buzzer.exceptions import DecodeError, EncodeError, PayloadTooLargeError

# Request bodies are tiny ({"playerID": 123456}); anything bigger is abuse.
MAX_BODY_LEN = 4096

KEEPALIVE_COMMENT = ": keep-alive\n\n"


def encode_frame(data: dict[str, Any]) -> str:
    """Serialize a frame as one SSE `data:` record.

    Raises EncodeError if the frame is not JSON-serializable.
    """
    try:
        payload = json.dumps(data, separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError) as e:
        raise EncodeError(f"failed to encode frame: {e}") from e
    return f"data: {payload}\n\n"


def decode_body(raw: bytes) -> dict[str, Any]:
    """Decode a JSON request body into a dict.

    Raises DecodeError if the body is too large, not JSON, or not an object.
    """
    if len(raw) > MAX_BODY_LEN:
        raise PayloadTooLargeError(f"request body too large: {len(raw)} bytes (max {MAX_BODY_LEN})")
    try:
        result = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DecodeError(f"invalid JSON body: {e}") from e

    if not isinstance(result, dict):
        raise DecodeError(f"expected JSON object, got {type(result).__name__}")

    return result
