"""Typed exceptions for the buzzer session core.

Validation failures (BadRequestError, NotFoundError subclasses,
IdentifierCollisionError) are raised to the immediate caller and
translated to HTTP responses by the server layer. They never enter the
dispatch loops, which assume every submitted event names a session that
was valid at submission time.
"""


class BuzzerError(Exception):
    """Base exception for the buzzer core."""


class BadRequestError(BuzzerError):
    """Caller input is malformed (e.g. a session code that is not a number)."""


class NotFoundError(BuzzerError):
    """A well-formed identifier that names nothing live."""


class SessionNotFoundError(NotFoundError):
    def __init__(self, session_code: int) -> None:
        self.session_code = session_code
        super().__init__(f"session {session_code} not found")


class ParticipantNotFoundError(NotFoundError):
    def __init__(self, participant_id: int) -> None:
        self.participant_id = participant_id
        super().__init__(f"player {participant_id} not found")


class IdentifierCollisionError(BuzzerError):
    """The identifier generator produced a code that is already in use."""

    def __init__(self, kind: str, identifier: int) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"random {kind} collision: {identifier}")


class InternalError(BuzzerError):
    """Server-side failure unrelated to caller input."""


class DecodeError(BadRequestError):
    """An inbound request body could not be decoded."""


class EncodeError(InternalError):
    """An outbound frame could not be serialized."""


class PayloadTooLargeError(DecodeError):
    """An inbound request body exceeds the size limit."""
