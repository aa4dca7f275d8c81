from buzzer.tests.mocks.connection import MockStreamConnection
from buzzer.tests.mocks.ids import SequenceIdGenerator

__all__ = ["MockStreamConnection", "SequenceIdGenerator"]
