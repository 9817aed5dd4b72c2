from __future__ import annotations

from enum import IntEnum
from typing import Set


class MessageType(IntEnum):
    """Winerp envelope types. The integer value is the wire code."""

    SUCCESS = 0          # relay accepted our verification
    VERIFICATION = 1     # first frame after connecting, carries local name
    REQUEST = 2          # correlated call to one peer's route
    RESPONSE = 3         # successful answer to a REQUEST
    ERROR = 4            # failed answer, or relay-side rejection
    PING = 5
    INFORMATION = 6      # one-way message to a list of peers
    FUNCTION_CALL = 7

    @classmethod
    def from_value(cls, value: object) -> MessageType:
        """Convert a wire value to MessageType, raise ValueError if unknown."""
        # bool is an int subclass; True must not read as VERIFICATION
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"Unknown message type: {value!r}")
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unknown message type: {value!r}")


# Inbound types that may settle a pending request
CORRELATED_MESSAGES: Set[MessageType] = {
    MessageType.RESPONSE,
    MessageType.ERROR,
}
