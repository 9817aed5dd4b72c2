"""
Winerp error types.

Only failures that reach the local caller live here. A missing route or a
failing route handler travels back to the requester as an ERROR envelope.
"""

from __future__ import annotations
from typing import Optional


class WinerpError(Exception):
    """Base class for every error raised by the client."""
    pass


class MalformedEnvelopeError(WinerpError):
    """Raised when an inbound frame is not a valid envelope."""
    pass


class NotAuthorizedError(WinerpError):
    """Raised when sending before the relay has confirmed verification."""

    def __init__(self, message: str = "Client is not authorized yet") -> None:
        super().__init__(message)


class OnHoldError(WinerpError):
    """Raised when another peer already holds this client's local name."""

    def __init__(self, message: str = "Client is on hold: local name already authorized") -> None:
        super().__init__(message)


class RequestTimeoutError(WinerpError):
    """Raised when no RESPONSE or ERROR arrives before the request timeout."""

    def __init__(self, uuid: str, timeout: float) -> None:
        super().__init__(f"Request {uuid} timed out after {timeout}s")
        self.uuid = uuid
        self.timeout = timeout


class RequestFailedError(WinerpError):
    """Raised when the remote peer answered a request with an ERROR envelope."""

    def __init__(self, uuid: str, message: str, traceback: Optional[str] = None) -> None:
        super().__init__(message)
        self.uuid = uuid
        self.message = message
        self.traceback = traceback


class ConnectionClosedError(WinerpError):
    """Raised when the transport closes while a request is still pending."""
    pass
