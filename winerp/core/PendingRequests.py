from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

from winerp.core.MessageTypes import CORRELATED_MESSAGES, MessageType
from winerp.shared.envelope import Envelope, Payload, create_envelope
from winerp.shared.errors import ConnectionClosedError, RequestFailedError, RequestTimeoutError
from winerp.shared.log import get_logger, log_winerp_message
from winerp.shared.utils import new_correlation_id

logger = get_logger(__name__)

SendFunc = Callable[[Envelope], Awaitable[None]]

DEFAULT_TIMEOUT = 60.0


@dataclass
class PendingRequest:
    uuid: str
    future: asyncio.Future
    timer: asyncio.TimerHandle
    timeout: float


class RequestCorrelator:
    """
    Matches RESPONSE/ERROR envelopes to the REQUEST that caused them.

    Every outstanding request sits in one uuid-keyed registry. Whichever of
    {matching response, matching error, timer expiry, connection close}
    happens first pops the entry; popping is the claim, so the others find
    nothing and do nothing.
    """

    def __init__(self, local_name: str, send: SendFunc) -> None:
        """
        Args:
            local_name: Our peer name, stamped on every outbound REQUEST
            send: Coroutine function that puts an Envelope on the wire
        """
        self.local_name = local_name
        self._send = send
        self._pending: Dict[str, PendingRequest] = {}

    async def request(
        self,
        destination: str,
        route: str,
        data: Optional[Payload] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> Payload:
        """
        Send a REQUEST to destination's route and wait for the answer.

        Args:
            destination: Name of the peer that owns the route
            route: Route name on that peer
            data: Request payload (object or string), defaults to {}
            timeout: Seconds to wait for RESPONSE/ERROR

        Returns:
            The 'data' of the matching RESPONSE

        Raises:
            RequestFailedError: the peer answered with an ERROR envelope
            RequestTimeoutError: nothing matched within timeout
            ConnectionClosedError: the connection closed first
        """
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")

        loop = asyncio.get_running_loop()
        request_id = new_correlation_id()
        future = loop.create_future()
        timer = loop.call_later(timeout, self._expire, request_id)
        # register before sending so a fast reply cannot slip past
        self._pending[request_id] = PendingRequest(request_id, future, timer, timeout)

        envelope = create_envelope(
            MessageType.REQUEST,
            local_name=self.local_name,
            destination=destination,
            route=route,
            data=data,
            uuid=request_id,
        )
        try:
            await self._send(envelope)
            log_winerp_message(logger, "debug", f"Sent request to {destination}", envelope=envelope)
            return await future
        finally:
            # cancellation or send failure: nobody else claimed it, drop it now
            self._discard(request_id)

    def resolve(self, envelope: Envelope) -> bool:
        """
        Settle the pending request this envelope answers.

        Returns:
            True if the envelope matched a pending request, False otherwise
            (unknown uuid, late reply after timeout, or not a reply type)
        """
        if envelope.type not in CORRELATED_MESSAGES or envelope.uuid is None:
            return False

        pending = self._claim(envelope.uuid)
        if pending is None:
            return False

        if envelope.type is MessageType.RESPONSE:
            pending.future.set_result(envelope.data)
        else:
            message = envelope.data if isinstance(envelope.data, str) and envelope.data else "Request failed"
            pending.future.set_exception(
                RequestFailedError(pending.uuid, message, envelope.traceback)
            )
        log_winerp_message(logger, "debug", "Resolved pending request", envelope=envelope)
        return True

    def fail_all(self, reason: str = "Connection closed") -> int:
        """
        Fail every outstanding request with ConnectionClosedError.

        Returns:
            Number of requests failed
        """
        failed = 0
        for request_id in list(self._pending):
            pending = self._claim(request_id)
            if pending is not None:
                pending.future.set_exception(ConnectionClosedError(f"{reason} while awaiting {request_id}"))
                failed += 1
        if failed:
            logger.warning("Failed %d pending request(s): %s", failed, reason)
        return failed

    def is_pending(self, request_id: str) -> bool:
        return request_id in self._pending

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def _expire(self, request_id: str) -> None:
        pending = self._claim(request_id)
        if pending is None:
            return
        logger.warning("Request timed out after %ss", pending.timeout, extra={"uuid": request_id})
        pending.future.set_exception(RequestTimeoutError(request_id, pending.timeout))

    def _claim(self, request_id: str) -> Optional[PendingRequest]:
        """Remove and return the entry if it is still live; cancel its timer."""
        pending = self._pending.pop(request_id, None)
        if pending is None:
            return None
        pending.timer.cancel()
        if pending.future.done():
            # awaiting task was cancelled underneath us
            return None
        return pending

    def _discard(self, request_id: str) -> None:
        pending = self._pending.pop(request_id, None)
        if pending is not None:
            pending.timer.cancel()
