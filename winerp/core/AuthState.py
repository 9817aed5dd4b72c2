from __future__ import annotations

import asyncio
from enum import Enum
from typing import Optional

from winerp.core.MessageTypes import MessageType
from winerp.shared.envelope import Envelope, create_envelope
from winerp.shared.errors import NotAuthorizedError, OnHoldError
from winerp.shared.log import get_logger
from winerp.shared.utils import new_correlation_id

logger = get_logger(__name__)

# ERROR data the relay sends when our local name is already connected
ALREADY_AUTHORIZED = "Already authorized."


class ConnectionState(str, Enum):
    """Where the client is in the connect/verify handshake."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AWAITING_VERIFICATION = "awaiting_verification"
    AUTHORIZED = "authorized"


class AuthorizationState:
    """
    Connection and authorization bookkeeping for one client.

    The on-hold flag is independent of the state: the relay may tell us our
    name is taken either while we wait for verification or after it.
    """

    def __init__(self, local_name: str) -> None:
        self.local_name = local_name
        self.state = ConnectionState.DISCONNECTED
        self.on_hold = False
        # set once the relay has answered verification, or the link dropped
        self._verdict = asyncio.Event()

    @property
    def authorized(self) -> bool:
        return self.state is ConnectionState.AUTHORIZED

    def begin_connect(self) -> None:
        self.state = ConnectionState.CONNECTING
        self._verdict.clear()

    def on_open(self) -> Envelope:
        """Transport is open: build the VERIFICATION frame to send first."""
        self.state = ConnectionState.AWAITING_VERIFICATION
        logger.debug("Transport open, verifying as %s", self.local_name)
        return create_envelope(
            MessageType.VERIFICATION,
            local_name=self.local_name,
            uuid=new_correlation_id(),
        )

    def on_success(self) -> None:
        if self.state is ConnectionState.DISCONNECTED:
            logger.warning("Ignoring SUCCESS while disconnected")
            return
        was_on_hold = self.on_hold
        self.state = ConnectionState.AUTHORIZED
        self.on_hold = False
        self._verdict.set()
        if was_on_hold:
            logger.info("Re-authorized as %s, hold lifted", self.local_name)
        else:
            logger.info("Authorized as %s", self.local_name)

    def on_already_authorized(self) -> None:
        if self.state not in (ConnectionState.AWAITING_VERIFICATION, ConnectionState.AUTHORIZED):
            logger.warning("Ignoring '%s' in state %s", ALREADY_AUTHORIZED, self.state.value)
            return
        self.on_hold = True
        self._verdict.set()
        logger.warning("Local name %s is already connected elsewhere; client on hold", self.local_name)

    def on_close(self) -> None:
        self.state = ConnectionState.DISCONNECTED
        self.on_hold = False
        self._verdict.set()
        logger.info("Disconnected")

    def assert_can_send(self) -> None:
        """Gate for outbound REQUEST and INFORMATION traffic."""
        if self.on_hold:
            raise OnHoldError()
        if not self.authorized:
            raise NotAuthorizedError()

    async def wait_until_ready(self, timeout: Optional[float] = None) -> None:
        """
        Wait for the relay's answer to our VERIFICATION frame.

        Returns once authorized. Raises OnHoldError if the name is taken,
        NotAuthorizedError if the link dropped first, asyncio.TimeoutError if
        nothing arrived within timeout seconds.
        """
        await asyncio.wait_for(self._verdict.wait(), timeout)
        self.assert_can_send()
