from __future__ import annotations
from typing import Any, Awaitable, Callable, Optional

import websockets
from websockets.protocol import State

from winerp.shared.envelope import Envelope
from winerp.shared.errors import ConnectionClosedError, MalformedEnvelopeError
from winerp.shared.log import get_logger, log_winerp_message

logger = get_logger(__name__)


EnvelopeHandler = Callable[[Envelope], Awaitable[None]]


class ClientSession:
    """
    One websocket connection to the relay.

    Owns the socket only; what to do with each decoded envelope is the
    caller's handler. Malformed frames are logged and skipped so a bad frame
    never takes the connection down.
    """

    def __init__(self, server_ws_url: str, local_name: str) -> None:
        self.server_ws_url = server_ws_url
        self.local_name = local_name
        self.websocket: Optional[Any] = None

    @property
    def connected(self) -> bool:
        return self.websocket is not None and self.websocket.state is State.OPEN

    async def connect(self) -> None:
        """Open the websocket to the relay"""
        self.websocket = await websockets.connect(self.server_ws_url, ping_interval=15, ping_timeout=45)
        logger.info("Connected to %s", self.server_ws_url, extra={"local_name": self.local_name})

    async def send(self, envelope: Envelope) -> None:
        """Serialize and send one envelope; ConnectionClosedError if the link is gone."""
        if self.websocket is None:
            raise ConnectionClosedError("Not connected")
        try:
            await self.websocket.send(envelope.to_json())
        except websockets.exceptions.ConnectionClosed as e:
            raise ConnectionClosedError(f"Connection closed while sending {envelope.type.name}") from e
        log_winerp_message(logger, "debug", "Sent envelope", envelope=envelope, local_name=self.local_name)

    async def recv_loop(self, handler: EnvelopeHandler) -> None:
        """Feed every inbound envelope to handler until the connection closes."""
        assert self.websocket is not None
        try:
            async for raw in self.websocket:
                try:
                    env = Envelope.from_json(raw)
                except MalformedEnvelopeError as e:
                    logger.error("Dropping malformed frame: %s", e, extra={"local_name": self.local_name})
                    continue
                try:
                    await handler(env)
                except ConnectionClosedError:
                    raise
                except Exception:
                    logger.exception("Error handling %s envelope", env.type.name, extra={"local_name": self.local_name})
        except (websockets.exceptions.ConnectionClosedError, ConnectionClosedError) as e:
            logger.warning("Connection lost: %s", e, extra={"local_name": self.local_name})

    async def close(self) -> None:
        if self.websocket is not None:
            await self.websocket.close(code=1000)
