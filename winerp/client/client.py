#!/usr/bin/env python3
"""
Winerp Client

Connects one named peer to a Winerp relay, verifies its name, and then lets
it inform other peers, request their routes, and answer requests for its
own routes.

    client = WinerpClient(host="localhost", port=2033, local_name="dashboard")

    @client.route()
    async def ping(data):
        return {"pong": True}

    async with client:
        roles = await client.request("bot", "guild_roles", {"guild_id": 123})
"""

from __future__ import annotations
import asyncio
import inspect
from contextlib import suppress
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from winerp.client.config import ClientConfig
from winerp.client.ws_client import ClientSession
from winerp.core.AuthState import ALREADY_AUTHORIZED, AuthorizationState, ConnectionState
from winerp.core.MessageTypes import MessageType
from winerp.core.PendingRequests import DEFAULT_TIMEOUT, RequestCorrelator
from winerp.core.RouteDispatcher import RouteDispatcher, RouteHandler
from winerp.shared.envelope import Envelope, Payload, create_envelope
from winerp.shared.errors import ConnectionClosedError
from winerp.shared.log import get_logger, log_winerp_message

logger = get_logger(__name__)

InformationListener = Callable[[Envelope], Union[None, Awaitable[None]]]
InboundHandler = Callable[["WinerpClient", Envelope], Awaitable[None]]


class WinerpClient:
    """Owns one relay connection and everything that flows over it."""

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        local_name: Optional[str] = None,
        *,
        config: Optional[ClientConfig] = None,
    ) -> None:
        if config is None:
            if host is None or port is None or local_name is None:
                raise ValueError("host, port and local_name are required when no config is given")
            config = ClientConfig(host=host, port=port, local_name=local_name)
        self.config = config
        self.session = ClientSession(config.url, config.local_name)
        self.auth = AuthorizationState(config.local_name)
        self.dispatcher = RouteDispatcher(config.local_name)
        self.correlator = RequestCorrelator(config.local_name, self._send)
        self._information_listeners: List[InformationListener] = []
        self._recv_task: Optional[asyncio.Task] = None
        self._closed = asyncio.Event()

    # ---- inspection ----

    @property
    def local_name(self) -> str:
        return self.config.local_name

    @property
    def url(self) -> str:
        return self.config.url

    @property
    def state(self) -> ConnectionState:
        return self.auth.state

    @property
    def authorized(self) -> bool:
        return self.auth.authorized

    @property
    def on_hold(self) -> bool:
        return self.auth.on_hold

    @property
    def connected(self) -> bool:
        return self.session.connected

    # ---- lifecycle ----

    async def connect(self) -> None:
        """Open the transport, send VERIFICATION and start reading frames."""
        if self._recv_task is not None:
            raise RuntimeError("WinerpClient instances connect once; build a new client to reconnect")
        self.auth.begin_connect()
        try:
            await self.session.connect()
            await self._send(self.auth.on_open())
        except BaseException:
            self.auth.on_close()
            raise
        self._recv_task = asyncio.create_task(self._run())

    async def start(self, timeout: Optional[float] = None) -> None:
        """connect() and wait until the relay has authorized us."""
        await self.connect()
        await self.auth.wait_until_ready(timeout)

    async def wait_until_ready(self, timeout: Optional[float] = None) -> None:
        await self.auth.wait_until_ready(timeout)

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def close(self) -> None:
        await self.session.close()
        if self._recv_task is not None:
            with suppress(asyncio.CancelledError):
                await self._recv_task

    async def __aenter__(self) -> "WinerpClient":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _run(self) -> None:
        try:
            await self.session.recv_loop(self._handle_envelope)
        finally:
            self.auth.on_close()
            self.correlator.fail_all("Connection closed")
            self._closed.set()

    # ---- outbound ----

    async def request(
        self,
        destination: str,
        route: str,
        data: Optional[Payload] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> Payload:
        """
        Call route on peer destination and return its RESPONSE data.

        Raises NotAuthorizedError / OnHoldError before anything is sent,
        RequestFailedError if the peer answered with ERROR, and
        RequestTimeoutError if nothing came back within timeout seconds.
        """
        self.auth.assert_can_send()
        return await self.correlator.request(destination, route, data, timeout)

    async def inform(
        self,
        destinations: Union[str, List[str]],
        data: Optional[Payload] = None,
        route: Optional[str] = None,
    ) -> None:
        """Send one INFORMATION envelope to every named peer; no reply expected."""
        self.auth.assert_can_send()
        targets = [destinations] if isinstance(destinations, str) else list(destinations)
        envelope = create_envelope(
            MessageType.INFORMATION,
            local_name=self.local_name,
            route=targets,
            data=data,
            pseudo_object=route,
        )
        await self._send(envelope)

    async def _send(self, envelope: Envelope) -> None:
        await self.session.send(envelope)

    # ---- routes and listeners ----

    def register_route(self, name: str, handler: RouteHandler) -> None:
        self.dispatcher.register(name, handler)

    def route(self, name: Optional[str] = None) -> Callable[[RouteHandler], RouteHandler]:
        return self.dispatcher.route(name)

    def on_information(self, listener: InformationListener) -> InformationListener:
        """Register a listener for inbound INFORMATION envelopes; usable as a decorator."""
        self._information_listeners.append(listener)
        return listener

    # ---- inbound ----

    async def _handle_envelope(self, envelope: Envelope) -> None:
        handler = INBOUND_HANDLER_REGISTRY[envelope.type]
        await handler(self, envelope)

    async def _on_success(self, envelope: Envelope) -> None:
        self.auth.on_success()

    async def _on_error(self, envelope: Envelope) -> None:
        # a pending request claims its ERROR first, whatever the message says
        if self.correlator.resolve(envelope):
            return
        if envelope.data == ALREADY_AUTHORIZED:
            self.auth.on_already_authorized()
            return
        log_winerp_message(logger, "warning", f"Unmatched ERROR from {envelope.id}: {envelope.data}",
                           envelope=envelope, local_name=self.local_name)

    async def _on_response(self, envelope: Envelope) -> None:
        if not self.correlator.resolve(envelope):
            log_winerp_message(logger, "debug", "Dropping RESPONSE with no pending request",
                               envelope=envelope, local_name=self.local_name)

    async def _on_request(self, envelope: Envelope) -> None:
        # inline: a slow handler holds up the frames behind it
        await self.dispatcher.dispatch(envelope, self._send)

    async def _on_information(self, envelope: Envelope) -> None:
        if not self._information_listeners:
            log_winerp_message(logger, "debug", f"INFORMATION from {envelope.id} with no listener",
                               envelope=envelope, local_name=self.local_name)
            return
        for listener in list(self._information_listeners):
            try:
                result = listener(envelope)
                if inspect.isawaitable(result):
                    await result
            except ConnectionClosedError:
                raise
            except Exception:
                logger.exception("Information listener %r failed", listener)

    async def _on_ignored(self, envelope: Envelope) -> None:
        log_winerp_message(logger, "debug", f"Ignoring {envelope.type.name} envelope",
                           envelope=envelope, local_name=self.local_name)


# every MessageType must have an entry
INBOUND_HANDLER_REGISTRY: Dict[MessageType, InboundHandler] = {
    MessageType.SUCCESS: WinerpClient._on_success,
    MessageType.VERIFICATION: WinerpClient._on_ignored,
    MessageType.REQUEST: WinerpClient._on_request,
    MessageType.RESPONSE: WinerpClient._on_response,
    MessageType.ERROR: WinerpClient._on_error,
    MessageType.PING: WinerpClient._on_ignored,
    MessageType.INFORMATION: WinerpClient._on_information,
    MessageType.FUNCTION_CALL: WinerpClient._on_ignored,
}

_missing = set(MessageType) - set(INBOUND_HANDLER_REGISTRY)
if _missing:
    raise RuntimeError(f"No inbound handler for {sorted(m.name for m in _missing)}")
