from __future__ import annotations

import inspect
import traceback
from typing import Awaitable, Callable, Dict, List, Optional, Union

from winerp.core.MessageTypes import MessageType
from winerp.shared.envelope import Envelope, Payload, create_envelope
from winerp.shared.log import get_logger, log_winerp_message
from winerp.shared.utils import is_payload

logger = get_logger(__name__)

# Handlers take the request payload and return a payload, sync or async
RouteHandler = Callable[[Payload], Union[Payload, Awaitable[Payload]]]
SendFunc = Callable[[Envelope], Awaitable[None]]

ROUTE_NOT_FOUND = "Route not found"
INTERNAL_SERVER_ERROR = "Internal Server Error"


class RouteDispatcher:
    """Route table for this peer; answers inbound REQUEST envelopes."""

    def __init__(self, local_name: str) -> None:
        self.local_name = local_name
        self._routes: Dict[str, RouteHandler] = {}

    def register(self, name: str, handler: RouteHandler) -> None:
        """Add a route, replacing any handler already under that name."""
        if not callable(handler):
            raise TypeError(f"Handler for route {name!r} is not callable")
        if name in self._routes:
            logger.info("Replacing handler for route %s", name)
        self._routes[name] = handler

    def route(self, name: Optional[str] = None) -> Callable[[RouteHandler], RouteHandler]:
        """
        Decorator form of register(); the route name defaults to the function name.

            @dispatcher.route()
            async def guild_roles(data):
                ...
        """
        def decorator(handler: RouteHandler) -> RouteHandler:
            self.register(name or handler.__name__, handler)
            return handler
        return decorator

    @property
    def routes(self) -> List[str]:
        return sorted(self._routes)

    def get(self, name: object) -> Optional[RouteHandler]:
        if not isinstance(name, str):
            return None
        return self._routes.get(name)

    async def dispatch(self, envelope: Envelope, send: SendFunc) -> None:
        """
        Answer one inbound REQUEST. Exactly one RESPONSE or ERROR envelope is
        sent back, addressed to the requester and carrying its uuid.
        """
        handler = self.get(envelope.route)
        if handler is None:
            log_winerp_message(logger, "warning", f"Request from {envelope.id} for unknown route", envelope=envelope)
            await send(self._reply(envelope, MessageType.ERROR, ROUTE_NOT_FOUND, tb=ROUTE_NOT_FOUND))
            return

        try:
            result = handler(envelope.data)
            if inspect.isawaitable(result):
                result = await result
            if not is_payload(result):
                raise TypeError(
                    f"Route {envelope.route!r} returned {type(result).__name__}; expected str or dict"
                )
            response = self._reply(envelope, MessageType.RESPONSE, result)
            # fail here, not inside send(), if the result cannot go on the wire
            response.to_json()
        except Exception as e:
            logger.error("Route %s failed: %s", envelope.route, e, extra={"uuid": envelope.uuid})
            await send(self._reply(
                envelope,
                MessageType.ERROR,
                str(e) or INTERNAL_SERVER_ERROR,
                tb=traceback.format_exc(),
            ))
            return

        await send(response)
        log_winerp_message(logger, "debug", f"Answered request from {envelope.id}", envelope=envelope)

    def _reply(self, request: Envelope, msg_type: MessageType, data: Payload,
               tb: Optional[str] = None) -> Envelope:
        return create_envelope(
            msg_type,
            local_name=self.local_name,
            route=request.route,
            data=data,
            uuid=request.uuid,
            destination=request.id,
            traceback=tb,
        )
