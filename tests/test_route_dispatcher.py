import json

import pytest

from winerp.core.MessageTypes import MessageType
from winerp.core.RouteDispatcher import RouteDispatcher
from winerp.shared.envelope import Envelope, create_envelope


class Outbox:
    def __init__(self) -> None:
        self.sent: list[Envelope] = []

    async def send(self, envelope: Envelope) -> None:
        self.sent.append(envelope)


def _request(route: str, data=None) -> Envelope:
    return create_envelope(MessageType.REQUEST, local_name="dashboard", route=route,
                           data=data, uuid="req-1", destination="bot")


@pytest.mark.asyncio
async def test_unknown_route_sends_one_error_with_uuid_echoed():
    dispatcher = RouteDispatcher("bot")
    outbox = Outbox()

    await dispatcher.dispatch(_request("unknown"), outbox.send)

    assert len(outbox.sent) == 1
    reply = outbox.sent[0]
    assert reply.type is MessageType.ERROR
    assert reply.data == "Route not found"
    assert reply.traceback == "Route not found"
    assert reply.destination == "dashboard"
    assert reply.uuid == "req-1"
    assert reply.id == "bot"


@pytest.mark.asyncio
async def test_async_handler_result_is_sent_back_as_response():
    dispatcher = RouteDispatcher("bot")
    outbox = Outbox()

    async def guild_roles(data):
        return {"guild": data["guild_id"], "roles": ["admin"]}

    dispatcher.register("guild_roles", guild_roles)
    await dispatcher.dispatch(_request("guild_roles", {"guild_id": 123}), outbox.send)

    reply = outbox.sent[0]
    assert reply.type is MessageType.RESPONSE
    assert reply.data == {"guild": 123, "roles": ["admin"]}
    assert reply.uuid == "req-1"
    assert reply.destination == "dashboard"


@pytest.mark.asyncio
async def test_sync_handler_and_string_payloads_are_accepted():
    dispatcher = RouteDispatcher("bot")
    outbox = Outbox()

    dispatcher.register("shout", lambda data: data.upper())
    await dispatcher.dispatch(_request("shout", "hello"), outbox.send)

    assert outbox.sent[0].type is MessageType.RESPONSE
    assert outbox.sent[0].data == "HELLO"


@pytest.mark.asyncio
async def test_handler_exception_becomes_error_envelope():
    dispatcher = RouteDispatcher("bot")
    outbox = Outbox()

    async def broken(data):
        raise ValueError("guild 123 does not exist")

    dispatcher.register("broken", broken)
    await dispatcher.dispatch(_request("broken"), outbox.send)

    reply = outbox.sent[0]
    assert reply.type is MessageType.ERROR
    assert reply.data == "guild 123 does not exist"
    assert "ValueError" in reply.traceback
    assert reply.uuid == "req-1"
    assert reply.destination == "dashboard"


@pytest.mark.asyncio
async def test_exception_without_message_reports_internal_server_error():
    dispatcher = RouteDispatcher("bot")
    outbox = Outbox()

    async def broken(data):
        raise RuntimeError()

    dispatcher.register("broken", broken)
    await dispatcher.dispatch(_request("broken"), outbox.send)

    assert outbox.sent[0].data == "Internal Server Error"


@pytest.mark.asyncio
async def test_non_payload_result_is_reported_as_error():
    dispatcher = RouteDispatcher("bot")
    outbox = Outbox()

    dispatcher.register("count", lambda data: 42)
    await dispatcher.dispatch(_request("count"), outbox.send)

    assert outbox.sent[0].type is MessageType.ERROR
    assert "expected str or dict" in outbox.sent[0].data


@pytest.mark.asyncio
async def test_unserializable_result_is_reported_as_error():
    dispatcher = RouteDispatcher("bot")
    sent = []

    async def wire_send(envelope: Envelope) -> None:
        sent.append(json.loads(envelope.to_json()))

    dispatcher.register("tags", lambda data: {"x": {1, 2}})
    await dispatcher.dispatch(_request("tags"), wire_send)

    assert len(sent) == 1
    assert sent[0]["type"] == MessageType.ERROR
    assert sent[0]["uuid"] == "req-1"
    assert sent[0]["destination"] == "dashboard"
    assert "not JSON serializable" in sent[0]["data"]


def test_decorator_registers_under_function_name_and_overwrites():
    dispatcher = RouteDispatcher("bot")

    @dispatcher.route()
    async def ping(data):
        return {"pong": True}

    @dispatcher.route("ping")
    async def ping_v2(data):
        return {"pong": 2}

    assert dispatcher.routes == ["ping"]
    assert dispatcher.get("ping") is ping_v2


def test_register_rejects_non_callable():
    with pytest.raises(TypeError):
        RouteDispatcher("bot").register("x", "not a function")
