import json

import pytest

from winerp.core.MessageTypes import MessageType
from winerp.shared.envelope import Envelope, create_envelope, decode, encode
from winerp.shared.errors import MalformedEnvelopeError


def test_request_envelope_survives_the_wire():
    env = create_envelope(
        MessageType.REQUEST,
        local_name="dashboard",
        route="guild_roles",
        data={"guild_id": 123},
        uuid="b7d0c6a5-6f5e-4b53-9c5e-2a0f4d9c1e11",
        destination="bot",
    )

    assert decode(encode(env)) == env


def test_every_field_round_trips():
    env = Envelope(
        type=MessageType.ERROR,
        id="bot",
        route=["a", "b"],
        data="boom",
        uuid="u-1",
        destination="dashboard",
        traceback="Traceback (most recent call last): ...",
        pseudo_object={"anything": [1, 2, 3]},
    )

    assert decode(encode(env)) == env


def test_missing_data_defaults_to_empty_object():
    env = decode(b'{"type": 0}')

    assert env.type is MessageType.SUCCESS
    assert env.data == {}
    assert env.id is None and env.uuid is None and env.route is None


def test_null_data_defaults_to_empty_object():
    assert decode('{"type": 5, "data": null}').data == {}


def test_string_data_is_kept_as_string():
    env = decode('{"type": 4, "data": "Already authorized."}')
    assert env.data == "Already authorized."


def test_unset_optional_fields_are_left_out():
    env = create_envelope(MessageType.VERIFICATION, local_name="bot", uuid="u-2")
    wire = json.loads(encode(env))

    assert wire == {"id": "bot", "type": 1, "data": {}, "uuid": "u-2"}


def test_type_is_encoded_as_integer_code():
    for msg_type in MessageType:
        assert json.loads(encode(create_envelope(msg_type)))["type"] == int(msg_type)


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[1, 2, 3]",
        '"just a string"',
        "{}",
        '{"type": 8}',
        '{"type": -1}',
        '{"type": "2"}',
        '{"type": true}',
        '{"type": 2, "data": [1, 2]}',
        '{"type": 2, "data": 5}',
        '{"type": 2, "route": 7}',
        '{"type": 2, "route": ["a", 1]}',
        '{"type": 2, "uuid": 42}',
        b"\xff\xfe",
    ],
)
def test_malformed_frames_are_rejected(raw):
    with pytest.raises(MalformedEnvelopeError):
        decode(raw)


def test_message_type_codes_match_wire_table():
    assert [(m.name, m.value) for m in MessageType] == [
        ("SUCCESS", 0),
        ("VERIFICATION", 1),
        ("REQUEST", 2),
        ("RESPONSE", 3),
        ("ERROR", 4),
        ("PING", 5),
        ("INFORMATION", 6),
        ("FUNCTION_CALL", 7),
    ]
    assert MessageType.from_value(7) is MessageType.FUNCTION_CALL
    for bad in (True, "3", 8):
        with pytest.raises(ValueError):
            MessageType.from_value(bad)
