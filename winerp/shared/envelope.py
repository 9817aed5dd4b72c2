from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union
import json

from winerp.core.MessageTypes import MessageType
from winerp.shared.errors import MalformedEnvelopeError
from winerp.shared.utils import is_payload, is_route_value

Payload = Union[str, Dict[str, Any]]
Route = Union[str, List[str]]

# wire field order
_FIELDS = ("id", "type", "route", "data", "uuid", "destination", "traceback", "pseudo_object")


@dataclass
class Envelope:
    """
    Every frame on the relay connection is one JSON object:
    {
    "id":            "sender local name (optional on inbound)",
    "type":          INT 0..7,
    "route":         "route name" | ["peer", ...] (inform destinations),
    "data":          { ... } | "string" (defaults to {}),
    "uuid":          "correlation id",
    "destination":   "target peer name",
    "traceback":     "diagnostic text",
    "pseudo_object": any (opaque passthrough)
    }

    Only 'type' is required. Optional fields that are None are left out of
    the encoded object.
    """
    type: MessageType
    id: Optional[str] = None
    route: Optional[Route] = None
    data: Payload = field(default_factory=dict)
    uuid: Optional[str] = None
    destination: Optional[str] = None
    traceback: Optional[str] = None
    pseudo_object: Any = None

    @classmethod
    def from_json(cls, raw: Union[str, bytes, bytearray]) -> 'Envelope':
        """Parse a JSON frame into an Envelope, validating structure"""
        if isinstance(raw, (bytes, bytearray)):
            try:
                raw = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise MalformedEnvelopeError(f"Frame is not UTF-8: {e}") from e
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedEnvelopeError(f"Invalid JSON: {e}") from e

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Any) -> 'Envelope':
        """Create Envelope from a decoded JSON object"""
        if not isinstance(data, dict):
            raise MalformedEnvelopeError(f"Envelope must be a JSON object, got {type(data).__name__}")

        if 'type' not in data:
            raise MalformedEnvelopeError("Missing required field: 'type'")
        try:
            msg_type = MessageType.from_value(data['type'])
        except ValueError as e:
            raise MalformedEnvelopeError(str(e)) from e

        payload = data.get('data')
        if payload is None:
            payload = {}
        elif not is_payload(payload):
            raise MalformedEnvelopeError("'data' must be an object or a string")

        route = data.get('route')
        if route is not None and not is_route_value(route):
            raise MalformedEnvelopeError("'route' must be a string or a list of strings")

        for name in ('id', 'uuid', 'destination', 'traceback'):
            value = data.get(name)
            if value is not None and not isinstance(value, str):
                raise MalformedEnvelopeError(f"'{name}' must be a string")

        return cls(
            type=msg_type,
            id=data.get('id'),
            route=route,
            data=payload,
            uuid=data.get('uuid'),
            destination=data.get('destination'),
            traceback=data.get('traceback'),
            pseudo_object=data.get('pseudo_object'),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert Envelope back to dictionary, dropping unset optional fields"""
        values = {
            'id': self.id,
            'type': int(self.type),
            'route': self.route,
            'data': self.data,
            'uuid': self.uuid,
            'destination': self.destination,
            'traceback': self.traceback,
            'pseudo_object': self.pseudo_object,
        }
        return {name: values[name] for name in _FIELDS if values[name] is not None}

    def to_json(self) -> str:
        """Convert Envelope to JSON string"""
        return json.dumps(self.to_dict(), separators=(',', ':'))

    def to_bytes(self) -> bytes:
        return self.to_json().encode("utf-8")


def encode(envelope: Envelope) -> bytes:
    return envelope.to_bytes()


def decode(raw: Union[str, bytes, bytearray]) -> Envelope:
    return Envelope.from_json(raw)


def create_envelope(msg_type: MessageType, *, local_name: Optional[str] = None,
                    route: Optional[Route] = None, data: Optional[Payload] = None,
                    uuid: Optional[str] = None, destination: Optional[str] = None,
                    traceback: Optional[str] = None, pseudo_object: Any = None) -> Envelope:
    """Helper to create an outbound envelope; data defaults to {}"""
    return Envelope(
        type=msg_type,
        id=local_name,
        route=route,
        data={} if data is None else data,
        uuid=uuid,
        destination=destination,
        traceback=traceback,
        pseudo_object=pseudo_object,
    )
