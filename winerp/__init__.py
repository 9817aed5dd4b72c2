"""
Winerp client: talk to other named peers through a Winerp relay.

    from winerp import WinerpClient

    client = WinerpClient(host="localhost", port=2033, local_name="dashboard")
    async with client:
        roles = await client.request("bot", "guild_roles", {"guild_id": 123})
"""

from winerp.client.client import WinerpClient
from winerp.client.config import ClientConfig
from winerp.core.AuthState import ConnectionState
from winerp.core.MessageTypes import MessageType
from winerp.shared.envelope import Envelope, create_envelope, decode, encode
from winerp.shared.errors import (
    ConnectionClosedError,
    MalformedEnvelopeError,
    NotAuthorizedError,
    OnHoldError,
    RequestFailedError,
    RequestTimeoutError,
    WinerpError,
)

__version__ = "0.1.0"

__all__ = [
    "WinerpClient",
    "ClientConfig",
    "ConnectionState",
    "MessageType",
    "Envelope",
    "create_envelope",
    "encode",
    "decode",
    "WinerpError",
    "MalformedEnvelopeError",
    "NotAuthorizedError",
    "OnHoldError",
    "RequestFailedError",
    "RequestTimeoutError",
    "ConnectionClosedError",
]
