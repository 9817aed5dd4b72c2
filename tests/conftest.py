import asyncio
import json
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
import websockets
from websockets.protocol import State


class DummyWebSocket:
    """Stands in for a websockets connection: records sends, replays inbound frames."""

    def __init__(self, inbound: Optional[List[Any]] = None) -> None:
        self.sent_messages: List[str] = []
        self.inbound = list(inbound or [])
        self.closed = False
        self.close_code: int | None = None
        self.state = State.OPEN

    async def send(self, data: str) -> None:
        self.sent_messages.append(data)

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.closed = True
        self.close_code = code
        self.state = State.CLOSED

    def __aiter__(self):
        return self._frames()

    async def _frames(self):
        for frame in self.inbound:
            yield frame

    def sent_envelopes(self) -> List[Dict[str, Any]]:
        return [json.loads(m) for m in self.sent_messages]


class MiniRelay:
    """
    Just enough of a Winerp relay for end-to-end tests: verifies names,
    forwards REQUEST/RESPONSE/ERROR by 'destination' and INFORMATION by the
    'route' list. Every frame received from a client is kept in 'frames'.
    """

    def __init__(self) -> None:
        self.peers: Dict[str, Any] = {}
        self.frames: List[Dict[str, Any]] = []
        self.server: Any = None
        self.port: int = 0

    async def start(self) -> None:
        self.server = await websockets.serve(self.handler, "127.0.0.1", 0)
        self.port = next(iter(self.server.sockets)).getsockname()[1]

    async def stop(self) -> None:
        self.server.close()
        await self.server.wait_closed()

    def frames_of_type(self, msg_type: int) -> List[Dict[str, Any]]:
        return [f for f in self.frames if f.get("type") == msg_type]

    async def handler(self, ws) -> None:
        name = None
        try:
            async for raw in ws:
                msg = json.loads(raw)
                self.frames.append(msg)
                msg_type = msg.get("type")
                if msg_type == 1:
                    if msg.get("id") in self.peers:
                        await ws.send(json.dumps({"type": 4, "data": "Already authorized."}))
                        continue
                    name = msg["id"]
                    self.peers[name] = ws
                    await ws.send(json.dumps({"type": 0, "data": {}}))
                elif msg_type in (2, 3, 4):
                    target = self.peers.get(msg.get("destination"))
                    if target is not None:
                        await target.send(raw)
                elif msg_type == 6:
                    for dest in msg.get("route") or []:
                        target = self.peers.get(dest)
                        if target is not None:
                            await target.send(raw)
        except websockets.exceptions.ConnectionClosed:
            pass
        finally:
            if name is not None and self.peers.get(name) is ws:
                del self.peers[name]


@pytest_asyncio.fixture
async def relay():
    server = MiniRelay()
    await server.start()
    yield server
    await server.stop()


async def wait_for(predicate, timeout: float = 3.0) -> bool:
    loop = asyncio.get_running_loop()
    end = loop.time() + timeout
    while loop.time() < end:
        if predicate():
            return True
        await asyncio.sleep(0.01)
    return False


@pytest.fixture
def dummy_ws() -> DummyWebSocket:
    return DummyWebSocket()
