"""
tests/conftest.py

Configuration for pytest.

Provides an in-memory WebSocket that stands in for the browser, so the real
CDPConnection (and everything built on it) runs without Chrome.
"""

import asyncio
import json
from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest
import pytest_asyncio
from websockets.exceptions import ConnectionClosedError

from chrome_agent.agent import ChromeAgent
from chrome_agent.cdp.connection import CDPConnection

_CLOSE = object()

PAGE_TARGET_ID = "TARGET-1"
PAGE_SESSION_ID = "SESSION-1"


class FakeWebSocket:
    """
    Queue-backed stand-in for a websockets ClientConnection.

    Frames passed to feed() are yielded by async iteration; send() records
    decoded outbound messages in `sent`.
    """

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def send(self, data: str) -> None:
        if self.closed:
            raise ConnectionClosedError(None, None)
        self.sent.append(json.loads(data))

    def feed(self, message: dict[str, Any] | str) -> None:
        """Deliver an inbound frame to the reader."""
        self._inbox.put_nowait(message if isinstance(message, str) else json.dumps(message))

    def drop(self, error: BaseException | None = None) -> None:
        """Simulate the remote end closing (cleanly, or with `error`)."""
        self._inbox.put_nowait(error if error is not None else _CLOSE)

    async def close(self) -> None:
        self.closed = True
        self._inbox.put_nowait(_CLOSE)

    def __aiter__(self) -> "FakeWebSocket":
        return self

    async def __anext__(self) -> str:
        item = await self._inbox.get()
        if item is _CLOSE:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item

    def methods(self) -> list[str]:
        return [message["method"] for message in self.sent]

    def sent_for(self, method: str) -> list[dict[str, Any]]:
        return [message for message in self.sent if message["method"] == method]


class ScriptedWebSocket(FakeWebSocket):
    """
    FakeWebSocket that answers every command it is sent.

    Unscripted methods get an empty result. reply() sets a result (or a callable
    computing one from the params), an error message, and events to emit after
    the response.
    """

    def __init__(self) -> None:
        super().__init__()
        self._handlers: dict[str, tuple[Any, str | None, list[dict[str, Any]]]] = {}

    def reply(
        self,
        method: str,
        result: dict[str, Any] | Callable[[dict[str, Any]], dict[str, Any]] | None = None,
        *,
        error: str | None = None,
        events: list[dict[str, Any]] | None = None,
    ) -> None:
        self._handlers[method] = (result if result is not None else {}, error, events or [])

    async def send(self, data: str) -> None:
        await super().send(data)
        message = self.sent[-1]
        result, error, events = self._handlers.get(message["method"], ({}, None, []))
        if error is not None:
            self.feed({"id": message["id"], "error": {"code": -32000, "message": error}})
        else:
            if callable(result):
                result = result(message.get("params") or {})
            self.feed({"id": message["id"], "result": result})
        for event in events:
            self.feed(event)


def cdp_event(method: str, params: dict[str, Any] | None = None, session_id: str | None = None) -> dict[str, Any]:
    """Build an inbound event frame."""
    event: dict[str, Any] = {"method": method, "params": params or {}}
    if session_id:
        event["sessionId"] = session_id
    return event


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the event loop until `predicate()` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0)


@pytest.fixture
def ws() -> ScriptedWebSocket:
    return ScriptedWebSocket()


@pytest_asyncio.fixture
async def connection(ws: ScriptedWebSocket) -> AsyncIterator[CDPConnection]:
    """A started CDPConnection over the scripted socket."""
    conn = CDPConnection(ws)
    conn.start()
    yield conn
    await conn.close()


@pytest_asyncio.fixture
async def agent(ws: ScriptedWebSocket, connection: CDPConnection) -> ChromeAgent:
    """A ChromeAgent attached to one existing page target."""
    ws.reply("Target.getTargets", {"targetInfos": [
        {"targetId": "BROWSER", "type": "browser", "url": ""},
        {"targetId": PAGE_TARGET_ID, "type": "page", "url": "about:blank"},
    ]})
    ws.reply("Target.attachToTarget", lambda params: {"sessionId": f"SESSION-{params['targetId'].split('-')[-1]}"})
    return await ChromeAgent.from_connection(connection)


def ax_node(
    node_id: str,
    role: str | None = None,
    name: str | None = None,
    children: list[str] | None = None,
    backend_id: int | None = None,
    value: Any = None,
) -> dict[str, Any]:
    """Build a raw Accessibility.getFullAXTree node."""
    node: dict[str, Any] = {"nodeId": node_id, "childIds": children or []}
    if role is not None:
        node["role"] = {"type": "role", "value": role}
    if name is not None:
        node["name"] = {"type": "computedString", "value": name}
    if value is not None:
        node["value"] = {"type": "string", "value": value}
    if backend_id is not None:
        node["backendDOMNodeId"] = backend_id
    return node
