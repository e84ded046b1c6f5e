"""
chrome_agent/cdp/connection.py

Persistent CDP client over a single browser-level WebSocket.

Contains:
- CDPConnection: Command/response correlation and event fan-out
- discover_ws_url: Resolve webSocketDebuggerUrl from the /json/version endpoint
- connect_cdp: Open a ready-to-use CDPConnection from an http:// or ws:// URL
"""

import asyncio
import json
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

import requests
from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from chrome_agent.config import Config
from chrome_agent.utils.exceptions import (
    CDPConnectionError,
    CDPDiscoveryError,
    CDPNotConnectedError,
    CDPProtocolError,
    CDPSocketClosedError,
)
from chrome_agent.utils.logger import get_logger

logger = get_logger(name=__name__)

DEFAULT_CDP_PORT = 9222

# (params, session_id) -> None; runs inline in the reader task, so it must not block
CDPEventHandler = Callable[[dict[str, Any], str | None], None]


@dataclass
class _PendingCommand:
    method: str
    future: asyncio.Future


class CDPConnection:
    """
    Owns one WebSocket to the browser.

    Commands get monotonically increasing ids starting at 1 and suspend until the
    matching response arrives. Messages carrying a method instead of an id are
    events and are delivered to every handler registered for that method.
    When the socket closes or errors, everything still pending fails with
    CDPSocketClosedError and later sends fail with CDPNotConnectedError.
    """

    def __init__(self, ws: Any) -> None:
        """
        Args:
            ws: An open websockets ClientConnection (anything with async send/close
                that yields text frames when iterated).
        """
        self._ws = ws
        self._next_id = 1
        self._pending: dict[int, _PendingCommand] = {}
        self._listeners: dict[str, list[CDPEventHandler]] = {}
        self._event_waiters: set[asyncio.Future] = set()
        self._closed = False
        self._reader_task: asyncio.Task | None = None

    @property
    def connected(self) -> bool:
        return not self._closed

    @property
    def pending_count(self) -> int:
        """Number of commands still waiting for a response."""
        return len(self._pending)

    def start(self) -> None:
        """Start the background task that reads inbound messages."""
        if self._reader_task is None:
            self._reader_task = asyncio.create_task(self._read_loop(), name="cdp-reader")

    ## Commands

    async def send(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        session_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Send a CDP command and wait for its result.

        Args:
            method: Protocol method, e.g. "Page.navigate".
            params: Command parameters (omitted from the message when empty).
            session_id: Flattened session to address; None targets the browser.

        Returns:
            The response's result object ({} when the response carries none).

        Raises:
            CDPNotConnectedError: The socket is not open; nothing is transmitted.
            CDPSocketClosedError: The socket closed before the response arrived.
            CDPProtocolError: The browser answered with an error payload.
        """
        if self._closed:
            raise CDPNotConnectedError()

        msg_id = self._next_id
        self._next_id += 1

        message: dict[str, Any] = {"id": msg_id, "method": method}
        if params:
            message["params"] = params
        if session_id:
            message["sessionId"] = session_id

        future = asyncio.get_running_loop().create_future()
        self._pending[msg_id] = _PendingCommand(method=method, future=future)

        # a cancelled or timed-out caller leaves no entry behind; a late response is dropped
        try:
            try:
                await self._ws.send(json.dumps(message))
            except (ConnectionClosed, OSError) as e:
                self._pending.pop(msg_id, None)
                error = CDPSocketClosedError(f"CDP socket closed: {e}")
                self._teardown(error)
                raise error from e

            logger.debug("-> #%d %s%s", msg_id, method, f" [{session_id}]" if session_id else "")
            return await future
        finally:
            self._pending.pop(msg_id, None)
            if not future.done():
                future.cancel()

    ## Events

    def on(self, event: str, handler: CDPEventHandler) -> None:
        """Register a handler for an event method name."""
        handlers = self._listeners.setdefault(event, [])
        if handler not in handlers:
            handlers.append(handler)

    def off(self, event: str, handler: CDPEventHandler) -> None:
        """Unregister a handler. Unknown handlers are ignored."""
        handlers = self._listeners.get(event)
        if handlers and handler in handlers:
            handlers.remove(handler)
            if not handlers:
                del self._listeners[event]

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    @contextmanager
    def expect_event(self, event: str, session_id: str | None = None) -> Iterator[asyncio.Future]:
        """
        Wait for the next occurrence of an event.

        Register before triggering the action that causes the event, then await the
        yielded future inside the block:

            with connection.expect_event("Page.loadEventFired", session_id) as loaded:
                await connection.send("Page.reload", session_id=session_id)
                await loaded

        Args:
            event: Event method name.
            session_id: When set, events from other sessions are ignored.

        Yields:
            A future resolving to the event params. It fails with
            CDPSocketClosedError if the connection is torn down first.
        """
        if self._closed:
            raise CDPNotConnectedError()

        future = asyncio.get_running_loop().create_future()

        def handler(params: dict[str, Any], event_session_id: str | None) -> None:
            if session_id and event_session_id and event_session_id != session_id:
                return
            if not future.done():
                future.set_result(params)

        self.on(event, handler)
        self._event_waiters.add(future)
        try:
            yield future
        finally:
            self.off(event, handler)
            self._event_waiters.discard(future)
            if future.done() and not future.cancelled():
                future.exception()  # mark retrieved when the block exited without awaiting
            else:
                future.cancel()

    ## Lifecycle

    async def close(self) -> None:
        """Fail all pending work, stop the reader and close the socket."""
        self._teardown(CDPSocketClosedError())

        reader = self._reader_task
        if reader is not None and not reader.done() and reader is not asyncio.current_task():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass

        try:
            await self._ws.close()
        except (ConnectionClosed, OSError) as e:
            logger.debug("Error while closing CDP socket: %s", e)

    async def _read_loop(self) -> None:
        error = CDPSocketClosedError()
        try:
            async for raw in self._ws:
                self._handle_message(raw)
        except (ConnectionClosed, OSError) as e:
            logger.debug("CDP reader stopped: %s", e)
            error = CDPSocketClosedError(f"CDP socket closed: {e}")
        finally:
            self._teardown(error)

    def _teardown(self, error: Exception) -> None:
        """Terminal cleanup; runs once no matter how many paths trigger it."""
        if self._closed:
            return
        self._closed = True

        pending = self._pending
        waiters = self._event_waiters
        self._pending = {}
        self._event_waiters = set()
        self._listeners.clear()

        if pending:
            logger.info("CDP connection closed with %d pending command(s)", len(pending))
        for command in pending.values():
            if not command.future.done():
                command.future.set_exception(error)
        for future in waiters:
            if not future.done():
                future.set_exception(error)

    ## Inbound messages

    def _handle_message(self, raw: str | bytes) -> None:
        try:
            message = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("Failed to parse CDP message: %s", e)
            return
        if not isinstance(message, dict):
            return

        msg_id = message.get("id")
        if isinstance(msg_id, int) and not isinstance(msg_id, bool):
            self._resolve(msg_id, message)
            return

        method = message.get("method")
        if isinstance(method, str):
            self._dispatch_event(method, message.get("params") or {}, message.get("sessionId"))

    def _resolve(self, msg_id: int, message: dict[str, Any]) -> None:
        command = self._pending.pop(msg_id, None)
        if command is None or command.future.done():
            # late response to a command the caller stopped waiting for
            return

        error = message.get("error")
        if error:
            if isinstance(error, dict):
                text = error.get("message") or json.dumps(error)
                code = error.get("code")
            else:
                text, code = str(error), None
            logger.debug("<- #%d %s failed: %s", msg_id, command.method, text)
            command.future.set_exception(CDPProtocolError(text, method=command.method, code=code))
            return

        command.future.set_result(message.get("result") or {})

    def _dispatch_event(self, method: str, params: dict[str, Any], session_id: str | None) -> None:
        # copy: one-shot handlers unregister themselves while we iterate
        for handler in list(self._listeners.get(method, ())):
            try:
                handler(params, session_id)
            except Exception:
                logger.exception("Handler for CDP event %s raised", method)


## Discovery and connect

def _format_netloc(host: str, port: int) -> str:
    if ":" in host:
        host = f"[{host}]"
    return f"{host}:{port}"


def rewrite_ws_host(ws_url: str, host: str, port: int) -> str:
    """
    Point a discovered WebSocket URL at the host that was actually dialed.

    /json/version answers with the host from the request's Host header, which is
    not reachable from here when the browser runs elsewhere.
    """
    parsed = urlparse(ws_url)
    if parsed.hostname == host:
        return ws_url
    return parsed._replace(netloc=_format_netloc(host, port)).geturl()


def discover_ws_url(cdp_http_url: str, timeout: float | None = None) -> str:
    """
    Fetch the browser-level WebSocket URL from http://host:port/json/version.

    Chrome rejects non-localhost Host headers, so the request always claims to be
    for localhost and the returned URL is rewritten to the dialed host.

    Args:
        cdp_http_url: Base HTTP address, e.g. "http://chrome:9222".
        timeout: Request timeout in seconds (default Config.CDP_DISCOVERY_TIMEOUT).

    Returns:
        The webSocketDebuggerUrl, reachable from this machine.

    Raises:
        CDPDiscoveryError: Timeout, unreachable host, non-200 status, or missing field.
    """
    timeout = Config.CDP_DISCOVERY_TIMEOUT if timeout is None else timeout
    base = cdp_http_url.rstrip("/")
    parsed = urlparse(base)
    if not parsed.hostname:
        raise CDPDiscoveryError(f"Invalid CDP URL: {cdp_http_url!r}")

    host = parsed.hostname
    port = parsed.port or DEFAULT_CDP_PORT
    url = f"{parsed.scheme or 'http'}://{_format_netloc(host, port)}/json/version"

    try:
        response = requests.get(url, headers={"Host": f"localhost:{port}"}, timeout=timeout)
    except requests.Timeout as e:
        raise CDPDiscoveryError(f"Timed out after {timeout}s fetching {base}/json/version") from e
    except requests.RequestException as e:
        raise CDPDiscoveryError(f"Could not reach {base}/json/version: {e}") from e

    if response.status_code != 200:
        raise CDPDiscoveryError(f"HTTP {response.status_code} from {base}/json/version")

    try:
        data = response.json()
    except ValueError as e:
        raise CDPDiscoveryError(f"Invalid JSON from {base}/json/version") from e

    ws_url = data.get("webSocketDebuggerUrl") if isinstance(data, dict) else None
    ws_url = ws_url.strip() if isinstance(ws_url, str) else ""
    if not ws_url:
        raise CDPDiscoveryError("CDP /json/version missing webSocketDebuggerUrl")

    return rewrite_ws_host(ws_url, host, port)


async def connect_cdp(url_or_http: str, discovery_timeout: float | None = None) -> CDPConnection:
    """
    Connect to a browser and return a started CDPConnection.

    Args:
        url_or_http: ws:// / wss:// URL used as-is, or an http:// base that is
            resolved through discover_ws_url.
        discovery_timeout: Seconds allowed for discovery.

    Raises:
        CDPDiscoveryError: Discovery failed.
        CDPConnectionError: The WebSocket could not be opened.
    """
    if url_or_http.startswith(("ws://", "wss://")):
        ws_url = url_or_http
    else:
        ws_url = await asyncio.to_thread(discover_ws_url, url_or_http, discovery_timeout)

    try:
        ws = await connect(ws_url, max_size=None, ping_interval=None, ping_timeout=None)
    except (OSError, TimeoutError, WebSocketException) as e:
        raise CDPConnectionError(f"Could not open CDP socket {ws_url}: {e}") from e

    connection = CDPConnection(ws)
    connection.start()
    logger.info("CDP connected to %s", ws_url[:80])
    return connection
