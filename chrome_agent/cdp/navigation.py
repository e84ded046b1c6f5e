"""
chrome_agent/cdp/navigation.py

Page navigation and network-idle detection.

Contains:
- navigate, reload: Issue the command and wait for Page.loadEventFired
- go_back, go_forward: Step through navigation history (no-op at either end)
- NetworkIdleTracker: In-flight counter + debounce timer state machine
- wait_for_network_idle: Drive a tracker from Network.* events
"""

import asyncio
from typing import Any

from chrome_agent.cdp.connection import CDPConnection
from chrome_agent.config import Config
from chrome_agent.utils.exceptions import NavigationError
from chrome_agent.utils.logger import get_logger

logger = get_logger(name=__name__)

LOAD_EVENT = "Page.loadEventFired"
REQUEST_STARTED_EVENT = "Network.requestWillBeSent"
REQUEST_FINISHED_EVENTS = ("Network.loadingFinished", "Network.loadingFailed")


async def navigate(connection: CDPConnection, url: str, session_id: str | None = None) -> None:
    """
    Navigate to `url` and wait for the load event, then bring the tab to front.

    Raises:
        NavigationError: Page.navigate reported an errorText (e.g. DNS failure).
    """
    await connection.send("Page.enable", session_id=session_id)

    with connection.expect_event(LOAD_EVENT, session_id) as loaded:
        result = await connection.send("Page.navigate", {"url": url}, session_id)
        error_text = result.get("errorText")
        if error_text:
            raise NavigationError(f"Navigation failed: {error_text}")
        await loaded

    logger.info("Loaded %s", url)
    await connection.send("Page.bringToFront", session_id=session_id)


async def reload(connection: CDPConnection, session_id: str | None = None) -> None:
    """Reload the page and wait for the load event."""
    await connection.send("Page.enable", session_id=session_id)

    with connection.expect_event(LOAD_EVENT, session_id) as loaded:
        await connection.send("Page.reload", session_id=session_id)
        await loaded

    await connection.send("Page.bringToFront", session_id=session_id)


async def _go_to_history_offset(connection: CDPConnection, offset: int, session_id: str | None) -> bool:
    history = await connection.send("Page.getNavigationHistory", session_id=session_id)
    index = history.get("currentIndex") or 0
    entries = history.get("entries") or []

    target = index + offset
    if target < 0 or target >= len(entries):
        return False

    await connection.send("Page.navigateToHistoryEntry", {"entryId": entries[target]["id"]}, session_id)
    return True


async def go_back(connection: CDPConnection, session_id: str | None = None) -> bool:
    """Go back one history entry. Returns False (and does nothing) at the start of history."""
    return await _go_to_history_offset(connection, -1, session_id)


async def go_forward(connection: CDPConnection, session_id: str | None = None) -> bool:
    """Go forward one history entry. Returns False (and does nothing) at the end of history."""
    return await _go_to_history_offset(connection, 1, session_id)


class NetworkIdleTracker:
    """
    Debounced "no requests in flight" detector.

    A request start increments the in-flight counter and disarms the idle timer.
    A finish or failure decrements it (never below zero); at zero the timer is
    re-armed for idle_ms. When the timer fires with the counter still at zero,
    `idle` resolves.
    """

    def __init__(self, idle_ms: float, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop or asyncio.get_running_loop()
        self._idle_seconds = idle_ms / 1000
        self._timer: asyncio.TimerHandle | None = None
        self.inflight = 0
        self.idle: asyncio.Future = self._loop.create_future()

    @property
    def armed(self) -> bool:
        return self._timer is not None

    def start(self) -> None:
        """Arm the timer if nothing is in flight yet."""
        self._check_idle()

    def request_started(self) -> None:
        self.inflight += 1
        self._disarm()

    def request_finished(self) -> None:
        self.inflight = max(0, self.inflight - 1)
        self._check_idle()

    def close(self) -> None:
        """Cancel the pending timer; `idle` keeps whatever state it has."""
        self._disarm()

    def _check_idle(self) -> None:
        self._disarm()
        if self.inflight == 0 and not self.idle.done():
            self._timer = self._loop.call_later(self._idle_seconds, self._fire)

    def _disarm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self) -> None:
        self._timer = None
        if self.inflight == 0 and not self.idle.done():
            self.idle.set_result(True)


async def wait_for_network_idle(
    connection: CDPConnection,
    idle_ms: float | None = None,
    timeout_ms: float | None = None,
    session_id: str | None = None,
) -> bool:
    """
    Wait until no request has been in flight for `idle_ms`.

    Never raises on timeout: after `timeout_ms` the page is assumed usable.

    Args:
        connection: Open CDP connection.
        idle_ms: Quiet period required (default Config.NETWORK_IDLE_MS).
        timeout_ms: Upper bound on the wait (default Config.NETWORK_IDLE_TIMEOUT_MS).
        session_id: Only network events from this session are counted.

    Returns:
        True if the network went idle, False if the timeout elapsed first.
    """
    idle_ms = Config.NETWORK_IDLE_MS if idle_ms is None else idle_ms
    timeout_ms = Config.NETWORK_IDLE_TIMEOUT_MS if timeout_ms is None else timeout_ms

    await connection.send("Network.enable", session_id=session_id)
    tracker = NetworkIdleTracker(idle_ms)

    def in_session(event_session_id: str | None) -> bool:
        return not (session_id and event_session_id and event_session_id != session_id)

    def on_request(params: dict[str, Any], event_session_id: str | None) -> None:
        if in_session(event_session_id):
            tracker.request_started()

    def on_finish(params: dict[str, Any], event_session_id: str | None) -> None:
        if in_session(event_session_id):
            tracker.request_finished()

    connection.on(REQUEST_STARTED_EVENT, on_request)
    for event in REQUEST_FINISHED_EVENTS:
        connection.on(event, on_finish)

    try:
        tracker.start()
        done, _ = await asyncio.wait({tracker.idle}, timeout=timeout_ms / 1000)
    finally:
        tracker.close()
        connection.off(REQUEST_STARTED_EVENT, on_request)
        for event in REQUEST_FINISHED_EVENTS:
            connection.off(event, on_finish)

    if not done:
        logger.debug(
            "Network not idle after %sms (%d request(s) in flight), continuing",
            timeout_ms,
            tracker.inflight,
        )
        return False
    return True
