"""
chrome_agent/agent.py

High-level browser agent over one CDP connection.

Contains:
- ChromeAgent: Current tab/session selection, snapshot refs and every public operation
"""

from __future__ import annotations

from types import TracebackType

from chrome_agent.cdp import accessibility, actions, cookies, navigation, screenshot
from chrome_agent.cdp.connection import CDPConnection, connect_cdp
from chrome_agent.cdp.tab_manager import TabManager
from chrome_agent.config import Config
from chrome_agent.data_models.cookies import CDPCookie
from chrome_agent.data_models.screenshot import ScreenshotOptions
from chrome_agent.data_models.snapshot import RefMap
from chrome_agent.data_models.tabs import TabInfo
from chrome_agent.utils.exceptions import TabNotFoundError
from chrome_agent.utils.logger import get_logger

logger = get_logger(name=__name__)


class ChromeAgent:
    """
    Drives a browser through the remote debugging protocol.

    Holds one CDPConnection, one TabManager, the current (tab, session) pair and
    the reference map of the latest snapshot. The map is replaced on every
    snapshot and cleared by anything that can change page identity: navigate,
    back, forward, reload, tab switch and closing the current tab.

    Usage:
        async with await ChromeAgent.connect("http://localhost:9222") as agent:
            await agent.navigate("https://example.com")
            print(await agent.snapshot())
            await agent.click("@e1")
    """

    ## Magic methods

    def __init__(self, connection: CDPConnection) -> None:
        self._connection = connection
        self._tabs = TabManager(connection)
        self._current_tab_id: str | None = None
        self._current_session_id: str | None = None
        self._refs: RefMap = {}

    async def __aenter__(self) -> ChromeAgent:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    ## Construction

    @classmethod
    async def connect(cls, cdp_url: str | None = None) -> ChromeAgent:
        """
        Connect to a browser and attach to its first page target, if any.

        Args:
            cdp_url: http:// base (discovered) or ws:// URL. Defaults to Config.CHROME_CDP_URL.
        """
        connection = await connect_cdp(cdp_url or Config.CHROME_CDP_URL)
        try:
            return await cls.from_connection(connection)
        except BaseException:
            await connection.close()
            raise

    @classmethod
    async def from_connection(cls, connection: CDPConnection) -> ChromeAgent:
        """Build an agent on an already-open connection and attach to the first page."""
        await connection.send("Target.setDiscoverTargets", {"discover": True})
        agent = cls(connection)

        targets = await connection.send("Target.getTargets")
        page = next(
            (t for t in targets.get("targetInfos") or [] if t.get("type") == "page"),
            None,
        )
        if page is not None:
            session_id = await agent._tabs.attach(page["targetId"])
            agent._select(page["targetId"], session_id)
            logger.info("Attached to existing page %s (%s)", page["targetId"], page.get("url", ""))
        else:
            logger.info("No page target found; open one with new_tab()")
        return agent

    ## Properties

    @property
    def current_tab_id(self) -> str | None:
        return self._current_tab_id

    @property
    def current_session_id(self) -> str | None:
        return self._current_session_id

    @property
    def refs(self) -> RefMap:
        """A copy of the current reference map."""
        return dict(self._refs)

    ## Private methods

    def _select(self, tab_id: str | None, session_id: str | None) -> None:
        self._current_tab_id = tab_id
        self._current_session_id = session_id
        self._refs = {}

    def _session(self) -> str:
        """
        Session id of the current tab.

        Raises:
            TabNotFoundError: No tab is selected, or the selected tab has gone away.
        """
        if self._current_tab_id is None:
            raise TabNotFoundError("No active tab; open one with new_tab()")
        tab = self._tabs.get_tab(self._current_tab_id)
        if tab is None:
            stale = self._current_tab_id
            self._select(None, None)
            raise TabNotFoundError(f'Tab "{stale}" no longer exists; switch to or open another tab')
        return tab.session_id

    ## Navigation

    async def navigate(self, url: str) -> None:
        """Navigate the current tab to a URL and wait for load."""
        session_id = self._session()
        self._refs = {}
        await navigation.navigate(self._connection, url, session_id)

    async def back(self) -> None:
        """Go back in history; no-op when there is no previous entry."""
        session_id = self._session()
        self._refs = {}
        await navigation.go_back(self._connection, session_id)

    async def forward(self) -> None:
        """Go forward in history; no-op when there is no next entry."""
        session_id = self._session()
        self._refs = {}
        await navigation.go_forward(self._connection, session_id)

    async def reload(self) -> None:
        """Reload the current page and wait for load."""
        session_id = self._session()
        self._refs = {}
        await navigation.reload(self._connection, session_id)

    async def wait_for_network_idle(self, idle_ms: float | None = None, timeout_ms: float | None = None) -> bool:
        """Wait for a quiet network. Returns False if the timeout elapsed first (never raises on timeout)."""
        return await navigation.wait_for_network_idle(self._connection, idle_ms, timeout_ms, self._session())

    ## Snapshot and actions

    async def snapshot(self, limit: int | None = None) -> str:
        """Take an accessibility snapshot; its refs replace the previous ones."""
        result = await accessibility.snapshot(self._connection, self._session(), limit)
        self._refs = result.refs
        return result.text

    async def click(self, ref: str) -> None:
        """Click an element by ref (e.g. "@e1")."""
        await actions.click_ref(self._connection, ref, self._refs, self._session())

    async def type(self, ref: str, text: str) -> None:
        """Replace the value of an input by ref."""
        await actions.type_into_ref(self._connection, ref, text, self._refs, self._session())

    async def select(self, ref: str, values: list[str]) -> None:
        """Select option(s) of a <select> by ref."""
        await actions.select_option(self._connection, ref, values, self._refs, self._session())

    async def check(self, ref: str, checked: bool = True) -> None:
        """Set a checkbox or radio by ref to the given state."""
        await actions.check_ref(self._connection, ref, checked, self._refs, self._session())

    ## Screenshot

    async def screenshot(self, options: ScreenshotOptions | None = None) -> bytes:
        """Capture the current tab as png or jpeg bytes."""
        return await screenshot.capture_screenshot(self._connection, options, self._session())

    ## Tabs

    async def new_tab(self, url: str | None = None) -> str:
        """Open a tab, make it current, and return its id."""
        tab_id = await self._tabs.create_tab(url)
        tab = self._tabs.get_tab(tab_id)
        if tab is not None:
            self._select(tab_id, tab.session_id)
        return tab_id

    async def switch_tab(self, tab_id: str) -> None:
        """Make a tracked tab current."""
        tab = self._tabs.get_tab(tab_id)
        if tab is None:
            raise TabNotFoundError(f'Tab "{tab_id}" not found')
        self._select(tab_id, tab.session_id)

    async def close_tab(self, tab_id: str | None = None) -> None:
        """Close a tab (the current one by default)."""
        target = tab_id if tab_id is not None else self._current_tab_id
        if target is None:
            raise TabNotFoundError("No tab to close")
        try:
            await self._tabs.close_tab(target)
        finally:
            if target == self._current_tab_id:
                self._select(None, None)

    def list_tabs(self) -> list[TabInfo]:
        return self._tabs.list_tabs()

    ## Cookies

    async def get_cookies(self, urls: list[str] | None = None) -> list[CDPCookie]:
        return await cookies.get_cookies(self._connection, urls, self._current_session_id)

    async def export_cookies(self) -> str:
        """All cookies as pretty-printed JSON."""
        return await cookies.export_cookies(self._connection, self._current_session_id)

    async def import_cookies(self, text: str) -> int:
        """Set every cookie from a JSON array; returns how many were set."""
        return await cookies.import_cookies(self._connection, text, self._current_session_id)

    ## Lifecycle

    async def close(self) -> None:
        """Stop tracking tabs and close the connection. Tabs stay open in the browser."""
        self._tabs.dispose()
        self._select(None, None)
        await self._connection.close()
