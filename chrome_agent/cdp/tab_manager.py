"""
chrome_agent/cdp/tab_manager.py

Tracks page targets and the flattened sessions attached to them.
"""

from typing import Any

from chrome_agent.cdp.connection import CDPConnection
from chrome_agent.data_models.tabs import TabInfo
from chrome_agent.utils.exceptions import TabError
from chrome_agent.utils.logger import get_logger

logger = get_logger(name=__name__)


class TabManager:
    """
    Owns the tab table (target id -> TabInfo).

    Records are created on create/attach, refreshed by Target.targetInfoChanged
    and dropped by Target.targetDestroyed or close_tab().
    """

    def __init__(self, connection: CDPConnection) -> None:
        self._connection = connection
        self._tabs: dict[str, TabInfo] = {}

        self._connection.on("Target.targetDestroyed", self._on_target_destroyed)
        self._connection.on("Target.targetInfoChanged", self._on_target_info_changed)

    ## Event handlers

    def _on_target_destroyed(self, params: dict[str, Any], session_id: str | None) -> None:
        target_id = params.get("targetId")
        if target_id and self._tabs.pop(target_id, None) is not None:
            logger.debug("Tab %s destroyed", target_id)

    def _on_target_info_changed(self, params: dict[str, Any], session_id: str | None) -> None:
        target_info = params.get("targetInfo") or {}
        tab = self._tabs.get(target_info.get("targetId") or "")
        if tab is None:
            return
        if target_info.get("url") is not None:
            tab.url = target_info["url"]
        if target_info.get("title") is not None:
            tab.title = target_info["title"]

    ## Public API

    async def create_tab(self, url: str | None = None) -> str:
        """
        Open a new page target and attach to it.

        Args:
            url: Initial URL (default about:blank).

        Returns:
            The new tab's target id.
        """
        initial_url = url or "about:blank"
        result = await self._connection.send("Target.createTarget", {"url": initial_url})
        target_id = result.get("targetId")
        if not target_id:
            raise TabError("Target.createTarget returned no targetId")

        await self.attach(target_id)
        tab = self._tabs.get(target_id)
        if tab is not None:
            tab.url = initial_url
        logger.info("Created tab %s (%s)", target_id, initial_url)
        return target_id

    async def attach(self, target_id: str) -> str:
        """
        Attach to a target with flattened session addressing.

        Returns:
            The session id to pass with subsequent commands for this target.
        """
        result = await self._connection.send(
            "Target.attachToTarget",
            {"targetId": target_id, "flatten": True},
        )
        session_id = result.get("sessionId")
        if not session_id:
            raise TabError("Target.attachToTarget returned no sessionId")

        self._tabs[target_id] = TabInfo(tab_id=target_id, session_id=session_id)
        logger.debug("Attached to %s (session %s)", target_id, session_id)
        return session_id

    async def close_tab(self, tab_id: str) -> None:
        """Close a target. The local record is dropped even if the command fails."""
        try:
            await self._connection.send("Target.closeTarget", {"targetId": tab_id})
        finally:
            self._tabs.pop(tab_id, None)
        logger.info("Closed tab %s", tab_id)

    def get_tab(self, tab_id: str) -> TabInfo | None:
        return self._tabs.get(tab_id)

    def list_tabs(self) -> list[TabInfo]:
        return list(self._tabs.values())

    def dispose(self) -> None:
        """Stop listening for target events. Does not close tabs or the connection."""
        self._connection.off("Target.targetDestroyed", self._on_target_destroyed)
        self._connection.off("Target.targetInfoChanged", self._on_target_info_changed)
