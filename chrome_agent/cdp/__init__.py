"""
chrome_agent/cdp/__init__.py

Protocol-level building blocks used by ChromeAgent.
"""

from chrome_agent.cdp.connection import CDPConnection, connect_cdp, discover_ws_url
from chrome_agent.cdp.tab_manager import TabManager

__all__ = [
    "CDPConnection",
    "TabManager",
    "connect_cdp",
    "discover_ws_url",
]
