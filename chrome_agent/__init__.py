"""
chrome_agent

Browser automation over the Chrome DevTools Protocol: accessibility snapshots
with element refs, ref-addressed actions, tabs, navigation, screenshots and cookies.
"""

from chrome_agent.agent import ChromeAgent

__all__ = ["ChromeAgent"]
