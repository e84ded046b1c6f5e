from chrome_agent.data_models.cookies import CDPCookie
from chrome_agent.data_models.screenshot import ImageFormat, ScreenshotOptions
from chrome_agent.data_models.snapshot import AriaSnapshotNode, RefMap, SnapshotResult
from chrome_agent.data_models.tabs import TabInfo

__all__ = [
    "AriaSnapshotNode",
    "CDPCookie",
    "ImageFormat",
    "RefMap",
    "ScreenshotOptions",
    "SnapshotResult",
    "TabInfo",
]
