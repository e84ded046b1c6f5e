"""
chrome_agent/cdp/screenshot.py

Screenshot capture via Page.captureScreenshot.
"""

import base64
import binascii
from typing import Any

from chrome_agent.cdp.connection import CDPConnection
from chrome_agent.config import Config
from chrome_agent.data_models.screenshot import ImageFormat, ScreenshotOptions
from chrome_agent.utils.exceptions import ScreenshotError


def clamp_quality(quality: float | None) -> int:
    """Round a JPEG quality and clamp it to [0, 100]."""
    if quality is None:
        quality = Config.SCREENSHOT_JPEG_QUALITY
    return max(0, min(100, round(quality)))


def full_page_clip(metrics: dict[str, Any]) -> dict[str, float] | None:
    """
    Compute a clip covering the whole document from Page.getLayoutMetrics.

    Prefers cssContentSize (CSS pixels) over the legacy contentSize. Returns None
    when the size is unknown or degenerate, which captures the viewport instead.
    """
    size = metrics.get("cssContentSize") or metrics.get("contentSize") or {}
    width = float(size.get("width") or 0)
    height = float(size.get("height") or 0)
    if width <= 0 or height <= 0:
        return None
    return {"x": 0, "y": 0, "width": width, "height": height, "scale": 1}


async def capture_screenshot(
    connection: CDPConnection,
    options: ScreenshotOptions | None = None,
    session_id: str | None = None,
) -> bytes:
    """
    Capture the current tab.

    Returns:
        Raw image bytes in the requested format.
    """
    options = options or ScreenshotOptions()
    await connection.send("Page.enable", session_id=session_id)

    clip = None
    if options.full_page:
        metrics = await connection.send("Page.getLayoutMetrics", session_id=session_id)
        clip = full_page_clip(metrics)

    params: dict[str, Any] = {
        "format": options.format.value,
        "fromSurface": True,
        "captureBeyondViewport": True,
    }
    if options.format == ImageFormat.JPEG:
        params["quality"] = clamp_quality(options.quality)
    if clip is not None:
        params["clip"] = clip

    result = await connection.send("Page.captureScreenshot", params, session_id)
    data = result.get("data")
    if not data:
        raise ScreenshotError("Screenshot failed: missing data")
    try:
        return base64.b64decode(data)
    except (binascii.Error, ValueError) as e:
        raise ScreenshotError(f"Screenshot failed: invalid image data ({e})") from e
