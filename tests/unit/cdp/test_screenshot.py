"""
tests/unit/cdp/test_screenshot.py

Unit tests for screenshot capture.
"""

import base64

import pytest

from chrome_agent.cdp.connection import CDPConnection
from chrome_agent.cdp.screenshot import capture_screenshot, clamp_quality, full_page_clip
from chrome_agent.data_models.screenshot import ImageFormat, ScreenshotOptions
from chrome_agent.utils.exceptions import ScreenshotError

from conftest import ScriptedWebSocket

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"


@pytest.fixture
def page(ws: ScriptedWebSocket) -> ScriptedWebSocket:
    ws.reply("Page.captureScreenshot", {"data": base64.b64encode(PNG_BYTES).decode()})
    ws.reply("Page.getLayoutMetrics", {
        "contentSize": {"x": 0, "y": 0, "width": 2000, "height": 6000},
        "cssContentSize": {"x": 0, "y": 0, "width": 1000, "height": 3000},
    })
    return ws


class TestHelpers:
    def test_clamp_quality(self) -> None:
        assert clamp_quality(-3) == 0
        assert clamp_quality(150) == 100
        assert clamp_quality(70.6) == 71
        assert 0 <= clamp_quality(None) <= 100

    def test_full_page_clip_prefers_css_size(self) -> None:
        clip = full_page_clip({
            "contentSize": {"width": 2000, "height": 6000},
            "cssContentSize": {"width": 1000, "height": 3000},
        })
        assert clip == {"x": 0, "y": 0, "width": 1000.0, "height": 3000.0, "scale": 1}

    def test_full_page_clip_falls_back_to_content_size(self) -> None:
        clip = full_page_clip({"contentSize": {"width": 800, "height": 600}})
        assert clip["width"] == 800.0
        assert clip["height"] == 600.0

    def test_full_page_clip_degenerate(self) -> None:
        assert full_page_clip({}) is None
        assert full_page_clip({"cssContentSize": {"width": 0, "height": 100}}) is None


class TestCaptureScreenshot:
    @pytest.mark.asyncio
    async def test_viewport_png(self, page: ScriptedWebSocket, connection: CDPConnection) -> None:
        data = await capture_screenshot(connection, session_id="S1")

        assert data == PNG_BYTES
        assert page.methods() == ["Page.enable", "Page.captureScreenshot"]
        params = page.sent_for("Page.captureScreenshot")[0]["params"]
        assert params == {"format": "png", "fromSurface": True, "captureBeyondViewport": True}

    @pytest.mark.asyncio
    async def test_full_page_jpeg(self, page: ScriptedWebSocket, connection: CDPConnection) -> None:
        options = ScreenshotOptions(full_page=True, format=ImageFormat.JPEG, quality=70)

        await capture_screenshot(connection, options, "S1")

        params = page.sent_for("Page.captureScreenshot")[0]["params"]
        assert params["format"] == "jpeg"
        assert params["quality"] == 70
        assert params["clip"]["width"] == 1000.0
        assert params["clip"]["height"] == 3000.0

    @pytest.mark.asyncio
    async def test_png_ignores_quality(self, page: ScriptedWebSocket, connection: CDPConnection) -> None:
        await capture_screenshot(connection, ScreenshotOptions(quality=10))
        assert "quality" not in page.sent_for("Page.captureScreenshot")[0]["params"]

    @pytest.mark.asyncio
    async def test_missing_data(self, page: ScriptedWebSocket, connection: CDPConnection) -> None:
        page.reply("Page.captureScreenshot", {})
        with pytest.raises(ScreenshotError, match="Screenshot failed: missing data"):
            await capture_screenshot(connection)
