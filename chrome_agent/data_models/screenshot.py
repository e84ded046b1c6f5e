"""
chrome_agent/data_models/screenshot.py

Screenshot capture options.
"""

from enum import StrEnum

from pydantic import BaseModel, Field


class ImageFormat(StrEnum):
    """Image encodings supported by Page.captureScreenshot."""
    PNG = "png"
    JPEG = "jpeg"


class ScreenshotOptions(BaseModel):
    """Options for a single screenshot capture."""
    full_page: bool = Field(default=False, description="Capture the whole scrollable page, not just the viewport")
    format: ImageFormat = Field(default=ImageFormat.PNG, description="Image encoding")
    quality: float | None = Field(
        default=None,
        description="JPEG quality 0-100 (ignored for png); defaults to Config.SCREENSHOT_JPEG_QUALITY",
    )
