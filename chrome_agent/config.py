"""
chrome_agent/config.py

Environment variable configuration.

Contains:
- Config: Centralized settings from environment variables
- CHROME_CDP_URL, LOG_LEVEL, SNAPSHOT_NODE_LIMIT, etc.
"""

import logging
import os
from typing import Any

from dotenv import load_dotenv

load_dotenv()

# configure websockets/urllib3 loggers to suppress verbose frame and HTTP logs
logging.getLogger("websockets").setLevel(logging.WARNING)
logging.getLogger("urllib3").setLevel(logging.WARNING)


class Config():
    """
    Centralized configuration for environment variables.
    """

    # logging configuration
    LOG_LEVEL: int = logging.getLevelNamesMapping().get(
        os.getenv("LOG_LEVEL", "INFO").upper(),
        logging.INFO
    )
    LOG_DATE_FORMAT: str = os.getenv("LOG_DATE_FORMAT", "%Y-%m-%d %H:%M:%S")
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "[%(asctime)s] %(levelname)s:%(name)s:%(message)s")

    # remote debugging endpoint (http:// is discovered, ws:// is dialed directly)
    CHROME_CDP_URL: str = os.getenv("CHROME_CDP_URL", "http://localhost:9222")
    CDP_DISCOVERY_TIMEOUT: float = float(os.getenv("CDP_DISCOVERY_TIMEOUT", "5"))

    # accessibility snapshot
    SNAPSHOT_NODE_LIMIT: int = int(os.getenv("SNAPSHOT_NODE_LIMIT", "500"))

    # network idle detection
    NETWORK_IDLE_MS: int = int(os.getenv("NETWORK_IDLE_MS", "500"))
    NETWORK_IDLE_TIMEOUT_MS: int = int(os.getenv("NETWORK_IDLE_TIMEOUT_MS", "30000"))

    # screenshots
    SCREENSHOT_JPEG_QUALITY: int = int(os.getenv("SCREENSHOT_JPEG_QUALITY", "85"))

    @classmethod
    def as_dict(cls) -> dict[str, Any]:
        """
        Return a dictionary of all UPPERCASE class attributes and their values.
        Return:
            dict[str, Any]: A dictionary of all UPPERCASE class attributes and their values.
        """
        return {
            key: getattr(cls, key)
            for key in dir(cls)
            if key.isupper()
        }
