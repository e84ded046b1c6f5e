"""
chrome_agent/cdp/cookies.py

Cookie read/write and JSON export/import.
"""

import json

from pydantic import ValidationError

from chrome_agent.cdp.connection import CDPConnection
from chrome_agent.data_models.cookies import CDPCookie
from chrome_agent.utils.exceptions import CDPProtocolError, CookieImportError
from chrome_agent.utils.logger import get_logger

logger = get_logger(name=__name__)


async def get_cookies(
    connection: CDPConnection,
    urls: list[str] | None = None,
    session_id: str | None = None,
) -> list[CDPCookie]:
    """Get cookies visible to the page, optionally only those for `urls`."""
    params = {"urls": urls} if urls else {}
    result = await connection.send("Network.getCookies", params, session_id)
    return [CDPCookie.model_validate(cookie) for cookie in result.get("cookies") or []]


async def set_cookie(
    connection: CDPConnection,
    cookie: CDPCookie,
    session_id: str | None = None,
) -> None:
    """
    Set a single cookie.

    Raises:
        CookieImportError: The browser rejected the cookie.
    """
    try:
        result = await connection.send("Network.setCookie", cookie.to_set_cookie_params(), session_id)
    except CDPProtocolError as e:
        raise CookieImportError(f'Failed to set cookie "{cookie.name}": {e}') from e
    # success is deprecated and may be absent
    if result.get("success") is False:
        raise CookieImportError(f'Failed to set cookie "{cookie.name}"')


async def export_cookies(connection: CDPConnection, session_id: str | None = None) -> str:
    """Export all cookies as pretty-printed JSON."""
    cookies = await get_cookies(connection, session_id=session_id)
    logger.debug("Exporting %d cookie(s)", len(cookies))
    return json.dumps([cookie.to_wire() for cookie in cookies], indent=2)


def parse_cookies_json(text: str) -> list[CDPCookie]:
    """
    Parse a JSON array of cookie records (as produced by export_cookies).

    Raises:
        CookieImportError: Invalid JSON, not an array, or a record without name/value.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise CookieImportError(f"Invalid cookie JSON: {e}") from e
    if not isinstance(data, list):
        raise CookieImportError("Cookie JSON must be an array of cookie objects")

    cookies: list[CDPCookie] = []
    for index, record in enumerate(data):
        try:
            cookies.append(CDPCookie.model_validate(record))
        except ValidationError as e:
            raise CookieImportError(f"Invalid cookie at index {index}: {e}") from e
    return cookies


async def import_cookies(connection: CDPConnection, text: str, session_id: str | None = None) -> int:
    """
    Import cookies from JSON, setting them one by one.

    Returns:
        Number of cookies set.
    """
    cookies = parse_cookies_json(text)
    for cookie in cookies:
        await set_cookie(connection, cookie, session_id)
    logger.info("Imported %d cookie(s)", len(cookies))
    return len(cookies)
