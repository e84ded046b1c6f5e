"""
chrome_agent/cdp/actions.py

Element actions addressed by snapshot refs.

Contains:
- resolve_ref: ref token -> backend DOM node id (via the current RefMap)
- call_function_on: Runtime.callFunctionOn that fails on a thrown page script
- click_ref, type_into_ref, select_option, check_ref
"""

import json
from typing import Any

from chrome_agent.cdp.accessibility import parse_ref
from chrome_agent.cdp.connection import CDPConnection
from chrome_agent.data_models.snapshot import RefMap
from chrome_agent.utils.exceptions import ActionError, InvalidRefError, StaleRefError
from chrome_agent.utils.logger import get_logger

logger = get_logger(name=__name__)

_CLEAR_VALUE_JS = (
    "function() { this.value = ''; this.dispatchEvent(new Event('input', {bubbles: true})); }"
)

_SELECT_OPTIONS_JS = """function(vals) {
    const values = JSON.parse(vals);
    for (const opt of this.options) {
        opt.selected = values.includes(opt.value);
    }
    this.dispatchEvent(new Event('change', { bubbles: true }));
}"""

_READ_CHECKED_JS = "function() { return this.checked; }"


def resolve_ref(ref: str, refs: RefMap) -> int:
    """
    Resolve a ref token against the current reference map.

    Raises:
        InvalidRefError: The token is not e<N> / @e<N>.
        StaleRefError: The token is not in the map (take a new snapshot).
    """
    parsed = parse_ref(ref)
    if parsed is None:
        raise InvalidRefError(ref)
    backend_node_id = refs.get(parsed)
    if backend_node_id is None:
        raise StaleRefError(ref)
    return backend_node_id


async def get_click_point(
    connection: CDPConnection,
    backend_node_id: int,
    session_id: str | None = None,
) -> tuple[float, float]:
    """Scroll a node into view and return the centre of its first content quad."""
    await connection.send("DOM.scrollIntoViewIfNeeded", {"backendNodeId": backend_node_id}, session_id)
    result = await connection.send("DOM.getContentQuads", {"backendNodeId": backend_node_id}, session_id)

    quads = result.get("quads") or []
    if not quads or len(quads[0]) < 8:
        raise ActionError("Could not get element position (no quads returned)")

    # quad: [x1, y1, x2, y2, x3, y3, x4, y4]
    quad = quads[0]
    x = (quad[0] + quad[2] + quad[4] + quad[6]) / 4
    y = (quad[1] + quad[3] + quad[5] + quad[7]) / 4
    return x, y


async def resolve_object_id(
    connection: CDPConnection,
    backend_node_id: int,
    session_id: str | None = None,
) -> str:
    """Resolve a backend node to a Runtime remote object id."""
    result = await connection.send("DOM.resolveNode", {"backendNodeId": backend_node_id}, session_id)
    object_id = (result.get("object") or {}).get("objectId")
    if not object_id:
        raise ActionError("Could not resolve node to JS object")
    return object_id


async def call_function_on(
    connection: CDPConnection,
    object_id: str,
    params: dict[str, Any],
    session_id: str | None = None,
) -> dict[str, Any]:
    """
    Run Runtime.callFunctionOn against a remote object.

    Raises:
        ActionError: The page script threw.
    """
    result = await connection.send("Runtime.callFunctionOn", {"objectId": object_id, **params}, session_id)
    details = result.get("exceptionDetails")
    if details:
        exception = details.get("exception") or {}
        text = exception.get("description") or details.get("text") or "script error"
        raise ActionError(f"Element script failed: {text}")
    return result


async def click_ref(
    connection: CDPConnection,
    ref: str,
    refs: RefMap,
    session_id: str | None = None,
) -> None:
    """Click the centre of the element with a real left-button press and release."""
    backend_node_id = resolve_ref(ref, refs)
    x, y = await get_click_point(connection, backend_node_id, session_id)
    logger.debug("Clicking %s at (%.1f, %.1f)", ref, x, y)

    for event_type in ("mousePressed", "mouseReleased"):
        await connection.send(
            "Input.dispatchMouseEvent",
            {"type": event_type, "x": x, "y": y, "button": "left", "clickCount": 1},
            session_id,
        )


async def type_into_ref(
    connection: CDPConnection,
    ref: str,
    text: str,
    refs: RefMap,
    session_id: str | None = None,
) -> None:
    """
    Replace an input's value with `text`.

    The element is focused, cleared by script (firing an input event), and the
    text is then inserted in one Input.insertText call.
    """
    backend_node_id = resolve_ref(ref, refs)
    object_id = await resolve_object_id(connection, backend_node_id, session_id)

    await connection.send("DOM.focus", {"backendNodeId": backend_node_id}, session_id)
    await call_function_on(connection, object_id, {"functionDeclaration": _CLEAR_VALUE_JS}, session_id)
    await connection.send("Input.insertText", {"text": text}, session_id)


async def select_option(
    connection: CDPConnection,
    ref: str,
    values: list[str],
    refs: RefMap,
    session_id: str | None = None,
) -> None:
    """Select exactly the <option>s whose value is in `values`, then fire change."""
    backend_node_id = resolve_ref(ref, refs)
    object_id = await resolve_object_id(connection, backend_node_id, session_id)

    await call_function_on(
        connection,
        object_id,
        {
            "functionDeclaration": _SELECT_OPTIONS_JS,
            "arguments": [{"value": json.dumps(list(values))}],
        },
        session_id,
    )


async def check_ref(
    connection: CDPConnection,
    ref: str,
    checked: bool,
    refs: RefMap,
    session_id: str | None = None,
) -> None:
    """
    Bring a checkbox or radio to the requested state.

    Clicks (rather than toggling by script) only when the current state differs,
    so the page sees a genuine user interaction.
    """
    backend_node_id = resolve_ref(ref, refs)
    object_id = await resolve_object_id(connection, backend_node_id, session_id)

    result = await call_function_on(
        connection,
        object_id,
        {"functionDeclaration": _READ_CHECKED_JS, "returnByValue": True},
        session_id,
    )
    current = bool((result.get("result") or {}).get("value", False))
    if current != checked:
        await click_ref(connection, ref, refs, session_id)
