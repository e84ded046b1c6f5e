"""
tests/unit/cdp/test_actions.py

Unit tests for ref resolution and element actions.
"""

import json

import pytest

from chrome_agent.cdp.actions import (
    check_ref,
    click_ref,
    get_click_point,
    resolve_ref,
    select_option,
    type_into_ref,
)
from chrome_agent.cdp.connection import CDPConnection
from chrome_agent.utils.exceptions import ActionError, InvalidRefError, StaleRefError

from conftest import ScriptedWebSocket

REFS = {"e1": 101, "e2": 102}
SQUARE = [10, 20, 30, 20, 30, 40, 10, 40]


@pytest.fixture
def page(ws: ScriptedWebSocket) -> ScriptedWebSocket:
    ws.reply("DOM.getContentQuads", {"quads": [SQUARE]})
    ws.reply("DOM.resolveNode", {"object": {"type": "object", "objectId": "OBJ-1"}})
    return ws


class TestResolveRef:
    def test_resolves_with_or_without_at(self) -> None:
        assert resolve_ref("@e1", REFS) == 101
        assert resolve_ref("e2", REFS) == 102

    def test_invalid_ref(self) -> None:
        with pytest.raises(InvalidRefError, match='Invalid ref: "button"'):
            resolve_ref("button", REFS)

    def test_stale_ref(self) -> None:
        with pytest.raises(StaleRefError, match=r'Ref "@e9" not found, run snapshot\(\) first'):
            resolve_ref("@e9", REFS)

    def test_empty_map_is_stale(self) -> None:
        with pytest.raises(StaleRefError):
            resolve_ref("@e1", {})


class TestClick:
    @pytest.mark.asyncio
    async def test_click_point_is_quad_centroid(self, page: ScriptedWebSocket, connection: CDPConnection) -> None:
        assert await get_click_point(connection, 101, "S1") == (20.0, 30.0)
        assert page.methods() == ["DOM.scrollIntoViewIfNeeded", "DOM.getContentQuads"]
        assert page.sent[0]["params"] == {"backendNodeId": 101}

    @pytest.mark.asyncio
    async def test_no_quads(self, page: ScriptedWebSocket, connection: CDPConnection) -> None:
        page.reply("DOM.getContentQuads", {"quads": []})
        with pytest.raises(ActionError, match="no quads returned"):
            await get_click_point(connection, 101)

    @pytest.mark.asyncio
    async def test_short_quad(self, page: ScriptedWebSocket, connection: CDPConnection) -> None:
        page.reply("DOM.getContentQuads", {"quads": [[1, 2, 3, 4]]})
        with pytest.raises(ActionError):
            await get_click_point(connection, 101)

    @pytest.mark.asyncio
    async def test_click_dispatches_press_then_release(self, page: ScriptedWebSocket, connection: CDPConnection) -> None:
        await click_ref(connection, "@e1", REFS, "S1")

        mouse = page.sent_for("Input.dispatchMouseEvent")
        assert [m["params"]["type"] for m in mouse] == ["mousePressed", "mouseReleased"]
        for message in mouse:
            assert message["params"]["x"] == 20.0
            assert message["params"]["y"] == 30.0
            assert message["params"]["button"] == "left"
            assert message["params"]["clickCount"] == 1
            assert message["sessionId"] == "S1"

    @pytest.mark.asyncio
    async def test_stale_ref_sends_nothing(self, page: ScriptedWebSocket, connection: CDPConnection) -> None:
        with pytest.raises(StaleRefError):
            await click_ref(connection, "@e7", REFS)
        assert page.sent == []


class TestType:
    @pytest.mark.asyncio
    async def test_type_focuses_clears_and_inserts(self, page: ScriptedWebSocket, connection: CDPConnection) -> None:
        await type_into_ref(connection, "@e2", "hello world", REFS, "S1")

        assert page.methods() == [
            "DOM.resolveNode",
            "DOM.focus",
            "Runtime.callFunctionOn",
            "Input.insertText",
        ]
        assert page.sent_for("DOM.focus")[0]["params"] == {"backendNodeId": 102}
        assert page.sent_for("Runtime.callFunctionOn")[0]["params"]["objectId"] == "OBJ-1"
        assert page.sent_for("Input.insertText")[0]["params"] == {"text": "hello world"}

    @pytest.mark.asyncio
    async def test_unresolvable_node(self, page: ScriptedWebSocket, connection: CDPConnection) -> None:
        page.reply("DOM.resolveNode", {"object": {"type": "object"}})
        with pytest.raises(ActionError, match="Could not resolve node to JS object"):
            await type_into_ref(connection, "@e2", "x", REFS)
        assert "Input.insertText" not in page.methods()


class TestSelect:
    @pytest.mark.asyncio
    async def test_select_passes_values_as_json(self, page: ScriptedWebSocket, connection: CDPConnection) -> None:
        await select_option(connection, "e1", ["red", "green"], REFS, "S1")

        call = page.sent_for("Runtime.callFunctionOn")[0]["params"]
        assert call["objectId"] == "OBJ-1"
        assert json.loads(call["arguments"][0]["value"]) == ["red", "green"]
        assert "change" in call["functionDeclaration"]

    @pytest.mark.asyncio
    async def test_script_exception_raises(self, page: ScriptedWebSocket, connection: CDPConnection) -> None:
        page.reply("Runtime.callFunctionOn", {
            "result": {"type": "object", "subtype": "error"},
            "exceptionDetails": {
                "text": "Uncaught",
                "exception": {"description": "TypeError: this.options is not iterable"},
            },
        })
        with pytest.raises(ActionError, match="TypeError: this.options is not iterable"):
            await select_option(connection, "e1", ["red"], REFS, "S1")

    @pytest.mark.asyncio
    async def test_check_script_exception_does_not_click(
        self, page: ScriptedWebSocket, connection: CDPConnection
    ) -> None:
        page.reply("Runtime.callFunctionOn", {"exceptionDetails": {"text": "Uncaught"}})
        with pytest.raises(ActionError, match="Element script failed: Uncaught"):
            await check_ref(connection, "@e1", True, REFS, "S1")
        assert page.sent_for("Input.dispatchMouseEvent") == []


class TestCheck:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("current, wanted, clicks", [
        (False, True, 2),
        (True, True, 0),
        (True, False, 2),
        (False, False, 0),
    ])
    async def test_clicks_only_when_state_differs(
        self,
        page: ScriptedWebSocket,
        connection: CDPConnection,
        current: bool,
        wanted: bool,
        clicks: int,
    ) -> None:
        page.reply("Runtime.callFunctionOn", {"result": {"type": "boolean", "value": current}})

        await check_ref(connection, "@e1", wanted, REFS, "S1")

        assert page.sent_for("Runtime.callFunctionOn")[0]["params"]["returnByValue"] is True
        assert len(page.sent_for("Input.dispatchMouseEvent")) == clicks
