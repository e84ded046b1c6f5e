"""
chrome_agent/cdp/accessibility.py

Accessibility-tree snapshots with short-lived element refs.

Contains:
- format_aria_snapshot: Flatten raw Accessibility.getFullAXTree nodes (bounded DFS)
- build_snapshot: Render flattened nodes as text and assign [@eN] refs
- snapshot: Fetch the tree for a session and do both
- parse_ref: Normalize "@e12" / "e12" to "e12"
"""

import re
from typing import Any

from chrome_agent.cdp.connection import CDPConnection
from chrome_agent.config import Config
from chrome_agent.data_models.snapshot import AriaSnapshotNode, RefMap, SnapshotResult

MAX_SNAPSHOT_NODES = 2000
EMPTY_PAGE_TEXT = "(empty page)"

INTERACTIVE_ROLES: frozenset[str] = frozenset({
    "button",
    "link",
    "textbox",
    "checkbox",
    "radio",
    "combobox",
    "listbox",
    "menuitem",
    "menuitemcheckbox",
    "menuitemradio",
    "option",
    "searchbox",
    "slider",
    "spinbutton",
    "switch",
    "tab",
    "treeitem",
})

# only referenced when they have a name
CONTENT_ROLES: frozenset[str] = frozenset({
    "heading",
    "cell",
    "gridcell",
    "columnheader",
    "rowheader",
    "listitem",
    "article",
    "region",
    "main",
    "navigation",
})

# layout-only; hidden when unnamed, never referenced
STRUCTURAL_ROLES: frozenset[str] = frozenset({
    "generic",
    "group",
    "list",
    "table",
    "row",
    "rowgroup",
    "grid",
    "treegrid",
    "menu",
    "menubar",
    "toolbar",
    "tablist",
    "tree",
    "directory",
    "document",
    "application",
    "presentation",
    "none",
})

# text leaves whose content already shows up in the parent's name
TEXT_ROLES: frozenset[str] = frozenset({"statictext", "inlinetextbox"})

_REF_PATTERN = re.compile(r"e\d+")


def clamp_limit(limit: int | float | None) -> int:
    """Clamp a node-count limit to [1, MAX_SNAPSHOT_NODES]."""
    if limit is None:
        limit = Config.SNAPSHOT_NODE_LIMIT
    return max(1, min(MAX_SNAPSHOT_NODES, int(limit)))


def ax_value(prop: Any) -> str:
    """Extract the scalar from an AX property ({"type": ..., "value": ...}) as text."""
    if not isinstance(prop, dict):
        return ""
    value = prop.get("value")
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return ""


def find_root(nodes: list[dict[str, Any]]) -> dict[str, Any] | None:
    """
    Pick the tree root: the first node (in declared order) that no node lists as a child.

    Falls back to the first node when every node is referenced (e.g. a cycle).
    """
    if not nodes:
        return None
    referenced: set[str] = set()
    for node in nodes:
        referenced.update(node.get("childIds") or [])
    for node in nodes:
        node_id = node.get("nodeId")
        if node_id and node_id not in referenced:
            return node
    return nodes[0]


def format_aria_snapshot(nodes: list[dict[str, Any]], limit: int) -> list[AriaSnapshotNode]:
    """
    Flatten raw AX nodes into pre-order with depths relative to the root.

    Uses an explicit stack with children pushed in reverse so they pop in their
    original order. Stops once `limit` nodes have been emitted; each node id is
    emitted at most once even if the raw graph repeats it.

    Args:
        nodes: Raw nodes from Accessibility.getFullAXTree.
        limit: Maximum number of flattened nodes.

    Returns:
        Flattened nodes in traversal order.
    """
    by_id: dict[str, dict[str, Any]] = {}
    for node in nodes:
        node_id = node.get("nodeId")
        if node_id:
            by_id[node_id] = node

    root = find_root(nodes)
    if root is None or not root.get("nodeId"):
        return []

    out: list[AriaSnapshotNode] = []
    visited: set[str] = set()
    stack: list[tuple[str, int]] = [(root["nodeId"], 0)]

    while stack and len(out) < limit:
        node_id, depth = stack.pop()
        node = by_id.get(node_id)
        if node is None or node_id in visited:
            continue
        visited.add(node_id)

        backend_id = node.get("backendDOMNodeId")
        out.append(AriaSnapshotNode(
            role=ax_value(node.get("role")) or "unknown",
            name=ax_value(node.get("name")),
            value=ax_value(node.get("value")) or None,
            description=ax_value(node.get("description")) or None,
            backend_dom_node_id=backend_id if isinstance(backend_id, int) and not isinstance(backend_id, bool) else None,
            depth=depth,
        ))

        children = [child for child in node.get("childIds") or [] if child in by_id]
        for child in reversed(children):
            stack.append((child, depth + 1))

    return out


def _is_hidden(role: str, name: str) -> bool:
    if role in STRUCTURAL_ROLES and not name:
        return True
    if role == "unknown" and not name:
        return True
    if role in ("none", "presentation"):
        return True
    return role in TEXT_ROLES


def build_snapshot(ax_nodes: list[AriaSnapshotNode]) -> SnapshotResult:
    """
    Render flattened nodes as an indented outline and allocate refs.

    Interactive nodes, and content nodes with a name, get e1, e2, ... in output
    order, provided they carry a backend DOM node id.
    """
    refs: RefMap = {}
    lines: list[str] = []

    for node in ax_nodes:
        role = node.role.lower()
        if _is_hidden(role, node.name):
            continue

        line = f"{'  ' * node.depth}- {role}"
        if node.name:
            line += f' "{node.name}"'
        if node.value:
            line += f': "{node.value}"'

        wants_ref = role in INTERACTIVE_ROLES or (role in CONTENT_ROLES and bool(node.name))
        if wants_ref and node.backend_dom_node_id is not None:
            ref = f"e{len(refs) + 1}"
            refs[ref] = node.backend_dom_node_id
            line += f" [@{ref}]"

        lines.append(line)

    return SnapshotResult(text="\n".join(lines) or EMPTY_PAGE_TEXT, refs=refs)


async def snapshot(
    connection: CDPConnection,
    session_id: str | None = None,
    limit: int | None = None,
) -> SnapshotResult:
    """
    Fetch the full accessibility tree for a session and render it.

    Args:
        connection: Open CDP connection.
        session_id: Session of the tab to snapshot.
        limit: Max nodes to traverse (default Config.SNAPSHOT_NODE_LIMIT, clamped to [1, 2000]).
    """
    await connection.send("Accessibility.enable", session_id=session_id)
    result = await connection.send("Accessibility.getFullAXTree", session_id=session_id)
    raw_nodes = result.get("nodes")
    if not isinstance(raw_nodes, list):
        raw_nodes = []
    return build_snapshot(format_aria_snapshot(raw_nodes, clamp_limit(limit)))


def parse_ref(raw: str) -> str | None:
    """
    Normalize a ref token.

    "@e12" and "e12" both give "e12"; anything not of the form e<digits> gives None.
    """
    trimmed = raw.strip()
    if not trimmed:
        return None
    normalized = trimmed[1:] if trimmed.startswith("@") else trimmed
    return normalized if _REF_PATTERN.fullmatch(normalized) else None
