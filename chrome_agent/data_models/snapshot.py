"""
chrome_agent/data_models/snapshot.py

Data models for accessibility snapshots.

Contains:
- AriaSnapshotNode: One node of the flattened accessibility tree
- SnapshotResult: Rendered snapshot text plus its reference map
- RefMap: Reference token ("e1") -> backend DOM node id
"""

from pydantic import BaseModel, Field

RefMap = dict[str, int]


class AriaSnapshotNode(BaseModel):
    """A node produced by flattening the raw accessibility tree."""
    role: str = Field(description='Accessibility role, "unknown" when the node reports none')
    name: str = Field(default="", description="Accessible name")
    value: str | None = Field(default=None, description="Current value, if any")
    description: str | None = Field(default=None, description="Accessible description, if any")
    backend_dom_node_id: int | None = Field(
        default=None,
        description="Backend DOM node id; only nodes carrying one can be referenced",
    )
    depth: int = Field(description="Traversal depth from the detected root (root is 0)")


class SnapshotResult(BaseModel):
    """Rendered snapshot and the reference map produced alongside it."""
    text: str = Field(description="Indented, one-line-per-node textual view of the page")
    refs: RefMap = Field(default_factory=dict, description="Reference token -> backend DOM node id")
