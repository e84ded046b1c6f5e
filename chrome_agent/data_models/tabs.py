"""
chrome_agent/data_models/tabs.py

Tab bookkeeping record owned by the TabManager.
"""

from pydantic import BaseModel, Field


class TabInfo(BaseModel):
    """An attached page target and the cached url/title last reported for it."""
    tab_id: str = Field(description="Target id of the tab")
    session_id: str = Field(description="Flattened session id returned by Target.attachToTarget")
    url: str = Field(default="", description="Last known URL (updated by Target.targetInfoChanged)")
    title: str = Field(default="", description="Last known title (updated by Target.targetInfoChanged)")
