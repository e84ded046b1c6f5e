"""
chrome_agent/data_models/cookies.py

Cookie record as returned by Network.getCookies.

Field names are snake_case in Python and camelCase on the wire; unknown
protocol fields (priority, partitionKey, ...) are preserved as extras so an
export can be re-imported without loss.
"""

from pydantic import BaseModel, ConfigDict, Field


class CDPCookie(BaseModel):
    """A browser cookie."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str = Field(description="Cookie name")
    value: str = Field(description="Cookie value")
    domain: str | None = Field(default=None, description="Cookie domain")
    path: str | None = Field(default=None, description="Cookie path")
    expires: int | float | None = Field(default=None, description="Expiry as seconds since epoch, -1 for session cookies")
    size: int | None = Field(default=None, description="Size in bytes (computed by the browser)")
    http_only: bool | None = Field(default=None, alias="httpOnly", description="HttpOnly flag")
    secure: bool | None = Field(default=None, description="Secure flag")
    session: bool | None = Field(default=None, description="True for session cookies")
    same_site: str | None = Field(default=None, alias="sameSite", description="Strict, Lax or None")

    def to_wire(self) -> dict:
        """Serialize with protocol (camelCase) field names, dropping unset fields."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_set_cookie_params(self) -> dict:
        """
        Build Network.setCookie params from this record.

        size and session are browser-computed and not accepted by setCookie;
        session cookies are set without an expiry.
        """
        params = self.to_wire()
        params.pop("size", None)
        is_session = params.pop("session", None)
        if is_session or (self.expires is not None and self.expires < 0):
            params.pop("expires", None)
        return params
