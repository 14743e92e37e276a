"""Session configuration types.

These models only carry values. Semantic checks (secret strength,
strategy, cookie attributes) are done by SessionCodec and SessionStore so
that they raise nica-auth configuration errors.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from nica_auth.session.codec import DEFAULT_TOKEN_EXP

SAME_SITE_VALUES = ("lax", "strict", "none")


class CookieSettings(BaseModel):
    """Attributes of the session cookie."""

    name: str = "nica_session"
    max_age: int | None = Field(
        default=None,
        description="Cookie lifetime in seconds. Defaults to the token lifetime.",
    )
    http_only: bool = True
    secure: bool = True
    same_site: str = "lax"
    path: str = "/"


class SessionSettings(BaseModel):
    """Settings for SessionCodec and SessionStore."""

    secret: str = Field(default="", repr=False)
    strategy: str = "encrypted"
    token_exp: int = Field(
        default=DEFAULT_TOKEN_EXP,
        description="Token lifetime in seconds. Default 7 days.",
    )
    cookie: CookieSettings = Field(default_factory=CookieSettings)
