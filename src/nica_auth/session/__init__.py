"""Stateless session tokens carried in a cookie.

Example usage:

    from nica_auth.session import SessionCodec, SessionStore, session_middleware

    store = SessionStore(SessionCodec(secret, "signed", token_exp=3600))
    app = web.Application(middlewares=[session_middleware])

    # In a handler, with the middleware installed
    await store.create({"user_id": "42"})
    session = await store.get()
"""

from nica_auth.session.codec import (
    DEFAULT_TOKEN_EXP,
    MIN_SECRET_LENGTH,
    SessionCodec,
    SessionStrategy,
    strip_reserved,
    validate_secret,
)
from nica_auth.session.config import CookieSettings, SessionSettings
from nica_auth.session.store import (
    AmbientCookies,
    SessionStore,
    cookie_context,
    current_cookies,
    session_middleware,
)

__all__ = [
    "DEFAULT_TOKEN_EXP",
    "MIN_SECRET_LENGTH",
    "AmbientCookies",
    "CookieSettings",
    "SessionCodec",
    "SessionSettings",
    "SessionStore",
    "SessionStrategy",
    "cookie_context",
    "current_cookies",
    "session_middleware",
    "strip_reserved",
    "validate_secret",
]
