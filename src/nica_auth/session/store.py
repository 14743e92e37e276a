"""Cookie transport for session tokens.

SessionStore glues SessionCodec to aiohttp cookies. Tokens are read from
an explicit request or, when none is given, from the ambient cookie jar
bound for the current task by ``cookie_context`` or ``session_middleware``.
Writes go to an explicit response or are queued on the ambient jar and
applied to the response by the middleware.

Usage:
    store = SessionStore(SessionCodec(secret), CookieSettings(name="sid"))

    async def handler(request):
        session = await store.get(request=request)
        response = web.json_response(session or {})
        await store.create({"user_id": "42"}, response=response)
        return response
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog
from aiohttp import web

from nica_auth.errors import InvalidConfigurationError
from nica_auth.session.codec import SessionCodec, strip_reserved
from nica_auth.session.config import SAME_SITE_VALUES, CookieSettings, SessionSettings

logger = structlog.get_logger()


class CookieSource(Protocol):
    """Anything exposing request cookies (aiohttp ``web.Request``)."""

    @property
    def cookies(self) -> Mapping[str, str]: ...


@dataclass
class AmbientCookies:
    """Cookie jar bound to the current request context.

    Reads see pending writes first, then the incoming request cookies.
    """

    incoming: dict[str, str] = field(default_factory=dict)
    pending: dict[str, tuple[str | None, dict[str, Any]]] = field(default_factory=dict)

    def get(self, name: str) -> str | None:
        if name in self.pending:
            return self.pending[name][0]
        return self.incoming.get(name)

    def set(self, name: str, value: str, **attributes: Any) -> None:
        self.pending[name] = (value, attributes)

    def delete(self, name: str, **attributes: Any) -> None:
        self.pending[name] = (None, attributes)

    def apply(self, response: web.StreamResponse) -> None:
        """Write pending operations onto a response."""
        for name, (value, attributes) in self.pending.items():
            if value is None:
                response.del_cookie(name, **attributes)
            else:
                response.set_cookie(name, value, **attributes)
        self.pending.clear()


_ambient: ContextVar[AmbientCookies | None] = ContextVar("nica_ambient_cookies", default=None)


@contextmanager
def cookie_context(cookies: Mapping[str, str] | None = None) -> Iterator[AmbientCookies]:
    """Bind an ambient cookie jar for the duration of the block."""
    jar = AmbientCookies(incoming=dict(cookies or {}))
    reset_token = _ambient.set(jar)
    try:
        yield jar
    finally:
        _ambient.reset(reset_token)


def current_cookies() -> AmbientCookies | None:
    """The ambient cookie jar, if one is bound."""
    return _ambient.get()


@web.middleware
async def session_middleware(
    request: web.Request,
    handler: Callable[[web.Request], Any],
) -> web.StreamResponse:
    """aiohttp middleware binding the ambient cookie jar per request."""
    with cookie_context(request.cookies) as jar:
        try:
            response = await handler(request)
        except web.HTTPException as exc:
            # Raised redirects still carry the session cookie.
            jar.apply(exc)
            raise
    jar.apply(response)
    return response


def validate_cookie(cookie: CookieSettings) -> CookieSettings:
    """Check cookie attributes.

    Raises:
        InvalidConfigurationError: On an empty name, a non-positive
            max_age, or an unknown same_site value.
    """
    if not cookie.name:
        raise InvalidConfigurationError("Cookie name cannot be empty")
    if cookie.max_age is not None and cookie.max_age <= 0:
        raise InvalidConfigurationError(
            "Cookie max_age must be a positive number", max_age=cookie.max_age
        )
    if cookie.same_site.lower() not in SAME_SITE_VALUES:
        raise InvalidConfigurationError(
            "Cookie same_site must be 'lax', 'strict', or 'none'", same_site=cookie.same_site
        )
    return cookie


class SessionStore:
    """Persist session tokens in a cookie."""

    def __init__(self, codec: SessionCodec, cookie: CookieSettings | None = None) -> None:
        """Initialize the store.

        Args:
            codec: Codec producing and verifying tokens.
            cookie: Cookie attributes (defaults apply when omitted).

        Raises:
            InvalidConfigurationError: If a cookie attribute is invalid.
        """
        self.codec = codec
        self.cookie = validate_cookie(cookie or CookieSettings())

    @classmethod
    def from_settings(
        cls,
        settings: SessionSettings,
        *,
        clock: Callable[[], float] = time.time,
    ) -> SessionStore:
        codec = SessionCodec(
            settings.secret,
            settings.strategy,
            settings.token_exp,
            clock=clock,
        )
        return cls(codec, settings.cookie)

    @property
    def cookie_name(self) -> str:
        return self.cookie.name

    @property
    def max_age(self) -> int:
        """Cookie lifetime in seconds; the token lifetime unless overridden."""
        return self.cookie.max_age if self.cookie.max_age is not None else self.codec.token_exp

    def cookie_attributes(self) -> dict[str, Any]:
        """Keyword arguments for ``StreamResponse.set_cookie``."""
        return {
            "max_age": self.max_age,
            "httponly": self.cookie.http_only,
            "secure": self.cookie.secure,
            "samesite": self.cookie.same_site.capitalize(),
            "path": self.cookie.path,
        }

    def _jar(self) -> AmbientCookies:
        jar = current_cookies()
        if jar is None:
            raise RuntimeError(
                "No request/response given and no ambient cookie store is bound; "
                "use session_middleware or cookie_context()"
            )
        return jar

    def read_token(self, request: CookieSource | None = None) -> str | None:
        """Read the raw token from a request or the ambient jar."""
        if request is not None:
            return request.cookies.get(self.cookie.name)
        return self._jar().get(self.cookie.name)

    async def create(
        self,
        data: Mapping[str, Any],
        *,
        response: web.StreamResponse | None = None,
    ) -> str:
        """Encode ``data`` into a token and set the session cookie.

        Returns:
            The token that was written.
        """
        token = self.codec.encode(data)
        if response is not None:
            response.set_cookie(self.cookie.name, token, **self.cookie_attributes())
        else:
            self._jar().set(self.cookie.name, token, **self.cookie_attributes())
        return token

    async def get(self, *, request: CookieSource | None = None) -> dict[str, Any] | None:
        """Return the active session's data, or None.

        Expired, forged, and malformed tokens all read as no session.
        """
        token = self.read_token(request)
        if not token:
            return None
        payload = self.codec.decode(token, validate_expiry=True)
        if payload is None:
            logger.debug("Ignoring invalid session cookie", cookie=self.cookie.name)
            return None
        return strip_reserved(payload)

    async def peek(self, *, request: CookieSource | None = None) -> dict[str, Any] | None:
        """Return the payload including ``iat``/``exp``, even if expired.

        For diagnostics only; never base an authorization decision on it.
        """
        token = self.read_token(request)
        if not token:
            return None
        return self.codec.decode(token, validate_expiry=False)

    async def destroy(self, *, response: web.StreamResponse | None = None) -> None:
        """Delete the session cookie."""
        if response is not None:
            response.del_cookie(self.cookie.name, path=self.cookie.path)
        else:
            self._jar().delete(self.cookie.name, path=self.cookie.path)
