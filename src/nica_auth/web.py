"""aiohttp request handlers for the login flow.

Routes (with the default prefix):

    GET /api/auth/{provider}/login      redirect to the provider
    GET /api/auth/{provider}/callback   complete login, set session cookie
    GET /api/auth/logout                delete session cookie

Example usage:

    auth = create_auth(get_config(), on_profile=on_profile)
    app = web.Application()
    setup_routes(app, auth, success_url="/dashboard")
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog
from aiohttp import web

from nica_auth.auth import AuthWithSession
from nica_auth.errors import (
    InvalidStateError,
    OAuthProtocolError,
    ProfileNormalizationError,
    ProviderNotConfiguredError,
)
from nica_auth.oauth.providers import ProviderId

logger = structlog.get_logger()

DEFAULT_PREFIX = "/api/auth"


def _text(text: str, status: int) -> web.Response:
    return web.Response(text=text, status=status, content_type="text/plain")


class AuthHandlers:
    """Login, callback and logout handlers bound to one AuthWithSession."""

    def __init__(
        self,
        auth: AuthWithSession[Any],
        *,
        success_url: str = "/",
        logout_url: str = "/",
    ) -> None:
        self._auth = auth
        self._success_url = success_url
        self._logout_url = logout_url

    def _resolve(self, request: web.Request) -> ProviderId | None:
        name = request.match_info.get("provider", "")
        try:
            return self._auth.engine.get_client(name).provider_id
        except ProviderNotConfiguredError:
            logger.warning("Login requested for unavailable provider", provider=name)
            return None

    async def login(self, request: web.Request) -> web.StreamResponse:
        """Redirect the user to the provider's authorization page."""
        provider = self._resolve(request)
        if provider is None:
            return _text("Unknown provider", 404)

        engine = self._auth.engine
        state = engine.create_state(provider) if engine.has_secret else None
        raise web.HTTPFound(engine.get_auth_url(provider, state))

    async def callback(self, request: web.Request) -> web.StreamResponse:
        """Handle the provider's redirect back to the application.

        Steps:
        1. Reject provider-reported errors (sanitized, never echoed)
        2. Exchange the code and fetch the profile
        3. Turn the on_profile result into session data
        4. Set the session cookie and redirect to the success URL
        """
        error = request.query.get("error")
        if error:
            logger.warning(
                "OAuth provider returned error",
                provider=request.match_info.get("provider"),
                error=error,
            )
            # Provider messages are not echoed back
            safe_error = "access_denied" if error == "access_denied" else "authentication_failed"
            return _text(f"Authentication failed: {safe_error}", 401)

        code = request.query.get("code")
        if not code:
            return _text("Missing authorization code", 400)

        provider = self._resolve(request)
        if provider is None:
            return _text("Unknown provider", 404)

        engine = self._auth.engine
        try:
            callback = await engine.authenticate(provider, code, request.query.get("state"))
        except InvalidStateError:
            return _text("Invalid or expired authentication request", 400)
        except (OAuthProtocolError, ProfileNormalizationError) as e:
            logger.error(
                "OAuth callback error",
                provider=provider.value,
                error_type=type(e).__name__,
                status=getattr(e, "status_code", None),
            )
            return _text("Authentication error. Please try again.", 502)

        data = await engine.run_hook(callback)
        if not isinstance(data, Mapping):
            data = callback.profile.to_dict()

        response = web.HTTPFound(self._success_url)
        await self._auth.session.create(data, response=response)
        logger.info("User logged in", provider=provider.value, subject=callback.profile.id)
        raise response

    async def logout(self, request: web.Request) -> web.StreamResponse:
        """Delete the session cookie and redirect."""
        response = web.HTTPFound(self._logout_url)
        await self._auth.session.destroy(response=response)
        logger.info("User logged out")
        raise response


def setup_routes(
    app: web.Application,
    auth: AuthWithSession[Any],
    *,
    prefix: str = DEFAULT_PREFIX,
    success_url: str = "/",
    logout_url: str = "/",
) -> AuthHandlers:
    """Register the login, callback and logout routes on ``app``."""
    handlers = AuthHandlers(auth, success_url=success_url, logout_url=logout_url)
    prefix = prefix.rstrip("/")
    app.router.add_get(f"{prefix}/logout", handlers.logout)
    app.router.add_get(f"{prefix}/{{provider}}/login", handlers.login)
    app.router.add_get(f"{prefix}/{{provider}}/callback", handlers.callback)
    return handlers
