"""Tests for the aiohttp login, callback and logout handlers."""

from __future__ import annotations

from urllib.parse import parse_qs, urlencode, urlsplit

import httpx
import pytest
from aiohttp import web
from aiohttp.test_utils import make_mocked_request

from nica_auth.auth import AuthWithSession, with_session
from nica_auth.oauth.engine import AuthEngine
from nica_auth.session.config import SessionSettings
from nica_auth.web import AuthHandlers, setup_routes

CREDS = {"client_id": "cid", "client_secret": "csecret"}


def _github_http(token_status: int = 200, profile: dict | None = None) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/login/oauth/access_token":
            if token_status != 200:
                return httpx.Response(token_status)
            return httpx.Response(200, json={"access_token": "at"})
        if profile is not None:
            return httpx.Response(200, json=profile)
        return httpx.Response(200, json={"id": 42, "login": "octocat", "email": "octo@x.io"})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _auth(
    session_secret: str,
    *,
    token_status: int = 200,
    profile: dict | None = None,
    **engine_kwargs,
) -> AuthWithSession:
    http = _github_http(token_status, profile)
    engine = AuthEngine({"github": CREDS}, http_client=http, **engine_kwargs)
    return with_session(engine, SessionSettings(secret=session_secret))


def _request(path: str, provider: str | None = None) -> web.Request:
    match_info = {"provider": provider} if provider is not None else {}
    return make_mocked_request("GET", path, match_info=match_info)


class TestSetupRoutes:
    def test_registers_routes(self, secret):
        app = web.Application()
        handlers = setup_routes(app, _auth(secret))

        paths = {route.resource.canonical for route in app.router.routes()}
        assert "/api/auth/{provider}/login" in paths
        assert "/api/auth/{provider}/callback" in paths
        assert "/api/auth/logout" in paths
        assert isinstance(handlers, AuthHandlers)

    def test_custom_prefix(self, secret):
        app = web.Application()
        setup_routes(app, _auth(secret), prefix="/auth/")
        paths = {route.resource.canonical for route in app.router.routes()}
        assert "/auth/{provider}/callback" in paths


class TestLogin:
    """Tests for the login redirect."""

    @pytest.mark.asyncio
    async def test_redirects_to_provider(self, secret):
        handlers = AuthHandlers(_auth(secret))
        with pytest.raises(web.HTTPFound) as exc_info:
            await handlers.login(_request("/api/auth/github/login", "github"))

        location = exc_info.value.location
        assert location.startswith("https://github.com/login/oauth/authorize?")
        assert "state" not in parse_qs(urlsplit(location).query)

    @pytest.mark.asyncio
    async def test_signed_state_when_secret_set(self, secret):
        auth = _auth(secret, secret="e" * 32)
        handlers = AuthHandlers(auth)
        with pytest.raises(web.HTTPFound) as exc_info:
            await handlers.login(_request("/api/auth/github/login", "github"))

        state = parse_qs(urlsplit(exc_info.value.location).query)["state"][0]
        assert auth.engine.verify_state("github", state)

    @pytest.mark.asyncio
    async def test_unknown_provider(self, secret):
        handlers = AuthHandlers(_auth(secret))
        response = await handlers.login(_request("/api/auth/myspace/login", "myspace"))
        assert response.status == 404

    @pytest.mark.asyncio
    async def test_unconfigured_provider(self, secret):
        handlers = AuthHandlers(_auth(secret))
        response = await handlers.login(_request("/api/auth/google/login", "google"))
        assert response.status == 404


class TestCallback:
    """Tests for the callback handler."""

    @pytest.mark.asyncio
    async def test_success_sets_session(self, secret):
        auth = _auth(secret, on_profile=lambda cb: {"user_id": cb.profile.id})
        handlers = AuthHandlers(auth, success_url="/dashboard")

        with pytest.raises(web.HTTPFound) as exc_info:
            await handlers.callback(_request("/api/auth/github/callback?code=abc", "github"))

        redirect = exc_info.value
        assert redirect.location == "/dashboard"
        token = redirect.cookies["nica_session"].value
        payload = auth.session.codec.decode(token)
        assert payload["user_id"] == "42"

    @pytest.mark.asyncio
    async def test_profile_summary_without_hook(self, secret):
        auth = _auth(secret)
        handlers = AuthHandlers(auth)

        with pytest.raises(web.HTTPFound) as exc_info:
            await handlers.callback(_request("/api/auth/github/callback?code=abc", "github"))

        payload = auth.session.codec.decode(exc_info.value.cookies["nica_session"].value)
        assert payload["id"] == "42"
        assert payload["provider"] == "github"
        assert payload["email"] == "octo@x.io"

    @pytest.mark.asyncio
    async def test_provider_error_is_sanitized(self, secret):
        handlers = AuthHandlers(_auth(secret))
        response = await handlers.callback(
            _request(
                "/api/auth/github/callback?error=server_error&error_description=%3Cscript%3E",
                "github",
            )
        )
        assert response.status == 401
        assert response.text == "Authentication failed: authentication_failed"

    @pytest.mark.asyncio
    async def test_access_denied(self, secret):
        handlers = AuthHandlers(_auth(secret))
        response = await handlers.callback(
            _request("/api/auth/github/callback?error=access_denied", "github")
        )
        assert response.status == 401
        assert response.text == "Authentication failed: access_denied"

    @pytest.mark.asyncio
    async def test_missing_code(self, secret):
        handlers = AuthHandlers(_auth(secret))
        response = await handlers.callback(_request("/api/auth/github/callback", "github"))
        assert response.status == 400

    @pytest.mark.asyncio
    async def test_unknown_provider(self, secret):
        handlers = AuthHandlers(_auth(secret))
        response = await handlers.callback(_request("/api/auth/nope/callback?code=abc", "nope"))
        assert response.status == 404

    @pytest.mark.asyncio
    async def test_token_failure(self, secret):
        handlers = AuthHandlers(_auth(secret, token_status=401))
        response = await handlers.callback(_request("/api/auth/github/callback?code=abc", "github"))
        assert response.status == 502
        assert "Unauthorized" not in response.text

    @pytest.mark.asyncio
    async def test_profile_without_subject(self, secret):
        handlers = AuthHandlers(_auth(secret, profile={"login": "ghost", "email": "g@x.io"}))
        response = await handlers.callback(_request("/api/auth/github/callback?code=abc", "github"))
        assert response.status == 502
        assert response.text == "Authentication error. Please try again."

    @pytest.mark.asyncio
    async def test_invalid_state(self, secret):
        auth = _auth(secret, secret="e" * 32, require_state=True)
        handlers = AuthHandlers(auth)
        response = await handlers.callback(
            _request("/api/auth/github/callback?code=abc&state=forged", "github")
        )
        assert response.status == 400

    @pytest.mark.asyncio
    async def test_valid_state(self, secret):
        auth = _auth(secret, secret="e" * 32, require_state=True)
        state = auth.engine.create_state("github")
        handlers = AuthHandlers(auth)

        query = urlencode({"code": "abc", "state": state})
        with pytest.raises(web.HTTPFound):
            await handlers.callback(_request(f"/api/auth/github/callback?{query}", "github"))


class TestLogout:
    @pytest.mark.asyncio
    async def test_clears_cookie(self, secret):
        handlers = AuthHandlers(_auth(secret), logout_url="/bye")
        with pytest.raises(web.HTTPFound) as exc_info:
            await handlers.logout(_request("/api/auth/logout"))

        redirect = exc_info.value
        assert redirect.location == "/bye"
        assert redirect.cookies["nica_session"]["max-age"] == "0"
