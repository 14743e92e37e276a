"""Tests for the cookie-backed session store."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
from aiohttp import web
from aiohttp.test_utils import make_mocked_request

from nica_auth.errors import InvalidConfigurationError, WeakSecretError
from nica_auth.session.codec import SessionCodec
from nica_auth.session.config import CookieSettings, SessionSettings
from nica_auth.session.store import (
    SessionStore,
    cookie_context,
    current_cookies,
    session_middleware,
    validate_cookie,
)


def _request(cookies: dict[str, str]) -> SimpleNamespace:
    return SimpleNamespace(cookies=cookies)


@pytest.fixture
def store(secret, clock) -> SessionStore:
    return SessionStore(SessionCodec(secret, token_exp=3600, clock=clock))


class TestCookieSettings:
    """Tests for cookie attribute validation."""

    def test_defaults(self):
        cookie = validate_cookie(CookieSettings())
        assert cookie.name == "nica_session"
        assert cookie.max_age is None
        assert cookie.http_only is True
        assert cookie.secure is True
        assert cookie.same_site == "lax"
        assert cookie.path == "/"

    def test_empty_name(self):
        with pytest.raises(InvalidConfigurationError, match="name cannot be empty"):
            validate_cookie(CookieSettings(name=""))

    @pytest.mark.parametrize("max_age", [0, -10])
    def test_non_positive_max_age(self, max_age):
        with pytest.raises(InvalidConfigurationError, match="max_age"):
            validate_cookie(CookieSettings(max_age=max_age))

    def test_invalid_same_site(self):
        with pytest.raises(InvalidConfigurationError, match="same_site"):
            validate_cookie(CookieSettings(same_site="sometimes"))

    def test_store_validates_cookie(self, secret):
        with pytest.raises(InvalidConfigurationError):
            SessionStore(SessionCodec(secret), CookieSettings(name=""))


class TestSessionStoreFromSettings:
    def test_from_settings(self, secret):
        settings = SessionSettings(
            secret=secret,
            strategy="signed",
            token_exp=120,
            cookie=CookieSettings(name="sid"),
        )
        store = SessionStore.from_settings(settings)
        assert store.cookie_name == "sid"
        assert store.codec.token_exp == 120
        assert store.max_age == 120

    def test_from_settings_requires_secret(self):
        with pytest.raises(WeakSecretError):
            SessionStore.from_settings(SessionSettings())


class TestExplicitTransport:
    """Tests with an explicit request or response."""

    @pytest.mark.asyncio
    async def test_create_sets_cookie(self, store):
        response = web.Response()
        token = await store.create({"user_id": "42"}, response=response)

        cookie = response.cookies["nica_session"]
        assert cookie.value == token
        assert cookie["max-age"] == "3600"
        assert cookie["httponly"] is True
        assert cookie["secure"] is True
        assert cookie["samesite"] == "Lax"
        assert cookie["path"] == "/"

    @pytest.mark.asyncio
    async def test_cookie_max_age_override(self, secret):
        store = SessionStore(SessionCodec(secret), CookieSettings(max_age=60, same_site="strict"))
        response = web.Response()
        await store.create({"user_id": "1"}, response=response)

        cookie = response.cookies["nica_session"]
        assert cookie["max-age"] == "60"
        assert cookie["samesite"] == "Strict"

    @pytest.mark.asyncio
    async def test_get_strips_reserved_fields(self, store):
        token = await store.create({"user_id": "42"}, response=web.Response())
        session = await store.get(request=_request({"nica_session": token}))
        assert session == {"user_id": "42"}

    @pytest.mark.asyncio
    async def test_get_without_cookie(self, store):
        assert await store.get(request=_request({})) is None

    @pytest.mark.asyncio
    async def test_get_with_garbage_cookie(self, store):
        assert await store.get(request=_request({"nica_session": "garbage"})) is None

    @pytest.mark.asyncio
    async def test_get_expired(self, store, clock):
        token = await store.create({"user_id": "42"}, response=web.Response())
        clock.advance(3601)
        request = _request({"nica_session": token})

        assert await store.get(request=request) is None
        peeked = await store.peek(request=request)
        assert peeked["user_id"] == "42"
        assert peeked["exp"] == peeked["iat"] + 3600

    @pytest.mark.asyncio
    async def test_destroy_expires_cookie(self, store):
        response = web.Response()
        await store.destroy(response=response)

        cookie = response.cookies["nica_session"]
        assert cookie.value == ""
        assert cookie["max-age"] == "0"
        assert cookie["path"] == "/"


class TestAmbientCookies:
    """Tests for the context-bound cookie jar."""

    @pytest.mark.asyncio
    async def test_no_ambient_store(self, store):
        assert current_cookies() is None
        with pytest.raises(RuntimeError, match="ambient cookie store"):
            await store.get()
        with pytest.raises(RuntimeError):
            await store.create({"user_id": "1"})

    @pytest.mark.asyncio
    async def test_create_then_get(self, store):
        with cookie_context() as jar:
            token = await store.create({"user_id": "7"})
            assert jar.pending["nica_session"][0] == token
            assert await store.get() == {"user_id": "7"}
        assert current_cookies() is None

    @pytest.mark.asyncio
    async def test_reads_incoming_cookies(self, store):
        token = await store.create({"user_id": "7"}, response=web.Response())
        with cookie_context({"nica_session": token}):
            assert await store.get() == {"user_id": "7"}
            assert (await store.peek())["user_id"] == "7"

    @pytest.mark.asyncio
    async def test_destroy_hides_session(self, store):
        token = await store.create({"user_id": "7"}, response=web.Response())
        with cookie_context({"nica_session": token}) as jar:
            await store.destroy()
            assert await store.get() is None
            assert jar.pending["nica_session"] == (None, {"path": "/"})

    @pytest.mark.asyncio
    async def test_apply_writes_pending(self, store):
        response = web.Response()
        with cookie_context() as jar:
            token = await store.create({"user_id": "7"})
            jar.apply(response)
            assert jar.pending == {}
        assert response.cookies["nica_session"].value == token


class TestSessionMiddleware:
    """Tests for session_middleware."""

    @pytest.mark.asyncio
    async def test_applies_session_to_response(self, store):
        async def handler(request):
            await store.create({"user_id": "9"})
            return web.Response(text="ok")

        response = await session_middleware(make_mocked_request("GET", "/"), handler)

        token = response.cookies["nica_session"].value
        assert store.codec.decode(token)["user_id"] == "9"

    @pytest.mark.asyncio
    async def test_applies_session_to_raised_redirect(self, store):
        async def handler(request):
            await store.create({"user_id": "9"})
            raise web.HTTPFound("/home")

        with pytest.raises(web.HTTPFound) as exc_info:
            await session_middleware(make_mocked_request("GET", "/"), handler)

        assert "nica_session" in exc_info.value.cookies

    @pytest.mark.asyncio
    async def test_jar_is_request_scoped(self, store):
        async def handler(request):
            return web.Response()

        await session_middleware(make_mocked_request("GET", "/"), handler)
        assert current_cookies() is None
