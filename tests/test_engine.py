"""Tests for the multi-provider AuthEngine."""

from __future__ import annotations

import httpx
import pytest

from nica_auth.errors import (
    InvalidConfigurationError,
    InvalidStateError,
    NoProvidersConfiguredError,
    ProviderNotConfiguredError,
    UnknownProviderError,
    WeakSecretError,
)
from nica_auth.oauth.config import AuthSettings, ProviderSettings
from nica_auth.oauth.engine import AuthEngine
from nica_auth.oauth.providers import ProviderId

CREDS = {"client_id": "cid", "client_secret": "csecret"}


def _github_transport(calls: list[str]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        if request.url.path == "/login/oauth/access_token":
            return httpx.Response(200, json={"access_token": "at", "token_type": "bearer"})
        if request.url.path == "/user":
            return httpx.Response(
                200, json={"id": 42, "login": "octocat", "email": "octo@x.io", "name": "Octo"}
            )
        return httpx.Response(404)

    return httpx.MockTransport(handler)


@pytest.fixture
def calls() -> list[str]:
    return []


@pytest.fixture
def http(calls) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=_github_transport(calls))


class TestAuthEngineConfig:
    """Tests for engine construction."""

    def test_no_providers(self):
        with pytest.raises(NoProvidersConfiguredError):
            AuthEngine({})

    def test_weak_secret(self):
        with pytest.raises(WeakSecretError):
            AuthEngine({"github": CREDS}, secret="too-short")

    def test_invalid_provider_entry(self):
        with pytest.raises(InvalidConfigurationError):
            AuthEngine({"github": {"client_id": "only-id"}})

    def test_unknown_provider_entry(self):
        with pytest.raises(UnknownProviderError):
            AuthEngine({"myspace": CREDS})

    def test_duplicate_provider_keys(self):
        with pytest.raises(InvalidConfigurationError, match="more than once"):
            AuthEngine({"google": CREDS, "GOOGLE": {**CREDS, "client_id": "other"}})

    def test_require_state_needs_secret(self):
        with pytest.raises(InvalidConfigurationError, match="secret"):
            AuthEngine({"github": CREDS}, require_state=True)

    def test_list_providers(self):
        engine = AuthEngine({"github": CREDS, "Google": ProviderSettings(**CREDS)})
        assert engine.list_providers() == ["github", "google"]

    def test_from_settings(self, secret):
        settings = AuthSettings(
            secret=secret,
            origin="https://app.example.com",
            require_state=True,
            providers={"gitlab": ProviderSettings(**CREDS)},
        )
        engine = AuthEngine.from_settings(settings)
        assert engine.list_providers() == ["gitlab"]
        assert engine.has_secret
        assert engine.get_client("gitlab").redirect_uri == (
            "https://app.example.com/api/auth/gitlab/callback"
        )


class TestGetAuthUrl:
    def test_delegates_to_client(self):
        engine = AuthEngine({"github": CREDS})
        assert engine.get_auth_url("github") == engine.get_client("github").build_authorization_url()
        assert engine.get_auth_url(ProviderId.GITHUB, "st").endswith("&state=st")

    def test_not_configured(self):
        engine = AuthEngine({"github": CREDS})
        with pytest.raises(ProviderNotConfiguredError, match="google"):
            engine.get_auth_url("google")

    def test_name_outside_registry_is_not_configured(self):
        engine = AuthEngine({"github": CREDS})
        with pytest.raises(ProviderNotConfiguredError, match="myspace") as exc_info:
            engine.get_auth_url("myspace")
        assert not isinstance(exc_info.value, ValueError)
        assert exc_info.value.provider == "myspace"


class TestHandleCallback:
    """Tests for handle_callback and the on_profile hook."""

    @pytest.mark.asyncio
    async def test_without_hook(self, http, calls):
        engine = AuthEngine({"github": CREDS}, http_client=http)
        assert await engine.handle_callback("github", "code") is None
        assert calls == ["/login/oauth/access_token", "/user"]

    @pytest.mark.asyncio
    async def test_sync_hook(self, http):
        seen = []

        def on_profile(callback):
            seen.append(callback)
            return {"user_id": callback.profile.id}

        engine = AuthEngine({"github": CREDS}, on_profile=on_profile, http_client=http)
        result = await engine.handle_callback("github", "code")

        assert result == {"user_id": "42"}
        assert seen[0].provider is ProviderId.GITHUB
        assert seen[0].tokens.access_token == "at"
        assert seen[0].profile.email == "octo@x.io"

    @pytest.mark.asyncio
    async def test_async_hook(self, http):
        async def on_profile(callback):
            return callback.profile.username

        engine = AuthEngine({"github": CREDS}, on_profile=on_profile, http_client=http)
        assert await engine.handle_callback("github", "code") == "octocat"

    @pytest.mark.asyncio
    async def test_hook_error_propagates(self, http):
        def on_profile(callback):
            raise PermissionError("banned")

        engine = AuthEngine({"github": CREDS}, on_profile=on_profile, http_client=http)
        with pytest.raises(PermissionError, match="banned"):
            await engine.handle_callback("github", "code")

    @pytest.mark.asyncio
    async def test_not_configured(self, http, calls):
        engine = AuthEngine({"github": CREDS}, http_client=http)
        with pytest.raises(ProviderNotConfiguredError):
            await engine.handle_callback("gitlab", "code")
        assert calls == []

    @pytest.mark.asyncio
    async def test_name_outside_registry(self, http, calls):
        engine = AuthEngine({"github": CREDS}, http_client=http)
        with pytest.raises(ProviderNotConfiguredError, match="foo"):
            await engine.handle_callback("foo", "code")
        assert calls == []


class TestSignedState:
    """Tests for opt-in CSRF state."""

    def test_create_state_needs_secret(self):
        engine = AuthEngine({"github": CREDS})
        with pytest.raises(InvalidConfigurationError):
            engine.create_state("github")
        assert engine.verify_state("github", "anything") is False

    def test_create_and_verify(self, secret):
        engine = AuthEngine({"github": CREDS}, secret=secret)
        state = engine.create_state("github")
        assert engine.verify_state("github", state)
        assert not engine.verify_state("google", state)

    @pytest.mark.asyncio
    async def test_required_state_rejected_before_network(self, secret, http, calls):
        engine = AuthEngine({"github": CREDS}, secret=secret, require_state=True, http_client=http)

        with pytest.raises(InvalidStateError):
            await engine.handle_callback("github", "code")
        with pytest.raises(InvalidStateError):
            await engine.handle_callback("github", "code", "forged")
        assert calls == []

    @pytest.mark.asyncio
    async def test_required_state_accepted(self, secret, http):
        engine = AuthEngine(
            {"github": CREDS},
            secret=secret,
            require_state=True,
            on_profile=lambda cb: cb.profile.id,
            http_client=http,
        )
        state = engine.create_state("github")
        assert await engine.handle_callback("github", "code", state) == "42"

    @pytest.mark.asyncio
    async def test_state_for_other_provider_rejected(self, secret, http):
        engine = AuthEngine(
            {"github": CREDS, "gitlab": CREDS}, secret=secret, require_state=True, http_client=http
        )
        with pytest.raises(InvalidStateError):
            await engine.handle_callback("github", "code", engine.create_state("gitlab"))

    def test_unrequired_state_is_optional(self, secret):
        engine = AuthEngine({"github": CREDS}, secret=secret)
        assert "state=" not in engine.get_auth_url("github")
