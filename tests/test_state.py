"""Tests for signed OAuth state values."""

from __future__ import annotations

import pytest

from nica_auth.errors import UnknownProviderError, WeakSecretError
from nica_auth.oauth.providers import ProviderId
from nica_auth.oauth.state import STATE_TTL_SECONDS, StateSigner


class TestStateSigner:
    """Tests for StateSigner."""

    def test_create_and_verify(self, secret):
        signer = StateSigner(secret)
        state = signer.create("github")
        assert signer.verify(state, "github") is True
        assert signer.verify(state, ProviderId.GITHUB) is True

    def test_state_uniqueness(self, secret):
        signer = StateSigner(secret)
        states = {signer.create("github") for _ in range(20)}
        assert len(states) == 20

    def test_wrong_provider(self, secret):
        signer = StateSigner(secret)
        assert signer.verify(signer.create("github"), "google") is False

    def test_other_secret(self, secret):
        state = StateSigner(secret).create("github")
        assert StateSigner("z" * 32).verify(state, "github") is False

    def test_expired(self, secret, clock):
        signer = StateSigner(secret, clock=clock)
        state = signer.create("github")

        clock.advance(STATE_TTL_SECONDS)
        assert signer.verify(state, "github") is True

        clock.advance(1)
        assert signer.verify(state, "github") is False

    def test_custom_ttl(self, secret, clock):
        signer = StateSigner(secret, ttl=10, clock=clock)
        state = signer.create("google")
        clock.advance(11)
        assert signer.verify(state, "google") is False

    @pytest.mark.parametrize("state", [None, "", "garbage", "a.b"])
    def test_invalid_values(self, secret, state):
        assert StateSigner(secret).verify(state, "github") is False

    def test_tampered(self, secret):
        signer = StateSigner(secret)
        state = signer.create("github")
        body, signature = state.split(".")
        assert signer.verify(f"{body}x.{signature}", "github") is False

    def test_weak_secret(self):
        with pytest.raises(WeakSecretError):
            StateSigner("short")

    def test_unknown_provider(self, secret):
        with pytest.raises(UnknownProviderError):
            StateSigner(secret).create("myspace")
