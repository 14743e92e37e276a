"""Signed OAuth state values (CSRF protection).

A state value is a short-lived, HMAC-signed envelope holding a random
nonce and the provider it was issued for. It needs no server-side storage:
the callback verifies the signature, the provider, and the expiry.
"""

from __future__ import annotations

import secrets
import time
from collections.abc import Callable

from nica_auth.oauth.providers import ProviderId
from nica_auth.session.codec import SessionCodec, SessionStrategy

STATE_TTL_SECONDS = 600


class StateSigner:
    """Issue and verify signed state values."""

    def __init__(
        self,
        secret: str,
        ttl: int = STATE_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the signer.

        Raises:
            WeakSecretError: If the secret is shorter than 32 characters.
            InvalidConfigurationError: If ttl is not a positive integer.
        """
        self._codec = SessionCodec(secret, SessionStrategy.SIGNED, ttl, clock=clock)

    def create(self, provider: str | ProviderId) -> str:
        return self._codec.encode(
            {
                "nonce": secrets.token_urlsafe(16),
                "provider": ProviderId.parse(provider).value,
            }
        )

    def verify(self, state: str | None, provider: str | ProviderId) -> bool:
        """True if the state was issued by us, for this provider, and is fresh."""
        payload = self._codec.decode(state, validate_expiry=True)
        if payload is None:
            return False
        expected = ProviderId.parse(provider).value
        issued_for = payload.get("provider")
        if not isinstance(issued_for, str):
            return False
        return secrets.compare_digest(issued_for, expected)
