"""Canonical, provider-independent OAuth result types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from nica_auth.oauth.providers import ProviderId


@dataclass(frozen=True)
class CanonicalTokens:
    """Normalized token response.

    The raw provider response is retained for diagnostics but kept out of
    the repr, since it contains the access token.
    """

    access_token: str = field(repr=False)
    refresh_token: str | None = field(default=None, repr=False)
    token_type: str | None = None
    expires_in: int | None = None
    """Lifetime of the access token in seconds."""

    raw: dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass(frozen=True)
class CanonicalProfile:
    """Normalized user profile.

    ``id`` is the provider-stable subject identifier, always a string.
    """

    id: str
    provider: str
    email: str | None = None
    name: str | None = None
    username: str | None = None
    picture: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    def to_dict(self) -> dict[str, Any]:
        """Serializable summary without the raw provider response."""
        return {
            "id": self.id,
            "provider": self.provider,
            "email": self.email,
            "name": self.name,
            "username": self.username,
            "picture": self.picture,
        }


@dataclass(frozen=True)
class CallbackResult:
    """Result of a completed code exchange and profile fetch."""

    tokens: CanonicalTokens
    profile: CanonicalProfile


@dataclass(frozen=True)
class AuthCallback:
    """Argument passed to the caller's post-login hook."""

    tokens: CanonicalTokens
    profile: CanonicalProfile
    provider: ProviderId
