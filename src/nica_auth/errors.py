"""nica-auth exception hierarchy.

All library errors inherit from NicaAuthError, so callers can catch
everything at once or single out one failure kind.

Configuration errors are raised at construction time and also subclass
ValueError. Protocol errors carry the upstream HTTP status so callers can
inspect what the provider said.
"""

from __future__ import annotations

from typing import Any


class NicaAuthError(Exception):
    """Base exception for all nica-auth errors."""

    def __init__(self, message: str, **context: Any) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error message.
            **context: Additional context (provider, field, ...).
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx})"
        return self.message


class ConfigurationError(NicaAuthError, ValueError):
    """Invalid configuration detected while constructing a component."""


class InvalidConfigurationError(ConfigurationError):
    """A configuration value is missing or malformed."""


class WeakSecretError(ConfigurationError):
    """A secret is missing or shorter than the required minimum length."""


class MissingScopesError(ConfigurationError):
    """A provider resolved to an empty scope list."""


class NoProvidersConfiguredError(ConfigurationError):
    """AuthEngine was constructed without any provider."""


class UnknownProviderError(ConfigurationError, LookupError):
    """The provider identifier is not in the built-in registry."""

    def __init__(self, provider: str, **context: Any) -> None:
        super().__init__(f"Unsupported provider: {provider}", provider=provider, **context)
        self.provider = provider


class ProviderNotConfiguredError(NicaAuthError, LookupError):
    """The provider is supported but was not configured on this engine."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"Provider not configured: {provider}", provider=provider)
        self.provider = provider


class OAuthProtocolError(NicaAuthError):
    """An HTTP call to the identity provider failed.

    Attributes:
        provider: Provider identifier.
        status_code: HTTP status returned by the provider (None when the
            response was a 2xx but unusable).
        status_text: Reason phrase or provider error description.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        status_code: int | None = None,
        status_text: str = "",
    ) -> None:
        super().__init__(
            message,
            provider=provider,
            status_code=status_code,
            status_text=status_text,
        )
        self.provider = provider
        self.status_code = status_code
        self.status_text = status_text


class TokenExchangeError(OAuthProtocolError):
    """Exchanging the authorization code for tokens failed."""


class ProfileFetchError(OAuthProtocolError):
    """Fetching the user profile failed."""


class ProfileNormalizationError(NicaAuthError):
    """A raw provider profile could not be normalized (missing subject id)."""


class InvalidStateError(NicaAuthError):
    """The OAuth state parameter is missing, forged, or expired."""
