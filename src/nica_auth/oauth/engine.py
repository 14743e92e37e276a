"""Multi-provider OAuth login engine.

AuthEngine holds one ProviderClient per configured provider and exposes
a uniform two-call login contract:

1. ``get_auth_url(provider)`` returns the URL to redirect the user to.
2. ``handle_callback(provider, code)`` exchanges the code returned to the
   redirect URI, fetches and normalizes the profile, and hands
   ``AuthCallback(tokens, profile, provider)`` to the caller's
   ``on_profile`` hook, returning whatever the hook returns.

CSRF state is opt-in: with a secret configured, ``create_state`` issues
signed state values, and ``require_state=True`` makes ``handle_callback``
reject callbacks whose state does not verify.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Mapping
from types import MappingProxyType
from typing import Any, Generic, TypeVar

import httpx
import structlog

from nica_auth.errors import (
    InvalidConfigurationError,
    InvalidStateError,
    NoProvidersConfiguredError,
    ProviderNotConfiguredError,
    UnknownProviderError,
)
from nica_auth.oauth.client import ProviderClient
from nica_auth.oauth.config import AuthSettings, ProviderSettings
from nica_auth.oauth.providers import ProviderId
from nica_auth.oauth.state import STATE_TTL_SECONDS, StateSigner
from nica_auth.oauth.types import AuthCallback, CallbackResult
from nica_auth.session.codec import validate_secret

logger = structlog.get_logger()

T = TypeVar("T")

ProfileHook = Callable[[AuthCallback], Awaitable[T] | T]


class AuthEngine(Generic[T]):
    """Dispatch login calls to configured providers.

    Immutable after construction and safe for concurrent use.
    """

    def __init__(
        self,
        providers: Mapping[str | ProviderId, ProviderSettings | Mapping[str, Any]],
        *,
        secret: str | None = None,
        origin: str | None = None,
        on_profile: ProfileHook[T] | None = None,
        require_state: bool = False,
        state_ttl: int = STATE_TTL_SECONDS,
        http_client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            providers: Provider id -> credentials and overrides.
            secret: Optional secret (at least 32 characters) used to sign
                state values.
            origin: Application origin used to build default redirect URIs.
            on_profile: Post-login hook; may be sync or async.
            require_state: Reject callbacks without a valid signed state.
            state_ttl: Lifetime of signed state values in seconds.
            http_client: Shared HTTP client for all providers.
            timeout: Timeout for per-call HTTP clients (None = no timeout).

        Raises:
            NoProvidersConfiguredError: If ``providers`` is empty.
            UnknownProviderError: If a provider is not supported.
            InvalidConfigurationError: If a provider entry is malformed, a
                provider appears twice (keys differing only by case), or
                ``require_state`` is set without a secret.
            MissingScopesError: If a provider resolves to no scopes.
            WeakSecretError: If ``secret`` is shorter than 32 characters.
        """
        if not providers:
            raise NoProvidersConfiguredError("At least one provider must be configured")

        self._state_signer: StateSigner | None = None
        if secret is not None:
            validate_secret(secret, label="auth secret")
            self._state_signer = StateSigner(secret, state_ttl)
        elif require_state:
            raise InvalidConfigurationError("require_state needs an auth secret")

        clients: dict[ProviderId, ProviderClient] = {}
        for name, settings in providers.items():
            client = ProviderClient.from_settings(
                name,
                settings,
                origin=origin,
                http_client=http_client,
                timeout=timeout,
            )
            if client.provider_id in clients:
                raise InvalidConfigurationError(
                    f"Provider configured more than once: {client.provider_id.value}",
                    provider=client.provider_id.value,
                )
            clients[client.provider_id] = client

        self._clients = MappingProxyType(clients)
        self._on_profile = on_profile
        self._require_state = require_state

        logger.info(
            "Auth engine initialized",
            providers=[p.value for p in clients],
            require_state=require_state,
        )

    @classmethod
    def from_settings(
        cls,
        settings: AuthSettings,
        *,
        on_profile: ProfileHook[T] | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> AuthEngine[T]:
        return cls(
            settings.providers,
            secret=settings.secret,
            origin=settings.origin,
            on_profile=on_profile,
            require_state=settings.require_state,
            state_ttl=settings.state_ttl,
            http_client=http_client,
            timeout=timeout,
        )

    @property
    def has_secret(self) -> bool:
        return self._state_signer is not None

    def list_providers(self) -> list[str]:
        """Identifiers of the configured providers."""
        return [provider.value for provider in self._clients]

    def get_client(self, provider: str | ProviderId) -> ProviderClient:
        """Return the client for a configured provider.

        Raises:
            ProviderNotConfiguredError: If the provider is not configured,
                including names outside the built-in registry.
        """
        try:
            provider_id = ProviderId.parse(provider)
        except UnknownProviderError:
            raise ProviderNotConfiguredError(str(provider)) from None
        client = self._clients.get(provider_id)
        if client is None:
            raise ProviderNotConfiguredError(provider_id.value)
        return client

    def get_auth_url(self, provider: str | ProviderId, state: str | None = None) -> str:
        """Authorization URL for a configured provider."""
        return self.get_client(provider).build_authorization_url(state)

    def create_state(self, provider: str | ProviderId) -> str:
        """Issue a signed state value for ``provider``.

        Raises:
            InvalidConfigurationError: If the engine has no secret.
        """
        if self._state_signer is None:
            raise InvalidConfigurationError("Signed state needs an auth secret")
        return self._state_signer.create(provider)

    def verify_state(self, provider: str | ProviderId, state: str | None) -> bool:
        if self._state_signer is None:
            return False
        return self._state_signer.verify(state, provider)

    async def authenticate(
        self,
        provider: str | ProviderId,
        code: str,
        state: str | None = None,
    ) -> AuthCallback:
        """Verify state (when required) and run the provider exchange.

        Raises:
            ProviderNotConfiguredError: If the provider is not configured.
            InvalidStateError: If state is required and does not verify.
            TokenExchangeError: If the code exchange fails.
            ProfileFetchError: If the profile request fails.
        """
        client = self.get_client(provider)

        if self._require_state and not self.verify_state(client.provider_id, state):
            logger.warning("Invalid or expired OAuth state", provider=client.provider_id.value)
            raise InvalidStateError(
                "Invalid or expired authentication request",
                provider=client.provider_id.value,
            )

        result: CallbackResult = await client.handle_callback(code)
        return AuthCallback(tokens=result.tokens, profile=result.profile, provider=client.provider_id)

    async def run_hook(self, callback: AuthCallback) -> T | None:
        """Pass a completed login to ``on_profile``; errors propagate."""
        if self._on_profile is None:
            return None
        data = self._on_profile(callback)
        if inspect.isawaitable(data):
            data = await data
        return data

    async def handle_callback(
        self,
        provider: str | ProviderId,
        code: str,
        state: str | None = None,
    ) -> T | None:
        """Complete a login.

        Args:
            provider: Provider the user authenticated with.
            code: Authorization code from the callback query.
            state: State value from the callback query.

        Returns:
            The ``on_profile`` hook's result, or None without a hook.

        Raises:
            ProviderNotConfiguredError: If the provider is not configured.
            InvalidStateError: If state is required and does not verify.
            TokenExchangeError: If the code exchange fails.
            ProfileFetchError: If the profile request fails.
        """
        return await self.run_hook(await self.authenticate(provider, code, state))
