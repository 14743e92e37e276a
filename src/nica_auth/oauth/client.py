"""Per-provider OAuth client.

ProviderClient is bound to one provider's credentials and redirect URI.
It builds the authorization URL and drives the authorization-code
exchange followed by the profile fetch:

    exchange_code -> normalize_tokens -> fetch_profile -> normalize_profile

A failure at any stage propagates unchanged and no later stage runs.
The only soft failure is the optional profile enrichment step.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import quote, urlencode

import httpx
import structlog

from nica_auth.errors import ProfileFetchError, TokenExchangeError
from nica_auth.oauth.config import ProviderSettings, ResolvedProvider, resolve_provider
from nica_auth.oauth.fetchers import ProfileRequest
from nica_auth.oauth.providers import ProviderId
from nica_auth.oauth.types import CallbackResult, CanonicalProfile, CanonicalTokens

logger = structlog.get_logger()


class ProviderClient:
    """OAuth 2.0 authorization-code client for a single provider.

    Immutable after construction and safe to share between concurrent
    requests. No retries and no internal timeout: pass ``timeout`` or a
    preconfigured ``http_client`` to bound network calls.
    """

    def __init__(
        self,
        provider: ResolvedProvider,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            provider: Fully resolved provider (see ``resolve_provider``).
            http_client: Shared HTTP client; it is reused and never closed.
                When omitted, a client is opened per call.
            timeout: Timeout for per-call clients (None = no timeout).
        """
        self._provider = provider
        self._http_client = http_client
        self._timeout = timeout

    @classmethod
    def from_settings(
        cls,
        provider: str | ProviderId,
        settings: ProviderSettings | Mapping[str, Any],
        *,
        origin: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> ProviderClient:
        """Resolve settings and build a client in one step."""
        return cls(
            resolve_provider(provider, settings, origin),
            http_client=http_client,
            timeout=timeout,
        )

    @property
    def provider_id(self) -> ProviderId:
        return self._provider.id

    @property
    def redirect_uri(self) -> str:
        return self._provider.redirect_uri

    @property
    def scopes(self) -> tuple[str, ...]:
        return self._provider.scopes

    def __repr__(self) -> str:
        return f"ProviderClient(provider={self._provider.id.value!r}, redirect_uri={self.redirect_uri!r})"

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            yield client

    def build_authorization_url(self, state: str | None = None) -> str:
        """Build the URL that sends the user to the provider.

        The URL is deterministic for a given state: client_id, redirect_uri,
        response_type=code and the space-joined scopes, in configured order.

        Args:
            state: Optional anti-CSRF state value appended as ``state``.

        Returns:
            The authorization URL.
        """
        params = {
            "client_id": self._provider.client_id,
            "redirect_uri": self._provider.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self._provider.scopes),
        }
        if state is not None:
            params["state"] = state

        return f"{self._provider.authorization_url}?{urlencode(params, quote_via=quote)}"

    async def exchange_code(self, code: str) -> CanonicalTokens:
        """Exchange an authorization code for tokens.

        Raises:
            TokenExchangeError: On a non-2xx response, a non-JSON body, or a
                response without an access token.
        """
        name = self._provider.id.value
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": self._provider.client_id,
            "client_secret": self._provider.client_secret,
            "redirect_uri": self._provider.redirect_uri,
        }

        async with self._client() as client:
            response = await client.post(
                self._provider.token_url,
                data=data,
                headers={"Accept": "application/json"},
            )

        if not response.is_success:
            logger.warning(
                "Token exchange failed",
                provider=name,
                status=response.status_code,
            )
            raise TokenExchangeError(
                "Failed to exchange code for tokens",
                provider=name,
                status_code=response.status_code,
                status_text=response.reason_phrase,
            )

        try:
            raw = response.json()
        except ValueError as e:
            raise TokenExchangeError(
                "Token response is not JSON",
                provider=name,
                status_code=response.status_code,
                status_text="invalid JSON",
            ) from e

        if not isinstance(raw, dict):
            raise TokenExchangeError(
                "Token response is not a JSON object",
                provider=name,
                status_code=response.status_code,
                status_text="invalid JSON",
            )

        # Some providers (GitHub) answer 200 with an error body.
        if "error" in raw and "access_token" not in raw:
            raise TokenExchangeError(
                "Provider rejected the authorization code",
                provider=name,
                status_code=response.status_code,
                status_text=str(raw.get("error_description") or raw["error"]),
            )

        try:
            tokens = self._provider.normalize_tokens(raw)
        except ValueError as e:
            raise TokenExchangeError(
                "Token response could not be normalized",
                provider=name,
                status_code=response.status_code,
                status_text=str(e),
            ) from e

        logger.debug("Token exchange succeeded", provider=name, token_type=tokens.token_type)
        return tokens

    async def fetch_profile(self, access_token: str) -> CanonicalProfile:
        """Fetch and normalize the user's profile.

        Raises:
            ProfileFetchError: If the primary profile request fails.
            ProfileNormalizationError: If the profile lacks a subject id.
        """
        async with self._client() as client:
            request = ProfileRequest(
                http=client,
                provider=self._provider.id.value,
                profile_url=self._provider.profile_url,
                client_id=self._provider.client_id,
                access_token=access_token,
            )
            raw = await self._provider.fetch_profile(request)
            raw = await self._enrich(request, raw)

        return self._provider.normalize_profile(raw)

    async def _enrich(self, request: ProfileRequest, raw: Any) -> Any:
        """Best-effort enrichment; failures keep the primary profile."""
        enrich = self._provider.enrich_profile
        if enrich is None or not isinstance(raw, dict):
            return raw
        try:
            return await enrich(request, raw)
        except (ProfileFetchError, httpx.HTTPError) as e:
            logger.warning(
                "Profile enrichment failed, using primary profile",
                provider=request.provider,
                error=str(e),
                error_type=type(e).__name__,
            )
            return raw

    async def handle_callback(self, code: str) -> CallbackResult:
        """Run the full exchange: code -> tokens -> profile."""
        tokens = await self.exchange_code(code)
        profile = await self.fetch_profile(tokens.access_token)

        logger.info("OAuth callback completed", provider=self._provider.id.value, subject=profile.id)
        return CallbackResult(tokens=tokens, profile=profile)
