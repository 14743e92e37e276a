"""OAuth configuration types.

ProviderSettings is the per-provider configuration struct: credentials,
plus optional overrides for every part of the built-in descriptor. All
defaulting happens once, in ``resolve_provider``, which turns settings
into an immutable ResolvedProvider.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from nica_auth.errors import InvalidConfigurationError, MissingScopesError
from nica_auth.oauth.fetchers import ProfileEnricher, ProfileFetcher
from nica_auth.oauth.normalizers import ProfileNormalizer, TokenNormalizer
from nica_auth.oauth.providers import (
    ProviderDescriptor,
    ProviderId,
    default_redirect_path,
    get_descriptor,
)


class ProviderSettings(BaseModel):
    """Configuration of one provider.

    Only the credentials are required. Every other field overrides the
    built-in descriptor when set. Normalizer and fetcher overrides can
    only be given from code, not from a config file.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True, extra="forbid")

    client_id: str = ""
    client_secret: str = Field(default="", repr=False)
    redirect_uri: str | None = None
    scopes: list[str] | None = None
    # Tenant host for providers with a {domain} URL template (Auth0)
    domain: str | None = None

    authorization_url: str | None = None
    token_url: str | None = None
    profile_url: str | None = None

    normalize_tokens: TokenNormalizer | None = None
    normalize_profile: ProfileNormalizer | None = None
    fetch_profile: ProfileFetcher | None = None
    enrich_profile: ProfileEnricher | None = None


class AuthSettings(BaseModel):
    """Settings for AuthEngine."""

    secret: str | None = Field(default=None, repr=False)
    origin: str | None = None
    require_state: bool = False
    state_ttl: int = Field(default=600, description="Lifetime of signed state values (seconds).")
    providers: dict[str, ProviderSettings] = Field(default_factory=dict)


@dataclass(frozen=True)
class ResolvedProvider:
    """A provider with every field resolved; input to ProviderClient."""

    id: ProviderId
    client_id: str
    client_secret: str = field(repr=False)
    redirect_uri: str
    scopes: tuple[str, ...]
    authorization_url: str
    token_url: str
    profile_url: str
    normalize_tokens: TokenNormalizer
    normalize_profile: ProfileNormalizer
    fetch_profile: ProfileFetcher
    enrich_profile: ProfileEnricher | None


def coerce_settings(provider: str, settings: ProviderSettings | Mapping[str, Any]) -> ProviderSettings:
    """Accept either ProviderSettings or a plain mapping.

    Raises:
        InvalidConfigurationError: If the mapping does not validate.
    """
    if isinstance(settings, ProviderSettings):
        return settings
    if not isinstance(settings, Mapping):
        raise InvalidConfigurationError(
            "Provider settings must be a mapping", provider=provider
        )
    try:
        return ProviderSettings.model_validate(dict(settings))
    except ValidationError as e:
        raise InvalidConfigurationError(
            f"Invalid settings for provider: {provider}",
            provider=provider,
            errors=e.errors(include_url=False),
        ) from e


def _fill_domain(url: str, descriptor: ProviderDescriptor, domain: str | None) -> str:
    if "{domain}" not in url:
        return url
    if not domain:
        raise InvalidConfigurationError(
            f"Provider {descriptor.id.value} requires a domain",
            provider=descriptor.id.value,
        )
    return url.replace("{domain}", domain.strip().removeprefix("https://").rstrip("/"))


def resolve_provider(
    provider: str | ProviderId,
    settings: ProviderSettings | Mapping[str, Any],
    origin: str | None = None,
) -> ResolvedProvider:
    """Resolve provider settings against the built-in descriptor.

    Args:
        provider: Provider identifier.
        settings: Credentials and optional overrides.
        origin: Application origin (e.g. ``https://app.example.com``) used
            to make the default redirect path absolute.

    Returns:
        A fully resolved provider.

    Raises:
        UnknownProviderError: If the provider is not supported.
        InvalidConfigurationError: If credentials are missing or a URL
            template cannot be filled.
        MissingScopesError: If no scopes are configured or built in.
    """
    descriptor = get_descriptor(provider)
    name = descriptor.id.value
    settings = coerce_settings(name, settings)

    if not settings.client_id or not settings.client_secret:
        raise InvalidConfigurationError(
            f"Missing client_id or client_secret for provider: {name}",
            provider=name,
        )

    scopes = tuple(settings.scopes) if settings.scopes is not None else descriptor.scopes
    if not scopes:
        raise MissingScopesError(f"Missing scopes for provider: {name}", provider=name)

    redirect_uri = settings.redirect_uri
    if not redirect_uri:
        redirect_uri = default_redirect_path(descriptor.id)
        if origin:
            redirect_uri = f"{origin.rstrip('/')}{redirect_uri}"

    def pick(override: Any, default: Any) -> Any:
        return override if override is not None else default

    return ResolvedProvider(
        id=descriptor.id,
        client_id=settings.client_id,
        client_secret=settings.client_secret,
        redirect_uri=redirect_uri,
        scopes=scopes,
        authorization_url=_fill_domain(
            pick(settings.authorization_url, descriptor.authorization_url), descriptor, settings.domain
        ),
        token_url=_fill_domain(pick(settings.token_url, descriptor.token_url), descriptor, settings.domain),
        profile_url=_fill_domain(
            pick(settings.profile_url, descriptor.profile_url), descriptor, settings.domain
        ),
        normalize_tokens=pick(settings.normalize_tokens, descriptor.normalize_tokens),
        normalize_profile=pick(settings.normalize_profile, descriptor.normalize_profile),
        fetch_profile=pick(settings.fetch_profile, descriptor.fetch_profile),
        enrich_profile=pick(settings.enrich_profile, descriptor.enrich_profile),
    )
