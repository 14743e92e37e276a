"""Built-in OAuth provider registry.

Each supported provider is a member of ProviderId and has exactly one
immutable ProviderDescriptor in PROVIDERS. The table is built once at
import and exposed read-only; a ProviderId without a descriptor is an
import-time error.

Usage:
    from nica_auth.oauth.providers import ProviderId, get_descriptor

    google = get_descriptor("google")
    print(google.authorization_url, google.scopes)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType

from nica_auth.errors import UnknownProviderError
from nica_auth.oauth import fetchers
from nica_auth.oauth.fetchers import ProfileEnricher, ProfileFetcher
from nica_auth.oauth.normalizers import (
    ProfileNormalizer,
    TokenNormalizer,
    normalize_discord_profile,
    normalize_tokens,
    profile_normalizer,
)


class ProviderId(str, Enum):
    """Supported identity providers."""

    GOOGLE = "google"
    GITHUB = "github"
    FACEBOOK = "facebook"
    LINKEDIN = "linkedin"
    SLACK = "slack"
    TWITTER = "twitter"
    MICROSOFT = "microsoft"
    TWITCH = "twitch"
    DISCORD = "discord"
    AMAZON = "amazon"
    APPLE = "apple"
    AUTH0 = "auth0"
    BITBUCKET = "bitbucket"
    DROPBOX = "dropbox"
    GITLAB = "gitlab"
    NPM = "npm"
    REDDIT = "reddit"
    SPOTIFY = "spotify"
    STRIPE = "stripe"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str | ProviderId) -> ProviderId:
        """Convert a string to a ProviderId.

        Raises:
            UnknownProviderError: If the value names no supported provider.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise UnknownProviderError(str(value)) from None


@dataclass(frozen=True)
class ProviderDescriptor:
    """Static description of an identity provider.

    URLs may contain a ``{domain}`` placeholder for tenant-hosted providers
    (Auth0); it is filled from the provider settings at resolution time.
    """

    id: ProviderId
    authorization_url: str
    token_url: str
    profile_url: str
    scopes: tuple[str, ...]
    normalize_tokens: TokenNormalizer
    normalize_profile: ProfileNormalizer
    fetch_profile: ProfileFetcher = fetchers.fetch_bearer_profile
    enrich_profile: ProfileEnricher | None = None


def _oidc_profile(provider: ProviderId) -> ProfileNormalizer:
    return profile_normalizer(
        provider.value, id="sub", email="email", name="name", picture="picture"
    )


_DESCRIPTORS = (
    ProviderDescriptor(
        id=ProviderId.GOOGLE,
        authorization_url="https://accounts.google.com/o/oauth2/v2/auth",
        token_url="https://oauth2.googleapis.com/token",
        profile_url="https://openidconnect.googleapis.com/v1/userinfo",
        scopes=("openid", "email", "profile"),
        normalize_tokens=normalize_tokens,
        normalize_profile=_oidc_profile(ProviderId.GOOGLE),
    ),
    ProviderDescriptor(
        id=ProviderId.GITHUB,
        authorization_url="https://github.com/login/oauth/authorize",
        token_url="https://github.com/login/oauth/access_token",
        profile_url="https://api.github.com/user",
        scopes=("user:email",),
        normalize_tokens=normalize_tokens,
        normalize_profile=profile_normalizer(
            "github", id="id", email="email", name="name", username="login", picture="avatar_url"
        ),
        fetch_profile=fetchers.fetch_github_profile,
        enrich_profile=fetchers.enrich_github_email,
    ),
    ProviderDescriptor(
        id=ProviderId.FACEBOOK,
        authorization_url="https://www.facebook.com/v18.0/dialog/oauth",
        token_url="https://graph.facebook.com/v18.0/oauth/access_token",
        profile_url="https://graph.facebook.com/me",
        scopes=("email", "public_profile"),
        normalize_tokens=normalize_tokens,
        normalize_profile=profile_normalizer(
            "facebook", id="id", email="email", name="name", picture="picture.data.url"
        ),
        fetch_profile=fetchers.fetch_facebook_profile,
    ),
    ProviderDescriptor(
        id=ProviderId.LINKEDIN,
        authorization_url="https://www.linkedin.com/oauth/v2/authorization",
        token_url="https://www.linkedin.com/oauth/v2/accessToken",
        profile_url="https://api.linkedin.com/v2/userinfo",
        scopes=("openid", "email", "profile"),
        normalize_tokens=normalize_tokens,
        normalize_profile=_oidc_profile(ProviderId.LINKEDIN),
    ),
    ProviderDescriptor(
        id=ProviderId.SLACK,
        authorization_url="https://slack.com/oauth/v2/authorize",
        token_url="https://slack.com/api/oauth.v2.access",
        profile_url="https://slack.com/api/users.identity",
        scopes=("users:read", "users:read.email"),
        normalize_tokens=normalize_tokens,
        normalize_profile=profile_normalizer(
            "slack",
            id="user.id",
            email="user.email",
            name=("user.real_name", "user.name"),
            username="user.name",
            picture=("user.profile.image_192", "user.image_192"),
        ),
        fetch_profile=fetchers.fetch_slack_profile,
    ),
    ProviderDescriptor(
        id=ProviderId.TWITTER,
        authorization_url="https://twitter.com/i/oauth2/authorize",
        token_url="https://api.twitter.com/2/oauth2/token",
        profile_url="https://api.twitter.com/2/users/me",
        scopes=("tweet.read", "users.read"),
        normalize_tokens=normalize_tokens,
        normalize_profile=profile_normalizer(
            "twitter", id="id", name="name", username="username", picture="profile_image_url"
        ),
        fetch_profile=fetchers.fetch_twitter_profile,
    ),
    ProviderDescriptor(
        id=ProviderId.MICROSOFT,
        authorization_url="https://login.microsoftonline.com/common/oauth2/v2.0/authorize",
        token_url="https://login.microsoftonline.com/common/oauth2/v2.0/token",
        profile_url="https://graph.microsoft.com/v1.0/me",
        scopes=("openid", "email", "profile"),
        normalize_tokens=normalize_tokens,
        normalize_profile=profile_normalizer(
            "microsoft", id="id", email=("mail", "userPrincipalName"), name="displayName"
        ),
    ),
    ProviderDescriptor(
        id=ProviderId.TWITCH,
        authorization_url="https://id.twitch.tv/oauth2/authorize",
        token_url="https://id.twitch.tv/oauth2/token",
        profile_url="https://api.twitch.tv/helix/users",
        scopes=("user:read:email",),
        normalize_tokens=normalize_tokens,
        normalize_profile=profile_normalizer(
            "twitch",
            id="id",
            email="email",
            name="display_name",
            username="login",
            picture="profile_image_url",
        ),
        fetch_profile=fetchers.fetch_twitch_profile,
    ),
    ProviderDescriptor(
        id=ProviderId.DISCORD,
        authorization_url="https://discord.com/api/oauth2/authorize",
        token_url="https://discord.com/api/oauth2/token",
        profile_url="https://discord.com/api/users/@me",
        scopes=("identify", "email"),
        normalize_tokens=normalize_tokens,
        normalize_profile=normalize_discord_profile,
    ),
    ProviderDescriptor(
        id=ProviderId.AMAZON,
        authorization_url="https://www.amazon.com/ap/oa",
        token_url="https://api.amazon.com/auth/o2/token",
        profile_url="https://api.amazon.com/user/profile",
        scopes=("profile", "postal_code"),
        normalize_tokens=normalize_tokens,
        normalize_profile=profile_normalizer("amazon", id="user_id", email="email", name="name"),
    ),
    ProviderDescriptor(
        id=ProviderId.APPLE,
        authorization_url="https://appleid.apple.com/auth/authorize",
        token_url="https://appleid.apple.com/auth/token",
        profile_url="https://appleid.apple.com/auth/userinfo",
        scopes=("name", "email"),
        normalize_tokens=normalize_tokens,
        normalize_profile=profile_normalizer("apple", id="sub", email="email", name="user.name"),
    ),
    ProviderDescriptor(
        id=ProviderId.AUTH0,
        authorization_url="https://{domain}/authorize",
        token_url="https://{domain}/oauth/token",
        profile_url="https://{domain}/userinfo",
        scopes=("openid", "email", "profile"),
        normalize_tokens=normalize_tokens,
        normalize_profile=_oidc_profile(ProviderId.AUTH0),
    ),
    ProviderDescriptor(
        id=ProviderId.BITBUCKET,
        authorization_url="https://bitbucket.org/site/oauth2/authorize",
        token_url="https://bitbucket.org/site/oauth2/access_token",
        profile_url="https://api.bitbucket.org/2.0/user",
        scopes=("account", "email"),
        normalize_tokens=normalize_tokens,
        normalize_profile=profile_normalizer(
            "bitbucket",
            id="uuid",
            email="email",
            name="display_name",
            username="username",
            picture="links.avatar.href",
        ),
        enrich_profile=fetchers.enrich_bitbucket_email,
    ),
    ProviderDescriptor(
        id=ProviderId.DROPBOX,
        authorization_url="https://www.dropbox.com/oauth2/authorize",
        token_url="https://api.dropboxapi.com/oauth2/token",
        profile_url="https://api.dropboxapi.com/2/users/get_current_account",
        # Dropbox scopes are set per app; callers must configure them.
        scopes=(),
        normalize_tokens=normalize_tokens,
        normalize_profile=profile_normalizer(
            "dropbox",
            id="account_id",
            email="email",
            name="name.display_name",
            picture="profile_photo_url",
        ),
        fetch_profile=fetchers.fetch_dropbox_profile,
    ),
    ProviderDescriptor(
        id=ProviderId.GITLAB,
        authorization_url="https://gitlab.com/oauth/authorize",
        token_url="https://gitlab.com/oauth/token",
        profile_url="https://gitlab.com/api/v4/user",
        scopes=("read_user",),
        normalize_tokens=normalize_tokens,
        normalize_profile=profile_normalizer(
            "gitlab", id="id", email="email", name="name", username="username", picture="avatar_url"
        ),
    ),
    ProviderDescriptor(
        id=ProviderId.NPM,
        authorization_url="https://www.npmjs.com/login",
        token_url="https://registry.npmjs.org/-/oauth/token",
        profile_url="https://registry.npmjs.org/-/npm/v1/user",
        scopes=("openid", "profile", "email"),
        normalize_tokens=normalize_tokens,
        normalize_profile=profile_normalizer(
            "npm", id=("user_id", "name"), email="email", name="fullname", username="name"
        ),
    ),
    ProviderDescriptor(
        id=ProviderId.REDDIT,
        authorization_url="https://www.reddit.com/api/v1/authorize",
        token_url="https://www.reddit.com/api/v1/access_token",
        profile_url="https://oauth.reddit.com/api/v1/me",
        scopes=("identity",),
        normalize_tokens=normalize_tokens,
        normalize_profile=profile_normalizer(
            "reddit", id="id", name="name", username="name", picture="icon_img"
        ),
    ),
    ProviderDescriptor(
        id=ProviderId.SPOTIFY,
        authorization_url="https://accounts.spotify.com/authorize",
        token_url="https://accounts.spotify.com/api/token",
        profile_url="https://api.spotify.com/v1/me",
        scopes=("user-read-email", "user-read-private"),
        normalize_tokens=normalize_tokens,
        normalize_profile=profile_normalizer(
            "spotify", id="id", email="email", name="display_name", picture="images.0.url"
        ),
    ),
    ProviderDescriptor(
        id=ProviderId.STRIPE,
        authorization_url="https://connect.stripe.com/oauth/authorize",
        token_url="https://connect.stripe.com/oauth/token",
        profile_url="https://api.stripe.com/v1/account",
        scopes=("read_write",),
        normalize_tokens=normalize_tokens,
        normalize_profile=profile_normalizer(
            "stripe",
            id="id",
            email="email",
            name=("business_profile.name", "settings.dashboard.display_name"),
        ),
    ),
)

PROVIDERS: MappingProxyType[ProviderId, ProviderDescriptor] = MappingProxyType(
    {descriptor.id: descriptor for descriptor in _DESCRIPTORS}
)

_missing = set(ProviderId) - set(PROVIDERS)
if _missing:
    raise RuntimeError(f"Providers without descriptor: {sorted(p.value for p in _missing)}")


def get_descriptor(provider: str | ProviderId) -> ProviderDescriptor:
    """Look up the descriptor of a supported provider.

    Raises:
        UnknownProviderError: If the provider is not supported.
    """
    return PROVIDERS[ProviderId.parse(provider)]


def list_supported() -> list[ProviderId]:
    """All supported providers, in declaration order."""
    return list(ProviderId)


def default_redirect_path(provider: str | ProviderId) -> str:
    """Default callback path for a provider, e.g. ``/api/auth/github/callback``."""
    return f"/api/auth/{ProviderId.parse(provider).value}/callback"
