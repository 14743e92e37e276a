"""Token and profile normalizers.

Normalizers are pure functions of the raw provider response. Most
providers differ only in where a field lives, so profile normalizers are
declared with dotted paths (``"user.profile.image_192"``, ``"images.0.url"``)
and built by ``profile_normalizer``.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from nica_auth.errors import ProfileNormalizationError
from nica_auth.oauth.types import CanonicalProfile, CanonicalTokens

TokenNormalizer = Callable[[dict[str, Any]], CanonicalTokens]
ProfileNormalizer = Callable[[dict[str, Any]], CanonicalProfile]

# A field spec is a dotted path, or several paths tried in order.
FieldSpec = str | Sequence[str] | None


def dig(raw: Any, path: str) -> Any:
    """Follow a dotted path through nested dicts and lists.

    Returns None as soon as a segment is missing.
    """
    value = raw
    for segment in path.split("."):
        if isinstance(value, dict):
            value = value.get(segment)
        elif isinstance(value, list) and segment.isdigit():
            index = int(segment)
            value = value[index] if index < len(value) else None
        else:
            return None
        if value is None:
            return None
    return value


def _first(raw: dict[str, Any], spec: FieldSpec) -> Any:
    if spec is None:
        return None
    paths = (spec,) if isinstance(spec, str) else spec
    for path in paths:
        value = dig(raw, path)
        if value is not None and value != "":
            return value
    return None


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _optional_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def normalize_tokens(raw: dict[str, Any]) -> CanonicalTokens:
    """Normalize an RFC 6749 token response.

    Raises:
        ValueError: If the response carries no access token.
    """
    access_token = raw.get("access_token")
    if not isinstance(access_token, str) or not access_token:
        raise ValueError("Token response has no access_token")

    return CanonicalTokens(
        access_token=access_token,
        refresh_token=_optional_str(raw.get("refresh_token")),
        token_type=_optional_str(raw.get("token_type")),
        expires_in=_optional_int(raw.get("expires_in")),
        raw=dict(raw),
    )


def profile_normalizer(
    provider: str,
    *,
    id: FieldSpec,
    email: FieldSpec = None,
    name: FieldSpec = None,
    username: FieldSpec = None,
    picture: FieldSpec = None,
) -> ProfileNormalizer:
    """Build a profile normalizer from field paths.

    Args:
        provider: Provider identifier stamped on every profile.
        id: Path(s) to the stable subject identifier (``sub``, ``id``, ...).
        email: Path(s) to the email address.
        name: Path(s) to the display name.
        username: Path(s) to the login handle.
        picture: Path(s) to the avatar URL.

    Returns:
        A pure function mapping a raw profile to a CanonicalProfile.
    """

    def normalize(raw: dict[str, Any]) -> CanonicalProfile:
        if not isinstance(raw, dict):
            raise ProfileNormalizationError(
                "Profile response is not a JSON object", provider=provider
            )

        subject = _first(raw, id)
        if subject is None:
            raise ProfileNormalizationError(
                "Profile response has no subject identifier", provider=provider
            )

        return CanonicalProfile(
            id=str(subject),
            provider=provider,
            email=_optional_str(_first(raw, email)),
            name=_optional_str(_first(raw, name)),
            username=_optional_str(_first(raw, username)),
            picture=_optional_str(_first(raw, picture)),
            raw=dict(raw),
        )

    return normalize


_discord_base = profile_normalizer(
    "discord", id="id", email="email", name=("global_name", "username"), username="username"
)


def normalize_discord_profile(raw: dict[str, Any]) -> CanonicalProfile:
    """Discord returns an avatar hash; expand it to a CDN URL."""
    profile = _discord_base(raw)
    avatar = raw.get("avatar")
    if not avatar:
        return profile
    return CanonicalProfile(
        id=profile.id,
        provider=profile.provider,
        email=profile.email,
        name=profile.name,
        username=profile.username,
        picture=f"https://cdn.discordapp.com/avatars/{profile.id}/{avatar}.png",
        raw=profile.raw,
    )
