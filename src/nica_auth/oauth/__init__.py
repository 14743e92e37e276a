"""OAuth 2.0 authorization-code login for multiple providers.

Every provider is reduced to the same two calls: build an authorization
URL, then exchange the callback code for CanonicalTokens and a
CanonicalProfile.

Example usage:

    from nica_auth.oauth import AuthEngine

    async def on_profile(callback):
        return {"user_id": callback.profile.id, "email": callback.profile.email}

    engine = AuthEngine(
        {
            "github": {"client_id": "...", "client_secret": "..."},
            "google": {"client_id": "...", "client_secret": "..."},
        },
        origin="https://app.example.com",
        on_profile=on_profile,
    )

    url = engine.get_auth_url("github")
    session_data = await engine.handle_callback("github", code)

    # Or drive one provider directly
    client = ProviderClient.from_settings("gitlab", {"client_id": "...", "client_secret": "..."})
    result = await client.handle_callback(code)
"""

from nica_auth.oauth.client import ProviderClient
from nica_auth.oauth.config import (
    AuthSettings,
    ProviderSettings,
    ResolvedProvider,
    resolve_provider,
)
from nica_auth.oauth.engine import AuthEngine
from nica_auth.oauth.fetchers import ProfileRequest
from nica_auth.oauth.normalizers import normalize_tokens, profile_normalizer
from nica_auth.oauth.providers import (
    PROVIDERS,
    ProviderDescriptor,
    ProviderId,
    default_redirect_path,
    get_descriptor,
    list_supported,
)
from nica_auth.oauth.state import StateSigner
from nica_auth.oauth.types import (
    AuthCallback,
    CallbackResult,
    CanonicalProfile,
    CanonicalTokens,
)

__all__ = [
    # Engine
    "AuthEngine",
    "ProviderClient",
    "StateSigner",
    # Config
    "AuthSettings",
    "ProviderSettings",
    "ResolvedProvider",
    "resolve_provider",
    # Registry
    "PROVIDERS",
    "ProviderDescriptor",
    "ProviderId",
    "default_redirect_path",
    "get_descriptor",
    "list_supported",
    # Normalization
    "ProfileRequest",
    "normalize_tokens",
    "profile_normalizer",
    # Types
    "AuthCallback",
    "CallbackResult",
    "CanonicalProfile",
    "CanonicalTokens",
]
