"""nica-auth - OAuth login for many providers with stateless cookie sessions."""

from nica_auth.auth import AuthWithSession, create_auth, with_session
from nica_auth.core.config import NicaConfig, get_config
from nica_auth.errors import (
    ConfigurationError,
    InvalidConfigurationError,
    InvalidStateError,
    MissingScopesError,
    NicaAuthError,
    NoProvidersConfiguredError,
    OAuthProtocolError,
    ProfileFetchError,
    ProfileNormalizationError,
    ProviderNotConfiguredError,
    TokenExchangeError,
    UnknownProviderError,
    WeakSecretError,
)
from nica_auth.oauth import (
    AuthCallback,
    AuthEngine,
    CanonicalProfile,
    CanonicalTokens,
    ProviderClient,
    ProviderId,
    ProviderSettings,
)
from nica_auth.session import CookieSettings, SessionCodec, SessionSettings, SessionStore

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Entry points
    "AuthWithSession",
    "create_auth",
    "with_session",
    "NicaConfig",
    "get_config",
    # OAuth
    "AuthCallback",
    "AuthEngine",
    "CanonicalProfile",
    "CanonicalTokens",
    "ProviderClient",
    "ProviderId",
    "ProviderSettings",
    # Sessions
    "CookieSettings",
    "SessionCodec",
    "SessionSettings",
    "SessionStore",
    # Errors
    "ConfigurationError",
    "InvalidConfigurationError",
    "InvalidStateError",
    "MissingScopesError",
    "NicaAuthError",
    "NoProvidersConfiguredError",
    "OAuthProtocolError",
    "ProfileFetchError",
    "ProfileNormalizationError",
    "ProviderNotConfiguredError",
    "TokenExchangeError",
    "UnknownProviderError",
    "WeakSecretError",
]
