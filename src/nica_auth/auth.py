"""OAuth login bundled with a session store.

AuthWithSession is the usual entry point for applications: the engine's
login calls plus ``.session`` for the cookie-backed session of the user
who just logged in.

Example usage:

    config = get_config("nica.yaml")
    auth = create_auth(config, on_profile=lambda cb: {"user_id": cb.profile.id})

    url = auth.get_auth_url("github")
    data = await auth.handle_callback("github", code)
    await auth.session.create(data, response=response)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import httpx
import structlog

from nica_auth.core.config import NicaConfig
from nica_auth.oauth.engine import AuthEngine, ProfileHook
from nica_auth.oauth.providers import ProviderId
from nica_auth.session.config import SessionSettings
from nica_auth.session.store import SessionStore

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class AuthWithSession(Generic[T]):
    """An AuthEngine and the SessionStore that persists its logins."""

    engine: AuthEngine[T]
    session: SessionStore

    def list_providers(self) -> list[str]:
        return self.engine.list_providers()

    def get_auth_url(self, provider: str | ProviderId, state: str | None = None) -> str:
        return self.engine.get_auth_url(provider, state)

    async def handle_callback(
        self,
        provider: str | ProviderId,
        code: str,
        state: str | None = None,
    ) -> T | None:
        return await self.engine.handle_callback(provider, code, state)


def with_session(engine: AuthEngine[T], settings: SessionSettings) -> AuthWithSession[T]:
    """Attach a session store to an existing engine.

    The session secret is validated on its own; it does not need to match
    the engine's secret.

    Raises:
        WeakSecretError: If the session secret is missing or too short.
        InvalidConfigurationError: If the strategy, lifetime, or a cookie
            attribute is invalid.
    """
    return AuthWithSession(engine=engine, session=SessionStore.from_settings(settings))


def create_auth(
    config: NicaConfig,
    on_profile: ProfileHook[T] | None = None,
    http_client: httpx.AsyncClient | None = None,
    *,
    timeout: float | None = None,
    clock: Callable[[], float] | None = None,
) -> AuthWithSession[T]:
    """Build the engine and session store described by ``config``.

    Args:
        config: Root configuration. ``config.session`` must be set.
        on_profile: Post-login hook turning an AuthCallback into session data.
        http_client: Shared HTTP client for provider calls.
        timeout: Timeout for per-call HTTP clients.
        clock: Time source for the session codec (tests).

    Raises:
        ConfigurationError: On any invalid auth or session setting.
    """
    engine: AuthEngine[T] = AuthEngine.from_settings(
        config.auth,
        on_profile=on_profile,
        http_client=http_client,
        timeout=timeout,
    )

    session_settings = config.session or SessionSettings()
    kwargs: dict[str, Any] = {} if clock is None else {"clock": clock}
    store = SessionStore.from_settings(session_settings, **kwargs)

    logger.info(
        "Auth with session created",
        providers=engine.list_providers(),
        strategy=store.codec.strategy.value,
        cookie=store.cookie_name,
    )
    return AuthWithSession(engine=engine, session=store)
