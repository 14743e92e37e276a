"""Configuration types with environment variable support.

All settings can be configured via environment variables with the NICA_
prefix, using ``__`` to reach nested fields.
Example: NICA_AUTH__PROVIDERS__GITHUB__CLIENT_ID=abc sets the GitHub client id,
and NICA_SESSION__SECRET=... enables the session store.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from nica_auth.oauth.config import AuthSettings
from nica_auth.session.config import SessionSettings

SECRET_MASK = "********"


def load_config_from_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML or TOML file into the keyword arguments of NicaConfig.

    The file mirrors the settings tree: top-level ``auth`` and ``session``
    sections, e.g. ``auth.providers.github.client_id``. Suffixes are matched
    case-insensitively. Values from the file take precedence over NICA_
    environment variables when passed to ``NicaConfig.from_file``.

    Args:
        path: Path to the configuration file (.yaml, .yml, or .toml)

    Returns:
        Mapping of settings sections

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the file has encoding errors, invalid syntax, an
            unsupported format, or no mapping at the top level
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ValueError(f"Config file encoding error in {path}: {e}") from e

    suffix = path.suffix.lower()
    try:
        if suffix in (".yaml", ".yml"):
            data = yaml.safe_load(content) or {}
        elif suffix == ".toml":
            data = tomllib.loads(content)
        else:
            raise ValueError(f"Unsupported config format: {path.suffix}")
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping at the top level")
    return data


def mask_secret(value: str | None) -> str | None:
    return SECRET_MASK if value else value


class NicaConfig(BaseSettings):
    """Root configuration: OAuth providers plus the optional session store.

    Use get_config() to get a cached instance.

    Example:
        config = get_config("nica.yaml")
        print(config.auth.providers["github"].client_id)
        print(config.session.cookie.name if config.session else "no sessions")
    """

    model_config = SettingsConfigDict(
        env_prefix="NICA_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    auth: AuthSettings = Field(default_factory=AuthSettings)
    session: SessionSettings | None = Field(
        default=None,
        description="Session store settings. Sessions are disabled when omitted.",
    )

    @classmethod
    def from_file(cls, path: str | Path) -> NicaConfig:
        """Build a config from a file; environment variables fill the rest."""
        return cls(**load_config_from_file(path))

    def to_display_dict(self) -> dict[str, Any]:
        """Export current configuration as a nested dictionary with secrets masked."""
        providers = {}
        for name, settings in self.auth.providers.items():
            providers[name] = {
                "client_id": settings.client_id,
                "client_secret": mask_secret(settings.client_secret),
                "redirect_uri": settings.redirect_uri,
                "scopes": settings.scopes,
                "domain": settings.domain,
                "authorization_url": settings.authorization_url,
                "token_url": settings.token_url,
                "profile_url": settings.profile_url,
            }

        result: dict[str, Any] = {
            "auth": {
                "secret": mask_secret(self.auth.secret),
                "origin": self.auth.origin,
                "require_state": self.auth.require_state,
                "state_ttl": self.auth.state_ttl,
                "providers": providers,
            },
            "session": None,
        }

        if self.session is not None:
            cookie = self.session.cookie
            result["session"] = {
                "secret": mask_secret(self.session.secret),
                "strategy": self.session.strategy,
                "token_exp": self.session.token_exp,
                "cookie": {
                    "name": cookie.name,
                    "max_age": cookie.max_age,
                    "http_only": cookie.http_only,
                    "secure": cookie.secure,
                    "same_site": cookie.same_site,
                    "path": cookie.path,
                },
            }
        return result


_config: NicaConfig | None = None


def get_config(path: str | Path | None = None) -> NicaConfig:
    """Get the global configuration instance.

    Returns a cached instance of NicaConfig that reads from environment
    variables and, on first use, from ``path`` if given. The instance is
    created once and cached for the lifetime of the process.

    To reload config (e.g., in tests), call clear_config() first.

    Example:
        config = get_config()
        origin = config.auth.origin
    """
    global _config
    if _config is None:
        _config = NicaConfig.from_file(path) if path is not None else NicaConfig()
    return _config


def clear_config() -> None:
    """Clear the cached configuration.

    Call this to force reloading of environment variables on next get_config() call.
    Useful for testing.
    """
    global _config
    _config = None
