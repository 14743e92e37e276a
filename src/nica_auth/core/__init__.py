"""Core."""

from .config import NicaConfig, clear_config, get_config, load_config_from_file

__all__ = [
    "NicaConfig",
    "clear_config",
    "get_config",
    "load_config_from_file",
]
