"""Configuration package for the crash round server."""

from .settings import (
    DEBUG,
    ENVIRONMENT,
    LOG_LEVEL,
    CORS_ORIGINS,
    get_config_summary,
    get_default_game_config,
    load_game_config
)

__all__ = [
    "DEBUG",
    "ENVIRONMENT",
    "LOG_LEVEL",
    "CORS_ORIGINS",
    "get_config_summary",
    "get_default_game_config",
    "load_game_config"
]
