"""
Configuration settings for the crash round server.
Centralized configuration management.
"""

import os
from decimal import Decimal, InvalidOperation
from typing import Dict, Any, Optional

from dotenv import load_dotenv

load_dotenv()

# Environment settings
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG else "INFO").upper()

CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")

# Game configuration - FALLBACK ONLY
# Every key can be overridden with a GAME_<KEY> environment variable.
_DEFAULT_GAME_CONFIG: Dict[str, Any] = {
    "countdown_seconds": 10,       # waiting phase countdown start value
    "countdown_interval": 1.0,     # seconds between countdown ticks
    "tick_ms": 100,                # multiplier tick cadence in ms
    "multiplier_increment": Decimal("0.01"),  # added to the multiplier every tick
    "crash_delay_seconds": 5.0,    # pause between crash and the next waiting phase
    "starting_balance": Decimal("1000"),
    "recent_outcomes_capacity": 10,
    "max_name_length": 32,
}

# Keys that must be strictly positive
_POSITIVE_KEYS = (
    "countdown_interval",
    "tick_ms",
    "multiplier_increment",
    "recent_outcomes_capacity",
    "max_name_length",
)


def get_default_game_config() -> Dict[str, Any]:
    """Get default game configuration."""
    return _DEFAULT_GAME_CONFIG.copy()


def _coerce(key: str, raw: Any, default: Any) -> Any:
    """Convert a raw override to the type of its default value."""
    try:
        if isinstance(default, Decimal):
            return Decimal(str(raw))
        if isinstance(default, bool):
            return str(raw).lower() == "true"
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return float(raw)
    except (ValueError, TypeError, InvalidOperation) as e:
        raise ValueError(f"Invalid value for {key}: {raw!r}") from e
    return raw


def load_game_config(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Build the runtime game configuration.

    Precedence: explicit overrides, then GAME_* environment variables,
    then the defaults above.
    """
    config = get_default_game_config()

    for key, default in _DEFAULT_GAME_CONFIG.items():
        env_value = os.getenv(f"GAME_{key.upper()}")
        if env_value is not None:
            config[key] = _coerce(key, env_value, default)

    for key, value in (overrides or {}).items():
        if key not in _DEFAULT_GAME_CONFIG:
            raise ValueError(f"Unknown game config key: {key}")
        config[key] = _coerce(key, value, _DEFAULT_GAME_CONFIG[key])

    for key in _POSITIVE_KEYS:
        if config[key] <= 0:
            raise ValueError(f"{key} must be positive, got {config[key]}")
    if config["countdown_seconds"] < 0 or config["crash_delay_seconds"] < 0:
        raise ValueError("countdown_seconds and crash_delay_seconds must not be negative")
    if config["starting_balance"] < 0:
        raise ValueError("starting_balance must not be negative")

    return config


def get_config_summary(config: Optional[Dict[str, Any]] = None) -> str:
    """Get configuration summary for logging."""
    config = config or load_game_config()
    return f"""
📊 Configuration Status:
  - Environment: {ENVIRONMENT}
  - Debug: {DEBUG}
  - Countdown: {config['countdown_seconds']} x {config['countdown_interval']}s
  - Multiplier tick: +{config['multiplier_increment']} every {config['tick_ms']}ms
  - Crash delay: {config['crash_delay_seconds']}s
  - Starting balance: {config['starting_balance']}
  - Recent outcomes kept: {config['recent_outcomes_capacity']}
"""
