from decimal import Decimal

import pytest

from config.settings import get_config_summary, get_default_game_config, load_game_config


def test_defaults():
    config = load_game_config()
    assert config["countdown_seconds"] == 10
    assert config["tick_ms"] == 100
    assert config["multiplier_increment"] == Decimal("0.01")
    assert config["starting_balance"] == Decimal("1000")
    assert config["recent_outcomes_capacity"] == 10


def test_overrides_are_coerced():
    config = load_game_config({"countdown_seconds": "3", "multiplier_increment": 0.5, "tick_ms": "50"})
    assert config["countdown_seconds"] == 3
    assert config["multiplier_increment"] == Decimal("0.5")
    assert config["tick_ms"] == 50


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("GAME_CRASH_DELAY_SECONDS", "2.5")
    monkeypatch.setenv("GAME_STARTING_BALANCE", "250.50")
    config = load_game_config()
    assert config["crash_delay_seconds"] == 2.5
    assert config["starting_balance"] == Decimal("250.50")


def test_explicit_override_beats_environment(monkeypatch):
    monkeypatch.setenv("GAME_COUNTDOWN_SECONDS", "7")
    assert load_game_config({"countdown_seconds": 2})["countdown_seconds"] == 2


@pytest.mark.parametrize("overrides", [
    {"tick_ms": 0},
    {"multiplier_increment": "-0.01"},
    {"countdown_seconds": -1},
    {"starting_balance": "-5"},
    {"tick_ms": "fast"},
    {"no_such_key": 1},
])
def test_invalid_config_rejected(overrides):
    with pytest.raises(ValueError):
        load_game_config(overrides)


def test_default_config_is_a_copy():
    config = get_default_game_config()
    config["tick_ms"] = 1
    assert get_default_game_config()["tick_ms"] == 100


def test_summary_mentions_tick_settings():
    summary = get_config_summary(load_game_config({"tick_ms": 250}))
    assert "250ms" in summary
