"""Tests for engine configuration."""

import pytest

from lifeline.config import EngineConfig, PRESETS, preset, validate_config
from lifeline.errors import ConfigError


def test_defaults_are_valid():
    config = EngineConfig()
    assert validate_config(config) == []
    assert config.loop.default_max_events == 3
    assert config.safety.fallback_events[0]["id"] == "system_error_fallback"


def test_from_env(monkeypatch):
    monkeypatch.setenv("LIFELINE_MAX_EVENTS", "5")
    monkeypatch.setenv("LIFELINE_USE_WEIGHTS", "no")
    monkeypatch.setenv("LIFELINE_LOG_LEVEL", "debug")
    monkeypatch.setenv("LIFELINE_MAX_RETRIES", "1")
    config = EngineConfig.from_env()
    assert config.loop.default_max_events == 5
    assert config.loop.default_use_weights is False
    assert config.debug.log_level == "DEBUG"
    assert config.safety.max_retry_attempts == 1


def test_from_env_invalid_values_fall_back(monkeypatch):
    monkeypatch.setenv("LIFELINE_MAX_EVENTS", "0")
    monkeypatch.setenv("LIFELINE_MAX_CHAIN_DEPTH", "lots")
    config = EngineConfig.from_env()
    assert config.loop.default_max_events == 3
    assert config.safety.max_recursion_depth == 10


def test_updated_returns_copy():
    base = EngineConfig()
    changed = base.updated(loop={"default_max_events": 7}, debug={"verbose_logging": True})
    assert changed.loop.default_max_events == 7
    assert changed.debug.verbose_logging is True
    assert base.loop.default_max_events == 3


def test_updated_rejects_unknown_names():
    with pytest.raises(ConfigError):
        EngineConfig().updated(graphics={"fps": 60})
    with pytest.raises(ConfigError):
        EngineConfig().updated(loop={"max_fps": 60})


def test_validation_problems():
    config = EngineConfig().updated(
        weights={"min_weight": 5.0, "max_weight": 1.0, "recent_decay": 0},
        debug={"log_level": "CHATTY"},
    )
    problems = validate_config(config)
    assert "max_weight must be greater than min_weight" in problems
    assert "recent_decay must be in (0, 1]" in problems
    assert "unknown log_level: CHATTY" in problems


def test_dict_round_trip():
    config = preset("safe")
    assert EngineConfig.from_dict(config.to_dict()) == config


def test_from_dict_rejects_bad_data():
    with pytest.raises(ConfigError):
        EngineConfig.from_dict({"loop": {"warp_speed": True}})
    with pytest.raises(ConfigError):
        EngineConfig.from_dict({"safety": {"error_log_size": 0}})


@pytest.mark.parametrize("name", sorted(PRESETS))
def test_presets_are_valid(name):
    assert validate_config(preset(name)) == []


def test_unknown_preset():
    with pytest.raises(ConfigError):
        preset("turbo")
