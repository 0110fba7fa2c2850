"""Tests for configuration defaults and validation."""

import pytest

from config import CONFIG, Config, RealtimeConfig, SecurityConfig, TrialConfig


def test_defaults():
    cfg = Config()
    assert cfg.realtime.poll_interval_ms > 0
    assert cfg.realtime.reconnect_base_ms <= cfg.realtime.reconnect_max_ms
    cfg.validate()


def test_poll_interval_seconds():
    assert RealtimeConfig(poll_interval_ms=30000).poll_interval_seconds == 30.0


def test_invalid_values_rejected():
    with pytest.raises(ValueError):
        RealtimeConfig(poll_interval_ms=0)
    with pytest.raises(ValueError):
        RealtimeConfig(reconnect_base_ms=5000, reconnect_max_ms=1000)
    with pytest.raises(ValueError):
        SecurityConfig(password_min_score=5)
    with pytest.raises(ValueError):
        TrialConfig(duration_days=0)


def test_env_parsing(monkeypatch):
    from config import _getenv_bool, _getenv_int

    monkeypatch.setenv("SOME_FLAG", "yes")
    monkeypatch.setenv("SOME_INT", "42")
    monkeypatch.setenv("BAD_INT", "forty")
    assert _getenv_bool("SOME_FLAG") is True
    assert _getenv_bool("MISSING_FLAG", default=False) is False
    assert _getenv_int("SOME_INT", 1) == 42
    with pytest.raises(ValueError, match="BAD_INT"):
        _getenv_int("BAD_INT", 1)


def test_global_config_is_frozen():
    with pytest.raises(Exception):
        CONFIG.realtime.poll_interval_ms = 1
