"""Test environment-driven configuration."""

import pytest

from config import DEFAULT_TARGET_PLAYER, DEFAULT_TICKRATE, load_config, parse_tick_rate
from errors import ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ("TARGET_PLAYER", "DEMO_TICKRATE", "DEBUG"):
        monkeypatch.delenv(key, raising=False)


class TestConfig:

    def test_defaults(self):
        config = load_config()
        assert config.target_player == DEFAULT_TARGET_PLAYER
        assert config.tick_rate == DEFAULT_TICKRATE == 64
        assert config.debug is False

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("TARGET_PLAYER", "Remag")
        monkeypatch.setenv("DEMO_TICKRATE", "128")
        monkeypatch.setenv("DEBUG", "true")

        config = load_config()
        assert config.to_dict() == {"target_player": "Remag", "tick_rate": 128, "debug": True}

    @pytest.mark.parametrize("raw", ["0", "-64", "fast", None])
    def test_bad_tick_rate(self, raw):
        with pytest.raises(ConfigError):
            parse_tick_rate(raw)
