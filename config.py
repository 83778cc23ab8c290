"""
config.py - Runtime configuration and logging setup

Defaults match the fixed constants the converter always used; a .env file
or the environment can override them:

    TARGET_PLAYER=VadimkaYbivaet   # name substring, case-insensitive
    DEMO_TICKRATE=64
    DEBUG=1
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, asdict

from dotenv import load_dotenv

from errors import ConfigError


DEFAULT_TARGET_PLAYER = "VadimkaYbivaet"
DEFAULT_TICKRATE = 64

LOGGER_NAME = "demo2json"


# =========================
# Configuration
# =========================

@dataclass
class Config:
    target_player: str = DEFAULT_TARGET_PLAYER
    tick_rate: int = DEFAULT_TICKRATE
    debug: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def parse_tick_rate(raw) -> int:
    try:
        tick_rate = int(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid tick rate: {raw!r}") from None
    if tick_rate <= 0:
        raise ConfigError(f"Tick rate must be positive, got {tick_rate}")
    return tick_rate


def load_config() -> Config:
    load_dotenv()

    target = os.environ.get("TARGET_PLAYER", "").strip() or DEFAULT_TARGET_PLAYER
    tick_rate = parse_tick_rate(os.environ.get("DEMO_TICKRATE", str(DEFAULT_TICKRATE)))
    debug = _env_flag(os.environ.get("DEBUG", ""))

    return Config(target_player=target, tick_rate=tick_rate, debug=debug)


# =========================
# Logging
# =========================

def setup_logging(debug: bool = False) -> logging.Logger:
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s: %(message)s",
    )
    return logging.getLogger(LOGGER_NAME)
