"""
SwordFight CLI — game/config.py
Runtime policy constants loaded from TOML and validated by Pydantic.
====================================================================
Stack:       Python 3.11+ | Pydantic v2 | tomllib

Every delay and timeout the UI waits on lives here so pacing can be
tuned (or zeroed in tests) without touching code. A missing config file
means defaults; a present but invalid one is a fatal startup error.
"""

import tomllib
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, NonNegativeFloat, ValidationError

from game.models import SwordfightError

DEFAULT_CONFIG_PATH = Path("swordfight.toml")


class ConfigError(SwordfightError):
    """The config file exists but cannot be read or validated."""


# ================================================================================
# SCHEMAS
# ================================================================================

class TimingConfig(BaseModel):
    model_config = ConfigDict(frozen=True)
    selection_confirm_s: float = Field(default=0.2, ge=0)   # digit jump -> resolve
    setup_delay_s: float = Field(default=0.5, ge=0)         # setup event -> first prompt
    # maneuver -> moves -> damage -> effects -> status
    round_reveal_s: List[NonNegativeFloat] = Field(default_factory=lambda: [0.8, 1.0, 0.8, 0.6])


class MultiplayerConfig(BaseModel):
    model_config = ConfigDict(frozen=True)
    peer_timeout_s: float = Field(default=300.0, gt=0)
    move_timeout_s: float = Field(default=600.0, gt=0)
    relay_probe_s: float = Field(default=30.0, gt=0)
    relay_failure_threshold: int = Field(default=3, ge=1)
    relay_failure_marker: str = "relay failure"
    relay_loggers: List[str] = Field(default_factory=lambda: ["swordfight_engine", "trystero"])


class DisplayConfig(BaseModel):
    model_config = ConfigDict(frozen=True)
    color: bool = True
    health_bar_length: int = Field(default=20, ge=1)
    viewport_reserve: int = Field(default=2, ge=0)


class EngineConfig(BaseModel):
    model_config = ConfigDict(frozen=True)
    backend: str = "swordfight_engine:backend"
    default_character: str = "human-fighter"


class LoggingConfig(BaseModel):
    model_config = ConfigDict(frozen=True)
    file: str = "swordfight.log"
    level: str = "INFO"


class AppConfig(BaseModel):
    model_config = ConfigDict(frozen=True)
    timing: TimingConfig = Field(default_factory=TimingConfig)
    multiplayer: MultiplayerConfig = Field(default_factory=MultiplayerConfig)
    display: DisplayConfig = Field(default_factory=DisplayConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# ================================================================================
# LOADER
# ================================================================================

def load_config(path: Optional[Path] = None) -> AppConfig:
    """
    Loads AppConfig from TOML. With no explicit path, a missing
    swordfight.toml in the working directory yields the defaults.
    """
    explicit = path is not None
    path = Path(path) if explicit else DEFAULT_CONFIG_PATH
    if not path.exists():
        if explicit:
            raise ConfigError(f"Config file not found: {path}")
        return AppConfig()

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Cannot read config {path}: {exc}") from exc

    try:
        return AppConfig(**data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config {path}:\n{exc}") from exc
