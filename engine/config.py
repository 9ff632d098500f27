"""engine.config

Engine configuration passed from the UI / runner.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

ENV_PREFIX = "CLICKER_"


def _env_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(ENV_PREFIX + key)
    if raw is None or raw.strip() == "":
        return float(default)
    return float(raw)


def _env_int(env: Mapping[str, str], key: str, default: Optional[int]) -> Optional[int]:
    raw = env.get(ENV_PREFIX + key)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _env_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(ENV_PREFIX + key)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class EngineConfig:
    base_seed: Optional[int] = None  # None: non-deterministic play
    critical_chance: float = 0.05
    critical_multiplier: float = 2.0
    money_unlock_level: int = 10
    auto_income_interval: float = 1.0
    offline_efficiency: float = 0.5
    offline_min_seconds: float = 60.0
    offline_max_hours: float = 24.0
    save_path: str = "savegame.json"
    autosave_interval: float = 30.0
    achievements_enabled: bool = True

    @staticmethod
    def from_env(env: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        """Read CLICKER_* overrides (CLICKER_SEED, CLICKER_SAVE_PATH, ...)."""
        e = os.environ if env is None else env
        d = EngineConfig()
        return EngineConfig(
            base_seed=_env_int(e, "SEED", d.base_seed),
            critical_chance=_env_float(e, "CRITICAL_CHANCE", d.critical_chance),
            critical_multiplier=_env_float(e, "CRITICAL_MULTIPLIER", d.critical_multiplier),
            money_unlock_level=int(_env_int(e, "MONEY_UNLOCK_LEVEL", d.money_unlock_level) or d.money_unlock_level),
            auto_income_interval=_env_float(e, "AUTO_INCOME_INTERVAL", d.auto_income_interval),
            offline_efficiency=_env_float(e, "OFFLINE_EFFICIENCY", d.offline_efficiency),
            offline_min_seconds=_env_float(e, "OFFLINE_MIN_SECONDS", d.offline_min_seconds),
            offline_max_hours=_env_float(e, "OFFLINE_MAX_HOURS", d.offline_max_hours),
            save_path=str(e.get(ENV_PREFIX + "SAVE_PATH") or d.save_path),
            autosave_interval=_env_float(e, "AUTOSAVE_INTERVAL", d.autosave_interval),
            achievements_enabled=_env_bool(e, "ACHIEVEMENTS", d.achievements_enabled),
        )


def validate_config(cfg: EngineConfig) -> None:
    if not 0.0 <= cfg.critical_chance <= 1.0:
        raise ValueError("critical_chance must be within 0..1")
    if cfg.critical_multiplier < 1.0:
        raise ValueError("critical_multiplier must be >= 1.0")
    if cfg.money_unlock_level < 1:
        raise ValueError("money_unlock_level must be >= 1")
    if cfg.auto_income_interval <= 0:
        raise ValueError("auto_income_interval must be > 0")
    if not 0.0 <= cfg.offline_efficiency <= 1.0:
        raise ValueError("offline_efficiency must be within 0..1")
    if cfg.offline_max_hours <= 0:
        raise ValueError("offline_max_hours must be > 0")
