"""
core.state
Core domain data models (UI/engine independent).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional, Set

SAVE_VERSION = 2

MULTIPLIER_KEYS = ("money", "exp", "all")


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def default_multipliers() -> Dict[str, float]:
    return {k: 1.0 for k in MULTIPLIER_KEYS}


@dataclass
class PlayerState:
    """The persisted save record.

    One instance per play session. Services mutate it in place; nothing
    else owns a copy.

    Currencies:
    - money: spendable, >= 0
    - experience: lifetime counter, drives player_level, never decreases
    - spent_experience: how much of `experience` was spent on upgrades

    Rates (base_* values plus owned upgrades and achievements, see
    ProgressionModel.recalculate_stats):
    - money_per_click / exp_per_click
    - auto_money / auto_exp (per second)
    - multipliers: "money", "exp", "all" (composed by product)
    - critical_chance_bonus / critical_multiplier_bonus (from upgrades)

    Records (engine.statistics): highest_*, milestones_reached, play days.
    """

    money: int = 0
    experience: int = 0
    spent_experience: int = 0

    base_money_per_click: float = 0.0
    base_exp_per_click: float = 1.0
    base_auto_money: float = 0.0
    base_auto_exp: float = 0.0
    money_per_click: float = 0.0
    exp_per_click: float = 1.0
    auto_money: float = 0.0
    auto_exp: float = 0.0
    multipliers: Dict[str, float] = field(default_factory=default_multipliers)
    critical_chance_bonus: float = 0.0
    critical_multiplier_bonus: float = 0.0

    player_level: int = 1
    current_stage: int = 1
    unlocked_features: Set[str] = field(default_factory=set)
    upgrade_levels: Dict[str, int] = field(default_factory=dict)
    unlocked_achievements: Set[str] = field(default_factory=set)

    total_clicks: int = 0
    total_money_earned: int = 0
    total_experience_earned: int = 0
    total_auto_income: int = 0
    total_projects_completed: int = 0
    total_upgrades_purchased: int = 0

    highest_money: int = 0
    highest_experience: int = 0
    highest_level: int = 1
    highest_stage: int = 1
    milestones_reached: int = 0
    total_days_played: int = 0
    consecutive_days_played: int = 0
    last_play_date: Optional[date] = None

    save_version: int = SAVE_VERSION
    first_play_time: Optional[datetime] = None
    last_save_time: Optional[datetime] = None
    total_play_time: float = 0.0
    save_count: int = 0

    @property
    def available_experience(self) -> int:
        return max(0, int(self.experience) - int(self.spent_experience))

    def multiplier(self, key: str) -> float:
        return float(self.multipliers.get(key, 1.0))

    def is_unlocked(self, feature: str) -> bool:
        return feature in self.unlocked_features


def _as_datetime(x: Any) -> Optional[datetime]:
    if x is None or x == "":
        return None
    if isinstance(x, datetime):
        return x
    try:
        return datetime.fromisoformat(str(x))
    except ValueError:
        return None


def _as_date(x: Any) -> Optional[date]:
    if isinstance(x, datetime):
        return x.date()
    if isinstance(x, date):
        return x
    dt = _as_datetime(x)
    return dt.date() if dt else None


def _num(x: Any, default: float) -> float:
    """float(x), or `default` for junk, NaN and +/-inf."""
    try:
        v = float(x)
    except (TypeError, ValueError, OverflowError):
        return float(default)
    return v if math.isfinite(v) else float(default)


def _int(d: Mapping[str, Any], key: str, default: int = 0, lo: Optional[int] = None) -> int:
    v = int(_num(d.get(key, default), default))
    return v if lo is None else max(lo, v)


def _float(d: Mapping[str, Any], key: str, default: float = 0.0) -> float:
    return _num(d.get(key, default), default)


def state_from_mapping(d: Mapping[str, Any]) -> PlayerState:
    """Build a PlayerState from a plain dict (save blob).

    Out-of-range or non-finite numbers fall back to the field default.
    """
    multipliers = default_multipliers()
    for k, v in dict(d.get("multipliers") or {}).items():
        multipliers[str(k)] = _num(v, 1.0)

    return PlayerState(
        money=_int(d, "money", 0, lo=0),
        experience=_int(d, "experience", 0, lo=0),
        spent_experience=_int(d, "spent_experience", 0, lo=0),
        base_money_per_click=_float(d, "base_money_per_click", 0.0),
        base_exp_per_click=_float(d, "base_exp_per_click", 1.0),
        base_auto_money=_float(d, "base_auto_money", 0.0),
        base_auto_exp=_float(d, "base_auto_exp", 0.0),
        money_per_click=_float(d, "money_per_click", 0.0),
        exp_per_click=_float(d, "exp_per_click", 1.0),
        auto_money=_float(d, "auto_money", 0.0),
        auto_exp=_float(d, "auto_exp", 0.0),
        multipliers=multipliers,
        critical_chance_bonus=_float(d, "critical_chance_bonus", 0.0),
        critical_multiplier_bonus=_float(d, "critical_multiplier_bonus", 0.0),
        player_level=_int(d, "player_level", 1, lo=1),
        current_stage=_int(d, "current_stage", 1, lo=1),
        unlocked_features={str(x) for x in (d.get("unlocked_features") or [])},
        upgrade_levels={str(k): max(0, int(_num(v, 0))) for k, v in dict(d.get("upgrade_levels") or {}).items()},
        unlocked_achievements={str(x) for x in (d.get("unlocked_achievements") or [])},
        total_clicks=_int(d, "total_clicks", 0, lo=0),
        total_money_earned=_int(d, "total_money_earned", 0, lo=0),
        total_experience_earned=_int(d, "total_experience_earned", 0, lo=0),
        total_auto_income=_int(d, "total_auto_income", 0, lo=0),
        total_projects_completed=_int(d, "total_projects_completed", 0, lo=0),
        total_upgrades_purchased=_int(d, "total_upgrades_purchased", 0, lo=0),
        highest_money=_int(d, "highest_money", 0, lo=0),
        highest_experience=_int(d, "highest_experience", 0, lo=0),
        highest_level=_int(d, "highest_level", 1, lo=1),
        highest_stage=_int(d, "highest_stage", 1, lo=1),
        milestones_reached=_int(d, "milestones_reached", 0, lo=0),
        total_days_played=_int(d, "total_days_played", 0, lo=0),
        consecutive_days_played=_int(d, "consecutive_days_played", 0, lo=0),
        last_play_date=_as_date(d.get("last_play_date")),
        save_version=_int(d, "save_version", SAVE_VERSION),
        first_play_time=_as_datetime(d.get("first_play_time")),
        last_save_time=_as_datetime(d.get("last_save_time")),
        total_play_time=max(0.0, _float(d, "total_play_time", 0.0)),
        save_count=_int(d, "save_count", 0, lo=0),
    )


def state_to_dict(s: PlayerState) -> Dict[str, Any]:
    """JSON-serializable view of the save record."""
    return {
        "save_version": int(s.save_version),
        "money": int(s.money),
        "experience": int(s.experience),
        "spent_experience": int(s.spent_experience),
        "base_money_per_click": float(s.base_money_per_click),
        "base_exp_per_click": float(s.base_exp_per_click),
        "base_auto_money": float(s.base_auto_money),
        "base_auto_exp": float(s.base_auto_exp),
        "money_per_click": float(s.money_per_click),
        "exp_per_click": float(s.exp_per_click),
        "auto_money": float(s.auto_money),
        "auto_exp": float(s.auto_exp),
        "multipliers": {k: float(v) for k, v in s.multipliers.items()},
        "critical_chance_bonus": float(s.critical_chance_bonus),
        "critical_multiplier_bonus": float(s.critical_multiplier_bonus),
        "player_level": int(s.player_level),
        "current_stage": int(s.current_stage),
        "unlocked_features": sorted(s.unlocked_features),
        "upgrade_levels": {k: int(v) for k, v in sorted(s.upgrade_levels.items())},
        "unlocked_achievements": sorted(s.unlocked_achievements),
        "total_clicks": int(s.total_clicks),
        "total_money_earned": int(s.total_money_earned),
        "total_experience_earned": int(s.total_experience_earned),
        "total_auto_income": int(s.total_auto_income),
        "total_projects_completed": int(s.total_projects_completed),
        "total_upgrades_purchased": int(s.total_upgrades_purchased),
        "highest_money": int(s.highest_money),
        "highest_experience": int(s.highest_experience),
        "highest_level": int(s.highest_level),
        "highest_stage": int(s.highest_stage),
        "milestones_reached": int(s.milestones_reached),
        "total_days_played": int(s.total_days_played),
        "consecutive_days_played": int(s.consecutive_days_played),
        "last_play_date": s.last_play_date.isoformat() if s.last_play_date else None,
        "first_play_time": s.first_play_time.isoformat() if s.first_play_time else None,
        "last_save_time": s.last_save_time.isoformat() if s.last_save_time else None,
        "total_play_time": float(s.total_play_time),
        "save_count": int(s.save_count),
    }


def default_start_state(now: Optional[datetime] = None) -> PlayerState:
    """Baseline start state.

    Keep it in core so headless tests and UI share the same baseline.
    """
    return PlayerState(first_play_time=now or datetime.now())
