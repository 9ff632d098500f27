"""engine.offline

Offline progression: award a reduced share of auto income for the time
the game was closed.

Rules:
- elapsed = now - last_save_time; ignored below offline_min_seconds
- capped at offline_max_hours
- money only once the money feature is unlocked
- offline experience also feeds the active project
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from core.events import EventBus, Signals
from core.formatting import format_currency, format_duration, format_number
from core.state import PlayerState

from .config import EngineConfig
from .progression import MONEY_FEATURE, ProgressionModel
from .projects import ProjectSystem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OfflineReport:
    seconds_away: float
    seconds_credited: float
    money: int
    experience: int
    projects_completed: int = 0

    @property
    def capped(self) -> bool:
        return self.seconds_credited < self.seconds_away

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seconds_away": float(self.seconds_away),
            "seconds_credited": float(self.seconds_credited),
            "money": int(self.money),
            "experience": int(self.experience),
            "projects_completed": int(self.projects_completed),
        }


def credited_seconds(seconds_away: float, config: EngineConfig) -> float:
    """0 below the minimum, otherwise capped at offline_max_hours."""
    if seconds_away < float(config.offline_min_seconds):
        return 0.0
    return min(float(seconds_away), float(config.offline_max_hours) * 3600.0)


def calculate_offline_earnings(state: PlayerState, seconds: float, config: EngineConfig) -> Tuple[int, int]:
    """(money, experience) for `seconds` of credited offline time."""
    eff = float(config.offline_efficiency)
    money = 0
    if MONEY_FEATURE in state.unlocked_features and state.auto_money > 0:
        money = int(state.auto_money * eff * seconds)
    exp = int(state.auto_exp * eff * seconds) if state.auto_exp > 0 else 0
    return money, exp


def describe_report(report: OfflineReport) -> str:
    parts = [f"You were away for {format_duration(report.seconds_away)}."]
    if report.money > 0:
        parts.append(f"Earned {format_currency(report.money)}")
    if report.experience > 0:
        parts.append(f"Gained {format_number(report.experience)} experience")
    if report.projects_completed > 0:
        parts.append(f"Completed {report.projects_completed} project(s)")
    return "\n".join(parts)


def apply_offline_progress(
    *,
    state: Optional[PlayerState],
    bus: EventBus,
    config: EngineConfig,
    progression: ProgressionModel,
    projects: Optional[ProjectSystem] = None,
    now: Optional[datetime] = None,
) -> Optional[OfflineReport]:
    """Credit offline earnings once after a load.

    Returns None when nothing was awarded (fresh save, too short an absence,
    or no auto income).
    """
    if state is None or state.last_save_time is None:
        return None

    now = now or datetime.now()
    seconds_away = (now - state.last_save_time).total_seconds()
    seconds = credited_seconds(seconds_away, config)
    if seconds <= 0:
        return None

    money, exp = calculate_offline_earnings(state, seconds, config)
    if money <= 0 and exp <= 0:
        return None

    progression.add_money(money)
    progression.add_experience(exp)

    completed = 0
    if projects is not None and exp > 0:
        completed = projects.absorb_offline(exp)

    report = OfflineReport(
        seconds_away=seconds_away,
        seconds_credited=seconds,
        money=money,
        experience=exp,
        projects_completed=completed,
    )
    logger.info("offline progress: %.0fs credited, +%d money, +%d exp", seconds, money, exp)
    bus.publish(Signals.OFFLINE_EARNINGS, report)
    bus.publish(Signals.NOTIFICATION, "Welcome Back!", describe_report(report))
    return report
