"""engine.statistics

Records and milestones on top of the lifetime totals.

Lifetime totals (clicks, money, experience, projects, upgrades) live on
PlayerState and are kept by the services that earn them. StatisticsTracker
adds what they do not keep:
- highest money / experience / level / stage reached
- per-session counters (reset by begin_session, never saved)
- days played and the consecutive-day streak
- milestone_reached for round click/project counts and new level/stage highs
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from core.events import EventBus, Signals, SubscriptionGroup
from core.state import PlayerState

logger = logging.getLogger(__name__)

CLICK_MILESTONES = (100, 1000, 10000, 100000, 1000000)
PROJECT_MILESTONES = (10, 50, 100, 500, 1000)


@dataclass
class SessionStats:
    started_at: Optional[datetime] = None
    seconds: float = 0.0
    clicks: int = 0
    money_earned: int = 0
    experience_earned: int = 0


class StatisticsTracker:
    def __init__(
        self,
        *,
        state: Optional[PlayerState],
        bus: EventBus,
        on_dirty: Optional[Callable[[], None]] = None,
    ) -> None:
        self.state = state
        self.bus = bus
        self._on_dirty = on_dirty
        self._subs = SubscriptionGroup(bus)
        self.session = SessionStats()
        # game seconds played since the last save; the save adds wall time itself
        self._unsaved_seconds = 0.0

    def start(self) -> None:
        self._subs.on(Signals.MONEY_CHANGED, self._on_money_changed)
        self._subs.on(Signals.EXPERIENCE_CHANGED, self._on_experience_changed)
        self._subs.on(Signals.CLICK_PERFORMED, self._on_click_performed)
        self._subs.on(Signals.AUTO_INCOME_AWARDED, self._on_auto_income)
        self._subs.on(Signals.PROJECT_COMPLETED, self._on_project_completed)
        self._subs.on(Signals.LEVEL_UP, self._on_level_up)
        self._subs.on(Signals.STAGE_UNLOCKED, self._on_stage_unlocked)
        self._subs.on(Signals.GAME_SAVED, self._on_game_saved)

    def close(self) -> None:
        self._subs.close()

    # -------------------------
    # Session
    # -------------------------

    def begin_session(self, now: Optional[datetime] = None) -> None:
        """Reset session counters, count today as played and sync records."""
        now = now or datetime.now()
        self.session = SessionStats(started_at=now)
        self._unsaved_seconds = 0.0
        s = self.state
        if s is None:
            return

        today = now.date()
        last = s.last_play_date
        if last != today:
            s.total_days_played += 1
            if last is not None and last == today - timedelta(days=1):
                s.consecutive_days_played += 1
            else:
                s.consecutive_days_played = 1
            s.last_play_date = today
            self._mark_dirty()
        s.total_days_played = max(1, s.total_days_played)
        s.consecutive_days_played = max(1, s.consecutive_days_played)

        s.highest_money = max(s.highest_money, s.money)
        s.highest_experience = max(s.highest_experience, s.experience)
        s.highest_level = max(s.highest_level, s.player_level)
        s.highest_stage = max(s.highest_stage, s.current_stage)

    def tick(self, delta_seconds: float) -> None:
        if not math.isfinite(delta_seconds) or delta_seconds <= 0:
            return
        self.session.seconds += float(delta_seconds)
        self._unsaved_seconds += float(delta_seconds)

    @property
    def play_time(self) -> float:
        """Saved play time plus game time since the last save."""
        saved = self.state.total_play_time if self.state else 0.0
        return saved + self._unsaved_seconds

    def clicks_per_minute(self) -> float:
        t = self.play_time
        if self.state is None or t <= 0:
            return 0.0
        return self.state.total_clicks / t * 60.0

    def to_dict(self) -> Dict[str, Any]:
        s = self.state
        out: Dict[str, Any] = {"session": asdict(self.session), "play_time": self.play_time}
        out["session"]["started_at"] = self.session.started_at.isoformat() if self.session.started_at else None
        if s is not None:
            out.update(
                highest_money=s.highest_money,
                highest_experience=s.highest_experience,
                highest_level=s.highest_level,
                highest_stage=s.highest_stage,
                milestones_reached=s.milestones_reached,
                total_days_played=s.total_days_played,
                consecutive_days_played=s.consecutive_days_played,
                clicks_per_minute=self.clicks_per_minute(),
            )
        return out

    # -------------------------
    # Handlers
    # -------------------------

    def _on_money_changed(self, money: int) -> None:
        s = self.state
        if s is not None and money > s.highest_money:
            s.highest_money = int(money)

    def _on_experience_changed(self, experience: int) -> None:
        s = self.state
        if s is not None and experience > s.highest_experience:
            s.highest_experience = int(experience)

    def _on_click_performed(self, money: int, exp: int) -> None:
        s = self.state
        if s is None:
            return
        self.session.clicks += 1
        self.session.money_earned += max(0, int(money))
        self.session.experience_earned += max(0, int(exp))
        if s.total_clicks in CLICK_MILESTONES:
            self._milestone(f"{s.total_clicks} Clicks", s.total_clicks)

    def _on_auto_income(self, money: int, exp: int) -> None:
        self.session.money_earned += max(0, int(money))
        self.session.experience_earned += max(0, int(exp))

    def _on_project_completed(self, reward: int, archetype: Any) -> None:
        s = self.state
        if s is not None and s.total_projects_completed in PROJECT_MILESTONES:
            self._milestone(f"{s.total_projects_completed} Projects Completed", s.total_projects_completed)

    def _on_level_up(self, level: int) -> None:
        s = self.state
        if s is not None and level > s.highest_level:
            s.highest_level = int(level)
            self._milestone(f"Level {level} Reached", level)

    def _on_stage_unlocked(self, stage: int) -> None:
        s = self.state
        if s is not None and stage > s.highest_stage:
            s.highest_stage = int(stage)
            self._milestone(f"Stage {stage} Reached", stage)

    def _on_game_saved(self) -> None:
        self._unsaved_seconds = 0.0

    def _milestone(self, name: str, value: int) -> None:
        s = self.state
        if s is None:
            return
        s.milestones_reached += 1
        self._mark_dirty()
        logger.info("milestone reached: %s", name)
        self.bus.publish(Signals.MILESTONE_REACHED, name, int(value))

    def _mark_dirty(self) -> None:
        if self._on_dirty is not None:
            self._on_dirty()
