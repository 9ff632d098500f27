"""engine.achievements

One-time goals from the balance table's achievement list.

Each achievement unlocks at most once (PlayerState.unlocked_achievements is
the guard) and pays its money / experience reward through ProgressionModel.
Multiplier rewards are not applied here: recalculate_stats folds every
unlocked achievement's multiplier into the rates, so they survive reloads.

Rewards publish money_changed / level_up / ... which re-enter the service.
A check that arrives while another is running is queued and handled by the
outer loop, so reward chains do not nest on the bus.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Set

from balance.schemas import ACHIEVEMENT_KINDS, SPEEDRUN_SECONDS, AchievementDef, BalanceTable
from core.events import EventBus, Signals, SubscriptionGroup
from core.formatting import format_currency, format_number
from core.state import PlayerState

from .progression import ProgressionModel
from .statistics import StatisticsTracker

logger = logging.getLogger(__name__)

ACHIEVEMENT_TITLE = "Achievement Unlocked!"


class AchievementService:
    def __init__(
        self,
        *,
        state: Optional[PlayerState],
        bus: EventBus,
        balance: BalanceTable,
        progression: ProgressionModel,
        stats: Optional[StatisticsTracker] = None,
        on_dirty: Optional[Callable[[], None]] = None,
    ) -> None:
        self.state = state
        self.bus = bus
        self.balance = balance
        self.progression = progression
        self.stats = stats
        self._on_dirty = on_dirty
        self._subs = SubscriptionGroup(bus)
        self._checking = False
        self._queued: Set[str] = set()

    def start(self) -> None:
        self._subs.on(Signals.CLICK_PERFORMED, lambda *_: self.check("click"))
        self._subs.on(Signals.MONEY_CHANGED, lambda *_: self.check("money"))
        self._subs.on(Signals.EXPERIENCE_CHANGED, lambda *_: self.check("experience"))
        self._subs.on(Signals.LEVEL_UP, lambda *_: self.check("level"))
        self._subs.on(Signals.STAGE_UNLOCKED, lambda *_: self.check("stage", "speedrun"))
        self._subs.on(Signals.FEATURE_UNLOCKED, lambda *_: self.check("feature"))
        self._subs.on(Signals.UPGRADE_PURCHASED, lambda *_: self.check("upgrade"))
        self._subs.on(Signals.PROJECT_COMPLETED, lambda *_: self.check("project"))
        self._subs.on(Signals.MILESTONE_REACHED, lambda *_: self.check_all())

    def close(self) -> None:
        self._subs.close()

    # -------------------------
    # Views
    # -------------------------

    def is_unlocked(self, achievement_id: str) -> bool:
        return self.state is not None and achievement_id in self.state.unlocked_achievements

    def unlocked(self) -> List[AchievementDef]:
        return [a for a in self.balance.achievements if self.is_unlocked(a.id)]

    def locked(self) -> List[AchievementDef]:
        return [a for a in self.balance.achievements if not self.is_unlocked(a.id)]

    def completion(self) -> float:
        """Unlocked share in percent."""
        total = len(self.balance.achievements)
        if total == 0:
            return 0.0
        return len(self.unlocked()) / total * 100.0

    def total_points(self) -> int:
        return sum(a.points for a in self.unlocked())

    def _play_time(self) -> float:
        if self.stats is not None:
            return self.stats.play_time
        return self.state.total_play_time if self.state else 0.0

    def progress_value(self, a: AchievementDef) -> int:
        s = self.state
        if s is None:
            return 0
        if a.kind == "feature":
            return 1 if a.feature in s.unlocked_features else 0
        values = {
            "click": s.total_clicks,
            "money": s.total_money_earned,
            "experience": s.total_experience_earned,
            "level": s.player_level,
            "stage": s.current_stage,
            "speedrun": s.current_stage,
            "project": s.total_projects_completed,
            "upgrade": s.total_upgrades_purchased,
            "play_time": int(self._play_time()),
            "streak": s.consecutive_days_played,
        }
        return int(values.get(a.kind, 0))

    def is_met(self, a: AchievementDef) -> bool:
        if self.state is None:
            return False
        if a.kind == "feature":
            return a.feature in self.state.unlocked_features
        if a.kind == "speedrun" and self._play_time() >= SPEEDRUN_SECONDS:
            return False
        return self.progress_value(a) >= a.target

    def describe_reward(self, a: AchievementDef) -> str:
        parts: List[str] = []
        if a.money_reward > 0:
            parts.append(format_currency(a.money_reward))
        if a.exp_reward > 0:
            parts.append(f"{format_number(a.exp_reward)} exp")
        if a.reward_description:
            parts.append(a.reward_description)
        elif a.multiplier_reward > 0:
            parts.append(f"+{a.multiplier_reward * 100:.0f}% {a.multiplier_key}")
        return ", ".join(parts)

    # -------------------------
    # Checks
    # -------------------------

    def check_all(self) -> List[str]:
        return self.check(*ACHIEVEMENT_KINDS)

    def check(self, *kinds: str) -> List[str]:
        """Unlock every locked achievement of `kinds` whose goal is met; returns new ids."""
        if self.state is None:
            return []
        if self._checking:
            self._queued.update(kinds)
            return []

        newly: List[str] = []
        pending = set(kinds)
        self._checking = True
        try:
            while pending:
                self._queued = set()
                for a in self.balance.achievements:
                    if a.kind in pending and not self.is_unlocked(a.id) and self.is_met(a):
                        self._unlock(a)
                        newly.append(a.id)
                pending = self._queued
        finally:
            self._checking = False
            self._queued = set()
        return newly

    def _unlock(self, a: AchievementDef) -> None:
        s = self.state
        if s is None or a.id in s.unlocked_achievements:
            return
        s.unlocked_achievements.add(a.id)
        if self._on_dirty is not None:
            self._on_dirty()
        logger.info("achievement unlocked: %s", a.id)

        if a.money_reward > 0:
            self.progression.add_money(a.money_reward)
        if a.exp_reward > 0:
            self.progression.add_experience(a.exp_reward)
        if a.multiplier_reward > 0:
            self.progression.recalculate_stats()

        self.bus.publish(Signals.ACHIEVEMENT_UNLOCKED, a.id)
        message = f"{a.name}: {a.description}"
        reward = self.describe_reward(a)
        if reward:
            message += f" Reward: {reward}"
        self.bus.publish(Signals.NOTIFICATION, ACHIEVEMENT_TITLE, message)
