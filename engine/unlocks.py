"""engine.unlocks

Feature gates and stage advancement.

- UnlockEvaluator: rule table (feature -> level/stage/feature predicate),
  re-checked on level_up and stage_unlocked only.
- StageTracker: advances current_stage from lifetime experience.

Neither publishes level_up, and only StageTracker publishes stage_unlocked,
so the level_up -> check -> stage_unlocked -> check chain terminates.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from balance.schemas import BalanceTable, UnlockRule
from core.events import EventBus, Signals, SubscriptionGroup
from core.state import PlayerState

logger = logging.getLogger(__name__)


class UnlockEvaluator:
    def __init__(
        self,
        *,
        state: Optional[PlayerState],
        bus: EventBus,
        balance: BalanceTable,
        on_dirty: Optional[Callable[[], None]] = None,
    ) -> None:
        self.state = state
        self.bus = bus
        self.balance = balance
        self._on_dirty = on_dirty
        self._subs = SubscriptionGroup(bus)

    def start(self) -> None:
        self._subs.on(Signals.LEVEL_UP, self._on_level_up)
        self._subs.on(Signals.STAGE_UNLOCKED, self._on_stage_unlocked)

    def close(self) -> None:
        self._subs.close()

    def is_unlocked(self, feature: str) -> bool:
        return self.state is not None and feature in self.state.unlocked_features

    def check_all_unlocks(self) -> List[str]:
        """Unlock every rule whose predicate now holds; returns newly unlocked ids."""
        s = self.state
        if s is None:
            return []
        newly: List[str] = []
        # a rule may depend on a feature unlocked earlier in the same pass
        changed = True
        while changed:
            changed = False
            for rule in self.balance.unlock_rules:
                if rule.feature in s.unlocked_features:
                    continue
                if rule.is_met(level=s.player_level, stage=s.current_stage, unlocked=s.unlocked_features):
                    self._unlock(rule)
                    newly.append(rule.feature)
                    changed = True
        return newly

    def pending_rules(self) -> List[UnlockRule]:
        """Locked rules within 5 levels or 1 stage of their requirement."""
        s = self.state
        if s is None:
            return []
        return [
            r
            for r in self.balance.unlock_rules
            if r.feature not in s.unlocked_features
            and (s.player_level >= r.required_level - 5 or s.current_stage >= r.required_stage - 1)
        ]

    def describe_progress(self, feature: str) -> str:
        rule = self.balance.unlock_rule(feature)
        s = self.state
        if rule is None or s is None:
            return ""
        if feature in s.unlocked_features:
            return "Unlocked"
        reqs: List[str] = []
        if s.player_level < rule.required_level:
            reqs.append(f"Level {rule.required_level} (currently {s.player_level})")
        if s.current_stage < rule.required_stage:
            reqs.append(f"Stage {rule.required_stage} (currently {s.current_stage})")
        for f in rule.required_features:
            if f not in s.unlocked_features:
                reqs.append(f"Feature {f}")
        return f"Requires: {', '.join(reqs)}" if reqs else "Ready to unlock!"

    def _unlock(self, rule: UnlockRule) -> None:
        s = self.state
        if s is None or rule.feature in s.unlocked_features:
            return
        s.unlocked_features.add(rule.feature)
        if self._on_dirty is not None:
            self._on_dirty()
        logger.info("unlocked feature %s", rule.feature)
        self.bus.publish(Signals.FEATURE_UNLOCKED, rule.feature)
        self.bus.publish(Signals.NOTIFICATION, f"{rule.title} Unlocked!", rule.description)

    def _on_level_up(self, level: int) -> None:
        self.check_all_unlocks()

    def _on_stage_unlocked(self, stage: int) -> None:
        self.check_all_unlocks()


class StageTracker:
    def __init__(
        self,
        *,
        state: Optional[PlayerState],
        bus: EventBus,
        balance: BalanceTable,
        on_dirty: Optional[Callable[[], None]] = None,
    ) -> None:
        self.state = state
        self.bus = bus
        self.balance = balance
        self._on_dirty = on_dirty
        self._subs = SubscriptionGroup(bus)

    def start(self) -> None:
        self._subs.on(Signals.EXPERIENCE_CHANGED, self._on_experience_changed)

    def close(self) -> None:
        self._subs.close()

    def next_stage_threshold(self) -> Optional[int]:
        s = self.state
        if s is None or s.current_stage >= self.balance.stages.max_stage:
            return None
        return self.balance.stages.threshold_for(s.current_stage + 1)

    def check_stage(self) -> List[int]:
        """Advance one stage at a time while experience covers the next threshold."""
        s = self.state
        if s is None:
            return []
        stages = self.balance.stages
        reached: List[int] = []
        while s.current_stage < stages.max_stage and s.experience >= stages.threshold_for(s.current_stage + 1):
            s.current_stage += 1
            reached.append(s.current_stage)
            if self._on_dirty is not None:
                self._on_dirty()
            logger.info("stage %d unlocked", s.current_stage)
            self.bus.publish(Signals.STAGE_UNLOCKED, s.current_stage)
        return reached

    def _on_experience_changed(self, experience: int) -> None:
        self.check_stage()
