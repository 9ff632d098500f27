"""engine.progression

Progression model: the single authority for currency and rate mutation.

Responsibilities:
- click rewards (+ critical roll)
- experience -> level (via core.leveling), money feature unlock at
  config.money_unlock_level (the session aligns the unlock table to it)
- auto-income accumulator driven by tick(delta_seconds)
- spending (atomic) and derived-stat recomputation from the upgrade and
  achievement ledgers

Every mutator is a silent no-op when no PlayerState is attached.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from balance.schemas import BalanceTable
from core.events import EventBus, Signals
from core.leveling import experience_to_next_level, level_from_experience, level_progress
from core.state import PlayerState, clamp, default_multipliers

from .config import EngineConfig

logger = logging.getLogger(__name__)

MONEY_FEATURE = "money"

# float accumulation slack so ten 0.1s ticks make one full 1.0s interval
TIMER_EPSILON = 1e-9


@dataclass(frozen=True)
class ClickResult:
    money: int
    experience: int
    critical: bool


class ProgressionModel:
    def __init__(
        self,
        *,
        state: Optional[PlayerState],
        bus: EventBus,
        balance: BalanceTable,
        config: EngineConfig,
        rng: Optional[random.Random] = None,
        on_dirty: Optional[Callable[[], None]] = None,
    ) -> None:
        self.state = state
        self.bus = bus
        self.balance = balance
        self.config = config
        self.rng = rng or random.Random()
        self._on_dirty = on_dirty
        self._auto_timer = 0.0

    # -------------------------
    # Read-only views
    # -------------------------

    @property
    def money(self) -> int:
        return self.state.money if self.state else 0

    @property
    def experience(self) -> int:
        return self.state.experience if self.state else 0

    @property
    def player_level(self) -> int:
        return self.state.player_level if self.state else 1

    @property
    def is_money_unlocked(self) -> bool:
        return self.state is not None and MONEY_FEATURE in self.state.unlocked_features

    @property
    def critical_chance(self) -> float:
        bonus = self.state.critical_chance_bonus if self.state else 0.0
        return clamp(float(self.config.critical_chance) + bonus, 0.0, 1.0)

    @property
    def critical_multiplier(self) -> float:
        bonus = self.state.critical_multiplier_bonus if self.state else 0.0
        return max(1.0, float(self.config.critical_multiplier) + bonus)

    @property
    def auto_timer(self) -> float:
        return self._auto_timer

    def calculate_level(self, experience: int) -> int:
        curve = self.balance.level_curve
        return level_from_experience(experience, curve.base_experience, curve.growth)

    def experience_to_next_level(self) -> int:
        curve = self.balance.level_curve
        return experience_to_next_level(self.experience, curve.base_experience, curve.growth)

    def level_progress(self) -> float:
        curve = self.balance.level_curve
        return level_progress(self.experience, curve.base_experience, curve.growth)

    def exp_gain_per_click(self) -> float:
        s = self.state
        if s is None:
            return 0.0
        return s.exp_per_click * s.multiplier("exp") * s.multiplier("all")

    def money_gain_per_click(self) -> float:
        s = self.state
        if s is None or not self.is_money_unlocked:
            return 0.0
        return s.money_per_click * s.multiplier("money") * s.multiplier("all")

    # -------------------------
    # Clicks
    # -------------------------

    def perform_click(self, position: Any = None) -> ClickResult:
        s = self.state
        if s is None:
            return ClickResult(money=0, experience=0, critical=False)

        exp_gain = self.exp_gain_per_click()
        money_gain = self.money_gain_per_click()

        critical = self.rng.random() < self.critical_chance
        if critical:
            mult = self.critical_multiplier
            exp_gain *= mult
            money_gain *= mult
            self.bus.publish(Signals.CRITICAL_CLICK, position)

        exp_award = int(exp_gain)
        money_award = int(money_gain)
        self.add_experience(exp_award)
        self.add_money(money_award)

        s.total_clicks += 1
        self._mark_dirty()
        logger.debug("click: +%d exp +%d money critical=%s", exp_award, money_award, critical)

        self.bus.publish(Signals.CLICK_PERFORMED, money_award, exp_award)
        return ClickResult(money=money_award, experience=exp_award, critical=critical)

    # -------------------------
    # Currencies
    # -------------------------

    def add_money(self, amount: int) -> None:
        s = self.state
        if s is None or amount <= 0:
            return
        s.money += int(amount)
        s.total_money_earned += int(amount)
        self._mark_dirty()
        self.bus.publish(Signals.MONEY_CHANGED, s.money)

    def add_experience(self, amount: int) -> None:
        s = self.state
        if s is None or amount <= 0:
            return
        old_level = self.calculate_level(s.experience)
        s.experience += int(amount)
        s.total_experience_earned += int(amount)
        new_level = self.calculate_level(s.experience)
        if new_level > old_level:
            self.level_up(new_level)
        else:
            s.player_level = new_level
        self._mark_dirty()
        self.bus.publish(Signals.EXPERIENCE_CHANGED, s.experience)

    def spend_money(self, amount: int) -> bool:
        s = self.state
        if s is None or amount < 0 or s.money < amount:
            return False
        s.money -= int(amount)
        self._mark_dirty()
        self.bus.publish(Signals.MONEY_CHANGED, s.money)
        return True

    def spend_experience(self, amount: int) -> bool:
        """Spend from the non-leveling balance (experience - spent_experience).

        Lifetime experience and the player level are untouched.
        """
        s = self.state
        if s is None or amount < 0 or s.available_experience < amount:
            return False
        s.spent_experience += int(amount)
        self._mark_dirty()
        self.bus.publish(Signals.EXPERIENCE_CHANGED, s.experience)
        return True

    # -------------------------
    # Levels
    # -------------------------

    def level_up(self, new_level: int) -> None:
        s = self.state
        if s is None:
            return
        old_level = s.player_level
        s.player_level = int(new_level)
        logger.info("level up %d -> %d", old_level, new_level)

        if new_level >= int(self.config.money_unlock_level) and MONEY_FEATURE not in s.unlocked_features:
            s.unlocked_features.add(MONEY_FEATURE)
            rule = self.balance.unlock_rule(MONEY_FEATURE)
            self.bus.publish(Signals.FEATURE_UNLOCKED, MONEY_FEATURE)
            self.bus.publish(
                Signals.NOTIFICATION,
                rule.title if rule else "First Sale!",
                rule.description if rule else "Your game is selling! You now earn money from development!",
            )

        self.bus.publish(Signals.LEVEL_UP, s.player_level)

    # -------------------------
    # Auto income
    # -------------------------

    def tick(self, delta_seconds: float) -> int:
        """Advance the auto-income timer; returns how many payouts happened."""
        if self.state is None or not math.isfinite(delta_seconds) or delta_seconds <= 0:
            return 0
        interval = float(self.config.auto_income_interval)
        self._auto_timer += float(delta_seconds)
        payouts = 0
        while self._auto_timer + TIMER_EPSILON >= interval:
            self._auto_timer = max(0.0, self._auto_timer - interval)
            self._award_auto_income(interval)
            payouts += 1
        return payouts

    def reset_timer(self) -> None:
        self._auto_timer = 0.0

    def _award_auto_income(self, interval: float) -> None:
        s = self.state
        if s is None:
            return
        money = 0
        exp = 0
        if s.auto_money > 0:
            money = int(s.auto_money * s.multiplier("money") * s.multiplier("all") * interval)
        if s.auto_exp > 0:
            exp = int(s.auto_exp * s.multiplier("exp") * s.multiplier("all") * interval)
        if money <= 0 and exp <= 0:
            return
        self.add_money(money)
        self.add_experience(exp)
        s.total_auto_income += money + exp
        self.bus.publish(Signals.AUTO_INCOME_AWARDED, money, exp)

    # -------------------------
    # Derived stats
    # -------------------------

    def recalculate_stats(self) -> None:
        """Rebuild rates and multipliers from base values, owned upgrades and achievements."""
        s = self.state
        if s is None:
            return

        additive: Dict[str, float] = {}
        multipliers = default_multipliers()
        for upgrade in self.balance.upgrades:
            level = int(s.upgrade_levels.get(upgrade.id, 0))
            if level <= 0:
                continue
            for effect in upgrade.effects:
                value = effect.value_at(level)
                if effect.is_multiplier:
                    key = effect.type.replace("_multiplier", "")
                    multipliers[key] = multipliers.get(key, 1.0) * value
                else:
                    additive[effect.type] = additive.get(effect.type, 0.0) + value
        for achievement in self.balance.achievements:
            if achievement.multiplier_reward > 0 and achievement.id in s.unlocked_achievements:
                key = achievement.multiplier_key
                multipliers[key] = multipliers.get(key, 1.0) * (1.0 + achievement.multiplier_reward)

        s.money_per_click = s.base_money_per_click + additive.get("money_per_click", 0.0)
        s.exp_per_click = s.base_exp_per_click + additive.get("exp_per_click", 0.0)
        s.auto_money = s.base_auto_money + additive.get("auto_money", 0.0)
        s.auto_exp = s.base_auto_exp + additive.get("auto_exp", 0.0)
        s.critical_chance_bonus = additive.get("critical_chance", 0.0)
        s.critical_multiplier_bonus = additive.get("critical_multiplier", 0.0)
        s.multipliers = multipliers

        self._mark_dirty()
        self.bus.publish(Signals.CLICK_VALUES_CHANGED, s.money_per_click, s.exp_per_click)
        self.bus.publish(Signals.AUTO_INCOME_CHANGED, s.auto_money, s.auto_exp)

    def refresh(self) -> None:
        """Republish every value (after a load or a state swap)."""
        s = self.state
        if s is None:
            return
        self.bus.publish(Signals.MONEY_CHANGED, s.money)
        self.bus.publish(Signals.EXPERIENCE_CHANGED, s.experience)
        self.bus.publish(Signals.CLICK_VALUES_CHANGED, s.money_per_click, s.exp_per_click)
        self.bus.publish(Signals.AUTO_INCOME_CHANGED, s.auto_money, s.auto_exp)

    def _mark_dirty(self) -> None:
        if self._on_dirty is not None:
            self._on_dirty()
