"""engine.upgrades

Upgrade shop over the balance table's upgrade list.

Purchases go through ProgressionModel so spending stays atomic and the
derived rates are rebuilt from the ledger (PlayerState.upgrade_levels).
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from balance.schemas import BalanceTable, UpgradeDef, normalize_category
from core.events import EventBus, Signals
from core.state import PlayerState

from .progression import MONEY_FEATURE, ProgressionModel

logger = logging.getLogger(__name__)


class UpgradeShop:
    def __init__(
        self,
        *,
        state: Optional[PlayerState],
        bus: EventBus,
        balance: BalanceTable,
        progression: ProgressionModel,
        on_dirty: Optional[Callable[[], None]] = None,
    ) -> None:
        self.state = state
        self.bus = bus
        self.balance = balance
        self.progression = progression
        self._on_dirty = on_dirty

    def level_of(self, upgrade_id: str) -> int:
        if self.state is None:
            return 0
        return int(self.state.upgrade_levels.get(upgrade_id, 0))

    def cost(self, upgrade: UpgradeDef) -> int:
        return upgrade.price_at(self.level_of(upgrade.id))

    def is_unlocked(self, upgrade: UpgradeDef) -> bool:
        s = self.state
        if s is None:
            return False
        return upgrade.unlock.is_met(level=s.player_level, stage=s.current_stage, purchased=s.upgrade_levels)

    def is_maxed(self, upgrade: UpgradeDef) -> bool:
        return not upgrade.unlimited and self.level_of(upgrade.id) >= upgrade.max_level

    def can_afford(self, upgrade: UpgradeDef) -> bool:
        s = self.state
        if s is None:
            return False
        price = self.cost(upgrade)
        if upgrade.currency == "money":
            return MONEY_FEATURE in s.unlocked_features and s.money >= price
        return s.available_experience >= price

    def can_purchase(self, upgrade: UpgradeDef) -> bool:
        return self.is_unlocked(upgrade) and not self.is_maxed(upgrade) and self.can_afford(upgrade)

    def purchase(self, upgrade_id: str) -> bool:
        s = self.state
        upgrade = self.balance.upgrade(upgrade_id)
        if s is None or upgrade is None:
            return False
        if not self.can_purchase(upgrade):
            return False

        price = self.cost(upgrade)
        if upgrade.currency == "money":
            paid = self.progression.spend_money(price)
        else:
            paid = self.progression.spend_experience(price)
        if not paid:
            return False

        level = self.level_of(upgrade.id) + 1
        s.upgrade_levels[upgrade.id] = level
        s.total_upgrades_purchased += 1
        self.progression.recalculate_stats()
        if self._on_dirty is not None:
            self._on_dirty()

        logger.info("purchased %s -> level %d for %d %s", upgrade.id, level, price, upgrade.currency)
        self.bus.publish(Signals.UPGRADE_PURCHASED, upgrade.id, level)
        return True

    def available(self, category: Optional[str] = None) -> List[UpgradeDef]:
        """Unlocked, not maxed upgrades (optionally one category), in table order."""
        pool = self.balance.upgrades if category is None else self.balance.upgrades_in(normalize_category(category))
        return [u for u in pool if self.is_unlocked(u) and not self.is_maxed(u)]
