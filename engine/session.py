"""engine.session

GameSession: one play session, wired by hand.

The session owns the bus and every service, and passes each its
collaborators explicitly. Nothing here is global; two sessions in one
process do not see each other's events.

Load order:
  recalculate rates -> resync level -> begin statistics session
  -> projects.load -> stage check -> unlock check -> achievement check
  -> offline credit -> refresh
"""

from __future__ import annotations

import logging
import math
from collections import deque
from datetime import datetime
from typing import Any, Deque, Dict, List, Mapping, Optional, Tuple

from balance.defaults import default_balance
from balance.schemas import BalanceTable
from core.events import EventBus, Signals, SubscriptionGroup
from core.rng import rng_from
from core.state import PlayerState, default_start_state, state_to_dict

from .achievements import AchievementService
from .config import EngineConfig, validate_config
from .offline import OfflineReport, apply_offline_progress
from .progression import MONEY_FEATURE, ClickResult, ProgressionModel
from .projects import ProjectSystem
from .save import SaveStore, state_from_save_data
from .statistics import StatisticsTracker
from .unlocks import StageTracker, UnlockEvaluator
from .upgrades import UpgradeShop

logger = logging.getLogger(__name__)

MAX_NOTIFICATIONS = 20


class GameSession:
    def __init__(
        self,
        *,
        config: Optional[EngineConfig] = None,
        balance: Optional[BalanceTable] = None,
        state: Optional[PlayerState] = None,
        store: Optional[SaveStore] = None,
        now: Optional[datetime] = None,
    ) -> None:
        self.config = config or EngineConfig()
        validate_config(self.config)
        # the money rule follows config so every gate agrees on one level
        self.balance = (balance or default_balance()).with_rule_level(MONEY_FEATURE, self.config.money_unlock_level)
        self.bus = EventBus()
        self.store = store
        if self.store is not None and self.store.bus is None:
            self.store.bus = self.bus

        seed = self.config.base_seed
        self.progression = ProgressionModel(
            state=None,
            bus=self.bus,
            balance=self.balance,
            config=self.config,
            rng=rng_from("clicks", base_seed=seed),
            on_dirty=self._mark_dirty,
        )
        self.unlocks = UnlockEvaluator(state=None, bus=self.bus, balance=self.balance, on_dirty=self._mark_dirty)
        self.stages = StageTracker(state=None, bus=self.bus, balance=self.balance, on_dirty=self._mark_dirty)
        self.projects = ProjectSystem(
            state=None,
            bus=self.bus,
            balance=self.balance,
            progression=self.progression,
            rng=rng_from("projects", base_seed=seed),
            on_dirty=self._mark_dirty,
        )
        self.shop = UpgradeShop(
            state=None,
            bus=self.bus,
            balance=self.balance,
            progression=self.progression,
            on_dirty=self._mark_dirty,
        )
        self.stats = StatisticsTracker(state=None, bus=self.bus, on_dirty=self._mark_dirty)
        self.achievements = AchievementService(
            state=None,
            bus=self.bus,
            balance=self.balance,
            progression=self.progression,
            stats=self.stats,
            on_dirty=self._mark_dirty,
        )

        self.paused = False
        self.closed = False
        self.offline_report: Optional[OfflineReport] = None
        self.notifications: Deque[Tuple[str, str]] = deque(maxlen=MAX_NOTIFICATIONS)
        # counts every notification ever published; the deque only keeps the newest
        self.notification_seq = 0
        self.imported_source: Optional[str] = None
        self._autosave_timer = 0.0

        self._subs = SubscriptionGroup(self.bus)
        self._subs.on(Signals.NOTIFICATION, self._on_notification)
        self.unlocks.start()
        self.stages.start()
        self.projects.start()
        self.stats.start()
        if self.config.achievements_enabled:
            self.achievements.start()

        if state is None:
            state = self.store.load(now) if self.store is not None else default_start_state(now)
        self.state: Optional[PlayerState] = None
        self.attach(state, now=now)

    @classmethod
    def from_config(cls, config: Optional[EngineConfig] = None, *, now: Optional[datetime] = None) -> "GameSession":
        """Session backed by the save file at config.save_path."""
        cfg = config or EngineConfig.from_env()
        balance = default_balance()
        store = SaveStore(cfg.save_path, level_curve=balance.level_curve)
        return cls(config=cfg, balance=balance, store=store, now=now)

    # -------------------------
    # Wiring
    # -------------------------

    def _services(self) -> List[Any]:
        return [self.progression, self.unlocks, self.stages, self.projects, self.shop, self.stats, self.achievements]

    def attach(self, state: PlayerState, *, now: Optional[datetime] = None, offline: bool = True) -> None:
        """Point every service at `state` and bring derived values up to date."""
        self.state = state
        for svc in self._services():
            svc.state = state
        self.progression.reset_timer()
        self.projects.unlocked = False

        self.progression.recalculate_stats()
        state.player_level = self.progression.calculate_level(state.experience)
        self.stats.begin_session(now)
        self.projects.load()
        self.stages.check_stage()
        self.unlocks.check_all_unlocks()
        if self.config.achievements_enabled:
            self.achievements.check_all()

        self.offline_report = None
        if offline:
            self.offline_report = apply_offline_progress(
                state=state,
                bus=self.bus,
                config=self.config,
                progression=self.progression,
                projects=self.projects,
                now=now,
            )
        self.progression.refresh()
        logger.info(
            "session attached: level %d, stage %d, %d features",
            state.player_level,
            state.current_stage,
            len(state.unlocked_features),
        )

    def _mark_dirty(self) -> None:
        if self.store is not None:
            self.store.mark_dirty()

    def _on_notification(self, title: str, message: str) -> None:
        self.notifications.append((title, message))
        self.notification_seq += 1

    def notifications_since(self, seq: int) -> List[Tuple[str, str]]:
        """Notifications published after sequence number `seq`, oldest first.

        Only the newest MAX_NOTIFICATIONS are kept, so a caller that fell
        further behind gets those.
        """
        missed = self.notification_seq - int(seq)
        if missed <= 0:
            return []
        items = list(self.notifications)
        return items[-missed:] if missed < len(items) else items

    # -------------------------
    # Player actions
    # -------------------------

    def click(self, position: Any = None) -> ClickResult:
        return self.progression.perform_click(position)

    def buy(self, upgrade_id: str) -> bool:
        return self.shop.purchase(upgrade_id)

    def tick(self, delta_seconds: float) -> int:
        """Advance game time; returns the number of auto-income payouts."""
        if self.paused or self.closed or not math.isfinite(delta_seconds) or delta_seconds <= 0:
            return 0
        payouts = self.progression.tick(delta_seconds)
        self.stats.tick(delta_seconds)
        if self.config.achievements_enabled:
            self.achievements.check("play_time")
        if self.store is not None and self.config.autosave_interval > 0:
            self._autosave_timer += float(delta_seconds)
            if self._autosave_timer >= float(self.config.autosave_interval):
                self._autosave_timer = 0.0
                self.store.save_if_dirty(self.state)
        return payouts

    def pause(self) -> None:
        self.paused = True

    def resume(self) -> None:
        self.paused = False

    def save(self, now: Optional[datetime] = None) -> bool:
        if self.store is None or self.state is None:
            return False
        self.store.save(self.state, now)
        self._autosave_timer = 0.0
        return True

    def reset(self, now: Optional[datetime] = None) -> None:
        """Wipe progress (and the save files, when backed by a store)."""
        state = self.store.delete(now) if self.store is not None else default_start_state(now)
        self.notifications.clear()
        self.attach(state, now=now, offline=False)

    def import_save(
        self,
        data: Mapping[str, Any],
        *,
        source_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """Replace the current state with an exported save.

        `data` is either an export payload ({"game_state": {...}}) or a bare
        save blob of any version. With `source_id`, importing the same source
        again is a no-op and returns False.

        Raises ValueError, TypeError or OverflowError for unreadable data.
        """
        if source_id is not None and source_id == self.imported_source:
            return False
        if not isinstance(data, Mapping):
            raise ValueError("save data must be a JSON object")
        blob = data.get("game_state") or data
        if not isinstance(blob, Mapping):
            raise ValueError("game_state must be a JSON object")

        state = state_from_save_data(blob, self.balance.level_curve)
        self.imported_source = source_id
        self.attach(state, now=now, offline=False)
        self._mark_dirty()
        logger.info("save imported%s", f" from {source_id}" if source_id else "")
        return True

    def close(self) -> None:
        if self.closed:
            return
        for svc in (self.achievements, self.stats, self.projects, self.stages, self.unlocks):
            svc.close()
        self._subs.close()
        self.closed = True

    # -------------------------
    # Views
    # -------------------------

    def snapshot(self) -> Dict[str, Any]:
        """Plain dict for UI / export: save record plus derived values."""
        s = self.state
        if s is None:
            return {}
        run = self.projects.current
        return {
            "state": state_to_dict(s),
            "available_experience": s.available_experience,
            "experience_to_next_level": self.progression.experience_to_next_level(),
            "level_progress": self.progression.level_progress(),
            "money_unlocked": self.progression.is_money_unlocked,
            "critical_chance": self.progression.critical_chance,
            "next_stage_threshold": self.stages.next_stage_threshold(),
            "stage_money_multiplier": self.balance.stages.money_multiplier(s.current_stage),
            "statistics": self.stats.to_dict(),
            "achievements": {
                "unlocked": len(self.achievements.unlocked()),
                "total": len(self.balance.achievements),
                "points": self.achievements.total_points(),
            },
            "project": None
            if run is None
            else {
                "name": run.archetype.name,
                "difficulty": run.archetype.difficulty,
                "progress": run.progress,
                "requirement": run.requirement,
                "reward": self.projects.next_reward(),
            },
        }
