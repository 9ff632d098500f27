"""
core.events
Process-local publish/subscribe bus.

Delivery is synchronous and same-thread: `publish()` returns once every
subscriber has returned. Subscribers are called in subscription order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Handler = Callable[..., None]

MAX_PUBLISH_DEPTH = 32


class Signals:
    """Signal names published by the core."""

    MONEY_CHANGED = "money_changed"                  # (money: int)
    EXPERIENCE_CHANGED = "experience_changed"        # (experience: int)
    CLICK_VALUES_CHANGED = "click_values_changed"    # (money_per_click: float, exp_per_click: float)
    AUTO_INCOME_CHANGED = "auto_income_changed"      # (auto_money: float, auto_exp: float)
    CLICK_PERFORMED = "click_performed"              # (money: int, exp: int)
    CRITICAL_CLICK = "critical_click"                # (position)
    AUTO_INCOME_AWARDED = "auto_income_awarded"      # (money: int, exp: int)
    LEVEL_UP = "level_up"                            # (level: int)
    STAGE_UNLOCKED = "stage_unlocked"                # (stage: int)
    FEATURE_UNLOCKED = "feature_unlocked"            # (feature: str)
    UPGRADE_PURCHASED = "upgrade_purchased"          # (upgrade_id: str, level: int)
    PROJECT_STARTED = "project_started"              # (archetype)
    PROJECT_PROGRESS = "project_progress"            # (progress: float, requirement: float)
    PROJECT_COMPLETED = "project_completed"          # (reward: int, archetype)
    NOTIFICATION = "notification"                    # (title: str, message: str)
    OFFLINE_EARNINGS = "offline_earnings"            # (report)
    MILESTONE_REACHED = "milestone_reached"          # (name: str, value: int)
    ACHIEVEMENT_UNLOCKED = "achievement_unlocked"    # (achievement_id: str)
    GAME_LOADED = "game_loaded"                      # ()
    GAME_SAVED = "game_saved"                        # ()


@dataclass
class Subscription:
    """Handle returned by EventBus.subscribe(); call unsubscribe() on teardown."""

    bus: Optional["EventBus"]
    signal: str
    handler: Handler

    @property
    def active(self) -> bool:
        return self.bus is not None

    def unsubscribe(self) -> None:
        if self.bus is None:
            return
        self.bus._remove(self)
        self.bus = None


@dataclass
class EventBus:
    _subscribers: Dict[str, List[Subscription]] = field(default_factory=dict)
    _depth: int = 0

    def subscribe(self, signal: str, handler: Handler) -> Subscription:
        sub = Subscription(bus=self, signal=str(signal), handler=handler)
        self._subscribers.setdefault(sub.signal, []).append(sub)
        return sub

    def publish(self, signal: str, *args: Any) -> None:
        subs = list(self._subscribers.get(signal, ()))
        if not subs:
            return
        if self._depth >= MAX_PUBLISH_DEPTH:
            raise RuntimeError(f"event recursion too deep while publishing {signal!r}")
        self._depth += 1
        try:
            for sub in subs:
                # a handler earlier in this pass may have unsubscribed it
                if sub.bus is self:
                    sub.handler(*args)
        finally:
            self._depth -= 1

    def subscriber_count(self, signal: str) -> int:
        return len(self._subscribers.get(signal, ()))

    def clear(self) -> None:
        for subs in list(self._subscribers.values()):
            for sub in subs:
                sub.bus = None
        self._subscribers.clear()

    def _remove(self, sub: Subscription) -> None:
        subs = self._subscribers.get(sub.signal)
        if not subs:
            return
        try:
            subs.remove(sub)
        except ValueError:
            logger.debug("subscription for %s already removed", sub.signal)
        if not subs:
            del self._subscribers[sub.signal]


class SubscriptionGroup:
    """Collects the subscriptions of one component so teardown is one call."""

    def __init__(self, bus: EventBus) -> None:
        self.bus = bus
        self._subs: List[Subscription] = []

    def on(self, signal: str, handler: Handler) -> Subscription:
        sub = self.bus.subscribe(signal, handler)
        self._subs.append(sub)
        return sub

    def close(self) -> None:
        for sub in self._subs:
            sub.unsubscribe()
        self._subs.clear()

    def __len__(self) -> int:
        return len(self._subs)
