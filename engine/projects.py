"""engine.projects

Project loop: experience flow -> progress -> lump-sum money reward.

States: Locked -> Active -> (Completing) -> Active ...
There is no terminal state once unlocked; completing a run immediately
starts the next one. Runs are never persisted mid-flight; only the
completed count lives in PlayerState.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from typing import Callable, List, Optional

from balance.schemas import BalanceTable, ProjectArchetype
from core.difficulty import get_difficulty_spec
from core.events import EventBus, Signals, SubscriptionGroup
from core.state import PlayerState

from .progression import ProgressionModel

logger = logging.getLogger(__name__)

PROJECT_FEATURE = "project_system"


@dataclass
class ProjectRun:
    archetype: ProjectArchetype
    requirement: float
    progress: float = 0.0

    @property
    def fraction(self) -> float:
        if self.requirement <= 0:
            return 0.0
        return self.progress / self.requirement

    @property
    def remaining(self) -> float:
        return max(0.0, self.requirement - self.progress)


def difficulty_multiplier(archetype: ProjectArchetype) -> float:
    return get_difficulty_spec(archetype.difficulty).multiplier


def selection_weight(archetype: ProjectArchetype) -> float:
    return get_difficulty_spec(archetype.difficulty).weight


def pick_archetype(candidates: List[ProjectArchetype], draw: float) -> ProjectArchetype:
    """Cumulative-weight scan: first archetype whose running total >= draw.

    Falls back to the last candidate if float drift leaves no match.
    """
    total = 0.0
    for arch in candidates:
        total += selection_weight(arch)
        if draw <= total:
            return arch
    return candidates[-1]


class ProjectSystem:
    def __init__(
        self,
        *,
        state: Optional[PlayerState],
        bus: EventBus,
        balance: BalanceTable,
        progression: ProgressionModel,
        rng: Optional[random.Random] = None,
        on_dirty: Optional[Callable[[], None]] = None,
    ) -> None:
        self.state = state
        self.bus = bus
        self.balance = balance
        self.progression = progression
        self.rng = rng or random.Random()
        self._on_dirty = on_dirty
        self._subs = SubscriptionGroup(bus)

        self.unlocked = False
        self.current: Optional[ProjectRun] = None
        self.completed_count = 0

    # -------------------------
    # Lifecycle
    # -------------------------

    def start(self) -> None:
        self._subs.on(Signals.FEATURE_UNLOCKED, self._on_feature_unlocked)
        self._subs.on(Signals.CLICK_PERFORMED, self._on_click_performed)
        self._subs.on(Signals.AUTO_INCOME_AWARDED, self._on_auto_income)

    def close(self) -> None:
        self._subs.close()

    def load(self) -> None:
        """Sync from PlayerState; a reload starts a fresh run."""
        s = self.state
        self.completed_count = int(s.total_projects_completed) if s else 0
        self.current = None
        if s is not None and PROJECT_FEATURE in s.unlocked_features:
            self.unlocked = True
        if self.unlocked:
            self.start_new_project()

    @property
    def state_name(self) -> str:
        if not self.unlocked:
            return "locked"
        return "active" if self.current is not None else "idle"

    # -------------------------
    # Selection / scaling
    # -------------------------

    def eligible_archetypes(self) -> List[ProjectArchetype]:
        stage = self.state.current_stage if self.state else 1
        return [p for p in self.balance.projects if stage >= p.min_stage]

    def select_archetype(self) -> ProjectArchetype:
        eligible = self.eligible_archetypes()
        if not eligible:
            return self.balance.projects[0]
        total = sum(selection_weight(p) for p in eligible)
        return pick_archetype(eligible, self.rng.uniform(0.0, total))

    def requirement_for(self, archetype: ProjectArchetype, completed: Optional[int] = None) -> float:
        t = self.balance.project_tuning
        n = self.completed_count if completed is None else int(completed)
        return t.base_requirement * t.requirement_growth ** n * difficulty_multiplier(archetype)

    def reward_for(self, archetype: ProjectArchetype, completed: Optional[int] = None) -> int:
        t = self.balance.project_tuning
        n = self.completed_count if completed is None else int(completed)
        reward = t.base_reward * t.reward_growth ** n * archetype.reward_multiplier * difficulty_multiplier(archetype)
        return int(reward)

    def next_reward(self) -> int:
        if self.current is None:
            return 0
        return self.reward_for(self.current.archetype)

    # -------------------------
    # Operations
    # -------------------------

    def start_new_project(self) -> Optional[ProjectRun]:
        if not self.unlocked:
            return None
        arch = self.select_archetype()
        self.current = ProjectRun(archetype=arch, requirement=self.requirement_for(arch))
        logger.info("project started: %s (requirement %.0f)", arch.name, self.current.requirement)
        self.bus.publish(Signals.PROJECT_STARTED, arch)
        self.bus.publish(Signals.NOTIFICATION, "New Project Started!", f"Working on: {arch.name}")
        return self.current

    def add_progress(self, amount: float) -> bool:
        """Feed progress; returns True when this call completed the run."""
        run = self.current
        if not self.unlocked or run is None or amount <= 0:
            return False
        old = run.progress
        run.progress = min(run.progress + float(amount), run.requirement)
        if run.progress != old:
            self.bus.publish(Signals.PROJECT_PROGRESS, run.progress, run.requirement)
        if run.progress >= run.requirement:
            self.complete_project()
            return True
        return False

    def complete_project(self) -> int:
        run = self.current
        if run is None:
            return 0
        arch = run.archetype
        reward = self.reward_for(arch)
        self.completed_count += 1
        self.current = None

        self.progression.add_money(reward)
        self._persist()

        logger.info("project completed: %s (reward %d)", arch.name, reward)
        self.bus.publish(Signals.PROJECT_COMPLETED, reward, arch)

        self.start_new_project()
        return reward

    def absorb_offline(self, amount: float) -> int:
        """Apply a large progress lump; completes every run it covers.

        Returns the number of completed runs. Leftover progress carries
        into the run that is active afterwards.
        """
        if not self.unlocked or self.current is None or amount <= 0:
            return 0
        remaining = float(amount)
        done = 0
        while self.current is not None and remaining >= self.current.remaining:
            remaining -= self.current.remaining
            self.current.progress = self.current.requirement
            self.complete_project()
            done += 1
        if remaining > 0 and self.current is not None:
            self.add_progress(remaining)
        return done

    def estimated_seconds_remaining(self, rate_per_second: float) -> float:
        if self.current is None:
            return 0.0
        if rate_per_second <= 0:
            return math.inf
        return self.current.remaining / rate_per_second

    # -------------------------
    # Event handlers
    # -------------------------

    def _persist(self) -> None:
        if self.state is not None:
            self.state.total_projects_completed = self.completed_count
        if self._on_dirty is not None:
            self._on_dirty()

    def _on_feature_unlocked(self, feature: str) -> None:
        if feature == PROJECT_FEATURE and not self.unlocked:
            self.unlocked = True
            logger.info("project system unlocked")
            self.start_new_project()

    def _on_click_performed(self, money: int, exp: int) -> None:
        self.add_progress(exp)

    def _on_auto_income(self, money: int, exp: int) -> None:
        self.add_progress(exp)
