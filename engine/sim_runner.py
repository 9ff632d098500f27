"""engine.sim_runner

Headless runner for quick sanity checks.

This keeps tests deterministic and CI-friendly: a fixed seed, no save
file, and a scripted player that clicks at a steady rate and buys the
cheapest upgrade it can afford.

Run:
  python -m engine.sim_runner
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from core.events import Signals
from core.selfcheck import check_invariants
from core.state import PlayerState, state_from_mapping, state_to_dict

from .config import EngineConfig
from .logging import EventRecorder, dumps_session_export, make_session_export
from .session import GameSession

logger = logging.getLogger(__name__)


def pick_cheapest_upgrade(session: GameSession) -> Optional[str]:
    """Cheapest purchasable upgrade id, or None."""
    best: Optional[str] = None
    best_cost = None
    for u in session.shop.available():
        if not session.shop.can_afford(u):
            continue
        cost = session.shop.cost(u)
        if best_cost is None or cost < best_cost:
            best, best_cost = u.id, cost
    return best


def run_headless_sim(seconds: int = 600, clicks_per_second: int = 5, seed: int = 123) -> Dict[str, Any]:
    """Run a deterministic simulation and return summary."""
    cfg = EngineConfig(base_seed=seed, autosave_interval=0)
    session = GameSession(config=cfg)
    recorder = EventRecorder(session.bus).start()
    curve = session.balance.level_curve

    initial: PlayerState = state_from_mapping(state_to_dict(session.state))
    violations: List[str] = []

    for second in range(seconds):
        for _ in range(clicks_per_second):
            session.click()
        session.tick(1.0)

        # at most one purchase per simulated second
        choice = pick_cheapest_upgrade(session)
        if choice is not None:
            session.buy(choice)

        problems = check_invariants(session.state, base=curve.base_experience, growth=curve.growth)
        if problems:
            violations.extend(f"t={second}: {p}" for p in problems)

    final = session.state
    recorder.close()
    session.close()

    return {
        "seconds": seconds,
        "final": final,
        "events": recorder.events,
        "violations": violations,
        "export": make_session_export(
            seed=seed,
            config=asdict(cfg),
            initial_state=initial,
            final_state=final,
            event_log=recorder.events,
        ),
        "level_ups": recorder.count(Signals.LEVEL_UP),
        "projects_completed": final.total_projects_completed,
    }


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    result = run_headless_sim()
    final: PlayerState = result["final"]
    if result["violations"]:
        for v in result["violations"][:20]:
            logger.error("invariant violated: %s", v)
        raise SystemExit(1)
    print("OK: headless sim passed.")
    print(
        dumps_session_export(
            {
                "seconds": result["seconds"],
                "level": final.player_level,
                "stage": final.current_stage,
                "money": final.money,
                "experience": final.experience,
                "upgrades": final.upgrade_levels,
                "features": sorted(final.unlocked_features),
                "level_ups": result["level_ups"],
                "projects_completed": result["projects_completed"],
                "events": len(result["events"]),
            }
        )
    )


if __name__ == "__main__":
    main()
