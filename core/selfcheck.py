"""
core.selfcheck
State invariants + a minimal "it runs" proof for the level curve.

Run:
  python -m core.selfcheck
"""

from __future__ import annotations

import math
from typing import List

from .leveling import cumulative_experience, level_from_experience
from .state import PlayerState


def check_invariants(state: PlayerState, *, base: float = 100.0, growth: float = 1.5) -> List[str]:
    """Return a list of violated invariants (empty when the state is sane)."""
    problems: List[str] = []
    if state.money < 0:
        problems.append(f"money is negative: {state.money}")
    if state.experience < 0:
        problems.append(f"experience is negative: {state.experience}")
    if not 0 <= state.spent_experience <= state.experience:
        problems.append(f"spent_experience {state.spent_experience} outside 0..{state.experience}")
    expected = level_from_experience(state.experience, base, growth)
    if state.player_level != expected:
        problems.append(f"player_level {state.player_level} != {expected} for {state.experience} exp")
    if state.current_stage < 1:
        problems.append(f"current_stage below 1: {state.current_stage}")
    for key, value in state.multipliers.items():
        if value <= 0:
            problems.append(f"multiplier {key} not positive: {value}")
    for uid, lvl in state.upgrade_levels.items():
        if lvl < 0:
            problems.append(f"upgrade {uid} has negative level {lvl}")
    if state.total_money_earned < 0 or state.total_experience_earned < 0:
        problems.append("lifetime totals are negative")
    return problems


def assert_invariants(state: PlayerState, *, base: float = 100.0, growth: float = 1.5) -> None:
    problems = check_invariants(state, base=base, growth=growth)
    if problems:
        raise AssertionError("; ".join(problems))


def run_level_curve_smoke(max_level: int = 40) -> None:
    base, growth = 100.0, 1.5
    prev = 1
    for exp in range(0, 20_000, 7):
        lvl = level_from_experience(exp, base, growth)
        assert lvl >= prev, f"level went down at {exp} exp"
        prev = lvl

    for lvl in range(1, max_level + 1):
        need = math.ceil(cumulative_experience(lvl, base, growth))
        assert level_from_experience(need, base, growth) >= lvl
        if lvl > 1:
            assert level_from_experience(need - 1, base, growth) == lvl - 1

    assert_invariants(PlayerState(experience=149, player_level=2), base=base, growth=growth)

    print("OK: level curve smoke test passed.")
    print("Level 10 needs", int(cumulative_experience(10, base, growth)), "experience")


if __name__ == "__main__":
    run_level_curve_smoke()
