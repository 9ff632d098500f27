"""
core.leveling
Level curve math: the only place experience <-> level conversion lives.

Level N -> N+1 costs `base * growth ** (N - 1)` experience, so the
cumulative requirement to *reach* level L is
`sum(base * growth ** i for i in range(L - 1))`.
"""

from __future__ import annotations

import math


def level_requirement(level: int, base: float, growth: float) -> float:
    """Experience needed to go from `level` to `level + 1`."""
    return float(base) * float(growth) ** (max(1, int(level)) - 1)


def cumulative_experience(level: int, base: float, growth: float) -> float:
    """Total experience needed to reach `level` from zero (level 1 -> 0)."""
    total = 0.0
    for lvl in range(1, max(1, int(level))):
        total += level_requirement(lvl, base, growth)
    return total


def level_from_experience(experience: int, base: float, growth: float) -> int:
    """Largest level whose cumulative requirement fits in `experience`.

    Level 1 is the floor. Monotonic in `experience` because every level
    requirement is positive.
    """
    if experience <= 0 or base <= 0:
        return 1
    level = 1
    total = 0.0
    while True:
        need = level_requirement(level, base, growth)
        if total + need > experience:
            return level
        total += need
        level += 1


def experience_to_next_level(experience: int, base: float, growth: float) -> int:
    """Whole experience points still missing for the next level."""
    level = level_from_experience(experience, base, growth)
    target = cumulative_experience(level + 1, base, growth)
    return max(0, int(math.ceil(target - experience)))


def level_progress(experience: int, base: float, growth: float) -> float:
    """0..1 fraction of the current level already earned (for progress bars)."""
    level = level_from_experience(experience, base, growth)
    floor = cumulative_experience(level, base, growth)
    need = level_requirement(level, base, growth)
    if need <= 0:
        return 0.0
    return max(0.0, min(1.0, (experience - floor) / need))
