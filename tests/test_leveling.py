from __future__ import annotations

import pytest

from core.leveling import (
    cumulative_experience,
    experience_to_next_level,
    level_from_experience,
    level_progress,
    level_requirement,
)

BASE = 100.0
GROWTH = 1.5


def _reference_level(experience: int) -> int:
    k = 0
    total = 0.0
    while total + BASE * GROWTH ** k <= experience:
        total += BASE * GROWTH ** k
        k += 1
    return 1 + k


def test_level_matches_closed_definition():
    for exp in list(range(0, 3000, 13)) + [100, 249, 250, 474, 475, 812, 813]:
        assert level_from_experience(exp, BASE, GROWTH) == _reference_level(exp)


def test_level_is_non_decreasing():
    prev = 1
    for exp in range(0, 50_000, 37):
        lvl = level_from_experience(exp, BASE, GROWTH)
        assert lvl >= prev
        prev = lvl


@pytest.mark.parametrize(
    "exp,level",
    [(0, 1), (99, 1), (100, 2), (249, 2), (250, 3), (474, 3), (475, 4)],
)
def test_level_boundaries(exp, level):
    assert level_from_experience(exp, BASE, GROWTH) == level


def test_negative_experience_is_level_one():
    assert level_from_experience(-5, BASE, GROWTH) == 1


def test_requirements():
    assert level_requirement(1, BASE, GROWTH) == 100.0
    assert level_requirement(2, BASE, GROWTH) == 150.0
    assert cumulative_experience(1, BASE, GROWTH) == 0.0
    assert cumulative_experience(3, BASE, GROWTH) == 250.0


def test_experience_to_next_level_and_progress():
    assert experience_to_next_level(0, BASE, GROWTH) == 100
    assert experience_to_next_level(100, BASE, GROWTH) == 150
    assert experience_to_next_level(249, BASE, GROWTH) == 1
    assert level_progress(50, BASE, GROWTH) == pytest.approx(0.5)
    assert level_progress(175, BASE, GROWTH) == pytest.approx(0.5)
