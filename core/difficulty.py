"""
core.difficulty
Project difficulty tiers (selection weight / requirement+reward scaling).

Kept in core so balancing lives in one place, but UI can still display labels.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class DifficultySpec:
    key: str
    label: str
    rank: int
    weight: float
    multiplier: float


DEFAULT_DIFFICULTIES: Dict[str, DifficultySpec] = {
    "easy": DifficultySpec(
        key="easy",
        label="Easy",
        rank=0,
        weight=4.0,
        multiplier=1.0,
    ),
    "medium": DifficultySpec(
        key="medium",
        label="Medium",
        rank=1,
        weight=3.0,
        multiplier=1.3,
    ),
    "hard": DifficultySpec(
        key="hard",
        label="Hard",
        rank=2,
        weight=2.0,
        multiplier=1.8,
    ),
    "expert": DifficultySpec(
        key="expert",
        label="Expert",
        rank=3,
        weight=1.0,
        multiplier=2.5,
    ),
}


def normalize_difficulty(key: object, default: str = "easy") -> str:
    k = str(key or "").strip().lower()
    if k in DEFAULT_DIFFICULTIES:
        return k
    return default


def get_difficulty_spec(key: str) -> DifficultySpec:
    return DEFAULT_DIFFICULTIES.get(normalize_difficulty(key), DEFAULT_DIFFICULTIES["easy"])
