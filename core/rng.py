"""
core.rng
Deterministic RNG helpers that do NOT rely on Python's built-in hash().

Goal:
- Same (base_seed + inputs) => same Random stream across platforms & runs.
- Each service gets its own stream so click crits never shift project picks.
"""

from __future__ import annotations

import hashlib
import json
import random
from typing import Any, Optional


def stable_int_seed(*parts: Any, salt: str = "gamedev-clicker") -> int:
    """Return a stable 32-bit integer seed derived from arbitrary inputs.

    Uses SHA-256 over a canonical JSON representation of `parts`.
    Output is 0..2**32-1 (works with random.Random).
    """
    payload = json.dumps(parts, sort_keys=True, ensure_ascii=False, separators=(",", ":"), default=str)
    h = hashlib.sha256((salt + "|" + payload).encode("utf-8")).digest()
    return int.from_bytes(h[:4], "big", signed=False)


def rng_from(*parts: Any, base_seed: Optional[int]) -> random.Random:
    """Create a Random instance from (base_seed + parts).

    `base_seed=None` gives an OS-seeded stream (normal play).
    """
    if base_seed is None:
        return random.Random()
    seed = stable_int_seed(base_seed, *parts)
    return random.Random(seed)
