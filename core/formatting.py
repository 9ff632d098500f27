"""
core.formatting
Short human-readable numbers for notifications and the UI.
"""

from __future__ import annotations

from typing import List

SHORT_SUFFIXES: List[str] = [
    "", "K", "M", "B", "T", "Qa", "Qi", "Sx", "Sp", "Oc", "No", "Dc",
]


def format_number(value: float, decimals: int = 2) -> str:
    """1234 -> "1.23K", 999 -> "999", 1_500_000 -> "1.50M"."""
    n = int(value)
    if n < 0:
        return "-" + format_number(-n, decimals)
    if n < 1000:
        return str(n)

    idx = 0
    shown = float(n)
    while shown >= 1000 and idx < len(SHORT_SUFFIXES) - 1:
        shown /= 1000
        idx += 1

    if shown >= 1000:
        return f"{n:.2E}"
    if shown >= 100:
        decimals = 0
    elif shown >= 10:
        decimals = min(decimals, 1)
    return f"{shown:.{decimals}f}{SHORT_SUFFIXES[idx]}"


def format_currency(value: float) -> str:
    return "$" + format_number(value)


def format_rate(value: float, unit: str = "/sec") -> str:
    return format_number(value) + unit


def _plural(n: int, word: str) -> str:
    return f"{n} {word}{'' if n == 1 else 's'}"


def format_duration(seconds: float) -> str:
    """Coarse duration used by the offline report ("2 hours 5 minutes")."""
    s = max(0.0, float(seconds))
    if s < 60:
        return _plural(int(round(s)), "second")
    if s < 3600:
        return _plural(int(round(s / 60)), "minute")
    if s < 86400:
        hours = int(s // 3600)
        minutes = int(round((s % 3600) / 60))
        if minutes == 60:
            hours, minutes = hours + 1, 0
        if minutes:
            return f"{_plural(hours, 'hour')} {_plural(minutes, 'minute')}"
        return _plural(hours, "hour")
    days = int(s // 86400)
    hours = int(round((s % 86400) / 3600))
    if hours == 24:
        days, hours = days + 1, 0
    if hours:
        return f"{_plural(days, 'day')} {_plural(hours, 'hour')}"
    return _plural(days, "day")
