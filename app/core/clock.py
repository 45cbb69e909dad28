"""
Wall-clock time source.

Every time-derived transition (growth, baking, cooldowns, expiry) is a pure
function of ``now``; services take a clock callable so tests can freeze it.
"""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes elapsed from start to end, never negative."""
    seconds = (end - start).total_seconds()
    if seconds <= 0:
        return 0
    return int(seconds // 60)
