import math
from datetime import datetime, timedelta
from typing import NamedTuple, Optional

from app.config.game_constants import DAILY_COINS, DAILY_COOLDOWN_HOURS
from app.core.errors import CooldownActive
from app.models.schemas import Player


class DailyStatus(NamedTuple):
    can_collect: bool
    hours_until_next: Optional[int]


def daily_status(player: Player, now: datetime) -> DailyStatus:
    """Whether the daily coins can be collected, and if not, hours to wait."""
    last = player.last_daily_collection
    if last is None:
        return DailyStatus(True, None)

    elapsed = now - last
    if elapsed >= timedelta(hours=DAILY_COOLDOWN_HOURS):
        return DailyStatus(True, None)

    hours_elapsed = elapsed.total_seconds() / 3600
    return DailyStatus(False, math.ceil(DAILY_COOLDOWN_HOURS - hours_elapsed))


def collect_daily_coins(player: Player, now: datetime) -> int:
    """Grant the daily coins once per cooldown window. Returns coins granted."""
    status = daily_status(player, now)
    if not status.can_collect:
        raise CooldownActive(status.hours_until_next)

    player.coins += DAILY_COINS
    player.last_daily_collection = now
    return DAILY_COINS
