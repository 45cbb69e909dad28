"""Oven engine: empty -> baking -> ready -> empty, one pie per slot."""

from datetime import datetime

from app.config.game_constants import PIES, KITCHEN_UNLOCK_LEVEL
from app.core.clock import minutes_between
from app.core.errors import (
    InsufficientInventory,
    LevelLocked,
    OvenNotEmpty,
    PieNotReady,
)
from app.models.schemas import Oven, OvenState, PieType, Player


def bake_minutes(pie_type: PieType) -> int:
    return PIES[pie_type.value]["bake_minutes"]


def recompute_baking(oven: Oven, now: datetime) -> bool:
    """Flip a baking oven to ready once its bake time has elapsed."""
    if oven.state != OvenState.BAKING or oven.started_at is None:
        return False

    pie_type = oven.pie_type or PieType.PUMPKIN
    if minutes_between(oven.started_at, now) < bake_minutes(pie_type):
        return False
    oven.state = OvenState.READY
    return True


def start_baking(player: Player, oven: Oven, pie_type: PieType, now: datetime) -> None:
    if not player.kitchen_unlocked:
        raise LevelLocked(
            f"The kitchen unlocks at level {KITCHEN_UNLOCK_LEVEL}",
            required_level=KITCHEN_UNLOCK_LEVEL,
        )

    ingredient = PIES[pie_type.value]["ingredient"]
    if getattr(player, ingredient) <= 0:
        raise InsufficientInventory(
            f"Not enough {ingredient}", item=ingredient, required=1, available=0
        )
    if oven.state != OvenState.EMPTY:
        raise OvenNotEmpty()

    setattr(player, ingredient, getattr(player, ingredient) - 1)
    oven.state = OvenState.BAKING
    oven.pie_type = pie_type
    oven.started_at = now


def collect_pie(player: Player, oven: Oven) -> PieType:
    if oven.state != OvenState.READY:
        raise PieNotReady()

    pie_type = oven.pie_type or PieType.PUMPKIN
    counter = PIES[pie_type.value]["pie_counter"]
    setattr(player, counter, getattr(player, counter) + 1)

    oven.state = OvenState.EMPTY
    oven.pie_type = None
    oven.started_at = None
    return pie_type
