"""
Plot engine: per-cell crop lifecycle.

empty -> seedling on plant, seedling -> growing -> mature from elapsed
effective minutes, mature -> empty on harvest. Growth is recomputed lazily
from ``planted_at`` and never moves backwards within a planting cycle.
"""

from datetime import datetime
from typing import Iterable, List

from app.config.game_constants import CROPS, FERTILIZER_MULTIPLIER
from app.core.clock import minutes_between
from app.core.errors import (
    AlreadyFertilized,
    InsufficientInventory,
    InvalidPlotState,
    PlotNotEmpty,
    PlotNotMature,
)
from app.models.schemas import CropType, Player, Plot, PlotState

GROWTH_ORDER = {
    PlotState.EMPTY: 0,
    PlotState.SEEDLING: 1,
    PlotState.GROWING: 2,
    PlotState.MATURE: 3,
}


def effective_minutes(plot: Plot, now: datetime) -> int:
    minutes = minutes_between(plot.planted_at, now)
    if plot.fertilized:
        return minutes * FERTILIZER_MULTIPLIER
    return minutes


def growth_stage(crop_type: CropType, minutes: int) -> PlotState:
    growth_time = CROPS[crop_type.value]["growth_minutes"]
    if minutes >= growth_time:
        return PlotState.MATURE
    if minutes * 2 >= growth_time:
        return PlotState.GROWING
    return PlotState.SEEDLING


def recompute_growth(plot: Plot, now: datetime) -> bool:
    """Advance a planted plot to the stage its elapsed time implies.

    Returns True when the stage changed.
    """
    if plot.state in (PlotState.EMPTY, PlotState.MATURE) or plot.planted_at is None:
        return False

    crop_type = plot.crop_type or CropType.PUMPKIN
    new_state = growth_stage(crop_type, effective_minutes(plot, now))
    if GROWTH_ORDER[new_state] <= GROWTH_ORDER[plot.state]:
        return False
    plot.state = new_state
    return True


def plant(player: Player, plot: Plot, crop_type: CropType, now: datetime) -> None:
    seed_counter = CROPS[crop_type.value]["seed_counter"]
    if getattr(player, seed_counter) <= 0:
        raise InsufficientInventory(
            "Not enough seeds", item=seed_counter, required=1, available=0
        )
    if plot.state != PlotState.EMPTY:
        raise PlotNotEmpty()

    setattr(player, seed_counter, getattr(player, seed_counter) - 1)
    plot.state = PlotState.SEEDLING
    plot.crop_type = crop_type
    plot.planted_at = now
    plot.fertilized = False


def fertilize(player: Player, plot: Plot) -> None:
    if plot.state in (PlotState.EMPTY, PlotState.MATURE):
        raise InvalidPlotState(plot.state.value)
    if plot.fertilized:
        raise AlreadyFertilized()
    if player.fertilizer <= 0:
        raise InsufficientInventory(
            "Not enough fertilizer", item="fertilizer", required=1, available=0
        )

    plot.fertilized = True
    player.fertilizer -= 1


def harvest(player: Player, plot: Plot) -> CropType:
    """Empty a mature plot and credit one unit of its crop."""
    if plot.state != PlotState.MATURE:
        raise PlotNotMature()

    crop_type = plot.crop_type or CropType.PUMPKIN
    counter = CROPS[crop_type.value]["harvest_counter"]
    setattr(player, counter, getattr(player, counter) + 1)

    plot.state = PlotState.EMPTY
    plot.crop_type = None
    plot.planted_at = None
    plot.fertilized = False
    return crop_type


def build_field(player_id: str, size: int, existing: Iterable[Plot]) -> List[Plot]:
    """Empty plots for every cell of a size x size field not yet present."""
    taken = {(plot.row, plot.col) for plot in existing}
    return [
        Plot(player_id=player_id, row=row, col=col)
        for row in range(size)
        for col in range(size)
        if (row, col) not in taken
    ]
