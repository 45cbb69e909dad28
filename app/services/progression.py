"""
Progression rules: XP curve, level unlocks and expansion cost curves.

Everything here is pure arithmetic over a Player; nothing touches storage.
"""

import logging
from typing import NamedTuple

from app.config.game_constants import (
    XP_BASE,
    XP_GROWTH_NUMERATOR,
    XP_GROWTH_DENOMINATOR,
    MAX_XP_LEVEL,
    KITCHEN_UNLOCK_LEVEL,
    TOOLS_UNLOCK_BASE,
    FIELD_EXPANSION_BASE,
    KITCHEN_EXPANSION_BASE,
)
from app.core.errors import InsufficientInventory, LevelTooLow
from app.models.schemas import Player, ResourceBundle

logger = logging.getLogger(__name__)


class LevelChange(NamedTuple):
    leveled_up: bool
    new_level: int


def level_increment(level: int) -> int:
    """XP needed to go from level-1 to level: floor(100 * 1.2^(level-2))."""
    if level <= 1:
        return 0
    exponent = level - 2
    # Integer arithmetic keeps floor() exact at every level
    return (XP_BASE * XP_GROWTH_NUMERATOR ** exponent) // (XP_GROWTH_DENOMINATOR ** exponent)


def experience_for_level(level: int) -> int:
    """Cumulative XP required to reach a level. Level 1 requires 0."""
    return sum(level_increment(i) for i in range(2, level + 1))


def level_from_experience(total_xp: int, max_level: int = MAX_XP_LEVEL) -> int:
    """Largest level <= max_level whose cumulative requirement is met."""
    level = 1
    while level < max_level and experience_for_level(level + 1) <= total_xp:
        level += 1
    return level


def next_level_experience(player: Player):
    """Cumulative XP for the next automatic level, or None past the XP cap."""
    if player.level >= MAX_XP_LEVEL:
        return None
    return experience_for_level(player.level + 1)


def apply_level_unlocks(player: Player) -> None:
    """Unlock features for the player's current level. Idempotent."""
    if player.level >= KITCHEN_UNLOCK_LEVEL and not player.kitchen_unlocked:
        player.kitchen_unlocked = True
        logger.info(f"[FARM] Kitchen unlocked for player {player.id}")


def add_experience(player: Player, amount: int) -> LevelChange:
    """
    Credit experience and level up from the XP curve.

    Automatic leveling stops at MAX_XP_LEVEL; later levels are bought with
    tools through unlock_next_level().
    """
    if amount <= 0:
        return LevelChange(False, player.level)

    player.experience += amount
    old_level = player.level
    if player.level < MAX_XP_LEVEL:
        player.level = max(player.level, level_from_experience(player.experience))

    apply_level_unlocks(player)
    leveled_up = player.level > old_level
    if leveled_up:
        logger.info(f"[FARM] Player {player.id} reached level {player.level}")
    return LevelChange(leveled_up, player.level)


def credit_bundle(player: Player, bundle: ResourceBundle) -> LevelChange:
    """Add every resource in a bundle to the player; experience may level up."""
    change = LevelChange(False, player.level)
    for attribute, amount in bundle.amounts():
        if attribute == "experience":
            change = add_experience(player, amount)
        else:
            setattr(player, attribute, getattr(player, attribute) + amount)
    return change


def tools_required_for_level(target_level: int) -> int:
    """Tools needed to manually unlock target_level (0 up to the XP cap)."""
    if target_level <= MAX_XP_LEVEL:
        return 0
    return (2 ** (target_level - MAX_XP_LEVEL - 1)) * TOOLS_UNLOCK_BASE


def unlock_next_level(player: Player) -> int:
    """Spend tools to go one level past the XP cap. Returns tools spent."""
    if player.level < MAX_XP_LEVEL:
        raise LevelTooLow(
            f"Reach level {MAX_XP_LEVEL} through experience before unlocking higher levels",
            required_level=MAX_XP_LEVEL,
        )

    target = player.level + 1
    required = tools_required_for_level(target)
    if player.tools < required:
        raise InsufficientInventory(
            f"Not enough tools. Level {target} requires {required} tools",
            item="tools", required=required, available=player.tools,
        )

    player.tools -= required
    player.level = target
    logger.info(f"[FARM] Player {player.id} unlocked level {target} for {required} tools")
    return required


def field_expansion_cost(new_size: int) -> int:
    """50 coins for 4x4, 100 for 5x5, 200 for 6x6, ..."""
    return (2 ** (new_size - 4)) * FIELD_EXPANSION_BASE


def kitchen_expansion_cost(new_slots: int) -> int:
    """100 coins for the 2nd oven, 200 for the 3rd, ..."""
    return (2 ** (new_slots - 2)) * KITCHEN_EXPANSION_BASE
