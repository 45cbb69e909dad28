"""
Economy engine: marketplace trades and farm/kitchen expansion.

Each operation validates everything first and only then mutates, so a
failure never leaves a counter partially updated.
"""

from typing import Iterable, List, NamedTuple, Optional

from app.config.game_constants import (
    BUY_PRICES,
    SELL_PRICES,
    ITEM_LEVEL_REQUIREMENTS,
    MAX_FIELD_SIZE,
    MAX_KITCHEN_SLOTS,
    KITCHEN_UNLOCK_LEVEL,
)
from app.core.errors import (
    InsufficientFunds,
    InsufficientInventory,
    LevelLocked,
    MaxSizeReached,
    UnknownItem,
)
from app.models.schemas import MarketItem, Oven, Player, Plot
from app.services.plot_engine import build_field
from app.services.progression import field_expansion_cost, kitchen_expansion_cost

# Wire item name -> Player attribute
ITEM_ATTRIBUTES = {
    MarketItem.SEEDS: "seeds",
    MarketItem.APPLE_SEEDS: "apple_seeds",
    MarketItem.PUMPKINS: "pumpkins",
    MarketItem.APPLES: "apples",
    MarketItem.PIES: "pies",
    MarketItem.APPLE_PIES: "apple_pies",
    MarketItem.FERTILIZER: "fertilizer",
    MarketItem.TOOLS: "tools",
}


class Trade(NamedTuple):
    item: MarketItem
    quantity: int
    coins: int


class FieldExpansion(NamedTuple):
    new_size: int
    cost: int
    new_plots: List[Plot]


class KitchenExpansion(NamedTuple):
    new_slots: int
    cost: int
    new_oven: Optional[Oven]


def buy(player: Player, item: MarketItem, quantity: int) -> Trade:
    if quantity < 1:
        raise ValueError("quantity must be at least 1")

    attribute = ITEM_ATTRIBUTES[item]
    if attribute not in BUY_PRICES:
        raise UnknownItem(item.value, "bought")

    required_level = ITEM_LEVEL_REQUIREMENTS.get(attribute)
    if required_level and player.level < required_level:
        raise LevelLocked(f"Unlocks at Level {required_level}", required_level=required_level)

    cost = BUY_PRICES[attribute] * quantity
    if player.coins < cost:
        raise InsufficientFunds("Not enough coins", required=cost, available=player.coins)

    player.coins -= cost
    setattr(player, attribute, getattr(player, attribute) + quantity)
    return Trade(item, quantity, cost)


def sell(player: Player, item: MarketItem, quantity: int) -> Trade:
    if quantity < 1:
        raise ValueError("quantity must be at least 1")

    attribute = ITEM_ATTRIBUTES[item]
    if attribute not in SELL_PRICES:
        raise UnknownItem(item.value, "sold")

    available = getattr(player, attribute)
    if available < quantity:
        raise InsufficientInventory(
            f"Not enough {item.value}", item=attribute, required=quantity, available=available
        )

    earned = SELL_PRICES[attribute] * quantity
    setattr(player, attribute, available - quantity)
    player.coins += earned
    return Trade(item, quantity, earned)


def expand_field(player: Player, plots: Iterable[Plot]) -> FieldExpansion:
    """Grow the field by one row and column; existing plots are untouched."""
    if player.field_size >= MAX_FIELD_SIZE:
        raise MaxSizeReached(
            f"Field is already at maximum size ({MAX_FIELD_SIZE}x{MAX_FIELD_SIZE})"
        )

    new_size = player.field_size + 1
    cost = field_expansion_cost(new_size)
    if player.coins < cost:
        raise InsufficientFunds(
            f"Not enough coins. Expansion to {new_size}x{new_size} costs {cost} coins",
            required=cost, available=player.coins,
        )

    player.coins -= cost
    player.field_size = new_size
    return FieldExpansion(new_size, cost, build_field(player.id, new_size, plots))


def expand_kitchen(player: Player, ovens: Iterable[Oven]) -> KitchenExpansion:
    if not player.kitchen_unlocked:
        raise LevelLocked(
            f"The kitchen unlocks at level {KITCHEN_UNLOCK_LEVEL}",
            required_level=KITCHEN_UNLOCK_LEVEL,
        )
    if player.kitchen_slots >= MAX_KITCHEN_SLOTS:
        raise MaxSizeReached(
            f"Kitchen is already at maximum size ({MAX_KITCHEN_SLOTS} ovens)"
        )

    new_slots = player.kitchen_slots + 1
    cost = kitchen_expansion_cost(new_slots)
    if player.coins < cost:
        raise InsufficientFunds(
            f"Not enough coins. Oven #{new_slots} costs {cost} coins",
            required=cost, available=player.coins,
        )

    player.coins -= cost
    player.kitchen_slots = new_slots
    taken = {oven.slot_number for oven in ovens}
    new_oven = None
    if new_slots - 1 not in taken:
        new_oven = Oven(player_id=player.id, slot_number=new_slots - 1)
    return KitchenExpansion(new_slots, cost, new_oven)
