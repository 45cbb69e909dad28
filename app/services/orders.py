"""
Customer orders: one-off requests for inventory items with a deadline.

Orders expire lazily when the list is read; there is no background timer.
"""

import logging
import random
import uuid
from datetime import datetime, timedelta
from typing import List, Sequence

from app.config.game_constants import (
    CUSTOMER_NAMES,
    MAX_PENDING_ORDERS,
    ORDER_HISTORY_LIMIT,
    ORDER_TEMPLATES,
)
from app.core.errors import InsufficientInventory, OrderUnavailable
from app.models.schemas import (
    CustomerOrder,
    ItemRequirements,
    OrderRewards,
    OrderStatus,
    Player,
    ResourceBundle,
)
from app.services.progression import LevelChange, add_experience, credit_bundle

logger = logging.getLogger(__name__)

ITEM_LABELS = {
    "pumpkins": "pumpkins",
    "apples": "apples",
    "pies": "pumpkin pies",
    "apple_pies": "apple pies",
}


def pending_orders(orders: Sequence[CustomerOrder]) -> List[CustomerOrder]:
    return [order for order in orders if order.status == OrderStatus.PENDING]


def expire_old_orders(orders: Sequence[CustomerOrder], now: datetime) -> int:
    """Mark pending orders past their deadline as expired. Returns count."""
    expired = 0
    for order in orders:
        if order.status == OrderStatus.PENDING and order.expires_at < now:
            order.status = OrderStatus.EXPIRED
            expired += 1
    return expired


def prune_order_history(orders: List[CustomerOrder]) -> int:
    """
    Drop the oldest finished orders beyond ORDER_HISTORY_LIMIT, in place.

    Pending orders are never dropped. Returns how many orders were removed.
    """
    finished = [order for order in orders if order.status != OrderStatus.PENDING]
    if len(finished) <= ORDER_HISTORY_LIMIT:
        return 0

    finished.sort(key=lambda o: o.completed_at or o.expires_at, reverse=True)
    dropped = {order.id for order in finished[ORDER_HISTORY_LIMIT:]}
    orders[:] = [order for order in orders if order.id not in dropped]
    return len(dropped)


def _build_order(template: dict, player: Player, now: datetime,
                 rng: random.Random) -> CustomerOrder:
    rewards = dict(template["rewards"])
    bonus = rewards.pop("bonus", None)
    time_limit = template["time_limit_minutes"]
    return CustomerOrder(
        id=uuid.uuid4().hex,
        player_id=player.id,
        customer_name=rng.choice(CUSTOMER_NAMES),
        title=template["title"],
        required_items=ItemRequirements(**template["required"]),
        rewards=OrderRewards(
            bonus=ResourceBundle(**bonus) if bonus else None,
            **rewards,
        ),
        status=OrderStatus.PENDING,
        time_limit_minutes=time_limit,
        created_at=now,
        expires_at=now + timedelta(minutes=time_limit),
    )


def generate_customer_orders(player: Player, orders: Sequence[CustomerOrder],
                             now: datetime, rng: random.Random) -> List[CustomerOrder]:
    """Top the pending order list back up to MAX_PENDING_ORDERS."""
    missing = MAX_PENDING_ORDERS - len(pending_orders(orders))
    if missing <= 0:
        return []

    templates = [t for t in ORDER_TEMPLATES if t["min_level"] <= player.level]
    weights = [t["weight"] for t in templates]
    chosen = rng.choices(templates, weights=weights, k=missing)
    new_orders = [_build_order(template, player, now, rng) for template in chosen]
    logger.info(f"[FARM] Generated {len(new_orders)} customer order(s) for player {player.id}")
    return new_orders


def fulfill_order(player: Player, order: CustomerOrder, now: datetime) -> LevelChange:
    """Hand over the requested items and collect the rewards, all or nothing."""
    if order.status != OrderStatus.PENDING:
        raise OrderUnavailable(order.status.value)

    for attribute, required in order.required_items.amounts():
        available = getattr(player, attribute)
        if available < required:
            raise InsufficientInventory(
                f"Not enough {ITEM_LABELS.get(attribute, attribute)}: "
                f"need {required}, have {available}",
                item=attribute, required=required, available=available,
            )

    for attribute, required in order.required_items.amounts():
        setattr(player, attribute, getattr(player, attribute) - required)

    player.coins += order.rewards.coins
    change = LevelChange(False, player.level)
    if order.rewards.bonus is not None:
        change = credit_bundle(player, order.rewards.bonus)
    if order.rewards.experience:
        xp_change = add_experience(player, order.rewards.experience)
        change = LevelChange(change.leveled_up or xp_change.leveled_up, player.level)

    order.status = OrderStatus.COMPLETED
    order.completed_at = now
    return change

