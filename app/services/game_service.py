"""
Game service: the single entry point the HTTP layer talks to.

Each operation takes the player's lock, opens one unit of work on the store,
brings time-derived state up to date, runs one engine operation and returns a
response built from the mutated state. The store persists the state when the
unit of work exits cleanly and discards it when an exception escapes.

A store provides:
    player_exists(player_id) -> bool
    create_player(state: FarmState) -> None   (PlayerAlreadyExists on clash)
    locked_player(player_id)                  context manager yielding FarmState
"""

import logging
import random
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional, Tuple

from app.config.game_constants import (
    CROPS,
    MIN_FIELD_SIZE,
    MIN_KITCHEN_SLOTS,
    STARTING_PLAYER,
    XP_REWARDS,
)
from app.core.clock import Clock, utcnow
from app.core.errors import PlayerAlreadyExists
from app.core.locks import PlayerLocks
from app.models.schemas import (
    ActionResponse,
    ChallengeStatus,
    ChallengeType,
    CropType,
    CustomerOrder,
    FarmState,
    MarketItem,
    Oven,
    PieType,
    Player,
    PlayerView,
    Plot,
    SeasonalChallenge,
)
from app.services import (
    challenges as challenge_engine,
    daily_rewards,
    economy,
    orders as order_engine,
    oven_engine,
    plot_engine,
    progression,
)

logger = logging.getLogger(__name__)

# Shared by every service instance in the process
PLAYER_LOCKS = PlayerLocks()


class GameService:
    def __init__(self, store, clock: Clock = utcnow,
                 rng: Optional[random.Random] = None,
                 locks: Optional[PlayerLocks] = None):
        self.store = store
        self.clock = clock
        self.rng = rng or random.Random()
        self.locks = locks if locks is not None else PLAYER_LOCKS

    # Unit of work
    @contextmanager
    def _player_state(self, player_id: str) -> Iterator[Tuple[FarmState, datetime]]:
        with self.locks.hold(player_id):
            with self.store.locked_player(player_id) as state:
                now = self.clock()
                self._refresh(state, now)
                yield state, now

    def _refresh(self, state: FarmState, now: datetime) -> None:
        """Apply every transition that depends only on elapsed time."""
        player = state.player
        days_since_start = (now - player.created_at).days + 1
        if days_since_start > player.day:
            player.day = days_since_start

        for plot in state.plots:
            plot_engine.recompute_growth(plot, now)
        for oven in state.ovens:
            oven_engine.recompute_baking(oven, now)

        order_engine.expire_old_orders(state.orders, now)
        order_engine.prune_order_history(state.orders)
        challenge_engine.expire_challenges(state.challenges, now)
        challenge_engine.prune_challenge_history(state.challenges)
        challenge_engine.activate_locked_challenges(player, state.challenges)

    def _award(self, state: FarmState, action: str) -> int:
        amount = XP_REWARDS[action]
        progression.add_experience(state.player, amount)
        challenge_engine.activate_locked_challenges(state.player, state.challenges)
        return amount

    def _record(self, state: FarmState, challenge_type: ChallengeType,
                amount: int, now: datetime) -> None:
        challenge_engine.record_activity(
            state.player, state.challenges, challenge_type, amount, now
        )
        # Challenge rewards may carry experience
        challenge_engine.activate_locked_challenges(state.player, state.challenges)

    def _respond(self, state: FarmState, now: datetime, level_before: int,
                 message: str, **extra) -> ActionResponse:
        player = state.player
        player.last_updated = now
        leveled_up = player.level > level_before
        if leveled_up:
            message = f"{message} Level up! You reached level {player.level}."
        return ActionResponse(
            player=player.model_copy(),
            message=message,
            leveled_up=leveled_up,
            new_level=player.level if leveled_up else None,
            **extra,
        )

    # Player lifecycle
    def create_player(self, player_id: Optional[str] = None) -> PlayerView:
        player_id = player_id or uuid.uuid4().hex
        now = self.clock()
        player = Player(id=player_id, last_updated=now, created_at=now, **STARTING_PLAYER)
        state = FarmState(
            player=player,
            plots=plot_engine.build_field(player_id, MIN_FIELD_SIZE, []),
            ovens=[
                Oven(player_id=player_id, slot_number=slot)
                for slot in range(MIN_KITCHEN_SLOTS)
            ],
        )
        with self.locks.hold(player_id):
            self.store.create_player(state)
        logger.info(f"[FARM] New farm for player {player_id}")
        return self._view(player, now)

    def ensure_default_player(self, player_id: str) -> None:
        if self.store.player_exists(player_id):
            return
        try:
            self.create_player(player_id)
        except PlayerAlreadyExists:
            # Another worker seeded it first
            logger.info(f"[FARM] Default player {player_id} already seeded")

    def _view(self, player: Player, now: datetime) -> PlayerView:
        status = daily_rewards.daily_status(player, now)
        return PlayerView(
            **player.model_dump(),
            can_collect_daily_coins=status.can_collect,
            hours_until_next_daily=status.hours_until_next,
            next_level_experience=progression.next_level_experience(player),
        )

    # Reads
    def get_player(self, player_id: str) -> PlayerView:
        with self._player_state(player_id) as (state, now):
            return self._view(state.player, now)

    def get_plots(self, player_id: str) -> List[Plot]:
        with self._player_state(player_id) as (state, now):
            return state.sorted_plots()

    def get_ovens(self, player_id: str) -> List[Oven]:
        with self._player_state(player_id) as (state, now):
            return state.sorted_ovens()

    def get_orders(self, player_id: str) -> List[CustomerOrder]:
        """Pending orders, topped back up to the maximum on every read."""
        with self._player_state(player_id) as (state, now):
            state.orders.extend(
                order_engine.generate_customer_orders(state.player, state.orders, now, self.rng)
            )
            return order_engine.pending_orders(state.orders)

    def get_challenges(self, player_id: str) -> List[SeasonalChallenge]:
        """The current batch; a fresh one is dealt when none are open."""
        with self._player_state(player_id) as (state, now):
            open_statuses = (ChallengeStatus.ACTIVE, ChallengeStatus.LOCKED)
            if not any(c.status in open_statuses for c in state.challenges):
                challenge_engine.generate_challenges(state.player, state.challenges, now, self.rng)
            return challenge_engine.current_batch(state.challenges)

    # Field
    def plant(self, player_id: str, row: int, col: int,
              crop_type: CropType = CropType.PUMPKIN) -> ActionResponse:
        with self._player_state(player_id) as (state, now):
            level_before = state.player.level
            plot_engine.plant(state.player, state.get_plot(row, col), crop_type, now)
            gained = self._award(state, "plant")
            self._record(state, ChallengeType.PLANT, 1, now)
            return self._respond(
                state, now, level_before, "Seed planted successfully!",
                plots=state.sorted_plots(), experience_gained=gained,
            )

    def fertilize(self, player_id: str, row: int, col: int) -> ActionResponse:
        with self._player_state(player_id) as (state, now):
            level_before = state.player.level
            plot_engine.fertilize(state.player, state.get_plot(row, col))
            return self._respond(
                state, now, level_before, "Plot fertilized! Growth speed doubled.",
                plots=state.sorted_plots(),
            )

    def harvest(self, player_id: str, row: int, col: int) -> ActionResponse:
        with self._player_state(player_id) as (state, now):
            level_before = state.player.level
            crop_type = plot_engine.harvest(state.player, state.get_plot(row, col))
            gained = self._award(state, "harvest")
            self._record(state, ChallengeType.HARVEST, 1, now)
            return self._respond(
                state, now, level_before, f"{CROPS[crop_type.value]['label']} harvested!",
                plots=state.sorted_plots(), experience_gained=gained,
            )

    # Kitchen
    def bake(self, player_id: str, slot_number: int,
             pie_type: PieType = PieType.PUMPKIN) -> ActionResponse:
        with self._player_state(player_id) as (state, now):
            level_before = state.player.level
            oven_engine.start_baking(state.player, state.get_oven(slot_number), pie_type, now)
            return self._respond(
                state, now, level_before, f"{pie_type.value.capitalize()} pie is baking!",
                ovens=state.sorted_ovens(),
            )

    def collect_pie(self, player_id: str, slot_number: int) -> ActionResponse:
        with self._player_state(player_id) as (state, now):
            level_before = state.player.level
            pie_type = oven_engine.collect_pie(state.player, state.get_oven(slot_number))
            gained = self._award(state, "bake")
            self._record(state, ChallengeType.BAKE, 1, now)
            return self._respond(
                state, now, level_before, f"{pie_type.value.capitalize()} pie collected!",
                ovens=state.sorted_ovens(), experience_gained=gained,
            )

    # Marketplace
    def buy(self, player_id: str, item: MarketItem, quantity: int) -> ActionResponse:
        with self._player_state(player_id) as (state, now):
            level_before = state.player.level
            trade = economy.buy(state.player, item, quantity)
            return self._respond(
                state, now, level_before,
                f"Bought {trade.quantity} {item.value} for {trade.coins} coins!",
                cost=trade.coins,
            )

    def sell(self, player_id: str, item: MarketItem, quantity: int) -> ActionResponse:
        with self._player_state(player_id) as (state, now):
            level_before = state.player.level
            trade = economy.sell(state.player, item, quantity)
            self._record(state, ChallengeType.EARN, trade.coins, now)
            return self._respond(
                state, now, level_before,
                f"Sold {trade.quantity} {item.value} for {trade.coins} coins!",
                coins_received=trade.coins,
            )

    def expand_field(self, player_id: str) -> ActionResponse:
        with self._player_state(player_id) as (state, now):
            level_before = state.player.level
            expansion = economy.expand_field(state.player, state.plots)
            state.plots.extend(expansion.new_plots)
            gained = self._award(state, "expand_field")
            self._record(state, ChallengeType.EXPAND, 1, now)
            size = expansion.new_size
            return self._respond(
                state, now, level_before,
                f"Field expanded to {size}x{size} for {expansion.cost} coins!",
                plots=state.sorted_plots(), cost=expansion.cost, experience_gained=gained,
            )

    def expand_kitchen(self, player_id: str) -> ActionResponse:
        with self._player_state(player_id) as (state, now):
            level_before = state.player.level
            expansion = economy.expand_kitchen(state.player, state.ovens)
            if expansion.new_oven is not None:
                state.ovens.append(expansion.new_oven)
            gained = self._award(state, "expand_kitchen")
            self._record(state, ChallengeType.EXPAND, 1, now)
            return self._respond(
                state, now, level_before,
                f"Kitchen expanded to {expansion.new_slots} ovens for {expansion.cost} coins!",
                ovens=state.sorted_ovens(), cost=expansion.cost, experience_gained=gained,
            )

    # Rewards
    def collect_daily_coins(self, player_id: str) -> ActionResponse:
        with self._player_state(player_id) as (state, now):
            level_before = state.player.level
            coins = daily_rewards.collect_daily_coins(state.player, now)
            return self._respond(
                state, now, level_before, f"Collected {coins} daily coins!",
                coins_received=coins,
            )

    def reset_daily_coins(self, player_id: str) -> ActionResponse:
        with self._player_state(player_id) as (state, now):
            state.player.last_daily_collection = None
            logger.info(f"[FARM] Daily coin timer reset for player {player_id}")
            return self._respond(state, now, state.player.level, "Daily coins timer reset")

    def unlock_level(self, player_id: str) -> ActionResponse:
        with self._player_state(player_id) as (state, now):
            level_before = state.player.level
            spent = progression.unlock_next_level(state.player)
            return self._respond(
                state, now, level_before,
                f"Unlocked level {state.player.level} for {spent} tools!",
                cost=spent,
            )

    # Orders
    def fulfill_order(self, player_id: str, order_id: str) -> ActionResponse:
        with self._player_state(player_id) as (state, now):
            level_before = state.player.level
            order = state.get_order(order_id)
            order_engine.fulfill_order(state.player, order, now)
            self._record(state, ChallengeType.EARN, order.rewards.coins, now)
            return self._respond(
                state, now, level_before,
                f"Order for {order.customer_name} fulfilled! +{order.rewards.coins} coins",
                orders=order_engine.pending_orders(state.orders),
                coins_received=order.rewards.coins,
                experience_gained=order.rewards.experience,
            )

    # Challenges
    def update_challenge_progress(self, player_id: str, challenge_id: str,
                                  progress: int) -> ActionResponse:
        with self._player_state(player_id) as (state, now):
            level_before = state.player.level
            challenge = state.get_challenge(challenge_id)
            completed = challenge_engine.update_challenge_progress(
                state.player, challenge, progress, now
            )
            challenge_engine.activate_locked_challenges(state.player, state.challenges)
            message = "Challenge completed!" if completed else "Challenge progress updated"
            return self._respond(
                state, now, level_before, message,
                challenges=challenge_engine.current_batch(state.challenges),
            )

    def generate_challenges(self, player_id: str) -> ActionResponse:
        with self._player_state(player_id) as (state, now):
            level_before = state.player.level
            challenge_engine.generate_challenges(state.player, state.challenges, now, self.rng)
            return self._respond(
                state, now, level_before, "New challenges generated!",
                challenges=challenge_engine.current_batch(state.challenges),
            )
