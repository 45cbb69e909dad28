from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import List, Optional, Iterator, Tuple
from datetime import datetime
from enum import Enum

from app.config.game_constants import MAX_PURCHASE_QUANTITY
from app.core.errors import (
    PlotNotFound, OvenNotFound, OrderNotFound, ChallengeNotFound
)


class CropType(str, Enum):
    PUMPKIN = "pumpkin"
    APPLE = "apple"


class PieType(str, Enum):
    PUMPKIN = "pumpkin"
    APPLE = "apple"


class PlotState(str, Enum):
    EMPTY = "empty"
    SEEDLING = "seedling"
    GROWING = "growing"
    MATURE = "mature"


class OvenState(str, Enum):
    EMPTY = "empty"
    BAKING = "baking"
    READY = "ready"


class ChallengeType(str, Enum):
    HARVEST = "harvest"
    PLANT = "plant"
    BAKE = "bake"
    EARN = "earn"
    EXPAND = "expand"


class ChallengeStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    LOCKED = "locked"


class OrderStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    EXPIRED = "expired"


class MarketItem(str, Enum):
    SEEDS = "seeds"
    APPLE_SEEDS = "appleSeeds"
    PUMPKINS = "pumpkins"
    APPLES = "apples"
    PIES = "pies"
    APPLE_PIES = "applePies"
    FERTILIZER = "fertilizer"
    TOOLS = "tools"


# Base Models
class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Sparse resource records
class ResourceBundle(CamelModel):
    coins: Optional[int] = None
    experience: Optional[int] = None
    seeds: Optional[int] = None
    apple_seeds: Optional[int] = None
    pumpkins: Optional[int] = None
    apples: Optional[int] = None
    pies: Optional[int] = None
    apple_pies: Optional[int] = None
    fertilizer: Optional[int] = None
    tools: Optional[int] = None

    def amounts(self) -> Iterator[Tuple[str, int]]:
        """Yield (player attribute, amount) for every non-zero entry."""
        for name in type(self).model_fields:
            amount = getattr(self, name)
            if amount:
                yield name, amount


class ItemRequirements(CamelModel):
    pumpkins: Optional[int] = None
    apples: Optional[int] = None
    pies: Optional[int] = None
    apple_pies: Optional[int] = None

    def amounts(self) -> Iterator[Tuple[str, int]]:
        for name in type(self).model_fields:
            amount = getattr(self, name)
            if amount:
                yield name, amount


class OrderRewards(CamelModel):
    coins: int = 0
    experience: int = 0
    bonus: Optional[ResourceBundle] = None


# Player aggregate
class Player(CamelModel):
    id: str
    level: int = 1
    experience: int = 0
    coins: int = 0
    seeds: int = 0
    apple_seeds: int = 0
    pumpkins: int = 0
    apples: int = 0
    pies: int = 0
    apple_pies: int = 0
    fertilizer: int = 0
    tools: int = 0
    day: int = 1
    field_size: int = 3
    kitchen_slots: int = 1
    kitchen_unlocked: bool = False
    last_daily_collection: Optional[datetime] = None
    last_updated: datetime
    created_at: datetime


class PlayerView(Player):
    """Player plus values the client derives its buttons from."""

    can_collect_daily_coins: bool
    hours_until_next_daily: Optional[int] = None
    next_level_experience: Optional[int] = None


class Plot(CamelModel):
    player_id: str
    row: int
    col: int
    state: PlotState = PlotState.EMPTY
    crop_type: Optional[CropType] = None
    planted_at: Optional[datetime] = None
    fertilized: bool = False


class Oven(CamelModel):
    player_id: str
    slot_number: int
    state: OvenState = OvenState.EMPTY
    pie_type: Optional[PieType] = None
    started_at: Optional[datetime] = None


class SeasonalChallenge(CamelModel):
    id: str
    player_id: str
    template: str
    title: str
    description: str
    season: str
    type: ChallengeType
    target_value: int = Field(gt=0)
    current_progress: int = 0
    rewards: ResourceBundle
    status: ChallengeStatus = ChallengeStatus.ACTIVE
    difficulty: int = Field(ge=1, le=5)
    created_at: datetime
    expires_at: datetime
    completed_at: Optional[datetime] = None


class CustomerOrder(CamelModel):
    id: str
    player_id: str
    customer_name: str
    title: str
    required_items: ItemRequirements
    rewards: OrderRewards
    status: OrderStatus = OrderStatus.PENDING
    time_limit_minutes: int
    created_at: datetime
    expires_at: datetime
    completed_at: Optional[datetime] = None


class FarmState(BaseModel):
    """Everything one player owns; loaded and saved as one unit."""

    player: Player
    plots: List[Plot] = []
    ovens: List[Oven] = []
    orders: List[CustomerOrder] = []
    challenges: List[SeasonalChallenge] = []

    def get_plot(self, row: int, col: int) -> Plot:
        for plot in self.plots:
            if plot.row == row and plot.col == col:
                return plot
        raise PlotNotFound(row, col)

    def get_oven(self, slot_number: int) -> Oven:
        for oven in self.ovens:
            if oven.slot_number == slot_number:
                return oven
        raise OvenNotFound(slot_number)

    def get_order(self, order_id: str) -> CustomerOrder:
        for order in self.orders:
            if order.id == order_id:
                return order
        raise OrderNotFound(order_id)

    def get_challenge(self, challenge_id: str) -> SeasonalChallenge:
        for challenge in self.challenges:
            if challenge.id == challenge_id:
                return challenge
        raise ChallengeNotFound(challenge_id)

    def sorted_plots(self) -> List[Plot]:
        return sorted(self.plots, key=lambda p: (p.row, p.col))

    def sorted_ovens(self) -> List[Oven]:
        return sorted(self.ovens, key=lambda o: o.slot_number)


# Request Models
class PlayerRequest(CamelModel):
    player_id: str


class CreatePlayerRequest(CamelModel):
    player_id: Optional[str] = Field(default=None, min_length=1, max_length=64)


class PlotRequest(PlayerRequest):
    row: int = Field(ge=0, lt=10)
    col: int = Field(ge=0, lt=10)


class PlantRequest(PlotRequest):
    crop_type: CropType = CropType.PUMPKIN


class OvenRequest(PlayerRequest):
    slot_number: int = Field(ge=0, lt=5)


class BakeRequest(OvenRequest):
    pie_type: PieType = PieType.PUMPKIN


class TradeRequest(PlayerRequest):
    item: MarketItem
    quantity: int = Field(default=1, ge=1)

    @field_validator("item", mode="before")
    @classmethod
    def normalize_item(cls, value):
        # Older clients send kebab-case ("apple-seeds")
        if isinstance(value, str) and "-" in value:
            head, *rest = value.split("-")
            return head + "".join(part.capitalize() for part in rest)
        return value


class BuyRequest(TradeRequest):
    quantity: int = Field(default=1, ge=1, le=MAX_PURCHASE_QUANTITY)


class SellRequest(TradeRequest):
    pass


class FulfillOrderRequest(PlayerRequest):
    order_id: str


class ChallengeProgressRequest(PlayerRequest):
    challenge_id: str
    progress: int = Field(ge=1)


# API Response Models
class ActionResponse(CamelModel):
    player: Player
    message: str
    plots: Optional[List[Plot]] = None
    ovens: Optional[List[Oven]] = None
    orders: Optional[List[CustomerOrder]] = None
    challenges: Optional[List[SeasonalChallenge]] = None
    cost: Optional[int] = None
    coins_received: Optional[int] = None
    experience_gained: Optional[int] = None
    leveled_up: Optional[bool] = None
    new_level: Optional[int] = None
