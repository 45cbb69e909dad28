"""
Pumpkin Patch game endpoints.

Handlers are plain ``def`` functions: the game service blocks on a per-player
lock and on the database, so FastAPI runs them in its threadpool. Rule
violations propagate as GameError and are rendered by the handler in main.py.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from typing import List, Optional
import logging

from app.core.clock import Clock, utcnow
from app.core.config import settings
from app.db.database import get_database
from app.models.schemas import (
    ActionResponse,
    BakeRequest,
    BuyRequest,
    ChallengeProgressRequest,
    CreatePlayerRequest,
    CustomerOrder,
    FulfillOrderRequest,
    OvenRequest,
    Oven,
    PlantRequest,
    PlayerRequest,
    PlayerView,
    Plot,
    PlotRequest,
    SeasonalChallenge,
    SellRequest,
)
from app.services.game_service import GameService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["game"]
)


def get_clock() -> Clock:
    return utcnow


def get_game_service(
    store=Depends(get_database),
    clock: Clock = Depends(get_clock)
) -> GameService:
    return GameService(store, clock=clock)


# Player Routes
@router.post("/player", response_model=PlayerView, status_code=status.HTTP_201_CREATED)
def create_player(
    request: Optional[CreatePlayerRequest] = None,
    service: GameService = Depends(get_game_service)
):
    """Start a new farm. A random id is assigned when none is given."""
    player_id = request.player_id if request else None
    return service.create_player(player_id)


@router.get("/player/{player_id}", response_model=PlayerView)
def get_player(player_id: str, service: GameService = Depends(get_game_service)):
    return service.get_player(player_id)


@router.get("/player/{player_id}/plots", response_model=List[Plot])
def get_plots(player_id: str, service: GameService = Depends(get_game_service)):
    return service.get_plots(player_id)


@router.get("/player/{player_id}/ovens", response_model=List[Oven])
def get_ovens(player_id: str, service: GameService = Depends(get_game_service)):
    return service.get_ovens(player_id)


@router.get("/player/{player_id}/orders", response_model=List[CustomerOrder])
def get_orders(player_id: str, service: GameService = Depends(get_game_service)):
    """Pending customer orders; expired ones are replaced on read."""
    return service.get_orders(player_id)


@router.get("/player/{player_id}/challenges", response_model=List[SeasonalChallenge])
def get_challenges(player_id: str, service: GameService = Depends(get_game_service)):
    return service.get_challenges(player_id)


# Field Routes
@router.post("/plant", response_model=ActionResponse)
def plant(request: PlantRequest, service: GameService = Depends(get_game_service)):
    return service.plant(request.player_id, request.row, request.col, request.crop_type)


@router.post("/harvest", response_model=ActionResponse)
def harvest(request: PlotRequest, service: GameService = Depends(get_game_service)):
    return service.harvest(request.player_id, request.row, request.col)


@router.post("/fertilize", response_model=ActionResponse)
def fertilize(request: PlotRequest, service: GameService = Depends(get_game_service)):
    return service.fertilize(request.player_id, request.row, request.col)


@router.post("/expand", response_model=ActionResponse)
def expand_field(request: PlayerRequest, service: GameService = Depends(get_game_service)):
    return service.expand_field(request.player_id)


# Kitchen Routes
@router.post("/bake", response_model=ActionResponse)
def bake(request: BakeRequest, service: GameService = Depends(get_game_service)):
    return service.bake(request.player_id, request.slot_number, request.pie_type)


@router.post("/collect-pie", response_model=ActionResponse)
def collect_pie(request: OvenRequest, service: GameService = Depends(get_game_service)):
    return service.collect_pie(request.player_id, request.slot_number)


@router.post("/expand-kitchen", response_model=ActionResponse)
def expand_kitchen(request: PlayerRequest, service: GameService = Depends(get_game_service)):
    return service.expand_kitchen(request.player_id)


# Marketplace Routes
@router.post("/buy", response_model=ActionResponse)
def buy(request: BuyRequest, service: GameService = Depends(get_game_service)):
    return service.buy(request.player_id, request.item, request.quantity)


@router.post("/sell", response_model=ActionResponse)
def sell(request: SellRequest, service: GameService = Depends(get_game_service)):
    return service.sell(request.player_id, request.item, request.quantity)


# Rewards and Progression Routes
@router.post("/collect-daily-coins", response_model=ActionResponse)
def collect_daily_coins(request: PlayerRequest, service: GameService = Depends(get_game_service)):
    return service.collect_daily_coins(request.player_id)


@router.post("/unlock-level", response_model=ActionResponse)
def unlock_level(request: PlayerRequest, service: GameService = Depends(get_game_service)):
    """Spend tools to go past the experience level cap."""
    return service.unlock_level(request.player_id)


# Orders and Challenges Routes
@router.post("/fulfill-order", response_model=ActionResponse)
def fulfill_order(request: FulfillOrderRequest, service: GameService = Depends(get_game_service)):
    return service.fulfill_order(request.player_id, request.order_id)


@router.post("/challenge/progress", response_model=ActionResponse)
def update_challenge_progress(
    request: ChallengeProgressRequest,
    service: GameService = Depends(get_game_service)
):
    return service.update_challenge_progress(
        request.player_id, request.challenge_id, request.progress
    )


@router.post("/challenges/generate", response_model=ActionResponse)
def generate_challenges(request: PlayerRequest, service: GameService = Depends(get_game_service)):
    return service.generate_challenges(request.player_id)


# Debug Routes
@router.post("/debug/reset-daily-coins/{player_id}", response_model=ActionResponse)
def reset_daily_coins(player_id: str, service: GameService = Depends(get_game_service)):
    if not settings.debug:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    logger.warning(f"[DEBUG] Resetting daily coins for player {player_id}")
    return service.reset_daily_coins(player_id)
