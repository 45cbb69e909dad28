"""
Game rule violations.

Every expected, caller-recoverable condition is a GameError subclass. The HTTP
layer turns them into 4xx responses whose ``message`` is shown in the UI;
anything else is a fault and becomes a generic 500.
"""

from typing import Any, Dict, Optional


class GameError(Exception):
    """Base class for all game rule violations."""

    kind = "game_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def details(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "kind": self.kind, **self.details()}


# Not found

class NotFound(GameError):
    kind = "not_found"
    status_code = 404


class PlayerNotFound(NotFound):
    def __init__(self, player_id: str):
        super().__init__("Player not found")
        self.player_id = player_id


class PlotNotFound(NotFound):
    def __init__(self, row: int, col: int):
        super().__init__(f"Plot ({row}, {col}) does not exist")


class OvenNotFound(NotFound):
    def __init__(self, slot_number: int):
        super().__init__(f"Oven slot {slot_number} does not exist")


class OrderNotFound(NotFound):
    def __init__(self, order_id: str):
        super().__init__("Order not found")
        self.order_id = order_id


class ChallengeNotFound(NotFound):
    def __init__(self, challenge_id: str):
        super().__init__("Challenge not found")
        self.challenge_id = challenge_id


class UnknownItem(NotFound):
    def __init__(self, item: str, action: str):
        super().__init__(f"{item} cannot be {action} at the marketplace")
        self.item = item


# Inventory

class InsufficientInventory(GameError):
    kind = "insufficient_inventory"

    def __init__(self, message: str, item: Optional[str] = None,
                 required: Optional[int] = None, available: Optional[int] = None):
        super().__init__(message)
        self.item = item
        self.required = required
        self.available = available

    def details(self) -> Dict[str, Any]:
        data = {}
        if self.item is not None:
            data["item"] = self.item
        if self.required is not None:
            data["required"] = self.required
            data["available"] = self.available
        return data


class InsufficientFunds(InsufficientInventory):
    def __init__(self, message: str, required: int, available: int):
        super().__init__(message, item="coins", required=required, available=available)


# Stale client view

class InvalidState(GameError):
    kind = "invalid_state"
    status_code = 409


class PlotNotEmpty(InvalidState):
    def __init__(self):
        super().__init__("Plot is not available for planting")


class PlotNotMature(InvalidState):
    def __init__(self):
        super().__init__("Plot is not ready for harvest")


class InvalidPlotState(InvalidState):
    def __init__(self, state: str):
        super().__init__(f"Cannot fertilize a plot that is {state}")


class AlreadyFertilized(InvalidState):
    def __init__(self):
        super().__init__("This plot has already been fertilized")


class OvenNotEmpty(InvalidState):
    def __init__(self):
        super().__init__("Oven is already in use")


class PieNotReady(InvalidState):
    def __init__(self):
        super().__init__("Pie is not ready yet")


class PlayerAlreadyExists(InvalidState):
    def __init__(self, player_id: str):
        super().__init__(f"Player {player_id} already exists")
        self.player_id = player_id


class OrderUnavailable(InvalidState):
    def __init__(self, status: str):
        super().__init__(f"Order is no longer available ({status})")
        self.status = status


# Limits and gates

class LimitReached(GameError):
    kind = "limit_reached"


class MaxSizeReached(LimitReached):
    pass


class LevelLocked(GameError):
    kind = "level_locked"
    status_code = 403

    def __init__(self, message: str, required_level: int):
        super().__init__(message)
        self.required_level = required_level

    def details(self) -> Dict[str, Any]:
        return {"requiredLevel": self.required_level}


class LevelTooLow(LevelLocked):
    pass


class CooldownActive(GameError):
    kind = "cooldown_active"
    status_code = 429

    def __init__(self, hours_until_next: int):
        super().__init__(
            f"Daily coins already collected. Come back in {hours_until_next} hours!"
        )
        self.hours_until_next = hours_until_next

    def details(self) -> Dict[str, Any]:
        return {"hoursUntilNext": self.hours_until_next}
