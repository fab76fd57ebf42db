# Repository layer - Data access with Pydantic responses

from .base import BaseRepository
from .user_repository import UserRepository
from .points_repository import PointsRepository
from .shop_repository import ShopRepository
from .game_repository import GameRepository
from .raffle_repository import RaffleRepository
from .activity_repository import ActivityRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "PointsRepository",
    "ShopRepository",
    "GameRepository",
    "RaffleRepository",
    "ActivityRepository",
]
