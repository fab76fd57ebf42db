from ledgerapi.models.base import Base
from ledgerapi.models.user import UserAccount, UserRole
from ledgerapi.models.points import (
    PointTransaction,
    PointType,
    TransactionStatus,
    TransactionType,
)
from ledgerapi.models.shop import (
    ItemCategory,
    ItemType,
    LootboxContent,
    LootboxOpening,
    LootboxRarity,
    Purchase,
    PurchaseStatus,
    ShopItem,
)
from ledgerapi.models.game import Game, GameResult, GameSession, GameType, RiskLevel
from ledgerapi.models.raffle import Raffle, RaffleEntry, RaffleStatus
from ledgerapi.models.activity import ActivityCooldown

__all__ = [
    "Base",
    "UserAccount",
    "UserRole",
    "PointTransaction",
    "PointType",
    "TransactionStatus",
    "TransactionType",
    "ItemCategory",
    "ItemType",
    "LootboxContent",
    "LootboxOpening",
    "LootboxRarity",
    "Purchase",
    "PurchaseStatus",
    "ShopItem",
    "Game",
    "GameResult",
    "GameSession",
    "GameType",
    "RiskLevel",
    "Raffle",
    "RaffleEntry",
    "RaffleStatus",
    "ActivityCooldown",
]
