from .user import User
from .points import PointsBalanceResponse, PointTransactionEntry
from .shop import ShopItemResponse, PurchaseResult
from .game import GameResponse, PlinkoPlayResult
from .raffle import RaffleResponse, RaffleEntryResult
