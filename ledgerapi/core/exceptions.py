from fastapi import HTTPException, status
from typing import Optional, Dict, Any

class BaseAPIException(HTTPException):
    """Base exception for API errors"""
    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}

        super().__init__(
            status_code=status_code,
            detail={
                "success": False,
                "error": {
                    "code": error_code,
                    "message": message,
                    "details": self.details
                }
            }
        )

    def __str__(self) -> str:  # Ensure str(e) returns the human message
        return self.message

class AuthenticationError(BaseAPIException):
    """Authentication related errors"""
    def __init__(self, message: str = "Authentication failed", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code="AUTH_001",
            message=message,
            details=details
        )

class AuthorizationError(BaseAPIException):
    """Authorization related errors"""
    def __init__(self, message: str = "Access forbidden", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="AUTH_002",
            message=message,
            details=details
        )

class ValidationError(BaseAPIException):
    """Validation errors"""
    def __init__(self, message: str = "Validation failed", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="VALIDATION_001",
            message=message,
            details=details
        )

# ---------------------------------------------------------------------------
# 도메인 오류 - 발생 시 열린 트랜잭션은 모두 롤백됨
# ---------------------------------------------------------------------------

class NotFoundError(BaseAPIException):
    """Resource not found errors"""
    def __init__(self, message: str = "Resource not found", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="NOT_FOUND_001",
            message=message,
            details=details
        )

class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: Any):
        super().__init__(f"User not found: {user_id}", {"user_id": user_id})

class ItemNotFoundError(NotFoundError):
    def __init__(self, item_id: Any):
        super().__init__(f"Item not found: {item_id}", {"item_id": item_id})

class GameNotFoundError(NotFoundError):
    def __init__(self, game_id: Any):
        super().__init__(f"Game not found: {game_id}", {"game_id": game_id})

class RaffleNotFoundError(NotFoundError):
    def __init__(self, raffle_id: Any):
        super().__init__(f"Raffle not found: {raffle_id}", {"raffle_id": raffle_id})

class InvalidStateError(BaseAPIException):
    """Entity is not in the status the operation requires"""
    def __init__(self, message: str = "Invalid state", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error_code="STATE_001",
            message=message,
            details=details
        )

class ItemInactiveError(InvalidStateError):
    def __init__(self, item_id: Any):
        super().__init__("Item is not available for purchase", {"item_id": item_id})

class GameNotActiveError(InvalidStateError):
    def __init__(self, game_id: Any):
        super().__init__("Game is not active", {"game_id": game_id})

class RaffleNotActiveError(InvalidStateError):
    def __init__(self, message: str = "Raffle is not active", details: Optional[Dict] = None):
        super().__init__(message, details)

class OutOfRangeError(BaseAPIException):
    """Quantity, bet or entry count outside the allowed range"""
    def __init__(self, message: str = "Value out of range", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="RANGE_001",
            message=message,
            details=details
        )

class InsufficientStockError(OutOfRangeError):
    def __init__(self, requested: int, available: int):
        super().__init__(
            "Insufficient stock",
            {"requested": requested, "available": available},
        )

class BetOutOfRangeError(OutOfRangeError):
    def __init__(self, min_bet: int, max_bet: int):
        super().__init__(
            f"Bet amount must be between {min_bet} and {max_bet}",
            {"min_bet": min_bet, "max_bet": max_bet},
        )

class RaffleCapacityError(OutOfRangeError):
    def __init__(self, remaining: int):
        super().__init__(
            f"Only {remaining} tickets remaining", {"remaining": remaining}
        )

class RaffleUserLimitError(OutOfRangeError):
    def __init__(self, max_per_user: int, allowed: int):
        super().__init__(
            f"Maximum {max_per_user} entries per user. You can purchase {allowed} more.",
            {"max_entries_per_user": max_per_user, "allowed": allowed},
        )

class InsufficientBalanceError(BaseAPIException):
    """Insufficient balance errors"""
    def __init__(self, message: str = "Insufficient balance", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="BALANCE_001",
            message=message,
            details=details
        )

class InternalServerError(BaseAPIException):
    """Internal server errors"""
    def __init__(self, message: str = "Internal server error", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="INTERNAL_001",
            message=message,
            details=details
        )
