import enum
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import BigInteger, Boolean, DateTime, Float, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ledgerapi.models.base import BaseModel, BigIntPK, JSONType
from ledgerapi.utils.timezone_utils import utc_now


class GameType(str, enum.Enum):
    PLINKO = "plinko"
    COIN_FLIP = "coin_flip"
    DICE_ROLL = "dice_roll"


class GameResult(str, enum.Enum):
    WIN = "win"
    LOSE = "lose"


class RiskLevel(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Game(BaseModel):
    """
    게임 설정 + 집계 통계

    total_played / total_wagered / total_won 은 플레이 트랜잭션 밖에서
    best-effort 로 갱신되는 집계값입니다 (원장 정합성 범위 밖).
    """

    __tablename__ = "games"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    game_type: Mapped[str] = mapped_column(String(20), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    min_bet: Mapped[int] = mapped_column(BigInteger, nullable=False)
    max_bet: Mapped[int] = mapped_column(BigInteger, nullable=False)
    house_edge: Mapped[float] = mapped_column(Float, nullable=False, default=0)

    # plinko: {"rows": int, "multipliers": [float], "risk_level": str}
    settings: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    total_played: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_wagered: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_won: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    created_by: Mapped[str] = mapped_column(String(64), nullable=False, default="system")


class GameSession(BaseModel):
    """플레이 1회 기록 (생성 후 불변)"""

    __tablename__ = "game_sessions"
    __table_args__ = (
        Index("idx_game_sessions_user_game", "user_id", "game_id"),
        Index("idx_game_sessions_played_at", "played_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    game_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("games.id"), nullable=False
    )
    game_type: Mapped[str] = mapped_column(String(20), nullable=False)

    bet_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    result: Mapped[str] = mapped_column(String(8), nullable=False)
    win_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    multiplier: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # plinko: {"ball_path": [0|1], "final_slot": int, "multiplier": float, "risk_level": str}
    game_data: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    played_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
