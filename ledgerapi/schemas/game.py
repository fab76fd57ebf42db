from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime

from ledgerapi.models.game import GameResult, GameType, RiskLevel


class GameResponse(BaseModel):
    id: int
    name: str
    description: str = ""
    game_type: GameType
    is_active: bool
    min_bet: int
    max_bet: int
    house_edge: float
    settings: Dict[str, Any] = Field(default_factory=dict)
    total_played: int = 0
    total_wagered: int = 0
    total_won: int = 0
    created_by: str = "system"
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GameCreateRequest(BaseModel):
    """관리자 게임 생성 요청"""

    name: str = Field(..., min_length=1, max_length=100)
    description: str = ""
    game_type: GameType = GameType.PLINKO
    is_active: bool = True
    min_bet: int = Field(..., ge=1)
    max_bet: int = Field(..., ge=1)
    house_edge: float = Field(0, ge=0, le=100)
    settings: Dict[str, Any] = Field(default_factory=dict)


class GameUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    is_active: Optional[bool] = None
    min_bet: Optional[int] = Field(None, ge=1)
    max_bet: Optional[int] = Field(None, ge=1)
    house_edge: Optional[float] = Field(None, ge=0, le=100)
    settings: Optional[Dict[str, Any]] = None


class PlinkoPlayRequest(BaseModel):
    game_id: int = Field(..., gt=0)
    bet_amount: int = Field(..., gt=0)
    risk_level: RiskLevel = RiskLevel.MEDIUM


class GameSessionResponse(BaseModel):
    id: int
    user_id: int
    game_id: int
    game_type: GameType
    bet_amount: int
    result: GameResult
    win_amount: int
    multiplier: Optional[float] = None
    game_data: Dict[str, Any] = Field(default_factory=dict)
    played_at: datetime

    class Config:
        from_attributes = True


class PlinkoPlayResult(BaseModel):
    """플링코 플레이 결과"""

    session: GameSessionResponse
    result: GameResult
    win_amount: int
    multiplier: float
    ball_path: List[int]
    final_slot: int
    new_balance: int


class UserGameStats(BaseModel):
    total_sessions: int = 0
    total_wagered: int = 0
    total_won: int = 0
    net_result: int = 0
    biggest_win: int = 0
    win_rate: float = 0.0
    average_bet: float = 0.0
    last_played: Optional[datetime] = None


class LeaderboardEntry(BaseModel):
    user_id: int
    username: str
    value: int


class GameLeaderboard(BaseModel):
    game_id: int
    period: str
    top_winners: List[LeaderboardEntry]
    top_wagerers: List[LeaderboardEntry]
    biggest_wins: List[LeaderboardEntry]
