from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


class ActivityRewardResult(BaseModel):
    """디스코드 활동 보상 결과"""

    user_id: int
    activity: str
    rewarded: bool = Field(..., description="쿨다운으로 건너뛰면 False")
    points: int = 0
    soul_bound_points: int = 0
    new_balance: int
    next_available_at: Optional[datetime] = None


class ArenaRoundResult(BaseModel):
    winner_user_id: int
    winner_discord_id: str
    prize: int
    participants: List[str]
    new_balance: int
