from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

from ledgerapi.models.user import UserRole


class User(BaseModel):
    id: int
    discord_user_id: Optional[str] = None
    username: str
    role: UserRole = UserRole.USER
    is_active: bool = True
    redeemable_points: int = 0
    soul_bound_points: int = 0
    total_earned: int = 0
    last_activity_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class DiscordUserRequest(BaseModel):
    """봇 호출용 - 디스코드 ID 로 내부 사용자 조회/생성"""

    discord_user_id: str = Field(..., min_length=1, max_length=64)
    username: str = Field(..., min_length=1, max_length=100)
