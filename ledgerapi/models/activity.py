from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from ledgerapi.models.base import BaseModel


class ActivityCooldown(BaseModel):
    """디스코드 활동 보상 쿨다운 (user_id, activity) -> 마지막 지급 시각"""

    __tablename__ = "activity_cooldowns"

    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), primary_key=True
    )
    activity: Mapped[str] = mapped_column(String(32), primary_key=True)
    last_rewarded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
