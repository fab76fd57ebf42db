from datetime import datetime
from enum import Enum
from typing import Optional, Union

from sqlalchemy import BigInteger, Boolean, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ledgerapi.models.base import BaseModel, BigIntPK


class UserRole(str, Enum):
    """사용자 역할 정의"""

    USER = "user"  # 일반 사용자
    MODERATOR = "moderator"  # 디스코드 모더레이터
    ADMIN = "admin"  # 관리자

    @classmethod
    def get_hierarchy_level(cls, role: Union[str, "UserRole"]) -> int:
        """역할의 계층 레벨을 반환 (숫자가 높을수록 높은 권한)"""
        if isinstance(role, cls):
            role = role.value

        hierarchy = {
            cls.USER.value: 1,
            cls.MODERATOR.value: 2,
            cls.ADMIN.value: 3,
        }
        return hierarchy.get(str(role), 0)

    @classmethod
    def has_permission(
        cls, user_role: Union[str, "UserRole"], required_role: Union[str, "UserRole"]
    ) -> bool:
        """사용자 역할이 요구되는 역할 이상인지 확인"""
        return cls.get_hierarchy_level(user_role) >= cls.get_hierarchy_level(
            required_role
        )


class UserAccount(BaseModel):
    """
    사용자 계정 + 포인트 잔액

    잔액 컬럼(redeemable_points, soul_bound_points, total_earned)은
    PointService.apply_balance_change 를 통해서만 변경됩니다.
    """

    __tablename__ = "users"
    __table_args__ = (Index("idx_users_discord_user_id", "discord_user_id"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    discord_user_id: Mapped[Optional[str]] = mapped_column(
        String(64), unique=True, nullable=True
    )
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[str] = mapped_column(
        String(20), default=UserRole.USER.value, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # 사용 가능한 포인트 (상점/게임/래플)
    redeemable_points: Mapped[int] = mapped_column(
        BigInteger, default=0, nullable=False
    )
    # 양도 불가 포인트 (표시/투표 가중치 전용, 경제 흐름에서 차감되지 않음)
    soul_bound_points: Mapped[int] = mapped_column(
        BigInteger, default=0, nullable=False
    )
    # 누적 획득량 (양수 거래의 합)
    total_earned: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    last_activity_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self):
        return f"<UserAccount(id={self.id}, discord_user_id={self.discord_user_id})>"

    @property
    def is_admin(self) -> bool:
        return str(self.role) == UserRole.ADMIN.value
