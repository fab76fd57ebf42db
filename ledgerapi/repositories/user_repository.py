from typing import Optional, List
from sqlalchemy.orm import Session

from ledgerapi.models.user import UserAccount, UserRole
from ledgerapi.schemas.user import User as UserSchema
from ledgerapi.repositories.base import BaseRepository


class UserRepository(BaseRepository[UserAccount, UserSchema]):
    """사용자 리포지토리 - 디스코드 ID 매핑 지원"""

    def __init__(self, db: Session):
        super().__init__(UserAccount, UserSchema, db)

    def get_by_discord_id(self, discord_user_id: str) -> Optional[UserSchema]:
        """디스코드 사용자 ID로 조회"""
        return self.get_by_field("discord_user_id", discord_user_id)

    def get_model_by_discord_id(self, discord_user_id: str) -> Optional[UserAccount]:
        return (
            self.db.query(UserAccount)
            .filter(UserAccount.discord_user_id == discord_user_id)
            .first()
        )

    def create_user(
        self,
        username: str,
        discord_user_id: Optional[str] = None,
        role: UserRole = UserRole.USER,
    ) -> UserAccount:
        """잔액 0 으로 사용자 생성"""
        return self.add(
            username=username,
            discord_user_id=discord_user_id,
            role=role.value,
            is_active=True,
            redeemable_points=0,
            soul_bound_points=0,
            total_earned=0,
        )

    def get_usernames(self, user_ids: List[int]) -> dict:
        """user_id -> username 매핑 (리더보드/참가자 목록 표시용)"""
        if not user_ids:
            return {}
        rows = (
            self.db.query(UserAccount.id, UserAccount.username)
            .filter(UserAccount.id.in_(user_ids))
            .all()
        )
        return {row.id: row.username for row in rows}
