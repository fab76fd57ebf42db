from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from ledgerapi.database.session import atomic
from ledgerapi.repositories.user_repository import UserRepository
from ledgerapi.core.exceptions import UserNotFoundError, ValidationError
from ledgerapi.schemas.user import User as UserSchema
import logging

logger = logging.getLogger(__name__)


class UserService:
    """사용자 관련 비즈니스 로직을 담당하는 서비스"""

    def __init__(self, db: Session):
        self.db = db
        self.user_repo = UserRepository(db)

    def get_user(self, user_id: int) -> UserSchema:
        """사용자 ID로 조회"""
        user = self.user_repo.get_by_id(user_id)
        if not user:
            raise UserNotFoundError(user_id)
        return user

    def get_or_create_by_discord_id(
        self, discord_user_id: str, username: str
    ) -> UserSchema:
        """디스코드 ID 로 사용자 조회, 없으면 잔액 0 으로 생성

        봇 이벤트 핸들러가 처음 접촉한 사용자를 지연 생성할 때 사용합니다.
        동시에 같은 ID 로 생성이 시도되면 unique 제약으로 한쪽이 실패하며,
        실패한 쪽은 이미 생성된 사용자를 다시 읽어 반환합니다.
        """
        if not discord_user_id:
            raise ValidationError("discord_user_id is required")

        existing = self.user_repo.get_by_discord_id(discord_user_id)
        if existing:
            return existing

        try:
            with atomic(self.db):
                account = self.user_repo.create_user(
                    username=username or discord_user_id,
                    discord_user_id=discord_user_id,
                )
                user = UserSchema.model_validate(account)
        except IntegrityError:
            user = self.user_repo.get_by_discord_id(discord_user_id)
            if user is None:
                raise
            return user

        logger.info(f"Created user {user.id} for discord user {discord_user_id}")
        return user
