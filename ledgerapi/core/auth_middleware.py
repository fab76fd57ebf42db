from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from ledgerapi.models.user import UserRole
from ledgerapi.database.session import get_db
from ledgerapi.repositories.user_repository import UserRepository
from ledgerapi.schemas.user import User as UserSchema
from ledgerapi.core.exceptions import AuthenticationError, AuthorizationError
from ledgerapi.core.security import decode_access_token

# JWT Bearer 토큰 스킴
security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> UserSchema:
    """필수 사용자 인증 - 토큰의 user_id 로 사용자 계정을 조회"""
    if not credentials:
        raise AuthenticationError("Authentication required")

    payload = decode_access_token(credentials.credentials)
    user = UserRepository(db).get_by_id(payload.user_id)
    if not user:
        raise AuthenticationError("Invalid or expired token")
    return user


def get_current_active_user(
    current_user: UserSchema = Depends(get_current_user),
) -> UserSchema:
    """활성 사용자만 허용"""
    if not current_user.is_active:
        raise AuthorizationError("Inactive user account")
    return current_user


def require_admin(
    current_user: UserSchema = Depends(get_current_active_user),
) -> UserSchema:
    """관리자 권한이 필요한 엔드포인트용 의존성"""
    if not UserRole.has_permission(current_user.role, UserRole.ADMIN):
        raise AuthorizationError("Admin access required")
    return current_user
