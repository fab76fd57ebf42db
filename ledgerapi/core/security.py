from datetime import timedelta
from typing import Optional

from jose import jwt, JWTError
from pydantic import BaseModel, ValidationError

from ledgerapi.config import settings
from ledgerapi.core.exceptions import AuthenticationError
from ledgerapi.utils.timezone_utils import utc_now


class TokenPayload(BaseModel):
    user_id: int
    sub: Optional[str] = None  # 디스코드 사용자 ID 등


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = utc_now() + expires_delta
    else:
        expire = utc_now() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(
        to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM
    )
    return encoded_jwt


def decode_access_token(token: str) -> TokenPayload:
    """JWT 토큰을 검증하고 페이로드를 반환합니다."""
    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
        )
        return TokenPayload.model_validate(payload)
    except (JWTError, ValidationError):
        raise AuthenticationError("Invalid authentication credentials")
