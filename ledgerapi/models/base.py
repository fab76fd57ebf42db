from sqlalchemy import JSON, BigInteger, Column, DateTime, Integer, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, declared_attr

from ledgerapi.utils.timezone_utils import utc_now

Base = declarative_base()

# SQLite 는 INTEGER PRIMARY KEY 만 자동 증가하므로 variant 로 대응
BigIntPK = BigInteger().with_variant(Integer, "sqlite")

# PostgreSQL 에서는 JSONB, 그 외 백엔드는 범용 JSON
JSONType = JSON().with_variant(JSONB, "postgresql")


class TimestampMixin:
    """타임스탬프 필드를 위한 믹스인"""

    @declared_attr
    def created_at(cls):
        return Column(
            DateTime(timezone=True), default=utc_now, server_default=func.now()
        )

    @declared_attr
    def updated_at(cls):
        return Column(
            DateTime(timezone=True),
            default=utc_now,
            server_default=func.now(),
            onupdate=utc_now,
        )


class BaseModel(Base, TimestampMixin):
    """모든 모델의 베이스 클래스"""

    __abstract__ = True

