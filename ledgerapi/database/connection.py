from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from ledgerapi.config import settings


def create_db_engine(database_url: str, debug: bool = False) -> Engine:
    """URL 에 맞는 엔진 생성 (SQLite 는 로컬/테스트 용도)"""
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            echo=debug,
        )

    return create_engine(
        database_url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,  # 연결 유효성 검사
        pool_recycle=3600,  # 1시간마다 연결 재생성
        echo=debug,  # 디버그 모드에서 SQL 로깅
    )


engine = create_db_engine(settings.database_url, debug=settings.DEBUG)

# Use expire_on_commit=False to avoid DetachedInstanceError when accessing
# attributes after commit within the same request scope (common FastAPI pattern).
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,
)
