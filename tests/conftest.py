import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ledgerapi.models import Base, UserAccount, UserRole
from ledgerapi.models.points import TransactionType
from ledgerapi.services.point_service import PointService


class StubRng:
    """고정된 추첨 결과를 돌려주는 random.Random 대용"""

    def __init__(self, randint_value=1, uniform_value=0.0, random_values=None, randrange_value=0):
        self.randint_value = randint_value
        self.uniform_value = uniform_value
        self.random_values = list(random_values or [])
        self.randrange_value = randrange_value

    def randint(self, a, b):
        return self.randint_value

    def uniform(self, a, b):
        return self.uniform_value

    def random(self):
        if self.random_values:
            return self.random_values.pop(0)
        return 0.0

    def randrange(self, n):
        return self.randrange_value


NOW = datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(
        bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
    )()
    yield session
    session.close()


@pytest.fixture
def stub_rng():
    return StubRng


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_user(db):
    """사용자 생성 - 초기 잔액은 관리자 조정 거래로 적립 (원장 정합성 유지)"""
    counter = {"n": 0}

    def _make(redeemable: int = 0, soul_bound: int = 0, role: UserRole = UserRole.USER, username=None):
        counter["n"] += 1
        user = UserAccount(
            username=username or f"user{counter['n']}",
            discord_user_id=f"discord-{counter['n']}",
            role=role.value,
            is_active=True,
            redeemable_points=0,
            soul_bound_points=0,
            total_earned=0,
        )
        db.add(user)
        db.commit()

        points = PointService(db)
        if redeemable:
            points.apply_balance_change(
                user.id, "redeemable", redeemable, TransactionType.ADMIN_ADJUSTMENT, "seed"
            )
        if soul_bound:
            points.apply_balance_change(
                user.id, "soul_bound", soul_bound, TransactionType.ADMIN_ADJUSTMENT, "seed"
            )
        db.refresh(user)
        return user

    return _make


# ---------------------------------------------------------------------------
# 라우터 테스트
# ---------------------------------------------------------------------------


@pytest.fixture
def app():
    from ledgerapi.main import create_app

    application = create_app()
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """테스트 클라이언트 픽스처"""
    from fastapi.testclient import TestClient

    return TestClient(app)


@pytest.fixture
def mock_user():
    """모의 일반 사용자"""
    from ledgerapi.schemas.user import User

    return User(id=1, discord_user_id="1001", username="tester", role=UserRole.USER)


@pytest.fixture
def mock_admin():
    """모의 관리자"""
    from ledgerapi.schemas.user import User

    return User(id=99, discord_user_id="9999", username="admin", role=UserRole.ADMIN)


@pytest.fixture
def login_as(app):
    """인증 의존성을 주어진 사용자로 대체"""
    from ledgerapi.core.auth_middleware import get_current_active_user

    def _login(user):
        app.dependency_overrides[get_current_active_user] = lambda: user
        return user

    return _login
