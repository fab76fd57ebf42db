from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Dict, List, Optional
from urllib.parse import quote_plus


def _default_activity_rewards() -> Dict[str, Dict[str, int]]:
    # activity -> 지급 포인트 / 소울바운드 포인트 / 쿨다운(초)
    return {
        "message": {"points": 1, "soul_bound_points": 0, "cooldown_seconds": 60},
        "reaction": {"points": 1, "soul_bound_points": 0, "cooldown_seconds": 30},
        "voice_minute": {"points": 2, "soul_bound_points": 0, "cooldown_seconds": 60},
        "daily_login": {"points": 10, "soul_bound_points": 5, "cooldown_seconds": 86400},
    }


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file="ledgerapi/.env",
        env_file_encoding="utf-8",
        extra="allow",
    )
    # Application
    APP_NAME: str = "Community Economy API"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USERNAME: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DATABASE: str = "economy"

    # 전체 URL 지정 시 POSTGRES_* 값보다 우선 (예: sqlite:///./economy.db)
    DATABASE_URL: Optional[str] = None
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    @property
    def database_url(self) -> str:
        """Construct database URL from individual components"""
        if self.DATABASE_URL:
            return self.DATABASE_URL

        # URL encode the password to handle special characters
        encoded_password = quote_plus(self.POSTGRES_PASSWORD)
        return f"postgresql+psycopg2://{self.POSTGRES_USERNAME}:{encoded_password}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DATABASE}"

    # Security
    SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Shop
    MAX_PURCHASE_QUANTITY: int = 100
    LEDGER_PAGE_MAX: int = 100

    # Default Plinko game
    PLINKO_DEFAULT_ROWS: int = 14
    PLINKO_DEFAULT_MULTIPLIERS: List[float] = Field(
        default_factory=lambda: [0.2, 0.5, 1, 1.5, 2, 3, 5, 10, 5, 3, 2, 1.5, 1, 0.5, 0.2]
    )
    PLINKO_DEFAULT_MIN_BET: int = 1
    PLINKO_DEFAULT_MAX_BET: int = 1000
    PLINKO_DEFAULT_HOUSE_EDGE: float = 2.5

    # Discord activity rewards
    ACTIVITY_REWARDS: Dict[str, Dict[str, int]] = Field(
        default_factory=_default_activity_rewards
    )

    # 봇 스케줄러 주기 (봇 레이어에서 참조)
    ARENA_ROUND_MINUTES: int = 30
    RAFFLE_EXPIRY_POLL_MINUTES: int = 5

    # True 이면 보상 추첨에 random.SystemRandom 사용
    USE_SECURE_RNG: bool = False


settings = Settings()
