import math
import random
from datetime import datetime
from typing import List, Optional, Union
from sqlalchemy.orm import Session

from ledgerapi.config import settings
from ledgerapi.database.session import atomic
from ledgerapi.repositories.game_repository import GameRepository
from ledgerapi.repositories.points_repository import PointsRepository
from ledgerapi.repositories.user_repository import UserRepository
from ledgerapi.services.point_service import PointService
from ledgerapi.core.exceptions import (
    BaseAPIException,
    BetOutOfRangeError,
    GameNotActiveError,
    GameNotFoundError,
    InternalServerError,
    UserNotFoundError,
    ValidationError,
)
from ledgerapi.models.game import GameResult, GameType, RiskLevel
from ledgerapi.models.points import PointType, TransactionType
from ledgerapi.schemas.game import (
    GameCreateRequest,
    GameLeaderboard,
    GameResponse,
    GameSessionResponse,
    GameUpdateRequest,
    LeaderboardEntry,
    PlinkoPlayResult,
    UserGameStats,
)
from ledgerapi.utils.draws import get_rng, simulate_plinko
from ledgerapi.utils.timezone_utils import (
    start_of_day,
    start_of_month,
    start_of_week,
    utc_now,
)
import logging

logger = logging.getLogger(__name__)

DEFAULT_PLINKO_NAME = "Plinko"
LEADERBOARD_PERIODS = ("daily", "weekly", "monthly", "all_time")


class GameService:
    """게임(플링코) 플레이 / 통계 / 리더보드 서비스"""

    def __init__(self, db: Session, rng: Optional[random.Random] = None):
        self.db = db
        self.game_repo = GameRepository(db)
        self.points_repo = PointsRepository(db)
        self.user_repo = UserRepository(db)
        self.point_service = PointService(db)
        self.rng = rng or get_rng()

    def list_active_games(self) -> List[GameResponse]:
        return self.game_repo.get_active_games()

    def get_game(self, game_id: int) -> GameResponse:
        game = self.game_repo.get_by_id(game_id)
        if game is None:
            raise GameNotFoundError(game_id)
        return game

    def play_plinko(
        self,
        game_id: int,
        user_id: int,
        bet_amount: int,
        risk_level: Union[RiskLevel, str] = RiskLevel.MEDIUM,
    ) -> PlinkoPlayResult:
        """플링코 1회 플레이

        세션 기록, 베팅 차감, (당첨 시) 지급이 하나의 트랜잭션으로 처리됩니다.
        게임 집계 통계는 트랜잭션 밖에서 갱신되며 실패해도 플레이는 유지됩니다.

        Raises:
            GameNotFoundError / GameNotActiveError
            BetOutOfRangeError: min_bet <= bet_amount <= max_bet 위반
            InsufficientBalanceError: 베팅 금액보다 잔액이 적음
        """
        risk_level = RiskLevel(risk_level)

        try:
            with atomic(self.db):
                game = self.game_repo.get_model(game_id)
                if game is None:
                    raise GameNotFoundError(game_id)
                if not game.is_active:
                    raise GameNotActiveError(game_id)
                if game.game_type != GameType.PLINKO.value:
                    raise ValidationError("Game is not a plinko game", {"game_id": game_id})
                if bet_amount < game.min_bet or bet_amount > game.max_bet:
                    raise BetOutOfRangeError(game.min_bet, game.max_bet)

                account = self.points_repo.lock_balance(user_id)
                if account is None:
                    raise UserNotFoundError(user_id)

                game_settings = game.settings or {}
                rows = int(game_settings.get("rows", settings.PLINKO_DEFAULT_ROWS))
                multipliers = game_settings.get(
                    "multipliers", settings.PLINKO_DEFAULT_MULTIPLIERS
                )
                outcome = simulate_plinko(rows, multipliers, risk_level, self.rng)

                # 부동소수점 오차로 인한 내림 손실 방지
                win_amount = math.floor(round(bet_amount * outcome.multiplier, 6))
                result = GameResult.WIN if win_amount > 0 else GameResult.LOSE

                session = self.game_repo.add_session(
                    user_id=user_id,
                    game_id=game.id,
                    game_type=game.game_type,
                    bet_amount=bet_amount,
                    result=result.value,
                    win_amount=win_amount,
                    multiplier=outcome.multiplier,
                    game_data={
                        "ball_path": outcome.ball_path,
                        "final_slot": outcome.final_slot,
                        "multiplier": outcome.multiplier,
                        "risk_level": risk_level.value,
                    },
                )
                reference = {
                    "game_id": game.id,
                    "session_id": session.id,
                    "risk_level": risk_level.value,
                }

                self.point_service.apply_balance_change(
                    user_id=user_id,
                    point_type=PointType.REDEEMABLE,
                    amount=-bet_amount,
                    transaction_type=TransactionType.PLINKO_GAME,
                    description=f"Plinko game bet - {risk_level.value} risk",
                    metadata={**reference, "bet_amount": bet_amount},
                    reference_id=str(session.id),
                    reference_type="game_session",
                )
                if win_amount > 0:
                    self.point_service.apply_balance_change(
                        user_id=user_id,
                        point_type=PointType.REDEEMABLE,
                        amount=win_amount,
                        transaction_type=TransactionType.PLINKO_GAME,
                        description=f"Plinko game win - {outcome.multiplier}x multiplier",
                        metadata={
                            **reference,
                            "multiplier": outcome.multiplier,
                            "win_amount": win_amount,
                        },
                        reference_id=str(session.id),
                        reference_type="game_session",
                    )

                play = PlinkoPlayResult(
                    session=GameSessionResponse.model_validate(session),
                    result=result,
                    win_amount=win_amount,
                    multiplier=outcome.multiplier,
                    ball_path=outcome.ball_path,
                    final_slot=outcome.final_slot,
                    new_balance=account.redeemable_points,
                )
        except BaseAPIException:
            raise
        except Exception as e:
            logger.error(
                f"Failed to play plinko game {game_id} for user {user_id} "
                f"(bet {bet_amount}): {str(e)}"
            )
            raise InternalServerError("Failed to play game")

        logger.info(
            f"User {user_id} played plinko game {game_id}: bet {bet_amount}, "
            f"{play.multiplier}x -> {play.result.value} {play.win_amount}"
        )
        self._update_game_stats(game_id, bet_amount, win_amount)
        return play

    def _update_game_stats(self, game_id: int, wagered: int, won: int) -> None:
        """집계 통계 갱신 - 실패해도 플레이 결과에는 영향 없음"""
        try:
            with atomic(self.db):
                self.game_repo.increment_stats(game_id, wagered, won)
        except Exception as e:
            logger.warning(f"Failed to update stats for game {game_id}: {str(e)}")

    def get_user_game_history(
        self,
        user_id: int,
        game_id: Optional[int] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[GameSessionResponse]:
        limit = max(1, min(limit, settings.LEDGER_PAGE_MAX))
        return self.game_repo.get_user_sessions(
            user_id, game_id=game_id, limit=limit, offset=max(0, offset)
        )

    def get_user_game_stats(
        self, user_id: int, game_id: Optional[int] = None
    ) -> UserGameStats:
        return self.game_repo.get_user_stats(user_id, game_id=game_id)

    def get_game_leaderboard(
        self, game_id: int, period: str = "all_time", now: Optional[datetime] = None
    ) -> GameLeaderboard:
        """기간별 리더보드 (상금 합계 / 베팅 합계 / 최대 당첨 각 10명)"""
        if period not in LEADERBOARD_PERIODS:
            raise ValidationError(
                f"period must be one of {', '.join(LEADERBOARD_PERIODS)}",
                {"period": period},
            )
        self.get_game(game_id)

        now = now or utc_now()
        since = {
            "daily": start_of_day,
            "weekly": start_of_week,
            "monthly": start_of_month,
        }.get(period)
        since_at = since(now) if since else None

        winners = self.game_repo.top_winners(game_id, since_at)
        wagerers = self.game_repo.top_wagerers(game_id, since_at)
        biggest = self.game_repo.biggest_wins(game_id, since_at)

        user_ids = {row[0] for row in winners + wagerers + biggest}
        names = self.user_repo.get_usernames(list(user_ids))

        def to_entries(rows) -> List[LeaderboardEntry]:
            return [
                LeaderboardEntry(
                    user_id=user_id,
                    username=names.get(user_id, "Unknown"),
                    value=int(value or 0),
                )
                for user_id, value in rows
            ]

        return GameLeaderboard(
            game_id=game_id,
            period=period,
            top_winners=to_entries(winners),
            top_wagerers=to_entries(wagerers),
            biggest_wins=to_entries(biggest),
        )

    # ------------------------------------------------------------------
    # 관리자
    # ------------------------------------------------------------------

    def _validate_game_config(self, game_type: str, min_bet: int, max_bet: int, game_settings: dict) -> None:
        if min_bet > max_bet:
            raise ValidationError(
                "min_bet must not exceed max_bet", {"min_bet": min_bet, "max_bet": max_bet}
            )
        if game_type == GameType.PLINKO.value and game_settings:
            rows = game_settings.get("rows", settings.PLINKO_DEFAULT_ROWS)
            multipliers = game_settings.get(
                "multipliers", settings.PLINKO_DEFAULT_MULTIPLIERS
            )
            if not isinstance(rows, int) or rows < 1:
                raise ValidationError("rows must be a positive integer", {"rows": rows})
            if not multipliers or any(float(m) < 0 for m in multipliers):
                raise ValidationError("multipliers must be non-empty and non-negative")

    def create_game(self, request: GameCreateRequest, created_by: str = "system") -> GameResponse:
        self._validate_game_config(
            request.game_type.value, request.min_bet, request.max_bet, request.settings
        )
        data = request.model_dump()
        data["game_type"] = request.game_type.value
        with atomic(self.db):
            game = self.game_repo.create(created_by=created_by, **data)
        logger.info(f"Created game {game.id} ({game.name}) by {created_by}")
        return game

    def update_game(self, game_id: int, request: GameUpdateRequest) -> GameResponse:
        current = self.get_game(game_id)
        data = request.model_dump(exclude_unset=True)
        self._validate_game_config(
            current.game_type.value,
            data.get("min_bet", current.min_bet),
            data.get("max_bet", current.max_bet),
            data.get("settings", current.settings),
        )
        with atomic(self.db):
            game = self.game_repo.update(game_id, **data)
        logger.info(f"Updated game {game_id}: {sorted(data)}")
        return game

    def initialize_default_plinko_game(self) -> GameResponse:
        """기본 플링코 게임 생성 (이미 있으면 기존 게임 반환)"""
        existing = self.game_repo.get_by_name_and_type(
            DEFAULT_PLINKO_NAME, GameType.PLINKO.value
        )
        if existing is not None:
            return existing

        return self.create_game(
            GameCreateRequest(
                name=DEFAULT_PLINKO_NAME,
                description="Drop the ball and watch it bounce to win multiplied rewards!",
                game_type=GameType.PLINKO,
                is_active=True,
                min_bet=settings.PLINKO_DEFAULT_MIN_BET,
                max_bet=settings.PLINKO_DEFAULT_MAX_BET,
                house_edge=settings.PLINKO_DEFAULT_HOUSE_EDGE,
                settings={
                    "rows": settings.PLINKO_DEFAULT_ROWS,
                    "multipliers": list(settings.PLINKO_DEFAULT_MULTIPLIERS),
                    "risk_level": RiskLevel.MEDIUM.value,
                },
            )
        )
