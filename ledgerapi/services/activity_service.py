import random
from datetime import datetime, timedelta
from typing import List, Optional
from sqlalchemy.orm import Session

from ledgerapi.config import settings
from ledgerapi.database.session import atomic
from ledgerapi.repositories.activity_repository import ActivityRepository
from ledgerapi.repositories.points_repository import PointsRepository
from ledgerapi.services.point_service import PointService
from ledgerapi.services.user_service import UserService
from ledgerapi.core.exceptions import (
    BaseAPIException,
    InternalServerError,
    UserNotFoundError,
    ValidationError,
)
from ledgerapi.models.points import PointType, TransactionType
from ledgerapi.schemas.activity import ActivityRewardResult, ArenaRoundResult
from ledgerapi.utils.draws import get_rng, pick_arena_winner
from ledgerapi.utils.timezone_utils import ensure_utc, utc_now
import logging

logger = logging.getLogger(__name__)

VOICE_ACTIVITY = "voice_minute"


class ActivityService:
    """디스코드 활동 보상 서비스 (봇 이벤트 핸들러의 호출 대상)

    활동별 지급량과 쿨다운은 settings.ACTIVITY_REWARDS 를 따릅니다.
    쿨다운은 activity_cooldowns 테이블에 (user_id, activity) 단위로 저장됩니다.
    """

    def __init__(self, db: Session, rng: Optional[random.Random] = None):
        self.db = db
        self.activity_repo = ActivityRepository(db)
        self.points_repo = PointsRepository(db)
        self.point_service = PointService(db)
        self.user_service = UserService(db)
        self.rng = rng or get_rng()

    def _credit(
        self,
        user_id: int,
        point_type: PointType,
        amount: int,
        transaction_type: TransactionType,
        description: str,
        metadata: dict,
    ) -> None:
        if amount <= 0:
            return
        self.point_service.apply_balance_change(
            user_id=user_id,
            point_type=point_type,
            amount=amount,
            transaction_type=transaction_type,
            description=description,
            metadata=metadata,
            reference_type="discord_activity",
        )

    def reward_activity(
        self,
        discord_user_id: str,
        username: str,
        activity: str,
        now: Optional[datetime] = None,
    ) -> ActivityRewardResult:
        """활동 1회 보상 (쿨다운 중이면 rewarded=False 로 건너뜀)"""
        rule = settings.ACTIVITY_REWARDS.get(activity)
        if rule is None:
            raise ValidationError(f"Unknown activity: {activity}", {"activity": activity})
        now = ensure_utc(now or utc_now())

        user = self.user_service.get_or_create_by_discord_id(discord_user_id, username)
        cooldown = timedelta(seconds=int(rule.get("cooldown_seconds", 0)))
        points = int(rule.get("points", 0))
        soul_bound_points = int(rule.get("soul_bound_points", 0))

        try:
            with atomic(self.db):
                # 사용자 행 잠금으로 같은 사용자의 동시 보상을 직렬화
                account = self.points_repo.lock_balance(user.id)
                if account is None:
                    raise UserNotFoundError(user.id)

                last = self.activity_repo.lock_cooldown(user.id, activity)
                if last is not None:
                    next_available = ensure_utc(last.last_rewarded_at) + cooldown
                    if now < next_available:
                        return ActivityRewardResult(
                            user_id=user.id,
                            activity=activity,
                            rewarded=False,
                            new_balance=account.redeemable_points,
                            next_available_at=next_available,
                        )

                metadata = {"activity": activity, "discord_user_id": discord_user_id}
                description = f"Discord {activity} reward"
                self._credit(
                    user.id, PointType.REDEEMABLE, points,
                    TransactionType.DISCORD_REWARD, description, metadata,
                )
                self._credit(
                    user.id, PointType.SOUL_BOUND, soul_bound_points,
                    TransactionType.DISCORD_REWARD, description, metadata,
                )
                self.activity_repo.touch(user.id, activity, now, existing=last)
                account.last_activity_at = now
                self.db.flush()

                result = ActivityRewardResult(
                    user_id=user.id,
                    activity=activity,
                    rewarded=True,
                    points=points,
                    soul_bound_points=soul_bound_points,
                    new_balance=account.redeemable_points,
                    next_available_at=now + cooldown,
                )
        except BaseAPIException:
            raise
        except Exception as e:
            logger.error(
                f"Failed to reward {activity} for discord user {discord_user_id}: {str(e)}"
            )
            raise InternalServerError("Failed to reward activity")

        logger.info(
            f"Rewarded {activity} to user {user.id}: +{points} redeemable, "
            f"+{soul_bound_points} soul_bound"
        )
        return result

    def reward_voice_time(
        self,
        discord_user_id: str,
        username: str,
        minutes: int,
        now: Optional[datetime] = None,
    ) -> ActivityRewardResult:
        """음성 채널 체류 시간 보상 (분당 voice_minute 지급량)

        체류 시간 측정은 봇이 담당하므로 쿨다운은 적용하지 않습니다.
        """
        now = ensure_utc(now or utc_now())
        user = self.user_service.get_or_create_by_discord_id(discord_user_id, username)
        if minutes < 1:
            return ActivityRewardResult(
                user_id=user.id,
                activity=VOICE_ACTIVITY,
                rewarded=False,
                new_balance=user.redeemable_points,
            )

        rule = settings.ACTIVITY_REWARDS.get(VOICE_ACTIVITY, {})
        points = int(rule.get("points", 0)) * minutes

        with atomic(self.db):
            account = self.points_repo.lock_balance(user.id)
            if account is None:
                raise UserNotFoundError(user.id)
            self._credit(
                user.id, PointType.REDEEMABLE, points, TransactionType.DISCORD_REWARD,
                f"Discord voice reward - {minutes} minute(s)",
                {"activity": VOICE_ACTIVITY, "minutes": minutes, "discord_user_id": discord_user_id},
            )
            account.last_activity_at = now
            self.db.flush()
            new_balance = account.redeemable_points

        logger.info(f"Rewarded {minutes} voice minute(s) to user {user.id}: +{points}")
        return ActivityRewardResult(
            user_id=user.id,
            activity=VOICE_ACTIVITY,
            rewarded=points > 0,
            points=points,
            new_balance=new_balance,
        )

    def reward_arena_round(
        self, participant_discord_ids: List[str], prize: int
    ) -> ArenaRoundResult:
        """아레나 라운드 종료 - 참가자 중 1명을 균등 추첨하여 상금 지급"""
        participants = list(dict.fromkeys(p for p in participant_discord_ids if p))
        if not participants:
            raise ValidationError("Arena round has no participants")
        if prize <= 0:
            raise ValidationError("Prize must be positive", {"prize": prize})

        winner_discord_id = pick_arena_winner(participants, self.rng)
        winner = self.user_service.get_or_create_by_discord_id(
            winner_discord_id, winner_discord_id
        )
        entry = self.point_service.apply_balance_change(
            user_id=winner.id,
            point_type=PointType.REDEEMABLE,
            amount=prize,
            transaction_type=TransactionType.GAME_REWARD,
            description="Arena round win",
            metadata={"participants": participants, "prize": prize},
            reference_type="arena_round",
        )
        logger.info(
            f"Arena round won by discord user {winner_discord_id} "
            f"({len(participants)} participants, prize {prize})"
        )
        return ArenaRoundResult(
            winner_user_id=winner.id,
            winner_discord_id=winner_discord_id,
            prize=prize,
            participants=participants,
            new_balance=entry.balance_after,
        )
