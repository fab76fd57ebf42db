import random
from collections import OrderedDict
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session

from ledgerapi.database.session import atomic
from ledgerapi.repositories.raffle_repository import RaffleRepository
from ledgerapi.repositories.points_repository import PointsRepository
from ledgerapi.repositories.user_repository import UserRepository
from ledgerapi.services.point_service import PointService
from ledgerapi.core.exceptions import (
    BaseAPIException,
    InternalServerError,
    InvalidStateError,
    OutOfRangeError,
    RaffleCapacityError,
    RaffleNotActiveError,
    RaffleNotFoundError,
    RaffleUserLimitError,
    UserNotFoundError,
)
from ledgerapi.models.points import PointType, TransactionType
from ledgerapi.models.raffle import Raffle, RaffleStatus
from ledgerapi.schemas.raffle import (
    RaffleCancelResult,
    RaffleCloseSummary,
    RaffleCreateRequest,
    RaffleDrawResult,
    RaffleEntryResponse,
    RaffleEntryResult,
    RaffleParticipant,
    RaffleResponse,
)
from ledgerapi.utils.draws import draw_ticket_number, find_ticket_holder, get_rng
from ledgerapi.utils.timezone_utils import ensure_utc, utc_now
import logging

logger = logging.getLogger(__name__)


class RaffleService:
    """
    래플 서비스

    상태 전이: draft -> active -> ended | cancelled
    티켓 번호는 판매 순서대로 1 부터 연속 발급되며, 추첨은
    1..total_tickets_sold 범위의 균등 난수로 보유 엔트리를 찾습니다.
    """

    def __init__(self, db: Session, rng: Optional[random.Random] = None):
        self.db = db
        self.raffle_repo = RaffleRepository(db)
        self.points_repo = PointsRepository(db)
        self.user_repo = UserRepository(db)
        self.point_service = PointService(db)
        self.rng = rng or get_rng()

    # ------------------------------------------------------------------
    # 조회
    # ------------------------------------------------------------------

    def list_active_raffles(self, now: Optional[datetime] = None) -> List[RaffleResponse]:
        """현재 응모 가능한 래플 목록"""
        return self.raffle_repo.get_open_raffles(now or utc_now())

    def list_raffles(self, status: Optional[RaffleStatus] = None) -> List[RaffleResponse]:
        return self.raffle_repo.get_raffles(status)

    def get_raffle(self, raffle_id: int) -> RaffleResponse:
        raffle = self.raffle_repo.get_by_id(raffle_id)
        if raffle is None:
            raise RaffleNotFoundError(raffle_id)
        return raffle

    def get_user_entries(self, raffle_id: int, user_id: int) -> List[RaffleEntryResponse]:
        self.get_raffle(raffle_id)
        return self.raffle_repo.get_user_entries(raffle_id, user_id)

    def get_participants(self, raffle_id: int) -> List[RaffleParticipant]:
        """사용자별로 묶은 참가자 목록 (첫 티켓 순)"""
        self.get_raffle(raffle_id)
        grouped: "OrderedDict[int, dict]" = OrderedDict()
        for entry in self.raffle_repo.get_entries(raffle_id):
            if entry.refunded:
                continue
            bucket = grouped.setdefault(
                entry.user_id, {"ticket_numbers": [], "total_spent": 0}
            )
            bucket["ticket_numbers"].extend(entry.ticket_numbers)
            bucket["total_spent"] += entry.purchase_price

        names = self.user_repo.get_usernames(list(grouped))
        return [
            RaffleParticipant(
                user_id=user_id,
                username=names.get(user_id, "Unknown"),
                total_tickets=len(data["ticket_numbers"]),
                ticket_numbers=data["ticket_numbers"],
                total_spent=data["total_spent"],
            )
            for user_id, data in grouped.items()
        ]

    # ------------------------------------------------------------------
    # 관리자 - 생성 / 시작
    # ------------------------------------------------------------------

    def create_raffle(
        self, request: RaffleCreateRequest, admin_id: Optional[int] = None
    ) -> RaffleResponse:
        """draft 상태로 래플 생성"""
        with atomic(self.db):
            raffle = self.raffle_repo.create(
                **request.model_dump(),
                status=RaffleStatus.DRAFT.value,
                total_tickets_sold=0,
                total_participants=0,
                created_by=admin_id,
            )
        logger.info(f"Created raffle {raffle.id} ({raffle.title}) by admin {admin_id}")
        return raffle

    def start_raffle(self, raffle_id: int, now: Optional[datetime] = None) -> RaffleResponse:
        """draft -> active (start_date 도달 이후에만)"""
        now = ensure_utc(now or utc_now())
        with atomic(self.db):
            raffle = self.raffle_repo.lock_raffle(raffle_id)
            if raffle is None:
                raise RaffleNotFoundError(raffle_id)
            if raffle.status != RaffleStatus.DRAFT.value:
                raise InvalidStateError(
                    "Only draft raffles can be started",
                    {"raffle_id": raffle_id, "status": raffle.status},
                )
            if now < ensure_utc(raffle.start_date):
                raise InvalidStateError(
                    "Raffle start date has not been reached", {"raffle_id": raffle_id}
                )
            raffle.status = RaffleStatus.ACTIVE.value
            self.db.flush()
            result = RaffleResponse.model_validate(raffle)
        logger.info(f"Started raffle {raffle_id}")
        return result

    # ------------------------------------------------------------------
    # 응모
    # ------------------------------------------------------------------

    def purchase_entries(
        self,
        raffle_id: int,
        user_id: int,
        number_of_entries: int,
        now: Optional[datetime] = None,
    ) -> RaffleEntryResult:
        """래플 티켓 구매

        엔트리 생성, 판매 카운터 증가, redeemable 차감이 하나의 트랜잭션으로
        처리됩니다. 남은 수량을 초과하는 요청은 일부만 배정하지 않고 전체 실패합니다.

        Raises:
            RaffleNotFoundError / RaffleNotActiveError
            RaffleCapacityError: 남은 티켓 부족
            RaffleUserLimitError: 1인 최대 응모 수 초과
            InsufficientBalanceError: 잔액 부족
        """
        if number_of_entries < 1:
            raise OutOfRangeError(
                "Number of entries must be at least 1",
                {"number_of_entries": number_of_entries},
            )
        now = ensure_utc(now or utc_now())

        try:
            with atomic(self.db):
                # 잠금 순서: 사용자 -> 래플
                account = self.points_repo.lock_balance(user_id)
                if account is None:
                    raise UserNotFoundError(user_id)

                raffle = self.raffle_repo.lock_raffle(raffle_id)
                if raffle is None:
                    raise RaffleNotFoundError(raffle_id)
                if raffle.status != RaffleStatus.ACTIVE.value:
                    raise RaffleNotActiveError(
                        "Raffle is not active", {"raffle_id": raffle_id, "status": raffle.status}
                    )
                if not (ensure_utc(raffle.start_date) <= now < ensure_utc(raffle.end_date)):
                    raise RaffleNotActiveError(
                        "Raffle is not open for entries", {"raffle_id": raffle_id}
                    )

                remaining = raffle.max_entries - raffle.total_tickets_sold
                if number_of_entries > remaining:
                    raise RaffleCapacityError(remaining)

                user_tickets = self.raffle_repo.count_user_tickets(raffle_id, user_id)
                if (
                    raffle.max_entries_per_user
                    and user_tickets + number_of_entries > raffle.max_entries_per_user
                ):
                    raise RaffleUserLimitError(
                        raffle.max_entries_per_user,
                        max(0, raffle.max_entries_per_user - user_tickets),
                    )

                first_ticket = raffle.total_tickets_sold + 1
                last_ticket = raffle.total_tickets_sold + number_of_entries
                ticket_numbers = list(range(first_ticket, last_ticket + 1))
                total_cost = raffle.ticket_price * number_of_entries

                entry = self.raffle_repo.add_entry(
                    raffle_id=raffle.id,
                    user_id=user_id,
                    ticket_numbers=ticket_numbers,
                    first_ticket=first_ticket,
                    last_ticket=last_ticket,
                    purchase_price=total_cost,
                    purchased_at=now,
                )
                raffle.total_tickets_sold = last_ticket
                if user_tickets == 0:
                    raffle.total_participants = raffle.total_participants + 1

                if total_cost > 0:
                    self.point_service.apply_balance_change(
                        user_id=user_id,
                        point_type=PointType.REDEEMABLE,
                        amount=-total_cost,
                        transaction_type=TransactionType.RAFFLE_ENTRY,
                        description=f'Raffle entry: {number_of_entries} ticket(s) for "{raffle.title}"',
                        metadata={
                            "raffle_id": raffle.id,
                            "entry_id": entry.id,
                            "number_of_entries": number_of_entries,
                            "ticket_numbers": ticket_numbers,
                            "ticket_price": raffle.ticket_price,
                        },
                        reference_id=str(entry.id),
                        reference_type="raffle_entry",
                    )
                self.db.flush()

                result = RaffleEntryResult(
                    entry=RaffleEntryResponse.model_validate(entry),
                    ticket_numbers=ticket_numbers,
                    total_cost=total_cost,
                    new_balance=account.redeemable_points,
                )
        except BaseAPIException:
            raise
        except Exception as e:
            logger.error(
                f"Failed to purchase {number_of_entries} entries in raffle {raffle_id} "
                f"for user {user_id}: {str(e)}"
            )
            raise InternalServerError("Failed to purchase raffle entries")

        logger.info(
            f"User {user_id} bought tickets {result.ticket_numbers[0]}-"
            f"{result.ticket_numbers[-1]} in raffle {raffle_id} for {result.total_cost}"
        )
        return result

    # ------------------------------------------------------------------
    # 추첨 / 마감
    # ------------------------------------------------------------------

    def _draw_locked(self, raffle: Raffle, now: datetime) -> RaffleDrawResult:
        """잠긴 래플에서 당첨자 추첨 후 ended 처리"""
        ticket_number = draw_ticket_number(raffle.total_tickets_sold, self.rng)
        holder = find_ticket_holder(self.raffle_repo.get_entries(raffle.id), ticket_number)
        if holder is None:
            raise InternalServerError(
                "Winning ticket has no holder",
                {"raffle_id": raffle.id, "ticket_number": ticket_number},
            )

        raffle.winner_user_id = holder.user_id
        raffle.winner_ticket_number = ticket_number
        raffle.drawn_at = now
        raffle.status = RaffleStatus.ENDED.value
        self.db.flush()
        return RaffleDrawResult(
            raffle=RaffleResponse.model_validate(raffle),
            winner_user_id=holder.user_id,
            winner_ticket_number=ticket_number,
        )

    def _lock_active(self, raffle_id: int) -> Raffle:
        raffle = self.raffle_repo.lock_raffle(raffle_id)
        if raffle is None:
            raise RaffleNotFoundError(raffle_id)
        if raffle.status == RaffleStatus.ENDED.value:
            raise RaffleNotActiveError(
                "Raffle winner has already been drawn", {"raffle_id": raffle_id}
            )
        if raffle.status != RaffleStatus.ACTIVE.value:
            raise RaffleNotActiveError(
                "Raffle is not active", {"raffle_id": raffle_id, "status": raffle.status}
            )
        return raffle

    def draw_winner(self, raffle_id: int, now: Optional[datetime] = None) -> RaffleDrawResult:
        """종료일이 지난 active 래플의 당첨자 추첨"""
        now = ensure_utc(now or utc_now())
        try:
            with atomic(self.db):
                raffle = self._lock_active(raffle_id)
                if now < ensure_utc(raffle.end_date):
                    raise InvalidStateError(
                        "Raffle has not ended yet", {"raffle_id": raffle_id}
                    )
                if raffle.total_tickets_sold <= 0:
                    raise InvalidStateError(
                        "No tickets sold for this raffle", {"raffle_id": raffle_id}
                    )
                result = self._draw_locked(raffle, now)
        except BaseAPIException:
            raise
        except Exception as e:
            logger.error(f"Failed to draw winner for raffle {raffle_id}: {str(e)}")
            raise InternalServerError("Failed to draw raffle winner")

        logger.info(
            f"Raffle {raffle_id} winner: user {result.winner_user_id} "
            f"(ticket {result.winner_ticket_number})"
        )
        return result

    def close_expired_raffles(self, now: Optional[datetime] = None) -> RaffleCloseSummary:
        """종료일이 지난 active 래플 일괄 마감 (봇 폴러 진입점)

        판매된 티켓이 없는 래플은 당첨자 없이 ended 처리합니다.
        래플 하나의 실패는 기록만 하고 나머지 래플 처리를 계속합니다.
        """
        now = ensure_utc(now or utc_now())
        processed: List[RaffleDrawResult] = []
        failed: List[int] = []

        for raffle_id in self.raffle_repo.get_expired_active_ids(now):
            try:
                with atomic(self.db):
                    raffle = self._lock_active(raffle_id)
                    if raffle.total_tickets_sold > 0:
                        result = self._draw_locked(raffle, now)
                    else:
                        raffle.status = RaffleStatus.ENDED.value
                        raffle.drawn_at = now
                        self.db.flush()
                        result = RaffleDrawResult(raffle=RaffleResponse.model_validate(raffle))
                processed.append(result)
                logger.info(
                    f"Closed expired raffle {raffle_id} (winner: {result.winner_user_id})"
                )
            except Exception as e:
                failed.append(raffle_id)
                logger.error(f"Failed to close expired raffle {raffle_id}: {str(e)}")

        return RaffleCloseSummary(processed=processed, failed_raffle_ids=failed)

    # ------------------------------------------------------------------
    # 취소 / 환불
    # ------------------------------------------------------------------

    def cancel_raffle(
        self,
        raffle_id: int,
        admin_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> RaffleCancelResult:
        """래플 취소 및 전액 환불

        상태 변경 후 엔트리마다 별도 트랜잭션으로 환불하고 refunded 플래그를
        남깁니다. 도중에 실패하더라도 다시 호출하면 남은 엔트리만 환불합니다.
        """
        now = ensure_utc(now or utc_now())
        with atomic(self.db):
            raffle = self.raffle_repo.lock_raffle(raffle_id)
            if raffle is None:
                raise RaffleNotFoundError(raffle_id)
            if raffle.status == RaffleStatus.ENDED.value:
                raise InvalidStateError(
                    "Cannot cancel a raffle that has ended", {"raffle_id": raffle_id}
                )
            if raffle.status != RaffleStatus.CANCELLED.value:
                raffle.status = RaffleStatus.CANCELLED.value
                self.db.flush()
            title = raffle.title

        refunded_entries = 0
        refunded_points = 0
        for entry_id, owner_id in self.raffle_repo.get_unrefunded_entries(raffle_id):
            with atomic(self.db):
                # 잠금 순서: 사용자 -> 엔트리
                self.points_repo.lock_balance(owner_id)
                entry = self.raffle_repo.lock_entry(entry_id)
                if entry is None or entry.refunded:
                    continue
                if entry.purchase_price > 0:
                    self.point_service.apply_balance_change(
                        user_id=entry.user_id,
                        point_type=PointType.REDEEMABLE,
                        amount=entry.purchase_price,
                        transaction_type=TransactionType.ADMIN_ADJUSTMENT,
                        description=f'Refund for cancelled raffle: "{title}"',
                        metadata={
                            "raffle_id": raffle_id,
                            "entry_id": entry.id,
                            "ticket_numbers": entry.ticket_numbers,
                        },
                        reference_id=str(entry.id),
                        reference_type="raffle_refund",
                        processed_by=admin_id,
                    )
                entry.refunded = True
                entry.refunded_at = now
                self.db.flush()
                refunded_entries += 1
                refunded_points += entry.purchase_price

        logger.info(
            f"Cancelled raffle {raffle_id} by admin {admin_id}: refunded "
            f"{refunded_entries} entries ({refunded_points} points)"
        )
        return RaffleCancelResult(
            raffle=self.get_raffle(raffle_id),
            refunded_entries=refunded_entries,
            refunded_points=refunded_points,
        )
