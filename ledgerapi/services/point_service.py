from typing import Any, Dict, Optional, Union
from sqlalchemy.orm import Session

from ledgerapi.config import settings
from ledgerapi.database.session import atomic
from ledgerapi.repositories.points_repository import PointsRepository
from ledgerapi.core.exceptions import (
    BaseAPIException,
    InsufficientBalanceError,
    InternalServerError,
    UserNotFoundError,
    ValidationError,
)
from ledgerapi.models.points import PointType, TransactionType
from ledgerapi.schemas.points import (
    AdminPointsAdjustmentRequest,
    AffordabilityResponse,
    PointsBalanceResponse,
    PointsIntegrityCheckResponse,
    PointTransactionEntry,
    PointsLedgerResponse,
)
from ledgerapi.utils.timezone_utils import utc_now
import logging

logger = logging.getLogger(__name__)


class PointService:
    """포인트 잔액 변경(Balance Mutator)과 원장 조회를 담당하는 서비스

    잔액 컬럼은 apply_balance_change 를 통해서만 변경됩니다.
    """

    def __init__(self, db: Session):
        self.db = db
        self.points_repo = PointsRepository(db)

    def apply_balance_change(
        self,
        user_id: int,
        point_type: Union[PointType, str],
        amount: int,
        transaction_type: Union[TransactionType, str],
        description: str,
        metadata: Optional[Dict[str, Any]] = None,
        reference_id: Optional[str] = None,
        reference_type: Optional[str] = None,
        processed_by: Optional[int] = None,
    ) -> PointTransactionEntry:
        """잔액 변경 + 원장 기록을 하나의 작업 단위로 수행

        호출자가 이미 atomic() 블록 안에 있으면 그 작업 단위에 합류하고,
        아니면 자체 트랜잭션을 엽니다. 잔액이 음수가 되는 변경은
        어떤 쓰기도 하지 않고 InsufficientBalanceError 를 발생시킵니다.

        Args:
            user_id: 사용자 ID
            point_type: 포인트 종류
            amount: 부호 있는 변경량 (양수=적립, 음수=차감)
            transaction_type: 거래 유형
            description: 거래 설명
            metadata: 거래를 발생시킨 엔티티 정보
            reference_id: 참조 엔티티 ID
            reference_type: 참조 엔티티 종류
            processed_by: 처리한 관리자 ID

        Returns:
            PointTransactionEntry: 생성된 원장 항목
        """
        point_type = PointType(point_type)
        transaction_type = TransactionType(transaction_type)
        if amount == 0:
            raise ValidationError("Amount must not be zero")

        try:
            with atomic(self.db):
                account = self.points_repo.lock_balance(user_id)
                if account is None:
                    raise UserNotFoundError(user_id)

                balance_before = self.points_repo.read_balance(account, point_type)
                balance_after = balance_before + amount
                if balance_after < 0:
                    raise InsufficientBalanceError(
                        f"Insufficient balance. Required: {-amount}, Available: {balance_before}",
                        {
                            "required": -amount,
                            "available": balance_before,
                            "point_type": point_type.value,
                        },
                    )

                self.points_repo.write_balance(
                    account, point_type, balance_after, earned=max(amount, 0)
                )
                transaction = self.points_repo.insert_transaction(
                    user_id=user_id,
                    transaction_type=transaction_type.value,
                    point_type=point_type.value,
                    amount=amount,
                    balance_before=balance_before,
                    balance_after=balance_after,
                    description=description,
                    metadata=metadata,
                    reference_id=reference_id,
                    reference_type=reference_type,
                    processed_by=processed_by,
                )
                entry = PointTransactionEntry.model_validate(transaction)
        except BaseAPIException as e:
            logger.warning(
                f"Balance change rejected for user {user_id} ({point_type.value} {amount:+d}): {e}"
            )
            raise
        except Exception as e:
            logger.error(
                f"Failed to apply balance change for user {user_id} "
                f"({point_type.value} {amount:+d}, {transaction_type.value}): {str(e)}"
            )
            raise InternalServerError("Failed to apply balance change")

        logger.info(
            f"Balance change user={user_id} {point_type.value} {amount:+d} "
            f"({transaction_type.value}) -> {balance_after}"
        )
        return entry

    def get_user_balance(self, user_id: int) -> PointsBalanceResponse:
        """사용자 포인트 잔액 조회"""
        account = self.points_repo.get_account(user_id)
        if account is None:
            raise UserNotFoundError(user_id)
        return PointsBalanceResponse(
            user_id=account.id,
            redeemable=account.redeemable_points,
            soul_bound=account.soul_bound_points,
            total_earned=account.total_earned,
        )

    def get_user_ledger(
        self,
        user_id: int,
        point_type: Optional[PointType] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> PointsLedgerResponse:
        """사용자 포인트 거래 내역 조회

        Args:
            user_id: 사용자 ID
            point_type: 포인트 종류 필터 (None 이면 전체)
            limit: 페이지 크기 (최대 LEDGER_PAGE_MAX)
            offset: 오프셋

        Returns:
            PointsLedgerResponse: 현재 잔액 + 최신순 거래 내역
        """
        limit = max(1, min(limit, settings.LEDGER_PAGE_MAX))
        offset = max(0, offset)

        balance = self.get_user_balance(user_id)
        try:
            entries = self.points_repo.get_user_ledger(
                user_id=user_id, point_type=point_type, limit=limit, offset=offset
            )
            total_count = self.points_repo.count_user_entries(user_id, point_type)
        except Exception as e:
            logger.error(f"Failed to get ledger for user {user_id}: {str(e)}")
            raise InternalServerError("Failed to retrieve ledger")

        logger.info(f"Retrieved ledger for user {user_id}: {total_count} entries")
        return PointsLedgerResponse(
            balance=balance,
            entries=entries,
            total_count=total_count,
            has_next=offset + len(entries) < total_count,
        )

    def admin_adjust_points(
        self, admin_id: int, request: AdminPointsAdjustmentRequest
    ) -> PointTransactionEntry:
        """관리자 포인트 조정 (음수 조정도 잔액 음수 불가 규칙 적용)"""
        entry = self.apply_balance_change(
            user_id=request.user_id,
            point_type=request.point_type,
            amount=request.amount,
            transaction_type=TransactionType.ADMIN_ADJUSTMENT,
            description=request.reason,
            metadata={"admin_id": admin_id, "reason": request.reason},
            reference_type="admin_adjustment",
            processed_by=admin_id,
        )
        logger.info(
            f"Admin {admin_id} adjusted {request.point_type.value} points for user "
            f"{request.user_id} by {request.amount:+d}: {request.reason}"
        )
        return entry

    def verify_user_integrity(self, user_id: int) -> PointsIntegrityCheckResponse:
        """잔액과 원장 합계 일치 여부 검증 (포인트 종류별)"""
        account = self.points_repo.get_account(user_id)
        if account is None:
            raise UserNotFoundError(user_id)

        sums = self.points_repo.sum_by_point_type(user_id)
        redeemable_sum = sums[PointType.REDEEMABLE.value]
        soul_bound_sum = sums[PointType.SOUL_BOUND.value]
        matched = (
            account.redeemable_points == redeemable_sum
            and account.soul_bound_points == soul_bound_sum
        )
        if not matched:
            logger.warning(
                f"Ledger mismatch for user {user_id}: redeemable "
                f"{account.redeemable_points} vs {redeemable_sum}, soul_bound "
                f"{account.soul_bound_points} vs {soul_bound_sum}"
            )

        return PointsIntegrityCheckResponse(
            status="OK" if matched else "MISMATCH",
            user_id=user_id,
            redeemable_balance=account.redeemable_points,
            redeemable_ledger_sum=redeemable_sum,
            soul_bound_balance=account.soul_bound_points,
            soul_bound_ledger_sum=soul_bound_sum,
            entry_count=self.points_repo.count_user_entries(user_id),
            checked_at=utc_now(),
        )

    def can_afford(self, user_id: int, amount: int) -> AffordabilityResponse:
        """redeemable 잔액으로 amount 를 지불할 수 있는지 확인"""
        balance = self.get_user_balance(user_id).redeemable
        return AffordabilityResponse(
            amount=amount,
            can_afford=balance >= amount,
            current_balance=balance,
            shortfall=max(0, amount - balance),
        )
