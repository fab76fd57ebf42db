"""
포인트 리포지토리 - 잔액 행 잠금 및 원장 기록

잔액은 users 테이블의 컬럼에, 변동 내역은 point_transactions 에 기록됩니다.
잔액 변경은 반드시 lock_balance() 로 사용자 행을 잠근 뒤 같은 트랜잭션에서
insert_transaction() 과 함께 수행되어야 합니다.
"""

from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import desc, func

from ledgerapi.models.points import PointTransaction, PointType
from ledgerapi.models.user import UserAccount
from ledgerapi.schemas.points import PointTransactionEntry
from ledgerapi.repositories.base import BaseRepository

# 포인트 종류 -> users 테이블 잔액 컬럼
BALANCE_COLUMNS = {
    PointType.REDEEMABLE: "redeemable_points",
    PointType.SOUL_BOUND: "soul_bound_points",
}


class PointsRepository(BaseRepository[PointTransaction, PointTransactionEntry]):
    """
    포인트 리포지토리 - 포인트 관련 모든 데이터베이스 작업 처리

    주요 기능:
    1. 잔액 행 잠금 (SELECT ... FOR UPDATE)
    2. 불변 원장 레코드 추가
    3. 원장 페이징 조회 및 정합성 검증용 합계
    """

    def __init__(self, db: Session):
        super().__init__(PointTransaction, PointTransactionEntry, db)

    def lock_balance(self, user_id: int) -> Optional[UserAccount]:
        """사용자 잔액 행을 잠그고 반환 (없으면 None)"""
        return (
            self.db.query(UserAccount)
            .filter(UserAccount.id == user_id)
            .with_for_update()
            .first()
        )

    def get_account(self, user_id: int) -> Optional[UserAccount]:
        return self.db.query(UserAccount).filter(UserAccount.id == user_id).first()

    @staticmethod
    def read_balance(account: UserAccount, point_type: PointType) -> int:
        return int(getattr(account, BALANCE_COLUMNS[point_type]) or 0)

    def write_balance(
        self, account: UserAccount, point_type: PointType, new_balance: int, earned: int = 0
    ) -> None:
        setattr(account, BALANCE_COLUMNS[point_type], new_balance)
        if earned > 0:
            account.total_earned = int(account.total_earned or 0) + earned

    def insert_transaction(
        self,
        user_id: int,
        transaction_type: str,
        point_type: str,
        amount: int,
        balance_before: int,
        balance_after: int,
        description: str,
        metadata: Optional[Dict[str, Any]] = None,
        reference_id: Optional[str] = None,
        reference_type: Optional[str] = None,
        processed_by: Optional[int] = None,
    ) -> PointTransaction:
        """원장 레코드 추가 (flush 까지만 수행)"""
        return self.add(
            user_id=user_id,
            type=transaction_type,
            point_type=point_type,
            amount=amount,
            balance_before=balance_before,
            balance_after=balance_after,
            description=description,
            meta=metadata,
            reference_id=reference_id,
            reference_type=reference_type,
            processed_by=processed_by,
        )

    def get_user_ledger(
        self,
        user_id: int,
        point_type: Optional[PointType] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[PointTransactionEntry]:
        """사용자 원장 조회 (최신순)"""
        query = self.db.query(PointTransaction).filter(
            PointTransaction.user_id == user_id
        )
        if point_type is not None:
            query = query.filter(PointTransaction.point_type == point_type.value)

        rows = (
            query.order_by(desc(PointTransaction.id)).offset(offset).limit(limit).all()
        )
        return self._to_schemas(rows)

    def count_user_entries(
        self, user_id: int, point_type: Optional[PointType] = None
    ) -> int:
        query = self.db.query(func.count(PointTransaction.id)).filter(
            PointTransaction.user_id == user_id
        )
        if point_type is not None:
            query = query.filter(PointTransaction.point_type == point_type.value)
        return int(query.scalar() or 0)

    def sum_by_point_type(self, user_id: int) -> Dict[str, int]:
        """포인트 종류별 원장 amount 합계"""
        rows = (
            self.db.query(
                PointTransaction.point_type, func.coalesce(func.sum(PointTransaction.amount), 0)
            )
            .filter(PointTransaction.user_id == user_id)
            .group_by(PointTransaction.point_type)
            .all()
        )
        sums = {pt.value: 0 for pt in PointType}
        for point_type, total in rows:
            sums[point_type] = int(total or 0)
        return sums

    def find_by_reference(
        self, reference_id: str, reference_type: Optional[str] = None
    ) -> List[PointTransactionEntry]:
        query = self.db.query(PointTransaction).filter(
            PointTransaction.reference_id == reference_id
        )
        if reference_type is not None:
            query = query.filter(PointTransaction.reference_type == reference_type)
        return self._to_schemas(query.order_by(PointTransaction.id).all())
