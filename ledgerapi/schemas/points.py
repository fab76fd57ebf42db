from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime

from ledgerapi.models.points import PointType, TransactionType


class PointTransactionEntry(BaseModel):
    """포인트 거래 원장 항목"""

    id: int = Field(..., description="거래 ID")
    user_id: int = Field(..., description="사용자 ID")
    type: TransactionType = Field(..., description="거래 유형")
    point_type: PointType = Field(..., description="포인트 종류")
    amount: int = Field(..., description="포인트 변화량 (양수=적립, 음수=차감)")
    balance_before: int = Field(..., description="거래 전 잔액")
    balance_after: int = Field(..., description="거래 후 잔액")
    description: str = Field("", description="거래 설명")
    reference_id: Optional[str] = Field(None, description="참조 엔티티 ID")
    reference_type: Optional[str] = Field(None, description="참조 엔티티 종류")
    metadata: Optional[Dict[str, Any]] = Field(
        None, validation_alias="meta", description="구조화된 부가 정보"
    )
    status: str = Field(..., description="거래 상태")
    processed_by: Optional[int] = Field(None, description="처리한 관리자 ID")
    created_at: Optional[datetime] = Field(None, description="생성 시간")

    class Config:
        from_attributes = True
        populate_by_name = True


class PointsBalanceResponse(BaseModel):
    """포인트 잔액 응답"""

    user_id: int = Field(..., description="사용자 ID")
    redeemable: int = Field(..., description="사용 가능 포인트")
    soul_bound: int = Field(..., description="양도 불가 포인트")
    total_earned: int = Field(..., description="누적 획득 포인트")

    class Config:
        from_attributes = True


class PointsLedgerResponse(BaseModel):
    """포인트 원장 조회 응답"""

    balance: PointsBalanceResponse = Field(..., description="현재 잔액")
    entries: List[PointTransactionEntry] = Field(..., description="원장 항목 목록 (최신순)")
    total_count: int = Field(..., description="전체 항목 수")
    has_next: bool = Field(..., description="다음 페이지 존재 여부")

    class Config:
        from_attributes = True


class AdminPointsAdjustmentRequest(BaseModel):
    """관리자 포인트 조정 요청"""

    user_id: int = Field(..., gt=0, description="사용자 ID")
    point_type: PointType = Field(PointType.REDEEMABLE, description="포인트 종류")
    amount: int = Field(..., description="조정할 포인트 (양수: 추가, 음수: 차감)")
    reason: str = Field(..., min_length=1, max_length=255, description="조정 사유")


class PointsIntegrityCheckResponse(BaseModel):
    """포인트 정합성 검증 응답 (잔액 == 원장 합계)"""

    status: str = Field(..., description="검증 상태 (OK, MISMATCH)")
    user_id: int = Field(..., description="사용자 ID")
    redeemable_balance: int = Field(..., description="사용 가능 포인트 잔액")
    redeemable_ledger_sum: int = Field(..., description="사용 가능 포인트 원장 합계")
    soul_bound_balance: int = Field(..., description="양도 불가 포인트 잔액")
    soul_bound_ledger_sum: int = Field(..., description="양도 불가 포인트 원장 합계")
    entry_count: int = Field(..., description="원장 항목 수")
    checked_at: datetime = Field(..., description="검증 시각")


class AffordabilityResponse(BaseModel):
    """구매 가능 여부 응답"""

    amount: int
    can_afford: bool
    current_balance: int
    shortfall: int = 0
