"""
포인트 시스템 데이터 모델

사용자 포인트의 모든 변동은 point_transactions 테이블에 기록되어
완전한 감사 추적(Audit Trail)을 제공합니다.
"""

from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import BigInteger, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ledgerapi.models.base import BaseModel, BigIntPK, JSONType


class PointType(str, Enum):
    REDEEMABLE = "redeemable"  # 상점/게임/래플에서 사용 가능
    SOUL_BOUND = "soul_bound"  # 양도/사용 불가 (투표 가중치)


class TransactionType(str, Enum):
    PURCHASE = "purchase"
    LOOTBOX_OPEN = "lootbox_open"
    PLINKO_GAME = "plinko_game"
    RAFFLE_ENTRY = "raffle_entry"
    ADMIN_ADJUSTMENT = "admin_adjustment"
    DISCORD_REWARD = "discord_reward"
    GAME_REWARD = "game_reward"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REVERSED = "reversed"


class PointTransaction(BaseModel):
    """
    포인트 거래 원장

    이 테이블은 다음 원칙을 따릅니다:
    1. 불변성(Immutable): 한번 생성된 레코드는 수정되지 않음
    2. 완전성(Complete): 잔액 변경 1회당 정확히 1건 기록
    3. 정합성(Integrity): 사용자/포인트 종류별 amount 합계 == 현재 잔액
    """

    __tablename__ = "point_transactions"
    __table_args__ = (
        Index("idx_point_tx_user_type", "user_id", "point_type"),
        Index("idx_point_tx_reference", "reference_id"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    point_type: Mapped[str] = mapped_column(String(16), nullable=False)

    # 양수=적립, 음수=차감
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance_before: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance_after: Mapped[int] = mapped_column(BigInteger, nullable=False)

    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # 거래를 발생시킨 도메인 엔티티 (구매 ID, 게임 세션 ID, 래플 엔트리 ID 등)
    reference_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    reference_type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    # "metadata" 는 declarative 예약어이므로 속성명은 meta
    meta: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        "metadata", JSONType, nullable=True
    )

    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=TransactionStatus.COMPLETED.value
    )
    # 관리자 조정 시 처리자 ID
    processed_by: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
