import enum
from datetime import datetime
from typing import List, Optional

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ledgerapi.models.base import BaseModel, BigIntPK, JSONType
from ledgerapi.utils.timezone_utils import utc_now


class RaffleStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ENDED = "ended"
    CANCELLED = "cancelled"


class Raffle(BaseModel):
    """
    래플

    불변식: total_tickets_sold <= max_entries
    티켓 번호는 1..total_tickets_sold 로 연속 발급되며 재사용되지 않습니다.
    """

    __tablename__ = "raffles"
    __table_args__ = (Index("idx_raffles_status_end", "status", "end_date"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    prize_description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    prize_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    ticket_price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    max_entries: Mapped[int] = mapped_column(Integer, nullable=False)
    # 0 = 제한 없음
    max_entries_per_user: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=RaffleStatus.DRAFT.value
    )
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    winner_user_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=True
    )
    winner_ticket_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    drawn_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    total_tickets_sold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_by: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)


class RaffleEntry(BaseModel):
    __tablename__ = "raffle_entries"
    __table_args__ = (
        Index("idx_raffle_entries_raffle_user", "raffle_id", "user_id"),
        Index("idx_raffle_entries_raffle_first", "raffle_id", "first_ticket"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    raffle_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("raffles.id"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    ticket_numbers: Mapped[List[int]] = mapped_column(JSONType, nullable=False)
    # ticket_numbers 는 항상 [first_ticket..last_ticket] 연속 구간
    first_ticket: Mapped[int] = mapped_column(Integer, nullable=False)
    last_ticket: Mapped[int] = mapped_column(Integer, nullable=False)
    purchase_price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    purchased_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    # 래플 취소 시 환불 여부 (취소 재실행 시 중복 환불 방지)
    refunded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    refunded_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
