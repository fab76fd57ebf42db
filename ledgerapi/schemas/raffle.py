from pydantic import BaseModel, Field, model_validator
from typing import List, Optional
from datetime import datetime

from ledgerapi.models.raffle import RaffleStatus
from ledgerapi.utils.timezone_utils import ensure_utc


class RaffleResponse(BaseModel):
    id: int
    title: str
    description: str = ""
    image: Optional[str] = None
    prize_description: str = ""
    prize_value: int = 0
    ticket_price: int
    max_entries: int
    max_entries_per_user: int = 0
    status: RaffleStatus
    start_date: datetime
    end_date: datetime
    winner_user_id: Optional[int] = None
    winner_ticket_number: Optional[int] = None
    drawn_at: Optional[datetime] = None
    total_tickets_sold: int = 0
    total_participants: int = 0
    featured: bool = False
    created_by: Optional[int] = None

    class Config:
        from_attributes = True


class RaffleCreateRequest(BaseModel):
    """관리자 래플 생성 요청 (draft 상태로 생성)"""

    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    image: Optional[str] = None
    prize_description: str = ""
    prize_value: int = Field(0, ge=0)
    ticket_price: int = Field(..., ge=0)
    max_entries: int = Field(..., ge=1)
    max_entries_per_user: int = Field(0, ge=0, description="0 = 제한 없음")
    start_date: datetime
    end_date: datetime
    featured: bool = False

    @model_validator(mode="after")
    def end_after_start(self) -> "RaffleCreateRequest":
        # naive 값은 UTC 로 간주하여 비교
        self.start_date = ensure_utc(self.start_date)
        self.end_date = ensure_utc(self.end_date)
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class RaffleEntryRequest(BaseModel):
    number_of_entries: int = Field(1, ge=1, description="구매할 티켓 수")


class RaffleEntryResponse(BaseModel):
    id: int
    raffle_id: int
    user_id: int
    ticket_numbers: List[int]
    purchase_price: int
    purchased_at: datetime
    refunded: bool = False

    class Config:
        from_attributes = True


class RaffleEntryResult(BaseModel):
    entry: RaffleEntryResponse
    ticket_numbers: List[int]
    total_cost: int
    new_balance: int


class RaffleParticipant(BaseModel):
    user_id: int
    username: str
    total_tickets: int
    ticket_numbers: List[int]
    total_spent: int


class RaffleDrawResult(BaseModel):
    raffle: RaffleResponse
    winner_user_id: Optional[int] = None
    winner_ticket_number: Optional[int] = None


class RaffleCancelResult(BaseModel):
    raffle: RaffleResponse
    refunded_entries: int = Field(..., description="이번 실행에서 환불된 엔트리 수")
    refunded_points: int = Field(..., description="이번 실행에서 환불된 포인트")


class RaffleCloseSummary(BaseModel):
    """만료 래플 일괄 마감 결과"""

    processed: List[RaffleDrawResult]
    failed_raffle_ids: List[int] = Field(default_factory=list)
