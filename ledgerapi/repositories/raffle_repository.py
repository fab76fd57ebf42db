from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import asc, desc, func

from ledgerapi.models.raffle import Raffle, RaffleEntry, RaffleStatus
from ledgerapi.schemas.raffle import RaffleEntryResponse, RaffleResponse
from ledgerapi.repositories.base import BaseRepository


class RaffleRepository(BaseRepository[Raffle, RaffleResponse]):
    """래플 / 래플 엔트리 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(Raffle, RaffleResponse, db)

    def lock_raffle(self, raffle_id: int) -> Optional[Raffle]:
        return self.get_model(raffle_id, for_update=True)

    def get_raffles(self, status: Optional[RaffleStatus] = None) -> List[RaffleResponse]:
        query = self.db.query(Raffle)
        if status is not None:
            query = query.filter(Raffle.status == status.value)
        rows = query.order_by(desc(Raffle.featured), asc(Raffle.end_date)).all()
        return self._to_schemas(rows)

    def get_open_raffles(self, now: datetime) -> List[RaffleResponse]:
        """active 이면서 now 가 [start_date, end_date) 안에 있는 래플"""
        rows = (
            self.db.query(Raffle)
            .filter(
                Raffle.status == RaffleStatus.ACTIVE.value,
                Raffle.start_date <= now,
                Raffle.end_date > now,
            )
            .order_by(desc(Raffle.featured), asc(Raffle.end_date))
            .all()
        )
        return self._to_schemas(rows)

    def get_expired_active_ids(self, now: datetime) -> List[int]:
        rows = (
            self.db.query(Raffle.id)
            .filter(Raffle.status == RaffleStatus.ACTIVE.value, Raffle.end_date <= now)
            .order_by(Raffle.end_date)
            .all()
        )
        return [(row.id, row.user_id) for row in rows]

    # ------------------------------------------------------------------
    # 엔트리
    # ------------------------------------------------------------------

    def add_entry(self, **kwargs) -> RaffleEntry:
        entry = RaffleEntry(**kwargs)
        self.db.add(entry)
        self.db.flush()
        return entry

    def count_user_tickets(self, raffle_id: int, user_id: int) -> int:
        """사용자가 보유한 티켓 수 (환불된 엔트리 포함)"""
        total = (
            self.db.query(
                func.coalesce(func.sum(RaffleEntry.last_ticket - RaffleEntry.first_ticket + 1), 0)
            )
            .filter(RaffleEntry.raffle_id == raffle_id, RaffleEntry.user_id == user_id)
            .scalar()
        )
        return int(total or 0)

    def get_entries(self, raffle_id: int) -> List[RaffleEntry]:
        """티켓 번호 순으로 정렬된 엔트리 모델 목록"""
        return (
            self.db.query(RaffleEntry)
            .filter(RaffleEntry.raffle_id == raffle_id)
            .order_by(asc(RaffleEntry.first_ticket))
            .all()
        )

    def get_user_entries(self, raffle_id: int, user_id: int) -> List[RaffleEntryResponse]:
        rows = (
            self.db.query(RaffleEntry)
            .filter(RaffleEntry.raffle_id == raffle_id, RaffleEntry.user_id == user_id)
            .order_by(asc(RaffleEntry.first_ticket))
            .all()
        )
        return [RaffleEntryResponse.model_validate(row) for row in rows]

    def get_unrefunded_entries(self, raffle_id: int) -> List[Tuple[int, int]]:
        """환불되지 않은 엔트리의 (entry_id, user_id) 목록"""
        rows = (
            self.db.query(RaffleEntry.id, RaffleEntry.user_id)
            .filter(RaffleEntry.raffle_id == raffle_id, RaffleEntry.refunded.is_(False))
            .order_by(asc(RaffleEntry.id))
            .all()
        )
        return [(row.id, row.user_id) for row in rows]

    def lock_entry(self, entry_id: int) -> Optional[RaffleEntry]:
        return (
            self.db.query(RaffleEntry)
            .filter(RaffleEntry.id == entry_id)
            .with_for_update()
            .first()
        )
