from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session

from ledgerapi.models.activity import ActivityCooldown


class ActivityRepository:
    """활동 보상 쿨다운 저장소 (user_id, activity) -> last_rewarded_at"""

    def __init__(self, db: Session):
        self.db = db

    def lock_cooldown(self, user_id: int, activity: str) -> Optional[ActivityCooldown]:
        return (
            self.db.query(ActivityCooldown)
            .filter(
                ActivityCooldown.user_id == user_id,
                ActivityCooldown.activity == activity,
            )
            .with_for_update()
            .first()
        )

    def touch(
        self,
        user_id: int,
        activity: str,
        rewarded_at: datetime,
        existing: Optional[ActivityCooldown] = None,
    ) -> ActivityCooldown:
        if existing is None:
            existing = ActivityCooldown(user_id=user_id, activity=activity)
            self.db.add(existing)
        existing.last_rewarded_at = rewarded_at
        self.db.flush()
        return existing
