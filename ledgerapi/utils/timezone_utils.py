"""
타임존 유틸리티

모든 시각은 UTC 기준으로 저장/비교합니다.
SQLite 등 타임존 정보를 보존하지 않는 백엔드에서 읽어온 naive datetime 은 UTC 로 간주합니다.
"""

from datetime import datetime, timezone, timedelta
from typing import Optional


def utc_now() -> datetime:
    """현재 UTC 시간을 반환합니다."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """naive datetime 은 UTC 로 간주하여 tz-aware 로 변환합니다."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def start_of_day(now: datetime) -> datetime:
    """해당 일자의 00:00 (UTC)"""
    now = ensure_utc(now)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_week(now: datetime) -> datetime:
    """해당 주의 시작 시각 (일요일 00:00, UTC)"""
    day_start = start_of_day(now)
    # weekday(): 월=0 ... 일=6
    return day_start - timedelta(days=(day_start.weekday() + 1) % 7)


def start_of_month(now: datetime) -> datetime:
    """해당 월의 1일 00:00 (UTC)"""
    return start_of_day(now).replace(day=1)


def format_dt(dt: Optional[datetime]) -> Optional[str]:
    """API 응답용 문자열 포맷"""
    if dt is None:
        return None
    return ensure_utc(dt).strftime("%Y-%m-%d %H:%M:%S")
