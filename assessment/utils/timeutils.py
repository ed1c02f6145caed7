"""Time and rounding helpers"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives, like Math.round"""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes elapsed between two instants"""
    elapsed_ms = (ensure_utc(end) - ensure_utc(start)).total_seconds() * 1000
    return round_half_up(elapsed_ms / 60000)
