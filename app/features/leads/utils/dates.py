from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from fastapi import HTTPException, status


def parse_date_param(value: Optional[str], *, end_of_day: bool = False) -> Optional[datetime]:
    """
    Parse a fromDate/toDate query value into an aware UTC datetime.

    Accepts ISO 8601 dates ("2025-01-31") and datetimes ("2025-01-31T10:00:00Z").
    A bare date used as an upper bound covers that whole day.
    Naive datetimes are taken as UTC.
    """
    if value is None or not value.strip():
        return None

    raw = value.strip()
    try:
        if len(raw) == 10:
            day = date.fromisoformat(raw)
            if end_of_day:
                return datetime.combine(day, time.max, tzinfo=timezone.utc)
            return datetime.combine(day, time.min, tzinfo=timezone.utc)

        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid date '{value}', expected ISO 8601",
        )

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def local_day_bounds(now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """Server-local midnight to the next midnight, expressed in UTC."""
    local_now = (now or datetime.now(timezone.utc)).astimezone()
    start = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=1)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)
