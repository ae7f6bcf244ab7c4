from __future__ import annotations

import math
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal


def utcnow() -> datetime:
    """Naive UTC timestamp (all DateTime columns are timezone=False)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def iso(value: date | datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def parse_date(s: str | None) -> date | None:
    """Parse YYYY-MM-DD (a trailing time part is ignored)."""
    if not s:
        return None
    s = str(s).strip()
    if not s:
        return None
    return date.fromisoformat(s[:10])


def parse_datetime(s: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp into naive UTC. Bare dates become midnight."""
    if not s:
        return None
    s = str(s).strip()
    if not s:
        return None
    if len(s) == 10:
        d = date.fromisoformat(s)
        return datetime(d.year, d.month, d.day)
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def round_half_up(value: float) -> int:
    """0.5 rounds away from zero for positives (Python's round() is banker's rounding)."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent(part: float, whole: float) -> int:
    if not whole:
        return 0
    return round_half_up(part / whole * 100)


def days_until(target: datetime | date, now: datetime | None = None) -> int:
    """Whole days until target, rounding partial days up (negative once past)."""
    now = now or utcnow()
    if not isinstance(target, datetime):
        target = datetime(target.year, target.month, target.day)
    return math.ceil((target - now).total_seconds() / 86400)


def add_years(value: datetime, years: int = 1) -> datetime:
    try:
        return value.replace(year=value.year + years)
    except ValueError:
        # Feb 29 -> Feb 28
        return value.replace(year=value.year + years, day=28)
