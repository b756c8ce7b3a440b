"""Cutoff dates for the ``all``, ``month`` and ``week`` windows."""

import calendar
from datetime import datetime, timedelta, timezone

from .models import TimeFrame


def _one_month_before(now: datetime) -> datetime:
    year, month = (now.year, now.month - 1) if now.month > 1 else (now.year - 1, 12)
    # Clamp e.g. March 31 to the last day of February
    day = min(now.day, calendar.monthrange(year, month)[1])
    return now.replace(year=year, month=month, day=day)


def cutoff(timeframe: TimeFrame | str, now: datetime | None = None) -> datetime | None:
    """Return the earliest timestamp inside the window, or None for ``all``.

    Args:
        timeframe: "all", "month" (one calendar month back) or "week" (7 days back)
        now: Reference time (defaults to the current UTC time)

    Raises:
        ValueError: If the timeframe is not recognised
    """
    timeframe = TimeFrame(timeframe)
    now = now or datetime.now(timezone.utc)

    if timeframe is TimeFrame.MONTH:
        return _one_month_before(now)
    if timeframe is TimeFrame.WEEK:
        return now - timedelta(days=7)
    return None


def since_param(timeframe: TimeFrame | str, now: datetime | None = None) -> str | None:
    """ISO 8601 ``since`` query value for the window, or None."""
    limit = cutoff(timeframe, now)
    if limit is None:
        return None
    return limit.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_timestamp(value: str | None, default: datetime | None = None) -> datetime:
    """Parse a forge ISO timestamp; missing values become ``default`` or now."""
    if not value:
        return default or datetime.now(timezone.utc)
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
