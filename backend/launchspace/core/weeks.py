"""Week identifiers used to bucket submissions into weekly competitions.

Week numbers are day offsets from January 1st of the date's own year,
not ISO-8601 weeks::

    week = ceil(((date - Jan1) / 86400000 + 1) / 7)

so January 1st through 7th are always ``W01`` and December 31st lands in
``W53``. Datetimes keep their time of day in the offset; naive and aware
values are both measured against January 1st in the same timezone.
"""

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional, Tuple, Union

DAY_MS = 86_400_000
WEEK_MS = 7 * DAY_MS

WEEK_ID_PATTERN = re.compile(r"^\d{4}-W\d{2}$")

DateLike = Union[date, datetime]


def _elapsed_ms(value: DateLike) -> Tuple[int, int]:
    """Return (year, milliseconds since January 1st 00:00 of that year)."""
    if isinstance(value, datetime):
        jan1 = datetime(value.year, 1, 1, tzinfo=value.tzinfo)
        delta = value - jan1
    else:
        delta = value - date(value.year, 1, 1)
    ms = (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000
    return value.year, ms


def week_id(value: DateLike) -> str:
    """Map a date or datetime to its ``YYYY-W##`` token.

    Examples:
        >>> week_id(date(2024, 1, 1))
        '2024-W01'
        >>> week_id(date(2024, 1, 8))
        '2024-W02'
    """
    year, ms = _elapsed_ms(value)
    # Integer ceiling keeps the arithmetic exact
    week = -(-(ms + DAY_MS) // WEEK_MS)
    return f"{year}-W{week:02d}"


def current_week_id(now: Optional[datetime] = None) -> str:
    """Week token for ``now`` (defaults to the current UTC time)."""
    return week_id(now or datetime.now(timezone.utc))


def is_valid_week_id(value: str) -> bool:
    """Check the ``YYYY-W##`` shape and that the week number is 1-53."""
    if not WEEK_ID_PATTERN.match(value):
        return False
    return 1 <= int(value[-2:]) <= 53


def parse_week_id(value: str) -> Tuple[int, int]:
    """Split a week token into (year, week).

    Raises:
        ValueError: If the token is malformed
    """
    if not is_valid_week_id(value):
        raise ValueError(f"Invalid week id '{value}', expected YYYY-W##")
    return int(value[:4]), int(value[-2:])


def week_start_date(value: str) -> date:
    """First calendar day that maps to the given week token."""
    year, week = parse_week_id(value)
    return date(year, 1, 1) + timedelta(days=(week - 1) * 7)


def next_monday(now: datetime, start_hour: int) -> datetime:
    """The next Monday at ``start_hour`` UTC strictly after ``now``.

    If ``now`` is a Monday before the start hour, that same Monday is used.
    """
    now = now.astimezone(timezone.utc)
    today_start = datetime.combine(now.date(), time(start_hour), tzinfo=timezone.utc)
    if now.weekday() == 0 and now < today_start:
        return today_start
    days_ahead = 7 - now.weekday()
    return today_start + timedelta(days=days_ahead)


def upcoming_week_starts(now: datetime, count: int, start_hour: int) -> List[datetime]:
    """Start instants of the next ``count`` competition weeks."""
    first = next_monday(now, start_hour)
    return [first + timedelta(weeks=i) for i in range(count)]


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from storage."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
