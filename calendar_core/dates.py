"""
Date normalization for syllabus and assignment dates.

Dates arrive in many shapes: full ISO timestamps from Canvas, "Wed, Apr 16"
from syllabus tables, bare "2024-04-16" strings from the model. Each shape is
handled by a small matcher; ``normalize_date`` tries them in order and returns
a naive local datetime. Day-only inputs are anchored at noon so that a
timezone shift can never move them onto the neighbouring day.
"""
from __future__ import annotations

import logging
import math
import re
import typing as t
from datetime import datetime, timezone

from dateutil import parser as dt_parser

logger = logging.getLogger(__name__)

ANCHOR_HOUR = 12
SECONDS_PER_DAY = 24 * 60 * 60

MONTHS: dict[str, int] = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

_ISO_DATETIME = re.compile(r"^\d{4}-\d{2}-\d{2}T")
# [Weekday, ]Month Day[, Year]
_MONTH_FIRST = re.compile(
    r"^(?:[a-z]+\.?,?\s+)?([a-z]+)\.?\s+(\d{1,2})(?:,?\s+(\d{4}))?$", re.IGNORECASE
)
# Day Month[ Year]
_DAY_FIRST = re.compile(r"^(\d{1,2})\s+([a-z]+)\.?(?:,?\s+(\d{4}))?$", re.IGNORECASE)
_ISO_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")

DateMatcher = t.Callable[[str, int], t.Optional[datetime]]


class DateParseError(ValueError):
    """Raised when a date string cannot be turned into a calendar date."""


def month_number(name: str) -> int:
    """Map a month name or abbreviation to 1-12 using its first three letters."""
    month = MONTHS.get(name.lower()[:3])
    if month is None:
        raise DateParseError(f"Unknown month name: {name!r}")
    return month


def at_noon(year: int, month: int, day: int) -> datetime:
    """Build a local datetime at the anchor hour, rejecting impossible dates."""
    try:
        return datetime(year, month, day, ANCHOR_HOUR, 0, 0)
    except ValueError as e:
        raise DateParseError(f"Invalid calendar date {year}-{month}-{day}: {e}") from e


def noon_today(now: t.Optional[datetime] = None) -> datetime:
    now = now or datetime.now()
    return at_noon(now.year, now.month, now.day)


def to_aware(value: datetime) -> datetime:
    """Attach the local timezone to naive datetimes so they compare with aware ones."""
    return value if value.tzinfo is not None else value.astimezone()


def match_iso_datetime(text: str, year: int) -> t.Optional[datetime]:
    """ISO-8601 with a time part. Offsets are converted to local time."""
    if not _ISO_DATETIME.match(text):
        return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def match_month_day(text: str, year: int) -> t.Optional[datetime]:
    """'Wed, Apr 16', 'April 16, 2025', 'Apr. 16'."""
    match = _MONTH_FIRST.match(text)
    if not match:
        return None
    month_name, day, explicit_year = match.groups()
    return at_noon(int(explicit_year or year), month_number(month_name), int(day))


def match_day_month(text: str, year: int) -> t.Optional[datetime]:
    """'16 April', '16 Apr 2025'."""
    match = _DAY_FIRST.match(text)
    if not match:
        return None
    day, month_name, explicit_year = match.groups()
    return at_noon(int(explicit_year or year), month_number(month_name), int(day))


def match_iso_date(text: str, year: int) -> t.Optional[datetime]:
    """Bare 'YYYY-MM-DD', built locally instead of being read as UTC midnight."""
    match = _ISO_DATE.match(text)
    if not match:
        return None
    y, m, d = (int(part) for part in match.groups())
    return at_noon(y, m, d)


def match_generic(text: str, year: int) -> t.Optional[datetime]:
    """Anything dateutil understands, re-anchored at noon on the same day."""
    try:
        parsed = dt_parser.parse(text, default=datetime(year, 1, 1))
    except (ValueError, OverflowError):
        return None
    return at_noon(parsed.year, parsed.month, parsed.day)


DATE_MATCHERS: tuple[DateMatcher, ...] = (
    match_iso_datetime,
    match_month_day,
    match_day_month,
    match_iso_date,
    match_generic,
)


def normalize_date(value: str, default_year: t.Optional[int] = None) -> datetime:
    """
    Parse a date-ish string into a naive local datetime.

    Args:
        value: The string to parse.
        default_year: Year used when the string has none. Defaults to the current year.

    Raises:
        DateParseError: If no matcher accepts the string, the month name is
            unknown, or the day does not exist in that month.
    """
    text = (value or "").strip()
    if not text:
        raise DateParseError("Empty date string")

    year = default_year or datetime.now().year
    for matcher in DATE_MATCHERS:
        result = matcher(text, year)
        if result is not None:
            logger.debug("Parsed %r with %s -> %s", value, matcher.__name__, result)
            return result

    raise DateParseError(f"Unable to parse date: {value!r}")


def normalize_date_or_now(value: str, default_year: t.Optional[int] = None) -> datetime:
    """Like ``normalize_date`` but substitutes today at noon on failure."""
    try:
        return normalize_date(value, default_year)
    except DateParseError as e:
        logger.warning("Date parsing error for %r, using today: %s", value, e)
        return noon_today()


def days_until_due(due_at: t.Optional[datetime], now: t.Optional[datetime] = None) -> t.Optional[int]:
    """Whole days until the due date, rounded up. Negative once overdue."""
    if due_at is None:
        return None
    now = to_aware(now) if now is not None else datetime.now(timezone.utc)
    delta = to_aware(due_at) - now
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)
