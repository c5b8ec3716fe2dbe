"""
Date normalization shared by every part of the analytics engine.

Time entries arrive with dates in several shapes (ISO strings, native
dates, ``{seconds, nanoseconds}`` epoch pairs, or nothing but a year and a
month name). ``normalize_date`` is the one conversion used everywhere, so
filtering, month bucketing and sample ordering always agree on an entry's
date. All results are naive datetimes expressed in the reference timezone.
"""

import calendar
from collections.abc import Mapping
from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field

MONTH_NAMES = (
    "january",
    "february",
    "march",
    "april",
    "may",
    "june",
    "july",
    "august",
    "september",
    "october",
    "november",
    "december",
)


class EpochTimestamp(BaseModel):
    """A ``{seconds, nanoseconds}`` pair as exported by document stores."""

    seconds: int
    nanoseconds: int = Field(default=0, ge=0)

    model_config = {"frozen": True}


DateLike = datetime | date | EpochTimestamp | str | None


def month_number(month: str | int | None) -> int:
    """Map a month name (or number) to 1-12. Unknown values map to January."""
    if isinstance(month, int):
        return month if 1 <= month <= 12 else 1
    if not month:
        return 1
    value = month.strip().lower()
    if value.isdigit():
        number = int(value)
        return number if 1 <= number <= 12 else 1
    if value in MONTH_NAMES:
        return MONTH_NAMES.index(value) + 1
    return 1


def to_reference_time(moment: datetime, tz: ZoneInfo) -> datetime:
    """Express ``moment`` as a naive datetime in ``tz``. Naive input is assumed local already."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(tz).replace(tzinfo=None)


def _localize(moment: datetime, tz: ZoneInfo) -> datetime | None:
    # Converting an instant near datetime.min or datetime.max can leave the representable range
    try:
        return to_reference_time(moment, tz)
    except OverflowError:
        return None


def _from_epoch(seconds: int, nanoseconds: int, tz: ZoneInfo) -> datetime | None:
    try:
        instant = datetime(1970, 1, 1, tzinfo=UTC) + timedelta(seconds=seconds, microseconds=nanoseconds // 1000)
    except OverflowError:
        return None
    return _localize(instant, tz)


def _parse_iso(value: str, tz: ZoneInfo) -> datetime | None:
    text = value.strip()
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return _localize(parsed, tz)


def _fallback(year: int | str | None, month: str | int | None) -> datetime | None:
    if year is None:
        return None
    try:
        year_number = int(year)
    except (TypeError, ValueError):
        return None
    if not 1 <= year_number <= 9999:
        return None
    return datetime(year_number, month_number(month), 1)


def normalize_date(
    value: DateLike | Mapping,
    tz: ZoneInfo,
    year: int | str | None = None,
    month: str | int | None = None,
) -> datetime | None:
    """Resolve any supported date shape to a naive reference-local datetime.

    Falls back to the first instant of ``(year, month)`` when ``value`` is
    absent or unparseable, and returns ``None`` only when no year is known.
    """
    resolved: datetime | None = None
    if isinstance(value, datetime):
        resolved = _localize(value, tz)
    elif isinstance(value, date):
        resolved = datetime.combine(value, time.min)
    elif isinstance(value, EpochTimestamp):
        resolved = _from_epoch(value.seconds, value.nanoseconds, tz)
    elif isinstance(value, Mapping) and "seconds" in value:
        try:
            resolved = _from_epoch(int(value["seconds"]), int(value.get("nanoseconds") or 0), tz)
        except (TypeError, ValueError):
            resolved = None
    elif isinstance(value, str):
        resolved = _parse_iso(value, tz)

    if resolved is None:
        resolved = _fallback(year, month)
    return resolved


# Month helpers
def month_key(moment: date) -> str:
    return f"{moment.year:04d}-{moment.month:02d}"


def parse_month_key(key: str) -> tuple[int, int]:
    year, month = key.split("-", 1)
    return int(year), int(month)


def month_start(year: int, month: int) -> datetime:
    return datetime(year, month, 1)


def month_end(year: int, month: int) -> datetime:
    """Last representable instant of the month."""
    last_day = calendar.monthrange(year, month)[1]
    return datetime.combine(date(year, month, last_day), time.max)


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1
