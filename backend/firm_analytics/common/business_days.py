import calendar
from datetime import date, datetime


def _as_date(value: date) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def is_business_day(day: date) -> bool:
    return _as_date(day).weekday() < 5


def count_business_days(start: date, end: date) -> int:
    """Inclusive count of Monday-Friday dates in [start, end].

    Time of day is ignored. A start after the end yields 0.
    """
    start_day = _as_date(start)
    end_day = _as_date(end)
    if start_day > end_day:
        return 0

    span = (end_day - start_day).days + 1
    weeks, remainder = divmod(span, 7)
    count = weeks * 5
    first_weekday = start_day.weekday()
    for offset in range(remainder):
        if (first_weekday + offset) % 7 < 5:
            count += 1
    return count


def month_business_day_total(year: int, month: int) -> int:
    last_day = calendar.monthrange(year, month)[1]
    return count_business_days(date(year, month, 1), date(year, month, last_day))
