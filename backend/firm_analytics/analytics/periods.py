"""
Reporting-period resolution.

Every window is computed from an explicitly injected "now" expressed in the
firm's reference timezone, so a dashboard and a detail view evaluated at the
same instant always agree on their boundaries.
"""

import logging
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

from firm_analytics.analytics.schemas import ActivityPeriod, DateRangePreset, DateRangeSpec, ResolvedPeriod
from firm_analytics.common.dates import month_end, month_key, shift_month, to_reference_time

logger = logging.getLogger(__name__)

_MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_PRESET_TITLES = {
    DateRangePreset.current_week: "Current Week",
    DateRangePreset.current_month: "Current Month",
    DateRangePreset.last_month: "Last Month",
    DateRangePreset.trailing_60: "Trailing 60 Days",
}

_ACTIVITY_OFFSETS = {
    ActivityPeriod.two_weeks: relativedelta(days=14),
    ActivityPeriod.one_month: relativedelta(months=1),
    ActivityPeriod.two_months: relativedelta(months=2),
    ActivityPeriod.three_months: relativedelta(months=3),
    ActivityPeriod.six_months: relativedelta(months=6),
    ActivityPeriod.nine_months: relativedelta(months=9),
    ActivityPeriod.twelve_months: relativedelta(months=12),
    ActivityPeriod.eighteen_months: relativedelta(months=18),
    ActivityPeriod.twenty_four_months: relativedelta(months=24),
}

_ACTIVITY_TITLES = {
    ActivityPeriod.two_weeks: "Last 2 Weeks",
    ActivityPeriod.one_month: "Last 1 Month",
    ActivityPeriod.two_months: "Last 2 Months",
    ActivityPeriod.three_months: "Last 3 Months",
    ActivityPeriod.six_months: "Last 6 Months",
    ActivityPeriod.nine_months: "Last 9 Months",
    ActivityPeriod.twelve_months: "Last 12 Months",
    ActivityPeriod.eighteen_months: "Last 18 Months",
    ActivityPeriod.twenty_four_months: "Last 24 Months",
}


def _midnight(day: date) -> datetime:
    return datetime.combine(day, time.min)


def _end_of_day(day: date) -> datetime:
    return datetime.combine(day, time.max)


def format_range(start: date, end: date) -> str:
    return f"{_MONTH_ABBR[start.month - 1]} {start.day} - {_MONTH_ABBR[end.month - 1]} {end.day}, {end.year}"


def period_label(preset: DateRangePreset, start: datetime | None, end: datetime) -> str:
    if preset == DateRangePreset.all_time or start is None:
        return "All Time"
    span = format_range(start, end)
    if preset == DateRangePreset.custom:
        return span
    return f"{_PRESET_TITLES[preset]} ({span})"


def _build(preset: DateRangePreset, start: datetime | None, end: datetime, now: datetime, label: str | None = None) -> ResolvedPeriod:
    current = month_key(now)
    return ResolvedPeriod(
        preset=preset.value,
        start_date=start,
        end_date=end,
        now=now,
        current_month_key=current,
        is_current_month_in_progress=month_key(end) == current,
        label=label or period_label(preset, start, end),
    )


def resolve_period(spec: DateRangeSpec, now: datetime, tz: ZoneInfo) -> ResolvedPeriod:
    """Map a reporting-period spec to concrete [start, end] boundaries."""
    now = to_reference_time(now, tz)
    today = now.date()
    preset = spec.preset

    if preset == DateRangePreset.all_time:
        return _build(preset, None, now, now)

    if preset == DateRangePreset.current_week:
        # weekday(): Monday == 0, so Sunday is (weekday + 1) % 7 days back
        sunday = today - timedelta(days=(today.weekday() + 1) % 7)
        return _build(preset, _midnight(sunday), now, now)

    if preset == DateRangePreset.last_month:
        year, month = shift_month(now.year, now.month, -1)
        return _build(preset, datetime(year, month, 1), month_end(year, month), now)

    if preset == DateRangePreset.trailing_60:
        return _build(preset, _midnight(today - timedelta(days=60)), now, now)

    if preset == DateRangePreset.custom:
        if spec.start is not None and spec.end is not None and spec.start <= spec.end:
            return _build(preset, _midnight(spec.start), _end_of_day(spec.end), now)
        logger.warning(
            "Custom range %s..%s is incomplete or reversed; using the current month", spec.start, spec.end
        )

    return _build(DateRangePreset.current_month, datetime(now.year, now.month, 1), now, now)


def resolve_activity_window(
    period: ActivityPeriod,
    now: datetime,
    tz: ZoneInfo,
    start: date | None = None,
    end: date | None = None,
) -> ResolvedPeriod:
    """Windows used by the client-activity view; either custom bound may be open."""
    now = to_reference_time(now, tz)

    if period == ActivityPeriod.all_time:
        return _build(DateRangePreset.all_time, None, now, now)

    if period == ActivityPeriod.custom:
        window_start = _midnight(start) if start else None
        window_end = _end_of_day(end) if end else now
        if window_start is not None and window_start > window_end:
            logger.warning("Activity window %s..%s is reversed; swapping bounds", start, end)
            window_start, window_end = _midnight(window_end.date()), _end_of_day(window_start.date())
        label = format_range(window_start, window_end) if window_start else "All Time"
        return _build(DateRangePreset.custom, window_start, window_end, now, label=label)

    window_start = now - _ACTIVITY_OFFSETS[period]
    label = f"{_ACTIVITY_TITLES[period]} ({format_range(window_start, now)})"
    return _build(DateRangePreset.custom, window_start, now, now, label=label)
