"""
Target pro-rating.

Targets are stored per calendar month, but reporting windows are arbitrary.
A person's effective target for a window is the sum, over the months in
which they recorded time, of each month's target scaled by the share of
that month's business days the window covers.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from firm_analytics.analytics.schemas import EngineConfig, MonthlyTarget, ResolvedPeriod
from firm_analytics.common.business_days import count_business_days, month_business_day_total
from firm_analytics.common.dates import month_end, month_start, parse_month_key

_TENTH = Decimal("0.1")


@dataclass(frozen=True)
class TargetHours:
    billable: Decimal
    ops: Decimal
    total: Decimal

    def scaled(self, fraction: Decimal) -> "TargetHours":
        return TargetHours(self.billable * fraction, self.ops * fraction, self.total * fraction)

    def __add__(self, other: "TargetHours") -> "TargetHours":
        return TargetHours(self.billable + other.billable, self.ops + other.ops, self.total + other.total)

    def rounded(self) -> "TargetHours":
        return TargetHours(
            self.billable.quantize(_TENTH, rounding=ROUND_HALF_UP),
            self.ops.quantize(_TENTH, rounding=ROUND_HALF_UP),
            self.total.quantize(_TENTH, rounding=ROUND_HALF_UP),
        )


@dataclass(frozen=True)
class ProratedTarget:
    hours: TargetHours
    is_default: bool


_NO_TARGET = TargetHours(Decimal(0), Decimal(0), Decimal(0))


def default_target(
    person_targets: Mapping[str, MonthlyTarget],
    current_month_key: str,
    config: EngineConfig,
) -> TargetHours:
    """The current month's stored target, falling back per field to the configured defaults."""
    current = person_targets.get(current_month_key)
    return _with_fallback(
        current,
        TargetHours(config.default_billable_target, config.default_ops_target, config.default_total_target),
    )


def _with_fallback(stored: MonthlyTarget | None, fallback: TargetHours) -> TargetHours:
    if stored is None:
        return fallback
    return TargetHours(
        billable=stored.billable_target if stored.billable_target is not None else fallback.billable,
        ops=stored.ops_target if stored.ops_target is not None else fallback.ops,
        total=stored.total_target if stored.total_target is not None else fallback.total,
    )


def month_fraction(key: str, period: ResolvedPeriod) -> Decimal | None:
    """Share of the month's business days covered by the period, or None when the whole month counts."""
    year, month = parse_month_key(key)
    first = month_start(year, month)
    last = month_end(year, month)

    starts_late = period.start_date is not None and period.start_date > first
    ends_early = period.end_date < last
    in_progress = key == period.current_month_key
    if not (starts_late or ends_early or in_progress):
        return None

    effective_start = max(period.start_date, first) if period.start_date is not None else first
    if in_progress:
        effective_end = period.now
    else:
        effective_end = min(period.end_date, last)

    total = month_business_day_total(year, month)
    if total == 0:
        return Decimal(1)
    return Decimal(count_business_days(effective_start, effective_end)) / Decimal(total)


def prorate_target(
    person_targets: Mapping[str, MonthlyTarget],
    active_months: Iterable[str],
    period: ResolvedPeriod,
    config: EngineConfig,
) -> ProratedTarget:
    fallback = default_target(person_targets, period.current_month_key, config)
    months = sorted(set(active_months))
    if not months:
        return ProratedTarget(hours=fallback.rounded(), is_default=True)

    accumulated = _NO_TARGET
    for key in months:
        target = _with_fallback(person_targets.get(key), fallback)
        fraction = month_fraction(key, period)
        accumulated = accumulated + (target if fraction is None else target.scaled(fraction))

    return ProratedTarget(hours=accumulated.rounded(), is_default=False)
