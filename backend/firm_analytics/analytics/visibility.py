"""
Display visibility for people who have left the firm.

Hidden people still count toward firm-wide totals; they only disappear from
person-facing lists once the reporting window starts after their cutoff.
"""

from collections.abc import Callable, Iterable, Sequence
from datetime import date, datetime
from typing import TypeVar

from firm_analytics.analytics.schemas import AttorneyRollup, ResolvedPeriod, VisibilityRule

T = TypeVar("T")


def _cutoffs(rules: Iterable[VisibilityRule]) -> dict[str, date]:
    return {rule.person_name: rule.hide_after for rule in rules}


def is_hidden(person_name: str, window_start: datetime | None, rules: Iterable[VisibilityRule]) -> bool:
    """True when the window starts strictly after the person's cutoff day."""
    if window_start is None:
        return False
    hide_after = _cutoffs(rules).get(person_name)
    if hide_after is None:
        return False
    return window_start.date() > hide_after


def _visible(
    items: Iterable[T],
    name_of: Callable[[T], str],
    period: ResolvedPeriod,
    rules: Sequence[VisibilityRule],
) -> list[T]:
    return [item for item in items if not is_hidden(name_of(item), period.start_date, rules)]


def visible_rollups(
    rollups: Sequence[AttorneyRollup],
    period: ResolvedPeriod,
    rules: Sequence[VisibilityRule],
) -> list[AttorneyRollup]:
    return _visible(rollups, lambda rollup: rollup.name, period, rules)


def selectable_people(names: Iterable[str], period: ResolvedPeriod, rules: Sequence[VisibilityRule]) -> list[str]:
    """Sorted, de-duplicated names for person-selection lists."""
    return _visible(sorted(set(names)), lambda name: name, period, rules)
