"""
Single-pass folding of time entries into per-person and per-dimension rollups.

Every accumulator is a sum, a set union or a bounded "most recent N" heap,
so the totals do not depend on the order entries are seen in and two
aggregators built over disjoint partitions can be merged. The one
order-sensitive output is the tie-break among equal hours in a person's
top categories, which keeps first-seen order.
"""

import heapq
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from firm_analytics.analytics.rates import gross_billables
from firm_analytics.analytics.schemas import (
    CategoryBreakdown,
    CategoryRollup,
    ClientRollup,
    EntrySample,
    MatterRollup,
    OpsCategoryRollup,
    PersonBreakdown,
    ResolvedPeriod,
    TimeEntry,
)
from firm_analytics.analytics.utilization import percentage
from firm_analytics.common.dates import month_key

logger = logging.getLogger(__name__)

_ZERO = Decimal(0)
_ADJUSTMENT_CATEGORIES = frozenset({"adjustment", "adjustments"})


def is_adjustment(category: str) -> bool:
    return category.strip().lower() in _ADJUSTMENT_CATEGORIES


def coerce_entry(raw: TimeEntry | Mapping[str, Any]) -> TimeEntry | None:
    if isinstance(raw, TimeEntry):
        return raw
    try:
        return TimeEntry.model_validate(raw)
    except ValidationError as exc:
        logger.warning("Skipping malformed time entry: %s", exc.errors(include_url=False))
        return None


def _as_float(value: Decimal) -> float:
    return float(value)


def _average(total: Decimal, count: int, places: str) -> float:
    if count == 0:
        return 0.0
    return float((total / count).quantize(Decimal(places), rounding=ROUND_HALF_UP))


# Samples
@dataclass(frozen=True, order=True)
class _Sample:
    date: datetime
    attorney: str
    client: str
    category: str
    matter: str
    hours: Decimal
    billable_hours: Decimal
    ops_hours: Decimal
    earnings: Decimal
    notes: str

    def to_schema(self) -> EntrySample:
        return EntrySample(
            date=self.date,
            attorney=self.attorney,
            client=self.client,
            category=self.category,
            matter=self.matter or None,
            hours=_as_float(self.hours),
            billable_hours=_as_float(self.billable_hours),
            ops_hours=_as_float(self.ops_hours),
            earnings=_as_float(self.earnings),
            notes=self.notes,
        )


class SampleBuffer:
    """Keeps the ``limit`` most recent samples; ties resolve on the remaining sample fields."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self._heap: list[_Sample] = []

    def __len__(self) -> int:
        return len(self._heap)

    def add(self, sample: _Sample) -> None:
        if self.limit <= 0:
            return
        if len(self._heap) < self.limit:
            heapq.heappush(self._heap, sample)
        elif sample > self._heap[0]:
            heapq.heapreplace(self._heap, sample)

    def merge(self, other: "SampleBuffer") -> None:
        for sample in other._heap:
            self.add(sample)

    def newest_first(self) -> list[EntrySample]:
        return [sample.to_schema() for sample in sorted(self._heap, reverse=True)]


# Accumulators
@dataclass
class _Breakdown:
    count: int = 0
    hours: Decimal = _ZERO
    earnings: Decimal = _ZERO

    def add(self, hours: Decimal, earnings: Decimal) -> None:
        self.count += 1
        self.hours += hours
        self.earnings += earnings

    def merge(self, other: "_Breakdown") -> None:
        self.count += other.count
        self.hours += other.hours
        self.earnings += other.earnings


def _merge_breakdowns(target: dict[str, _Breakdown], source: dict[str, _Breakdown]) -> None:
    for key, breakdown in source.items():
        target.setdefault(key, _Breakdown()).merge(breakdown)


def _merge_sums(target: dict[str, Decimal], source: dict[str, Decimal]) -> None:
    for key, value in source.items():
        target[key] = target.get(key, _ZERO) + value


@dataclass
class PersonTotals:
    recent: SampleBuffer
    billable_hours: Decimal = _ZERO
    ops_hours: Decimal = _ZERO
    earnings: Decimal = _ZERO
    gross_billables: Decimal = _ZERO
    entry_count: int = 0
    months: set[str] = field(default_factory=set)
    categories: dict[str, Decimal] = field(default_factory=dict)
    clients: dict[str, Decimal] = field(default_factory=dict)

    def top_categories(self, limit: int) -> list[str]:
        # sorted() is stable, so equal hours keep first-seen order
        ranked = sorted(self.categories.items(), key=lambda item: item[1], reverse=True)
        return [name for name, _ in ranked[:limit]]

    def merge(self, other: "PersonTotals") -> None:
        self.billable_hours += other.billable_hours
        self.ops_hours += other.ops_hours
        self.earnings += other.earnings
        self.gross_billables += other.gross_billables
        self.entry_count += other.entry_count
        self.months |= other.months
        _merge_sums(self.categories, other.categories)
        _merge_sums(self.clients, other.clients)
        self.recent.merge(other.recent)


@dataclass
class _Rollup:
    samples: SampleBuffer
    hours: Decimal = _ZERO
    billable_hours: Decimal = _ZERO
    ops_hours: Decimal = _ZERO
    earnings: Decimal = _ZERO
    count: int = 0
    categories: set[str] = field(default_factory=set)
    clients: set[str] = field(default_factory=set)
    last_activity: datetime | None = None
    by_person: dict[str, _Breakdown] = field(default_factory=dict)
    by_category: dict[str, _Breakdown] = field(default_factory=dict)

    def record(self, sample: _Sample, earnings: Decimal) -> None:
        self.hours += sample.hours
        self.billable_hours += sample.billable_hours
        self.ops_hours += sample.ops_hours
        self.earnings += earnings
        self.count += 1
        self.categories.add(sample.category)
        self.clients.add(sample.client)
        if self.last_activity is None or sample.date > self.last_activity:
            self.last_activity = sample.date
        self.by_person.setdefault(sample.attorney, _Breakdown()).add(sample.hours, earnings)
        self.by_category.setdefault(sample.category, _Breakdown()).add(sample.hours, earnings)
        self.samples.add(sample)

    def merge(self, other: "_Rollup") -> None:
        self.hours += other.hours
        self.billable_hours += other.billable_hours
        self.ops_hours += other.ops_hours
        self.earnings += other.earnings
        self.count += other.count
        self.categories |= other.categories
        self.clients |= other.clients
        if other.last_activity is not None and (self.last_activity is None or other.last_activity > self.last_activity):
            self.last_activity = other.last_activity
        _merge_breakdowns(self.by_person, other.by_person)
        _merge_breakdowns(self.by_category, other.by_category)
        self.samples.merge(other.samples)

    def person_breakdown(self) -> dict[str, PersonBreakdown]:
        return {
            name: PersonBreakdown(count=item.count, hours=_as_float(item.hours), earnings=_as_float(item.earnings))
            for name, item in sorted(self.by_person.items())
        }

    def category_breakdown(self) -> dict[str, CategoryBreakdown]:
        return {
            name: CategoryBreakdown(count=item.count, hours=_as_float(item.hours))
            for name, item in sorted(self.by_category.items())
        }


def _ranked(rollups: dict[str, _Rollup]) -> list[tuple[str, _Rollup]]:
    return sorted(rollups.items(), key=lambda item: (-item[1].hours, item[0]))


def _dimension_total(rollups: dict[str, _Rollup]) -> Decimal:
    return sum((rollup.hours for rollup in rollups.values()), _ZERO)


class EntryAggregator:
    def __init__(
        self,
        period: ResolvedPeriod,
        tz: ZoneInfo,
        *,
        person_names: Mapping[str, str] | None = None,
        person_filter: Iterable[str] | None = None,
        rates: Mapping[str, Mapping[str, Decimal]] | None = None,
        sample_limit: int = 50,
    ) -> None:
        self.period = period
        self._tz = tz
        self._names = dict(person_names or {})
        self._filter = frozenset(person_filter or ())
        self._rates = rates or {}
        self._limit = sample_limit

        self.people: dict[str, PersonTotals] = {}
        self.clients: dict[str, _Rollup] = {}
        self.categories: dict[str, _Rollup] = {}
        self.ops_categories: dict[str, _Rollup] = {}
        self.matters: dict[str, _Rollup] = {}
        self.included = 0
        self.skipped = 0

    def display_name(self, person_id: str) -> str:
        return self._names.get(person_id) or person_id

    def allows(self, name: str) -> bool:
        return not self._filter or name in self._filter

    # Folding
    def add(self, raw: TimeEntry | Mapping[str, Any]) -> bool:
        """Fold one entry; returns False when it is malformed, out of range or filtered out."""
        entry = coerce_entry(raw)
        if entry is None:
            self.skipped += 1
            return False

        moment = entry.resolve_date(self._tz)
        if moment is None:
            logger.warning("Skipping time entry for %s with no resolvable date", entry.person_id)
            self.skipped += 1
            return False

        if not self.period.contains(moment):
            return False

        name = self.display_name(entry.person_id)
        if not self.allows(name):
            return False

        self._fold(entry, name, moment)
        self.included += 1
        return True

    def add_all(self, entries: Iterable[TimeEntry | Mapping[str, Any]]) -> "EntryAggregator":
        for raw in entries:
            self.add(raw)
        return self

    def seed(self, names: Iterable[str]) -> None:
        """Make sure every rostered person has a rollup, even with no time recorded."""
        for name in names:
            if self.allows(name):
                self.person(name)

    def person(self, name: str) -> PersonTotals:
        if name not in self.people:
            self.people[name] = PersonTotals(recent=SampleBuffer(self._limit))
        return self.people[name]

    def _rollup(self, rollups: dict[str, _Rollup], key: str) -> _Rollup:
        if key not in rollups:
            rollups[key] = _Rollup(samples=SampleBuffer(self._limit))
        return rollups[key]

    def _fold(self, entry: TimeEntry, name: str, moment: datetime) -> None:
        key = month_key(moment)
        billable = entry.billable_hours
        ops = entry.ops_hours
        combined = billable + ops
        category = entry.billing_category

        person = self.person(name)
        person.billable_hours += billable
        person.ops_hours += ops
        person.earnings += entry.earnings
        person.gross_billables += gross_billables(self._rates.get(name), key, billable)
        person.entry_count += 1
        person.months.add(key)
        if billable > 0 and not is_adjustment(category):
            person.categories[category] = person.categories.get(category, _ZERO) + billable
        person.clients[entry.client] = person.clients.get(entry.client, _ZERO) + combined

        sample = _Sample(
            date=moment,
            attorney=name,
            client=entry.client,
            category=category,
            matter=(entry.matter or "").strip(),
            hours=combined,
            billable_hours=billable,
            ops_hours=ops,
            earnings=entry.earnings,
            notes=entry.notes,
        )
        person.recent.add(sample)
        self._rollup(self.clients, entry.client).record(sample, entry.earnings)

        if billable > 0:
            billable_sample = replace(sample, hours=billable)
            self._rollup(self.categories, category).record(billable_sample, entry.earnings)
            if sample.matter:
                self._rollup(self.matters, sample.matter).record(billable_sample, entry.earnings)

        if ops > 0:
            ops_category = (entry.ops_category or "").strip() or "Other"
            ops_sample = replace(sample, hours=ops, category=ops_category)
            self._rollup(self.ops_categories, ops_category).record(ops_sample, _ZERO)

    # Merging
    def merge(self, other: "EntryAggregator") -> "EntryAggregator":
        """Fold in an aggregator built over a disjoint slice of the same entries."""
        for name, totals in other.people.items():
            self.person(name).merge(totals)
        for mine, theirs in (
            (self.clients, other.clients),
            (self.categories, other.categories),
            (self.ops_categories, other.ops_categories),
            (self.matters, other.matters),
        ):
            for key, rollup in theirs.items():
                self._rollup(mine, key).merge(rollup)
        self.included += other.included
        self.skipped += other.skipped
        return self

    # Reading
    def client_rollups(self) -> list[ClientRollup]:
        total = _dimension_total(self.clients)
        return [
            ClientRollup(
                name=name,
                billable_hours=_as_float(rollup.billable_hours),
                ops_hours=_as_float(rollup.ops_hours),
                total_hours=_as_float(rollup.hours),
                earnings=_as_float(rollup.earnings),
                entry_count=rollup.count,
                unique_categories=len(rollup.categories),
                avg_hours_per_entry=_average(rollup.hours, rollup.count, "0.1"),
                last_activity=rollup.last_activity.date() if rollup.last_activity else None,
                percentage=percentage(rollup.hours, total),
                by_person=rollup.person_breakdown(),
                by_category=rollup.category_breakdown(),
                entries=rollup.samples.newest_first(),
            )
            for name, rollup in _ranked(self.clients)
        ]

    def category_rollups(self) -> list[CategoryRollup]:
        total = _dimension_total(self.categories)
        return [
            CategoryRollup(
                category=name,
                total_hours=_as_float(rollup.hours),
                total_earnings=_as_float(rollup.earnings),
                count=rollup.count,
                avg_hours=_average(rollup.hours, rollup.count, "0.1"),
                avg_earnings=_average(rollup.earnings, rollup.count, "0.01"),
                percentage=percentage(rollup.hours, total),
                by_person=rollup.person_breakdown(),
                entries=rollup.samples.newest_first(),
            )
            for name, rollup in _ranked(self.categories)
        ]

    def ops_category_rollups(self) -> list[OpsCategoryRollup]:
        total = _dimension_total(self.ops_categories)
        return [
            OpsCategoryRollup(
                category=name,
                hours=_as_float(rollup.hours),
                count=rollup.count,
                percentage=percentage(rollup.hours, total),
                by_person=rollup.person_breakdown(),
                entries=rollup.samples.newest_first(),
            )
            for name, rollup in _ranked(self.ops_categories)
        ]

    def matter_rollups(self) -> list[MatterRollup]:
        total = _dimension_total(self.matters)
        return [
            MatterRollup(
                matter=name,
                clients=sorted(rollup.clients),
                total_hours=_as_float(rollup.hours),
                total_earnings=_as_float(rollup.earnings),
                count=rollup.count,
                avg_hours=_average(rollup.hours, rollup.count, "0.1"),
                percentage=percentage(rollup.hours, total),
                by_person=rollup.person_breakdown(),
                by_category=rollup.category_breakdown(),
                entries=rollup.samples.newest_first(),
            )
            for name, rollup in _ranked(self.matters)
        ]
