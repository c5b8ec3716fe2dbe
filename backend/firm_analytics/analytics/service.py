import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from pydantic import ValidationError

from firm_analytics.analytics.aggregator import EntryAggregator, PersonTotals
from firm_analytics.analytics.periods import resolve_activity_window, resolve_period
from firm_analytics.analytics.schemas import (
    ActivityPeriod,
    AnalyticsReport,
    AttorneyRollup,
    ClientRollup,
    DateRangeSpec,
    EngineConfig,
    FirmTotals,
    MonthlyTarget,
    PersonDetail,
    ResolvedPeriod,
    TimeEntry,
)
from firm_analytics.analytics.targets import ProratedTarget, prorate_target
from firm_analytics.analytics.utilization import calculate_utilization
from firm_analytics.analytics.visibility import is_hidden, selectable_people, visible_rollups

logger = logging.getLogger(__name__)

_ZERO = Decimal(0)

EntryInput = TimeEntry | Mapping[str, Any]
TargetTable = Mapping[str, Mapping[str, MonthlyTarget | Mapping[str, Any]]]
RateTable = Mapping[str, Mapping[str, Decimal]]


@dataclass
class _PersonResult:
    name: str
    totals: PersonTotals
    target: ProratedTarget
    rollup: AttorneyRollup


@dataclass
class _Computation:
    period: ResolvedPeriod
    aggregator: EntryAggregator
    people: list[_PersonResult]


def _coerce_targets(targets: TargetTable | None) -> dict[str, dict[str, MonthlyTarget]]:
    table: dict[str, dict[str, MonthlyTarget]] = {}
    for person, months in (targets or {}).items():
        table[person] = {}
        for key, value in months.items():
            if isinstance(value, MonthlyTarget):
                table[person][key] = value
                continue
            try:
                table[person][key] = MonthlyTarget.model_validate(value)
            except ValidationError:
                logger.warning("Ignoring malformed %s target for %s; defaults apply", key, person)
    return table


def _person_result(
    name: str,
    totals: PersonTotals,
    targets: dict[str, dict[str, MonthlyTarget]],
    period: ResolvedPeriod,
    config: EngineConfig,
) -> _PersonResult:
    target = prorate_target(targets.get(name, {}), totals.months, period, config)
    hours = target.hours
    rollup = AttorneyRollup(
        name=name,
        billable_hours=float(totals.billable_hours),
        ops_hours=float(totals.ops_hours),
        total_hours=float(totals.billable_hours + totals.ops_hours),
        earnings=float(totals.earnings),
        gross_billables=float(totals.gross_billables),
        entry_count=totals.entry_count,
        categories={category: float(value) for category, value in totals.categories.items()},
        clients={
            client: float(value)
            for client, value in sorted(totals.clients.items(), key=lambda item: (-item[1], item[0]))
        },
        top_categories=totals.top_categories(config.top_category_limit),
        active_months=sorted(totals.months),
        has_activity=bool(totals.months),
        billable_target=float(hours.billable),
        ops_target=float(hours.ops),
        total_target=float(hours.total),
        utilization=calculate_utilization(totals.billable_hours, totals.ops_hours, hours),
        recent_entries=totals.recent.newest_first(),
    )
    return _PersonResult(name=name, totals=totals, target=target, rollup=rollup)


def _compute(
    entries: Iterable[EntryInput],
    targets: TargetTable | None,
    period: ResolvedPeriod,
    *,
    person_names: Mapping[str, str] | None,
    people: Iterable[str],
    person_filter: Iterable[str],
    rates: RateTable | None,
    config: EngineConfig,
) -> _Computation:
    aggregator = EntryAggregator(
        period,
        config.tz,
        person_names=person_names,
        person_filter=person_filter,
        rates=rates,
        sample_limit=config.sample_limit,
    )
    aggregator.add_all(entries)
    aggregator.seed(people)

    table = _coerce_targets(targets)
    results = [
        _person_result(name, totals, table, period, config) for name, totals in sorted(aggregator.people.items())
    ]
    return _Computation(period=period, aggregator=aggregator, people=results)


def _firm_totals(people: list[_PersonResult]) -> FirmTotals:
    active = [person for person in people if not person.target.is_default]

    billable = sum((person.totals.billable_hours for person in people), _ZERO)
    ops = sum((person.totals.ops_hours for person in people), _ZERO)
    earnings = sum((person.totals.earnings for person in people), _ZERO)
    gross = sum((person.totals.gross_billables for person in people), _ZERO)
    billable_target = sum((person.target.hours.billable for person in active), _ZERO)
    ops_target = sum((person.target.hours.ops for person in active), _ZERO)
    total_target = sum((person.target.hours.total for person in active), _ZERO)

    avg_utilization = 0
    if active:
        mean = Decimal(sum(person.rollup.utilization.overall for person in active)) / len(active)
        avg_utilization = int(mean.quantize(Decimal(1), rounding=ROUND_HALF_UP))

    return FirmTotals(
        billable_hours=float(billable),
        ops_hours=float(ops),
        total_hours=float(billable + ops),
        earnings=float(earnings),
        gross_billables=float(gross),
        billable_target=float(billable_target),
        ops_target=float(ops_target),
        total_target=float(total_target),
        avg_utilization=avg_utilization,
        people_count=len(active),
    )


def _roster(person_names: Mapping[str, str] | None, people: Iterable[str]) -> list[str]:
    names = list(people)
    names.extend((person_names or {}).values())
    return names


def build_report(
    entries: Iterable[EntryInput],
    targets: TargetTable | None,
    period_spec: DateRangeSpec,
    now: datetime,
    *,
    person_names: Mapping[str, str] | None = None,
    people: Iterable[str] = (),
    person_filter: Iterable[str] = (),
    rates: RateTable | None = None,
    config: EngineConfig | None = None,
) -> AnalyticsReport:
    """Compute the full analytics report for one reporting period.

    ``attorney_rollups`` and ``utilization_by_person`` are the display view
    (visibility rules applied); ``firm_totals`` covers everyone.
    """
    config = config or EngineConfig()
    period = resolve_period(period_spec, now, config.tz)
    roster = _roster(person_names, people)
    computation = _compute(
        entries,
        targets,
        period,
        person_names=person_names,
        people=roster,
        person_filter=person_filter,
        rates=rates,
        config=config,
    )
    aggregator = computation.aggregator
    rules = config.visibility_rules

    firm_totals = _firm_totals(computation.people)
    displayed = visible_rollups([person.rollup for person in computation.people], period, rules)

    logger.info(
        "Analytics report for %s: %d entries folded, %d skipped, %d of %d people displayed",
        period.label,
        aggregator.included,
        aggregator.skipped,
        len(displayed),
        len(computation.people),
    )

    return AnalyticsReport(
        period=period,
        attorney_rollups=displayed,
        firm_totals=firm_totals,
        client_rollups=aggregator.client_rollups(),
        category_rollups=aggregator.category_rollups(),
        ops_category_rollups=aggregator.ops_category_rollups(),
        matter_rollups=aggregator.matter_rollups(),
        utilization_by_person={rollup.name: rollup.utilization for rollup in displayed},
        selectable_people=selectable_people([*roster, *aggregator.people], period, rules),
        entry_count=aggregator.included,
        skipped_entry_count=aggregator.skipped,
        is_empty=aggregator.included == 0,
    )


def build_person_detail(
    person_name: str,
    entries: Iterable[EntryInput],
    targets: TargetTable | None,
    period_spec: DateRangeSpec,
    now: datetime,
    *,
    person_names: Mapping[str, str] | None = None,
    rates: RateTable | None = None,
    config: EngineConfig | None = None,
) -> PersonDetail:
    """Single-person view; runs the same computation as the firm report, filtered to one name."""
    config = config or EngineConfig()
    period = resolve_period(period_spec, now, config.tz)
    computation = _compute(
        entries,
        targets,
        period,
        person_names=person_names,
        people=[person_name],
        person_filter=[person_name],
        rates=rates,
        config=config,
    )
    aggregator = computation.aggregator
    rollup = next((person.rollup for person in computation.people if person.name == person_name), None)

    return PersonDetail(
        person=person_name,
        is_hidden=is_hidden(person_name, period.start_date, config.visibility_rules),
        period=period,
        rollup=rollup,
        client_rollups=aggregator.client_rollups(),
        category_rollups=aggregator.category_rollups(),
        ops_category_rollups=aggregator.ops_category_rollups(),
        matter_rollups=aggregator.matter_rollups(),
    )


def build_client_activity(
    entries: Iterable[EntryInput],
    period: ActivityPeriod,
    now: datetime,
    *,
    start: date | None = None,
    end: date | None = None,
    person_names: Mapping[str, str] | None = None,
    config: EngineConfig | None = None,
) -> list[ClientRollup]:
    config = config or EngineConfig()
    window = resolve_activity_window(period, now, config.tz, start=start, end=end)
    aggregator = EntryAggregator(
        window,
        config.tz,
        person_names=person_names,
        sample_limit=config.sample_limit,
    )
    aggregator.add_all(entries)
    return aggregator.client_rollups()
