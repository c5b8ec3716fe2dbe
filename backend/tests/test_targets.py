"""
Tests for monthly target pro-rating, rate lookup and utilization percentages.
"""

from datetime import date, datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from firm_analytics.analytics.periods import resolve_period
from firm_analytics.analytics.rates import find_rate, gross_billables
from firm_analytics.analytics.schemas import DateRangePreset, DateRangeSpec, EngineConfig, MonthlyTarget, UtilizationBand
from firm_analytics.analytics.targets import TargetHours, default_target, month_fraction, prorate_target
from firm_analytics.analytics.utilization import calculate_utilization, percentage, utilization_band

LA = ZoneInfo("America/Los_Angeles")
NOW = datetime(2025, 10, 15, 12, 0)
DEFAULTS = EngineConfig()


def _period(preset: DateRangePreset, **bounds):
    return resolve_period(DateRangeSpec(preset=preset, **bounds), NOW, LA)


def _march(end_day: int):
    return _period(DateRangePreset.custom, start=date(2025, 3, 1), end=date(2025, 3, end_day))


# ---------------------------------------------------------------------------
# Pro-rating
# ---------------------------------------------------------------------------

class TestProrateTarget:
    def test_partial_month_scaled_by_business_days(self):
        targets = {"2025-03": MonthlyTarget(billable_target=Decimal(100))}
        result = prorate_target(targets, {"2025-03"}, _march(17), DEFAULTS)
        # 11 of March's 21 business days
        assert result.hours.billable == Decimal("52.4")
        assert result.hours.ops == Decimal("26.2")
        assert result.hours.total == Decimal("78.6")
        assert result.is_default is False

    def test_range_ending_on_a_weekend(self):
        targets = {"2025-03": MonthlyTarget(billable_target=Decimal(100))}
        result = prorate_target(targets, {"2025-03"}, _march(15), DEFAULTS)
        assert result.hours.billable == Decimal("47.6")

    def test_whole_month_not_scaled(self):
        targets = {"2025-03": MonthlyTarget(billable_target=Decimal(100))}
        period = _march(31)
        assert month_fraction("2025-03", period) is None
        assert prorate_target(targets, ["2025-03"], period, DEFAULTS).hours.billable == Decimal("100.0")

    def test_in_progress_month_counts_elapsed_business_days(self):
        result = prorate_target({}, {"2025-10"}, _period(DateRangePreset.current_month), DEFAULTS)
        # 11 of October's 23 business days have elapsed
        assert result.hours == TargetHours(Decimal("47.8"), Decimal("23.9"), Decimal("71.7"))

    def test_trailing_window_spans_three_months(self):
        period = _period(DateRangePreset.trailing_60)
        result = prorate_target({}, {"2025-08", "2025-09", "2025-10"}, period, DEFAULTS)
        # 10/21 of August, all of September, 11/23 of October
        assert result.hours.billable == Decimal("195.4")

    def test_only_active_months_contribute(self):
        period = _period(DateRangePreset.trailing_60)
        result = prorate_target({}, {"2025-09"}, period, DEFAULTS)
        assert result.hours.billable == Decimal("100.0")

    def test_month_order_does_not_matter(self):
        period = _period(DateRangePreset.trailing_60)
        forward = prorate_target({}, ["2025-08", "2025-09", "2025-10"], period, DEFAULTS)
        backward = prorate_target({}, ["2025-10", "2025-09", "2025-08"], period, DEFAULTS)
        assert forward == backward

    def test_no_activity_uses_default(self):
        result = prorate_target({}, set(), _march(17), DEFAULTS)
        assert result.is_default is True
        assert result.hours == TargetHours(Decimal("100.0"), Decimal("50.0"), Decimal("150.0"))

    def test_current_month_target_is_the_fallback(self):
        targets = {"2025-10": MonthlyTarget(billable_target=Decimal(120))}
        result = prorate_target(targets, {"2025-09"}, _period(DateRangePreset.last_month), DEFAULTS)
        assert result.hours.billable == Decimal("120.0")
        assert result.hours.ops == Decimal("50.0")

    def test_default_target_fills_missing_fields(self):
        targets = {"2025-10": MonthlyTarget(ops_target=Decimal(10))}
        fallback = default_target(targets, "2025-10", DEFAULTS)
        assert fallback == TargetHours(Decimal(100), Decimal(10), Decimal(150))

    def test_configured_defaults(self):
        config = EngineConfig(default_billable_target=Decimal(80))
        result = prorate_target({}, set(), _march(17), config)
        assert result.hours.billable == Decimal("80.0")


# ---------------------------------------------------------------------------
# Rates
# ---------------------------------------------------------------------------

class TestRates:
    RATES = {"2025-01": Decimal(300), "2025-02": Decimal(0), "2025-03": Decimal(350)}

    @pytest.mark.parametrize(
        "key,expected",
        [("2025-03", 350), ("2025-02", 300), ("2025-06", 350), ("2024-12", 0)],
    )
    def test_find_rate(self, key, expected):
        assert find_rate(self.RATES, key) == Decimal(expected)

    def test_no_rates(self):
        assert find_rate(None, "2025-03") == 0

    def test_gross_billables(self):
        assert gross_billables(self.RATES, "2025-03", Decimal(2)) == Decimal(700)
        assert gross_billables(self.RATES, "2025-03", Decimal(0)) == 0


# ---------------------------------------------------------------------------
# Utilization
# ---------------------------------------------------------------------------

class TestUtilization:
    def test_percentage_rounds_half_up(self):
        assert percentage(Decimal(1), Decimal(8)) == 13
        assert percentage(Decimal(1), Decimal(3)) == 33

    def test_zero_whole_is_zero(self):
        assert percentage(Decimal(50), Decimal(0)) == 0

    @pytest.mark.parametrize(
        "value,band",
        [
            (95, UtilizationBand.on_target),
            (100, UtilizationBand.on_target),
            (105, UtilizationBand.on_target),
            (90, UtilizationBand.near_target),
            (94, UtilizationBand.near_target),
            (110, UtilizationBand.near_target),
            (89, UtilizationBand.off_target),
            (111, UtilizationBand.off_target),
            (0, UtilizationBand.off_target),
        ],
    )
    def test_bands(self, value, band):
        assert utilization_band(value) == band

    def test_calculate_utilization(self):
        result = calculate_utilization(Decimal(60), Decimal(30), TargetHours(Decimal(100), Decimal(50), Decimal(150)))
        assert (result.overall, result.billable, result.ops) == (60, 60, 60)
        assert result.band == UtilizationBand.off_target

    def test_zero_targets_are_safe(self):
        zero = TargetHours(Decimal(0), Decimal(0), Decimal(0))
        result = calculate_utilization(Decimal(12), Decimal(3), zero)
        assert (result.overall, result.billable, result.ops) == (0, 0, 0)
