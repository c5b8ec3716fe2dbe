from decimal import ROUND_HALF_UP, Decimal

from firm_analytics.analytics.schemas import UtilizationBand, UtilizationResult
from firm_analytics.analytics.targets import TargetHours


def percentage(part: Decimal, whole: Decimal) -> int:
    """Whole-number percentage rounded half up; a zero or negative whole yields 0."""
    if whole <= 0:
        return 0
    return int((Decimal(100) * part / whole).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def utilization_band(value: int) -> UtilizationBand:
    if 95 <= value <= 105:
        return UtilizationBand.on_target
    if 90 <= value <= 110:
        return UtilizationBand.near_target
    return UtilizationBand.off_target


def calculate_utilization(billable_hours: Decimal, ops_hours: Decimal, targets: TargetHours) -> UtilizationResult:
    overall = percentage(billable_hours + ops_hours, targets.total)
    return UtilizationResult(
        overall=overall,
        billable=percentage(billable_hours, targets.billable),
        ops=percentage(ops_hours, targets.ops),
        band=utilization_band(overall),
    )
