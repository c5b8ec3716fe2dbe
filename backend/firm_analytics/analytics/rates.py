from collections.abc import Mapping
from decimal import Decimal

_ZERO = Decimal(0)


def find_rate(rates_by_month: Mapping[str, Decimal] | None, key: str) -> Decimal:
    """Hourly rate for a "YYYY-MM" month.

    Uses the exact month when a non-zero rate is stored, otherwise the most
    recent earlier month, otherwise 0.
    """
    if not rates_by_month:
        return _ZERO

    exact = rates_by_month.get(key)
    if exact:
        return exact

    earlier = [month for month in rates_by_month if month < key]
    if not earlier:
        return _ZERO
    return rates_by_month[max(earlier)] or _ZERO


def gross_billables(rates_by_month: Mapping[str, Decimal] | None, key: str, billable_hours: Decimal) -> Decimal:
    if billable_hours <= 0:
        return _ZERO
    return find_rate(rates_by_month, key) * billable_hours
