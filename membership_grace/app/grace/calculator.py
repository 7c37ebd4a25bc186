"""Renewal end-date arithmetic anchored to the pre-grace end date."""
from __future__ import annotations

from datetime import datetime
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

from .exceptions import InvalidBillingPeriodError
from .models import MembershipLevel, PeriodUnit, ensure_utc

_UNIT_TO_RELATIVEDELTA_FIELD = {
    PeriodUnit.HOUR: "hours",
    PeriodUnit.DAY: "days",
    PeriodUnit.WEEK: "weeks",
    PeriodUnit.MONTH: "months",
    PeriodUnit.YEAR: "years",
}


def add_billing_period(
    anchor: datetime,
    period_unit: Union[PeriodUnit, str, None],
    period_count: int,
) -> datetime:
    """Return ``anchor`` advanced by ``period_count`` units.

    Month and year arithmetic is calendar aware: the day of month is kept and
    clamped to the last day of shorter months.
    """

    try:
        unit = PeriodUnit(period_unit)
    except ValueError as exc:
        raise InvalidBillingPeriodError(period_unit, period_count) from exc
    if isinstance(period_count, bool) or not isinstance(period_count, int) or period_count < 0:
        raise InvalidBillingPeriodError(period_unit, period_count)

    field = _UNIT_TO_RELATIVEDELTA_FIELD[unit]
    try:
        return anchor + relativedelta(**{field: period_count})
    except (OverflowError, ValueError) as exc:
        raise InvalidBillingPeriodError(period_unit, period_count) from exc


def calculate_anchored_end_date(
    proposed_end: datetime,
    original_end: Optional[datetime],
    level: Optional[MembershipLevel],
    now: datetime,
) -> datetime:
    """Compute a renewal end date from the end date a holder had before grace.

    Falls back to ``proposed_end`` whenever the anchored calculation does not
    apply: no original end date, unknown or non-expiring level, an unusable
    billing period, or a candidate that is not in the future. Naive inputs are
    treated as UTC, so the result is always aware.
    """

    fallback = ensure_utc(proposed_end)
    if original_end is None or level is None or not level.is_recurring:
        return fallback

    try:
        candidate = add_billing_period(ensure_utc(original_end), level.period_unit, level.period_count)
    except InvalidBillingPeriodError:
        return fallback

    if candidate > ensure_utc(now):
        return candidate
    return fallback


__all__ = ["add_billing_period", "calculate_anchored_end_date"]
