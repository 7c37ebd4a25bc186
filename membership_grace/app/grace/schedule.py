"""Expiration warning schedule lookups."""
from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Dict, Mapping, Optional, Tuple

from .models import ensure_utc

FIRST_WARNING_DAYS = 28
SECOND_WARNING_DAYS = 10

DEFAULT_WARNING_TEMPLATES: Dict[int, str] = {
    FIRST_WARNING_DAYS: f"expiring_{FIRST_WARNING_DAYS}",
    SECOND_WARNING_DAYS: f"expiring_{SECOND_WARNING_DAYS}",
}


class WarningSchedule:
    """Maps days-before-end to the reminder template that should go out."""

    def __init__(self, templates: Optional[Mapping[int, str]] = None) -> None:
        source = DEFAULT_WARNING_TEMPLATES if templates is None else templates
        table: Dict[int, str] = {}
        for days, template in source.items():
            if int(days) < 0:
                raise ValueError("warning days must be >= 0")
            if not template:
                raise ValueError("warning template must be provided")
            table[int(days)] = str(template)
        self._templates = table

    @property
    def warning_days(self) -> Tuple[int, ...]:
        return tuple(sorted(self._templates, reverse=True))

    def template_for(self, days_before_end: int) -> Optional[str]:
        return self._templates.get(days_before_end)


def days_until(end_date: datetime, now: datetime) -> int:
    """Whole days remaining until ``end_date``, rounded up."""

    remaining = ensure_utc(end_date) - ensure_utc(now)
    return math.ceil(remaining.total_seconds() / timedelta(days=1).total_seconds())


__all__ = [
    "DEFAULT_WARNING_TEMPLATES",
    "FIRST_WARNING_DAYS",
    "SECOND_WARNING_DAYS",
    "WarningSchedule",
    "days_until",
]
