"""Domain models for membership grace periods."""
from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

GRACE_PERIOD_DAYS = 28
GRACE_WINDOW = timedelta(days=GRACE_PERIOD_DAYS)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware datetime, treating naive values as UTC."""

    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PeriodUnit(str, Enum):
    """Billing period units a membership level can renew on."""

    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"

    @classmethod
    def _missing_(cls, value: object) -> Optional["PeriodUnit"]:
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return None


class EntitlementStatus(str, Enum):
    """Status values written to the entitlement store."""

    ACTIVE = "active"
    CANCELLED = "cancelled"


class GraceState(str, Enum):
    """Grace lifecycle state for a single holder."""

    NOT_IN_GRACE = "not_in_grace"
    IN_GRACE = "in_grace"
    EXITING = "exiting"


class MembershipLevel(BaseModel):
    """Catalog entry describing how a level renews."""

    level_id: str
    name: str = ""
    period_unit: Optional[PeriodUnit] = None
    period_count: int = 0

    model_config = ConfigDict(frozen=True)

    @property
    def is_recurring(self) -> bool:
        return self.period_count > 0


class GraceLedgerEntry(BaseModel):
    """Grace bookkeeping for one holder.

    ``in_grace`` entries carry the level and the grace end date. Once the sweep
    finalizes a holder the entry becomes ``exiting``: the grace fields are gone,
    the original end date may remain, and the entry lives only until the
    expired notification consumes it.
    """

    holder_id: str
    state: GraceState = GraceState.IN_GRACE
    level_id: Optional[str] = None
    original_end_date: Optional[datetime] = None
    grace_end_date: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_state_fields(self) -> "GraceLedgerEntry":
        if self.state == GraceState.NOT_IN_GRACE:
            raise ValueError("ledger entries cannot be stored as not_in_grace")
        if self.state == GraceState.IN_GRACE:
            if not self.level_id or self.grace_end_date is None:
                raise ValueError("in_grace entries require level_id and grace_end_date")
        elif self.level_id is not None or self.grace_end_date is not None:
            raise ValueError("exiting entries must not carry grace fields")
        return self

    @property
    def exiting(self) -> bool:
        return self.state == GraceState.EXITING

    def begin_exit(self, now: Optional[datetime] = None) -> "GraceLedgerEntry":
        """Return the exiting form of this entry."""

        return self.model_copy(
            update={
                "state": GraceState.EXITING,
                "level_id": None,
                "grace_end_date": None,
                "updated_at": now or _utcnow(),
            }
        )

    def is_lapsed(self, now: datetime) -> bool:
        return self.grace_end_date is not None and ensure_utc(now) >= ensure_utc(self.grace_end_date)


class GraceStatus(BaseModel):
    """Read-only view of a holder's grace state for operators."""

    holder_id: str
    state: GraceState
    level_id: Optional[str] = None
    original_end_date: Optional[datetime] = None
    grace_end_date: Optional[datetime] = None
    days_left: Optional[int] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_entry(
        cls,
        holder_id: str,
        entry: Optional[GraceLedgerEntry],
        now: datetime,
    ) -> "GraceStatus":
        if entry is None:
            return cls(holder_id=holder_id, state=GraceState.NOT_IN_GRACE)
        days_left: Optional[int] = None
        if entry.grace_end_date is not None:
            remaining = ensure_utc(entry.grace_end_date) - ensure_utc(now)
            days_left = math.ceil(remaining.total_seconds() / timedelta(days=1).total_seconds())
        return cls(
            holder_id=holder_id,
            state=entry.state,
            level_id=entry.level_id,
            original_end_date=entry.original_end_date,
            grace_end_date=entry.grace_end_date,
            days_left=days_left,
        )


class GraceSweepReport(BaseModel):
    """Outcome of a single sweep over the grace ledger."""

    ran_at: datetime
    finalized: List[str] = Field(default_factory=list)
    pending: List[str] = Field(default_factory=list)
    inconsistent: List[str] = Field(default_factory=list)
    failures: Dict[str, str] = Field(default_factory=dict)


class GraceAuditEventType(str, Enum):
    """Audit event categories emitted by the grace service."""

    GRACE_ENTERED = "grace_entered"
    GRACE_REENTRY_IGNORED = "grace_reentry_ignored"
    GRACE_EXPIRED = "grace_expired"
    GRACE_RENEWED = "grace_renewed"
    GRACE_INCONSISTENT = "grace_inconsistent"
    GRACE_RESET = "grace_reset"
    EXPIRED_NOTIFICATION_RELEASED = "expired_notification_released"
    EXPIRED_NOTIFICATION_SUPPRESSED = "expired_notification_suppressed"


class GraceAuditEvent(BaseModel):
    """Structured audit event describing a grace transition."""

    event_type: GraceAuditEventType
    holder_id: str
    level_id: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(frozen=True)
