"""Grace period domain models and services."""

from .calculator import add_billing_period, calculate_anchored_end_date
from .catalog import StaticLevelCatalog
from .exceptions import (
    EntitlementStoreWriteError,
    GraceError,
    HolderNotFoundError,
    InconsistentGraceStateError,
    InvalidBillingPeriodError,
    LevelNotFoundError,
)
from .ledger import GraceLedger, HolderLockRegistry, InMemoryGraceLedger
from .models import (
    GRACE_PERIOD_DAYS,
    GRACE_WINDOW,
    EntitlementStatus,
    GraceAuditEvent,
    GraceAuditEventType,
    GraceLedgerEntry,
    GraceState,
    GraceStatus,
    GraceSweepReport,
    MembershipLevel,
    PeriodUnit,
)
from .schedule import DEFAULT_WARNING_TEMPLATES, WarningSchedule, days_until
from .service import EntitlementStore, GraceEventLogger, GraceService, LevelCatalog

__all__ = [
    "DEFAULT_WARNING_TEMPLATES",
    "GRACE_PERIOD_DAYS",
    "GRACE_WINDOW",
    "EntitlementStatus",
    "EntitlementStore",
    "EntitlementStoreWriteError",
    "GraceAuditEvent",
    "GraceAuditEventType",
    "GraceError",
    "GraceEventLogger",
    "GraceLedger",
    "GraceLedgerEntry",
    "GraceService",
    "GraceState",
    "GraceStatus",
    "GraceSweepReport",
    "HolderLockRegistry",
    "HolderNotFoundError",
    "InMemoryGraceLedger",
    "InconsistentGraceStateError",
    "InvalidBillingPeriodError",
    "LevelCatalog",
    "LevelNotFoundError",
    "MembershipLevel",
    "PeriodUnit",
    "StaticLevelCatalog",
    "WarningSchedule",
    "add_billing_period",
    "calculate_anchored_end_date",
    "days_until",
]
