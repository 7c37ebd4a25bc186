"""Service coordinating grace entry, sweeps, renewals and expiry notifications."""
from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Protocol

from .calculator import calculate_anchored_end_date
from .exceptions import (
    EntitlementStoreWriteError,
    GraceError,
    HolderNotFoundError,
    InconsistentGraceStateError,
    LevelNotFoundError,
)
from .ledger import GraceLedger, HolderLockRegistry
from .models import (
    GRACE_WINDOW,
    EntitlementStatus,
    GraceAuditEvent,
    GraceAuditEventType,
    GraceLedgerEntry,
    GraceState,
    GraceStatus,
    GraceSweepReport,
    MembershipLevel,
    ensure_utc,
)
from .schedule import WarningSchedule

logger = logging.getLogger(__name__)


class EntitlementStore(Protocol):
    """Current membership record per holder, owned outside this package.

    Implementations raise ``LookupError`` for unknown holders.
    """

    def get_current_end_date(self, holder_id: str) -> Optional[datetime]:
        ...

    def get_current_level(self, holder_id: str) -> Optional[str]:
        ...

    def set_level(
        self,
        holder_id: str,
        level_id: Optional[str],
        end_date: Optional[datetime],
        status: EntitlementStatus,
    ) -> bool:
        ...


class LevelCatalog(Protocol):
    """Lookup of membership level billing settings."""

    def get_level(self, level_id: str) -> Optional[MembershipLevel]:
        ...


class GraceEventLogger(Protocol):
    """Captures structured grace audit events."""

    def log(self, event: GraceAuditEvent) -> None:
        ...


class _NullEventLogger:
    def log(self, event: GraceAuditEvent) -> None:
        return None


def _default_clock() -> datetime:
    return datetime.now(timezone.utc)


_dataclass_kwargs = {"slots": True} if sys.version_info >= (3, 10) else {}


@dataclass(**_dataclass_kwargs)
class GraceService:
    """Owns the grace ledger and keeps it in step with the entitlement store."""

    ledger: GraceLedger
    entitlement_store: EntitlementStore
    level_catalog: LevelCatalog
    event_logger: GraceEventLogger = field(default_factory=_NullEventLogger)
    warning_schedule: WarningSchedule = field(default_factory=WarningSchedule)
    clock: Callable[[], datetime] = _default_clock
    locks: HolderLockRegistry = field(default_factory=HolderLockRegistry)

    def _now(self) -> datetime:
        return ensure_utc(self.clock())

    # Grace trigger

    def enter_grace(self, holder_id: str, level_id: str) -> GraceLedgerEntry:
        """Extend a holder whose entitlement at ``level_id`` just reached its end date."""

        with self.locks.hold(holder_id):
            existing = self.ledger.get(holder_id)
            if existing is not None and existing.state == GraceState.IN_GRACE and existing.level_id == level_id:
                logger.debug("Holder %s already in grace for level %s", holder_id, level_id)
                self._log_event(GraceAuditEventType.GRACE_REENTRY_IGNORED, holder_id, level_id)
                return existing

            if self.level_catalog.get_level(level_id) is None:
                raise LevelNotFoundError(level_id)
            try:
                current_end = self.entitlement_store.get_current_end_date(holder_id)
            except LookupError as exc:
                raise HolderNotFoundError(holder_id) from exc

            now = self._now()
            entry = GraceLedgerEntry(
                holder_id=holder_id,
                state=GraceState.IN_GRACE,
                level_id=level_id,
                original_end_date=ensure_utc(current_end) if current_end is not None else None,
                grace_end_date=now + GRACE_WINDOW,
                created_at=now,
                updated_at=now,
            )
            if entry.original_end_date is None:
                logger.warning(
                    "Holder %s entered grace without an end date; renewal will not be anchored",
                    holder_id,
                )

            self.ledger.save(entry)
            try:
                written = self.entitlement_store.set_level(
                    holder_id, level_id, entry.grace_end_date, EntitlementStatus.ACTIVE
                )
            except Exception:
                self._restore_entry(holder_id, existing)
                raise
            if not written:
                self._restore_entry(holder_id, existing)
                raise EntitlementStoreWriteError(holder_id)

            self._log_event(
                GraceAuditEventType.GRACE_ENTERED,
                holder_id,
                level_id,
                grace_end_date=entry.grace_end_date.isoformat(),
                original_end_date=entry.original_end_date.isoformat() if entry.original_end_date else "",
            )
            return entry

    # Grace sweep

    def run_sweep(self, now: Optional[datetime] = None) -> List[str]:
        """Finalize lapsed grace periods and return the finalized holder ids."""

        return self.sweep(now).finalized

    def sweep(self, now: Optional[datetime] = None) -> GraceSweepReport:
        current_time = ensure_utc(now) if now is not None else self._now()
        report = GraceSweepReport(ran_at=current_time)

        for entry in self.ledger.list_entries(GraceState.IN_GRACE):
            holder_id = entry.holder_id
            try:
                if self._finalize_if_lapsed(holder_id, current_time):
                    report.finalized.append(holder_id)
                else:
                    report.pending.append(holder_id)
            except InconsistentGraceStateError as exc:
                logger.warning("Skipping grace sweep for holder %s: %s", holder_id, exc.message)
                report.inconsistent.append(holder_id)
                self._log_event(
                    GraceAuditEventType.GRACE_INCONSISTENT,
                    holder_id,
                    exc.grace_level_id,
                    current_level_id=str(exc.current_level_id),
                )
            except GraceError as exc:
                logger.warning("Grace sweep failed for holder %s: %s", holder_id, exc.message)
                report.failures[holder_id] = exc.message
            except Exception as exc:
                logger.exception("Unexpected error sweeping holder %s", holder_id)
                report.failures[holder_id] = f"{type(exc).__name__}: {exc}"

        logger.info(
            "Grace sweep finished finalized=%s pending=%s inconsistent=%s failures=%s",
            len(report.finalized),
            len(report.pending),
            len(report.inconsistent),
            len(report.failures),
        )
        return report

    def _finalize_if_lapsed(self, holder_id: str, now: datetime) -> bool:
        with self.locks.hold(holder_id):
            entry = self.ledger.get(holder_id)
            if entry is None or entry.state != GraceState.IN_GRACE:
                return False

            try:
                current_level = self.entitlement_store.get_current_level(holder_id)
            except LookupError as exc:
                raise HolderNotFoundError(holder_id) from exc
            if current_level != entry.level_id:
                raise InconsistentGraceStateError(holder_id, entry.level_id, current_level)

            if not entry.is_lapsed(now):
                return False

            self.ledger.save(entry.begin_exit(now))
            try:
                written = self.entitlement_store.set_level(
                    holder_id, None, None, EntitlementStatus.CANCELLED
                )
            except Exception:
                self.ledger.save(entry)
                raise
            if not written:
                self.ledger.save(entry)
                raise EntitlementStoreWriteError(holder_id, "entitlement store rejected the cancellation")

            self._log_event(
                GraceAuditEventType.GRACE_EXPIRED,
                holder_id,
                entry.level_id,
                grace_end_date=entry.grace_end_date.isoformat(),
            )
            return True

    # Renewal recalculation

    def recalculate_end_date(
        self,
        proposed_end: datetime,
        holder_id: str,
        level_id: str,
        start_date: Optional[datetime] = None,
    ) -> datetime:
        """Return the end date for a renewal, anchoring grace renewals to the original end date.

        ``start_date`` is accepted for parity with the renewal path and is not
        used: a grace renewal always continues from the original end date.
        """

        with self.locks.hold(holder_id):
            entry = self.ledger.get(holder_id)
            if entry is None or entry.state != GraceState.IN_GRACE or entry.level_id != level_id:
                return ensure_utc(proposed_end)

            try:
                level = self.level_catalog.get_level(level_id)
                if level is None:
                    logger.warning("Level %s not found while renewing holder %s", level_id, holder_id)
                new_end = calculate_anchored_end_date(proposed_end, entry.original_end_date, level, self._now())
            finally:
                self.ledger.delete(holder_id)

            self._log_event(
                GraceAuditEventType.GRACE_RENEWED,
                holder_id,
                level_id,
                anchored=str(new_end != ensure_utc(proposed_end)).lower(),
                end_date=new_end.isoformat(),
            )
            return new_end

    # Notifications

    def template_for(self, days_before_end: int) -> Optional[str]:
        return self.warning_schedule.template_for(days_before_end)

    def should_send_expired_notification(self, holder_id: str) -> bool:
        """Decide whether the "membership ended" notification may go out now.

        Holders entering grace are suppressed. The first call after a sweep
        finalizes a holder consumes the exiting flag and allows the send.
        """

        with self.locks.hold(holder_id):
            entry = self.ledger.get(holder_id)
            if entry is None:
                return True
            if entry.exiting:
                self.ledger.delete(holder_id)
                self._log_event(GraceAuditEventType.EXPIRED_NOTIFICATION_RELEASED, holder_id, None)
                return True
            self._log_event(GraceAuditEventType.EXPIRED_NOTIFICATION_SUPPRESSED, holder_id, entry.level_id)
            return False

    # Observability

    def get_grace_entry(self, holder_id: str) -> Optional[GraceLedgerEntry]:
        return self.ledger.get(holder_id)

    def is_in_grace(self, holder_id: str) -> bool:
        entry = self.ledger.get(holder_id)
        return entry is not None and entry.state == GraceState.IN_GRACE

    def get_grace_status(self, holder_id: str, now: Optional[datetime] = None) -> GraceStatus:
        current_time = ensure_utc(now) if now is not None else self._now()
        return GraceStatus.from_entry(holder_id, self.ledger.get(holder_id), current_time)

    def list_grace_statuses(self, now: Optional[datetime] = None) -> List[GraceStatus]:
        current_time = ensure_utc(now) if now is not None else self._now()
        return [
            GraceStatus.from_entry(entry.holder_id, entry, current_time)
            for entry in self.ledger.list_entries()
        ]

    # Operator actions

    def reset_grace(self, holder_id: str) -> bool:
        """Drop any ledger entry for ``holder_id`` without touching the entitlement."""

        with self.locks.hold(holder_id):
            entry = self.ledger.get(holder_id)
            deleted = self.ledger.delete(holder_id)
            if deleted:
                logger.info("Grace data reset for holder %s", holder_id)
                self._log_event(
                    GraceAuditEventType.GRACE_RESET,
                    holder_id,
                    entry.level_id if entry else None,
                    state=entry.state.value if entry else "",
                )
            return deleted

    def _restore_entry(self, holder_id: str, previous: Optional[GraceLedgerEntry]) -> None:
        if previous is None:
            self.ledger.delete(holder_id)
        else:
            self.ledger.save(previous)

    def _log_event(
        self,
        event_type: GraceAuditEventType,
        holder_id: str,
        level_id: Optional[str],
        **metadata: str,
    ) -> None:
        event_metadata: Dict[str, str] = {key: value for key, value in metadata.items() if value}
        self.event_logger.log(
            GraceAuditEvent(
                event_type=event_type,
                holder_id=holder_id,
                level_id=level_id,
                metadata=event_metadata,
                occurred_at=self._now(),
            )
        )


__all__ = [
    "EntitlementStore",
    "GraceEventLogger",
    "GraceService",
    "LevelCatalog",
]
