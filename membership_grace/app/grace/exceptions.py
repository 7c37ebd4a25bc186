"""Errors raised by the grace period domain."""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from fastapi import HTTPException, status


class GraceError(Exception):
    """Base error carrying a stable code for operators and API callers.

    Subclasses pin ``code`` and ``status_code``; instances add a message and
    holder or level identifiers in ``detail``.
    """

    code = "grace_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, *, detail: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail: Dict[str, Any] = dict(detail or {})

    @property
    def payload(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message, **self.detail}

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.payload)


class HolderNotFoundError(GraceError, LookupError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, holder_id: str) -> None:
        super().__init__(f"Holder {holder_id} not found", detail={"holder_id": holder_id})
        self.holder_id = holder_id


class LevelNotFoundError(GraceError, LookupError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, level_id: str) -> None:
        super().__init__(f"Membership level {level_id} not found", detail={"level_id": level_id})
        self.level_id = level_id


class InconsistentGraceStateError(GraceError):
    """The ledger's grace level no longer matches the entitlement store."""

    code = "inconsistent_state"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, holder_id: str, grace_level_id: Optional[str], current_level_id: Optional[str]) -> None:
        super().__init__(
            f"Holder {holder_id} is in grace for level {grace_level_id}"
            f" but currently holds level {current_level_id}",
            detail={
                "holder_id": holder_id,
                "grace_level_id": grace_level_id,
                "current_level_id": current_level_id,
            },
        )
        self.holder_id = holder_id
        self.grace_level_id = grace_level_id
        self.current_level_id = current_level_id


class InvalidBillingPeriodError(GraceError, ValueError):
    code = "invalid_billing_period"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, period_unit: object, period_count: object) -> None:
        super().__init__(f"Cannot add {period_count!r} x {period_unit!r} to a date")


class EntitlementStoreWriteError(GraceError):
    """The entitlement store rejected a level change."""

    code = "store_write_failure"
    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, holder_id: str, reason: str = "entitlement store rejected the level change") -> None:
        super().__init__(f"{reason} for holder {holder_id}", detail={"holder_id": holder_id})
        self.holder_id = holder_id


__all__ = [
    "EntitlementStoreWriteError",
    "GraceError",
    "HolderNotFoundError",
    "InconsistentGraceStateError",
    "InvalidBillingPeriodError",
    "LevelNotFoundError",
]
