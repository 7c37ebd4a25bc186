"""API schemas for grace period endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..grace import GraceState, GraceStatus


class GraceStatusResponse(BaseModel):
    holder_id: str = Field(alias="holderId")
    state: GraceState
    in_grace: bool = Field(alias="inGrace")
    level_id: Optional[str] = Field(alias="levelId", default=None)
    original_end_date: Optional[datetime] = Field(alias="originalEndDate", default=None)
    grace_end_date: Optional[datetime] = Field(alias="graceEndDate", default=None)
    days_left: Optional[int] = Field(alias="daysLeft", default=None)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_status(cls, status: GraceStatus) -> "GraceStatusResponse":
        return cls(
            holder_id=status.holder_id,
            state=status.state,
            in_grace=status.state == GraceState.IN_GRACE,
            level_id=status.level_id,
            original_end_date=status.original_end_date,
            grace_end_date=status.grace_end_date,
            days_left=status.days_left,
        )


class GraceStatusListResponse(BaseModel):
    holders: List[GraceStatusResponse]

    model_config = ConfigDict(populate_by_name=True)


class GraceResetResponse(BaseModel):
    holder_id: str = Field(alias="holderId")
    reset: bool

    model_config = ConfigDict(populate_by_name=True)


class SweepMetricsResponse(BaseModel):
    finalized: int
    inconsistent: int
    failures: int
    last_run_at: Optional[str] = Field(alias="lastRunAt", default=None)
    last_success_at: Optional[str] = Field(alias="lastSuccessAt", default=None)
    last_error: Optional[str] = Field(alias="lastError", default=None)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_metrics(cls, metrics: Dict[str, object]) -> "SweepMetricsResponse":
        return cls(
            finalized=int(metrics.get("finalized", 0)),
            inconsistent=int(metrics.get("inconsistent", 0)),
            failures=int(metrics.get("failures", 0)),
            last_run_at=metrics.get("last_run_at"),
            last_success_at=metrics.get("last_success_at"),
            last_error=metrics.get("last_error"),
        )
