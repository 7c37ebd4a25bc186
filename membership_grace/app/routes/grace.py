"""API routes exposing grace period state to operators."""
from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from ... import sweeps
from ..schemas.grace import (
    GraceResetResponse,
    GraceStatusListResponse,
    GraceStatusResponse,
    SweepMetricsResponse,
)
from ..services.grace import get_grace_service


router = APIRouter(prefix="/api/grace", tags=["grace"])


@router.get("/holders", response_model=GraceStatusListResponse)
def list_grace_holders() -> GraceStatusListResponse:
    service = get_grace_service()
    statuses = service.list_grace_statuses()
    return GraceStatusListResponse(holders=[GraceStatusResponse.from_status(item) for item in statuses])


@router.get("/holders/{holder_id}", response_model=GraceStatusResponse)
def get_grace_holder(holder_id: str) -> GraceStatusResponse:
    service = get_grace_service()
    return GraceStatusResponse.from_status(service.get_grace_status(holder_id))


@router.delete("/holders/{holder_id}", response_model=GraceResetResponse)
def reset_grace_holder(holder_id: str) -> GraceResetResponse:
    service = get_grace_service()
    if not service.reset_grace(holder_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No grace data for holder")
    return GraceResetResponse(holder_id=holder_id, reset=True)


@router.get("/sweeps/metrics", response_model=SweepMetricsResponse)
def get_sweep_metrics() -> SweepMetricsResponse:
    return SweepMetricsResponse.from_metrics(sweeps.get_sweep_metrics())
