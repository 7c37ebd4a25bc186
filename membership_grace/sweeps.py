"""Entry point for the periodic grace sweep."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, Optional

from .app.grace import GraceSweepReport
from .app.services.grace import get_grace_service

logger = logging.getLogger(__name__)

_SWEEP_METRICS: Dict[str, object] = {
    "finalized": 0,
    "inconsistent": 0,
    "failures": 0,
    "last_run_at": None,
    "last_success_at": None,
    "last_error": None,
}
_metrics_lock = Lock()


def _record_run_start(started_at: datetime) -> None:
    with _metrics_lock:
        _SWEEP_METRICS["last_run_at"] = started_at


def _record_run_success(completed_at: datetime, report: GraceSweepReport) -> None:
    with _metrics_lock:
        _SWEEP_METRICS["finalized"] = int(_SWEEP_METRICS.get("finalized", 0)) + len(report.finalized)
        _SWEEP_METRICS["inconsistent"] = int(_SWEEP_METRICS.get("inconsistent", 0)) + len(report.inconsistent)
        _SWEEP_METRICS["failures"] = int(_SWEEP_METRICS.get("failures", 0)) + len(report.failures)
        _SWEEP_METRICS["last_success_at"] = completed_at
        _SWEEP_METRICS["last_error"] = None


def _record_run_failure(error: Exception) -> None:
    with _metrics_lock:
        _SWEEP_METRICS["failures"] = int(_SWEEP_METRICS.get("failures", 0)) + 1
        _SWEEP_METRICS["last_error"] = f"{type(error).__name__}: {error}"


def run_grace_sweep_job(*, now: Optional[datetime] = None) -> GraceSweepReport:
    """Run one sweep; the caller's scheduler must not overlap invocations."""

    current_time = now or datetime.now(timezone.utc)
    if current_time.tzinfo is None:
        current_time = current_time.replace(tzinfo=timezone.utc)

    _record_run_start(current_time)
    try:
        report = get_grace_service().sweep(current_time)
    except Exception as exc:
        _record_run_failure(exc)
        logger.exception("Grace sweep job failed")
        raise
    else:
        _record_run_success(current_time, report)
        logger.info(
            "Grace sweep job completed",
            extra={
                "finalized": len(report.finalized),
                "pending": len(report.pending),
                "inconsistent": len(report.inconsistent),
                "failures": len(report.failures),
            },
        )
        return report


def get_sweep_metrics() -> Dict[str, object]:
    with _metrics_lock:
        last_run_at = _SWEEP_METRICS.get("last_run_at")
        last_success_at = _SWEEP_METRICS.get("last_success_at")
        return {
            **_SWEEP_METRICS,
            "last_run_at": last_run_at.isoformat() if last_run_at else None,
            "last_success_at": last_success_at.isoformat() if last_success_at else None,
        }


def _reset_metrics_for_testing() -> None:  # pragma: no cover - used in tests only
    with _metrics_lock:
        _SWEEP_METRICS.update(
            {
                "finalized": 0,
                "inconsistent": 0,
                "failures": 0,
                "last_run_at": None,
                "last_success_at": None,
                "last_error": None,
            }
        )


__all__ = ["get_sweep_metrics", "run_grace_sweep_job"]
