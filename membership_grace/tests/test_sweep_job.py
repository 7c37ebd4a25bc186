from datetime import datetime, timezone

import pytest

from membership_grace import sweeps
from membership_grace.app.grace import GraceSweepReport


class _StubService:
    def __init__(self, report=None, error=None):
        self._report = report
        self._error = error
        self.calls = []

    def sweep(self, now=None):
        self.calls.append(now)
        if self._error is not None:
            raise self._error
        return self._report


def test_run_grace_sweep_job_updates_metrics(monkeypatch):
    sweeps._reset_metrics_for_testing()
    run_time = datetime(2025, 1, 30, 3, tzinfo=timezone.utc)
    report = GraceSweepReport(
        ran_at=run_time,
        finalized=["h1", "h2"],
        pending=["h3"],
        inconsistent=["h4"],
        failures={"h5": "boom"},
    )
    service = _StubService(report=report)
    monkeypatch.setattr(sweeps, "get_grace_service", lambda: service)

    result = sweeps.run_grace_sweep_job(now=run_time)

    assert result == report
    assert service.calls == [run_time]
    metrics = sweeps.get_sweep_metrics()
    assert metrics["finalized"] == 2
    assert metrics["inconsistent"] == 1
    assert metrics["failures"] == 1
    assert metrics["last_run_at"] == run_time.isoformat()
    assert metrics["last_success_at"] == run_time.isoformat()
    assert metrics["last_error"] is None


def test_run_grace_sweep_job_normalises_naive_now(monkeypatch):
    sweeps._reset_metrics_for_testing()
    service = _StubService(report=GraceSweepReport(ran_at=datetime(2025, 1, 1, tzinfo=timezone.utc)))
    monkeypatch.setattr(sweeps, "get_grace_service", lambda: service)

    sweeps.run_grace_sweep_job(now=datetime(2025, 1, 1))

    assert service.calls[0].tzinfo is timezone.utc


def test_run_grace_sweep_job_records_failure(monkeypatch):
    sweeps._reset_metrics_for_testing()
    service = _StubService(error=RuntimeError("ledger unavailable"))
    monkeypatch.setattr(sweeps, "get_grace_service", lambda: service)

    with pytest.raises(RuntimeError):
        sweeps.run_grace_sweep_job(now=datetime(2025, 1, 1, tzinfo=timezone.utc))

    metrics = sweeps.get_sweep_metrics()
    assert metrics["failures"] == 1
    assert metrics["last_error"] == "RuntimeError: ledger unavailable"
    assert metrics["last_success_at"] is None
