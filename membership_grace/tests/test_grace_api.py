from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
from fastapi import HTTPException

from membership_grace import app_context, sweeps
from membership_grace.app.grace import (
    EntitlementStatus,
    GraceLedgerEntry,
    GraceService,
    GraceState,
    HolderNotFoundError,
    InMemoryGraceLedger,
    MembershipLevel,
    PeriodUnit,
    StaticLevelCatalog,
)
from membership_grace.app.routes import grace as grace_routes
from membership_grace.app.services import grace as grace_services
from membership_grace.main import create_app

NOW = datetime(2025, 1, 10, tzinfo=timezone.utc)


class _NullStore:
    def get_current_end_date(self, holder_id: str) -> Optional[datetime]:
        return None

    def get_current_level(self, holder_id: str) -> Optional[str]:
        return None

    def set_level(self, holder_id, level_id, end_date, status: EntitlementStatus) -> bool:
        return True


@pytest.fixture
def ledger(monkeypatch):
    ledger = InMemoryGraceLedger()
    service = GraceService(
        ledger=ledger,
        entitlement_store=_NullStore(),
        level_catalog=StaticLevelCatalog(),
        clock=lambda: NOW,
    )
    monkeypatch.setattr(grace_routes, "get_grace_service", lambda: service)
    return ledger


def test_get_grace_holder_reports_in_grace(ledger):
    ledger.save(
        GraceLedgerEntry(
            holder_id="42",
            level_id="L1",
            original_end_date=datetime(2025, 1, 1, tzinfo=timezone.utc),
            grace_end_date=datetime(2025, 1, 29, tzinfo=timezone.utc),
        )
    )

    response = grace_routes.get_grace_holder("42")

    assert response.in_grace is True
    assert response.days_left == 19
    assert response.model_dump(by_alias=True)["graceEndDate"] == datetime(2025, 1, 29, tzinfo=timezone.utc)


def test_get_grace_holder_without_entry(ledger):
    response = grace_routes.get_grace_holder("7")

    assert response.state == GraceState.NOT_IN_GRACE
    assert response.in_grace is False
    assert response.days_left is None


def test_list_grace_holders_returns_every_entry(ledger):
    for holder_id in ("b", "a"):
        ledger.save(
            GraceLedgerEntry(
                holder_id=holder_id,
                level_id="L1",
                grace_end_date=NOW + timedelta(days=3),
            )
        )

    response = grace_routes.list_grace_holders()

    assert [item.holder_id for item in response.holders] == ["a", "b"]
    assert len(ledger.list_entries()) == 2


def test_reset_grace_holder_deletes_entry(ledger):
    ledger.save(GraceLedgerEntry(holder_id="9", level_id="L1", grace_end_date=NOW))

    response = grace_routes.reset_grace_holder("9")

    assert response.reset is True
    assert ledger.get("9") is None
    with pytest.raises(HTTPException) as exc_info:
        grace_routes.reset_grace_holder("9")
    assert exc_info.value.status_code == 404


def test_sweep_metrics_endpoint_reflects_job_metrics():
    sweeps._reset_metrics_for_testing()

    response = grace_routes.get_sweep_metrics()

    assert response.finalized == 0
    assert response.last_run_at is None


def test_grace_error_converts_to_http_exception():
    exc = HolderNotFoundError("h-1").to_http_exception()

    assert exc.status_code == 404
    assert exc.detail == {"error": "not_found", "message": "Holder h-1 not found", "holder_id": "h-1"}


def test_create_app_registers_collaborators_and_routes():
    catalog = StaticLevelCatalog([MembershipLevel(level_id="L1", period_unit=PeriodUnit.MONTH, period_count=1)])
    store = _NullStore()
    try:
        app = create_app(entitlement_store=store, level_catalog=catalog, use_database=False)

        paths = {route.path for route in app.routes}
        assert "/api/grace/holders/{holder_id}" in paths
        service = grace_services.get_grace_service()
        assert service.entitlement_store is store
        assert isinstance(service.ledger, InMemoryGraceLedger)
    finally:
        grace_services.get_grace_service.cache_clear()
        app_context.reset()


def test_app_context_requires_configuration():
    app_context.reset()

    assert app_context.has_connection_factory() is False
    with pytest.raises(RuntimeError, match="entitlement_store"):
        app_context.get_entitlement_store()
