from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest
from pydantic import ValidationError

from membership_grace.app.grace import GraceLedgerEntry, GraceState, HolderLockRegistry, InMemoryGraceLedger
from membership_grace.app.grace import repository as grace_repository
from membership_grace.app.grace.repository import PostgresGraceLedger

D0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _entry(holder_id: str = "H") -> GraceLedgerEntry:
    return GraceLedgerEntry(
        holder_id=holder_id,
        level_id="L1",
        original_end_date=D0,
        grace_end_date=D0 + timedelta(days=28),
        created_at=D0,
        updated_at=D0,
    )


def test_entry_rejects_in_grace_without_grace_fields():
    with pytest.raises(ValidationError):
        GraceLedgerEntry(holder_id="H", state=GraceState.IN_GRACE, level_id="L1")


def test_entry_rejects_exiting_with_grace_fields():
    with pytest.raises(ValidationError):
        GraceLedgerEntry(
            holder_id="H",
            state=GraceState.EXITING,
            level_id="L1",
            grace_end_date=D0,
        )


def test_begin_exit_drops_grace_fields_and_keeps_original():
    exiting = _entry().begin_exit(D0 + timedelta(days=29))

    assert exiting.exiting is True
    assert exiting.level_id is None
    assert exiting.grace_end_date is None
    assert exiting.original_end_date == D0


def test_is_lapsed_at_grace_end():
    entry = _entry()

    assert entry.is_lapsed(D0 + timedelta(days=28)) is True
    assert entry.is_lapsed(D0 + timedelta(days=27, hours=23)) is False


def test_in_memory_ledger_holds_one_entry_per_holder():
    ledger = InMemoryGraceLedger()
    ledger.save(_entry())
    ledger.save(_entry().begin_exit())
    ledger.save(_entry("A"))

    assert [entry.holder_id for entry in ledger.list_entries()] == ["A", "H"]
    assert [entry.holder_id for entry in ledger.list_entries(GraceState.IN_GRACE)] == ["A"]
    assert ledger.delete("H") is True
    assert ledger.delete("H") is False
    assert ledger.get("H") is None


def test_holder_lock_registry_is_reentrant_and_drops_unused_locks():
    registry = HolderLockRegistry()

    with registry.hold("H"):
        with registry.hold("H"):
            assert "H" in registry._locks

    assert "H" not in registry._locks

class FakeCursor:
    def __init__(self, connection: "FakeConnection") -> None:
        self._connection = connection
        self.rowcount = 0
        self._rows: List[Dict[str, object]] = []

    def execute(self, sql: str, params=None) -> None:
        self._connection.statements.append((" ".join(sql.split()), params))
        rows = self._connection.rows
        if sql.lstrip().startswith("INSERT"):
            row = dict(params)
            rows[row["holder_id"]] = row
            self._rows = [row]
        elif sql.lstrip().startswith("DELETE"):
            self.rowcount = 1 if rows.pop(params[0], None) else 0
        elif "WHERE holder_id" in sql:
            row = rows.get(params[0])
            self._rows = [row] if row else []
        elif "WHERE state" in sql:
            self._rows = [row for row in rows.values() if row["state"] == params[0]]
        else:
            self._rows = list(rows.values())

    def fetchone(self) -> Optional[Dict[str, object]]:
        return self._rows[0] if self._rows else None

    def fetchall(self) -> List[Dict[str, object]]:
        return sorted(self._rows, key=lambda row: row["holder_id"])

    def close(self) -> None:
        return None


class FakeConnection:
    def __init__(self) -> None:
        self.rows: Dict[str, Dict[str, object]] = {}
        self.statements: List[tuple] = []
        self.commits = 0
        self.rollbacks = 0
        self.closed = False

    def cursor(self, cursor_factory=None) -> FakeCursor:
        return FakeCursor(self)

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1

    def close(self) -> None:
        self.closed = True


def test_postgres_ledger_round_trips_entries_through_sql():
    connection = FakeConnection()
    ledger = PostgresGraceLedger(conn=connection)

    saved = ledger.save(_entry())
    ledger.save(_entry("A").begin_exit(D0))

    assert saved == _entry()
    assert ledger.get("H") == _entry()
    assert ledger.get("missing") is None
    assert [entry.holder_id for entry in ledger.list_entries(GraceState.EXITING)] == ["A"]
    assert ledger.delete("A") is True
    assert ledger.delete("A") is False
    insert_sql, params = connection.statements[0]
    assert insert_sql.startswith("INSERT INTO grace_ledger")
    assert "ON CONFLICT (holder_id) DO UPDATE" in insert_sql
    assert params["state"] == "in_grace"


def test_postgres_ledger_commits_and_closes_factory_connections(monkeypatch):
    opened: List[FakeConnection] = []

    def _get_conn() -> FakeConnection:
        connection = FakeConnection()
        opened.append(connection)
        return connection

    monkeypatch.setattr(grace_repository, "get_conn", _get_conn)
    ledger = PostgresGraceLedger()

    ledger.save(_entry())

    assert len(opened) == 1
    assert opened[0].commits == 1
    assert opened[0].rollbacks == 0
    assert opened[0].closed is True


def test_postgres_ledger_leaves_borrowed_connection_open():
    connection = FakeConnection()
    ledger = PostgresGraceLedger(conn=connection)

    ledger.save(_entry())

    assert connection.commits == 0
    assert connection.closed is False
