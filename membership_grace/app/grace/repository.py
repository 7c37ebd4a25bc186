"""PostgreSQL persistence for grace ledger entries."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, List, Optional

import psycopg2
import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ...app_context import get_conn
from .models import GraceLedgerEntry, GraceState

GRACE_LEDGER_DDL = """
CREATE TABLE IF NOT EXISTS grace_ledger (
    holder_id TEXT PRIMARY KEY,
    state TEXT NOT NULL CHECK (state IN ('in_grace', 'exiting')),
    level_id TEXT,
    original_end_date TIMESTAMPTZ,
    grace_end_date TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
)
"""


def _row_to_entry(row: dict) -> GraceLedgerEntry:
    return GraceLedgerEntry(
        holder_id=row["holder_id"],
        state=GraceState(row["state"]),
        level_id=row.get("level_id"),
        original_end_date=row.get("original_end_date"),
        grace_end_date=row.get("grace_end_date"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class PostgresGraceLedger:
    """Grace ledger persisted in the ``grace_ledger`` table."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    @contextmanager
    def _cursor(self) -> Iterator[PgCursor]:
        """Yield a dict cursor, committing and closing only connections it opened itself."""

        owned = self._conn is None
        connection = get_conn() if owned else self._conn
        cursor = connection.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
        try:
            yield cursor
            if owned:
                connection.commit()
        except Exception:
            if owned:
                connection.rollback()
            raise
        finally:
            cursor.close()
            if owned:
                connection.close()

    def ensure_schema(self) -> None:
        with self._cursor() as cursor:
            cursor.execute(GRACE_LEDGER_DDL)

    def get(self, holder_id: str) -> Optional[GraceLedgerEntry]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT *
                FROM grace_ledger
                WHERE holder_id = %s
                LIMIT 1
                """,
                (holder_id,),
            )
            row = cursor.fetchone()
            return _row_to_entry(row) if row else None

    def save(self, entry: GraceLedgerEntry) -> GraceLedgerEntry:
        """Insert or replace the entry for ``entry.holder_id``."""

        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO grace_ledger (
                    holder_id,
                    state,
                    level_id,
                    original_end_date,
                    grace_end_date,
                    created_at,
                    updated_at
                )
                VALUES (%(holder_id)s, %(state)s, %(level_id)s, %(original_end_date)s,
                        %(grace_end_date)s, %(created_at)s, %(updated_at)s)
                ON CONFLICT (holder_id) DO UPDATE SET
                    state = EXCLUDED.state,
                    level_id = EXCLUDED.level_id,
                    original_end_date = EXCLUDED.original_end_date,
                    grace_end_date = EXCLUDED.grace_end_date,
                    updated_at = EXCLUDED.updated_at
                RETURNING *
                """,
                {
                    "holder_id": entry.holder_id,
                    "state": entry.state.value,
                    "level_id": entry.level_id,
                    "original_end_date": entry.original_end_date,
                    "grace_end_date": entry.grace_end_date,
                    "created_at": entry.created_at,
                    "updated_at": entry.updated_at,
                },
            )
            row = cursor.fetchone()
            if not row:
                raise RuntimeError("Failed to persist grace ledger entry")
            return _row_to_entry(row)

    def delete(self, holder_id: str) -> bool:
        with self._cursor() as cursor:
            cursor.execute(
                "DELETE FROM grace_ledger WHERE holder_id = %s",
                (holder_id,),
            )
            return cursor.rowcount > 0

    def list_entries(self, state: Optional[GraceState] = None) -> List[GraceLedgerEntry]:
        with self._cursor() as cursor:
            if state is None:
                cursor.execute("SELECT * FROM grace_ledger ORDER BY holder_id")
            else:
                cursor.execute(
                    "SELECT * FROM grace_ledger WHERE state = %s ORDER BY holder_id",
                    (state.value,),
                )
            return [_row_to_entry(row) for row in cursor.fetchall()]


__all__ = ["GRACE_LEDGER_DDL", "PostgresGraceLedger"]
