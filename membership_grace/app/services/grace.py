"""Application wiring for the grace period service."""
from __future__ import annotations

import logging
from functools import lru_cache

from ... import app_context
from ...config import load_grace_config
from ..grace import (
    GraceAuditEvent,
    GraceEventLogger,
    GraceLedger,
    GraceService,
    InMemoryGraceLedger,
    WarningSchedule,
)
from ..grace.repository import PostgresGraceLedger


logger = logging.getLogger("grace")


class LoggingGraceEventLogger(GraceEventLogger):
    """Forwards grace audit events to the application logger."""

    def log(self, event: GraceAuditEvent) -> None:
        logger.info(
            "Grace event %s holder=%s level=%s metadata=%s",
            event.event_type.value,
            event.holder_id,
            event.level_id,
            event.metadata,
        )


def _build_ledger() -> GraceLedger:
    if app_context.has_connection_factory():
        return PostgresGraceLedger()
    logger.warning("No database connection configured; grace ledger is held in memory")
    return InMemoryGraceLedger()


@lru_cache(maxsize=1)
def get_grace_service() -> GraceService:
    config = load_grace_config()
    service = GraceService(
        ledger=_build_ledger(),
        entitlement_store=app_context.get_entitlement_store(),
        level_catalog=app_context.get_level_catalog(),
        event_logger=LoggingGraceEventLogger(),
        warning_schedule=WarningSchedule(config.warning_templates),
    )
    return service


__all__ = ["get_grace_service", "LoggingGraceEventLogger"]
