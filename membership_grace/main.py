"""FastAPI application exposing the grace period operator surface."""
from __future__ import annotations

import logging
from typing import Any, Callable, Optional

import psycopg2
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from . import app_context
from .app.grace import GraceError
from .app.grace.service import EntitlementStore, LevelCatalog
from .app.routes.grace import router as grace_router
from .app.services.grace import get_grace_service
from .config import load_grace_config

logger = logging.getLogger("grace")


def _postgres_connection_factory() -> Callable[[], Any]:
    config = load_grace_config()
    params = config.db_params()

    def connect() -> Any:
        return psycopg2.connect(**params)

    return connect


def create_app(
    *,
    entitlement_store: EntitlementStore,
    level_catalog: LevelCatalog,
    get_conn: Optional[Callable[[], Any]] = None,
    use_database: bool = True,
) -> FastAPI:
    """Build the application around the host system's store and level catalog."""

    load_dotenv()
    if get_conn is None and use_database:
        get_conn = _postgres_connection_factory()
    app_context.configure(
        entitlement_store=entitlement_store,
        level_catalog=level_catalog,
        get_conn=get_conn,
    )
    get_grace_service.cache_clear()

    app = FastAPI(title="Membership grace periods")

    @app.exception_handler(GraceError)
    async def _handle_grace_error(request: Request, exc: GraceError) -> JSONResponse:
        logger.warning("Grace error on %s: %s", request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.payload)

    app.include_router(grace_router)
    return app


__all__ = ["create_app"]
