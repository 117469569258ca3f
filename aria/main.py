from __future__ import annotations

import logging
import os
from typing import Callable

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import inspect

from aria.db.base import get_engine
from aria.db.migrations_runner import apply_migrations
from aria.http.problem import (
    handle_http_exception,
    handle_request_validation_error,
    handle_unexpected_error,
)
from aria.http.request_id import RequestIdMiddleware
from aria.logging_setup import configure_logging
from aria.logic.repository_assessments import db_ping
from aria.routes import api_router

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in _TRUTHY


def _health_check() -> Callable[[], dict]:
    def check() -> dict:
        ok = db_ping()
        return {"status": "ok" if ok else "degraded", "db": ok}

    return check


def _schema_ready() -> bool:
    try:
        return inspect(get_engine()).has_table("assessment")
    except Exception:
        logger.error("schema_readiness_check_failed", exc_info=True)
        return False


def create_app() -> FastAPI:
    # Configure global logging before app instantiation so all modules emit
    configure_logging()
    app = FastAPI(title="ARIA Assessment Service")
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["If-Match", "Content-Type", "X-Request-Id"],
        expose_headers=["ETag", "X-Request-Id"],
    )

    @app.on_event("startup")
    def _apply_migrations() -> None:
        engine = get_engine()
        if not _schema_ready():
            logger.info("assessment schema missing; applying migrations")
            apply_migrations(engine, force=True)
            return
        if not _env_flag("AUTO_APPLY_MIGRATIONS"):
            logger.info("AUTO_APPLY_MIGRATIONS disabled; skipping migrations at startup")
            return
        apply_migrations(engine)

    app.include_router(api_router, prefix="/api/v1")
    if _env_flag("ARIA_ENABLE_TEST_ROUTES"):
        from aria.routes.test_support import router as test_support_router

        app.include_router(test_support_router)

    health_check = _health_check()

    @app.get("/health")
    def health():
        return health_check()

    return app

