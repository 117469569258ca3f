"""SQLAlchemy engine helpers for the assessment service.

The service targets PostgreSQL in production and SQLite for local
development and tests. No declarative models live here; repositories issue
SQL through `sqlalchemy.text`.
"""

from __future__ import annotations

import logging
import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


def _db_url() -> str:
    return (
        os.getenv("TEST_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or "sqlite+pysqlite:///:memory:"
    )


_ENGINE: Engine | None = None
_ENGINE_URL: str | None = None


def get_engine(url: str | None = None) -> Engine:
    """Return a process-wide Engine for the given URL.

    In-memory SQLite gets a StaticPool so every session shares the one
    connection that holds the schema.
    """
    global _ENGINE, _ENGINE_URL
    resolved_url = url or _db_url()

    if _ENGINE is None or _ENGINE_URL != resolved_url:
        kwargs: dict = {"future": True, "pool_pre_ping": True}
        if resolved_url.startswith("sqlite") and ":memory:" in resolved_url:
            kwargs.update({
                "poolclass": StaticPool,
                "connect_args": {"check_same_thread": False},
            })
        elif resolved_url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
        _ENGINE = create_engine(resolved_url, **kwargs)
        _ENGINE_URL = resolved_url
        logger.info("db_engine_created dialect=%s", _ENGINE.dialect.name)

    return _ENGINE


def dispose_engine() -> None:
    global _ENGINE, _ENGINE_URL
    if _ENGINE is not None:
        _ENGINE.dispose()
    _ENGINE = None
    _ENGINE_URL = None
