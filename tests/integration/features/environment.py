"""Behave environment hooks for assessment service integration tests.

By default the service runs in-process behind FastAPI's TestClient on a
throwaway SQLite file. Set TEST_BASE_URL to drive a live deployment
instead; its test-support routes must be enabled
(ARIA_ENABLE_TEST_ROUTES=1).
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Any

import httpx
from dotenv import load_dotenv


def before_all(context: Any) -> None:  # pragma: no cover - executed by Behave
    load_dotenv(override=False)
    load_dotenv(dotenv_path=os.path.join("tests", "integration", ".env.test"), override=False)
    context.api_prefix = os.getenv("TEST_API_PREFIX", "/api/v1")

    base_url = os.getenv("TEST_BASE_URL", "").strip().rstrip("/")
    if base_url:
        context.app = None
        context.base_url = base_url
        context.client = httpx.Client(base_url=base_url, timeout=10.0)
        return

    context.tmpdir = tempfile.TemporaryDirectory(prefix="aria-behave-")
    db_file = Path(context.tmpdir.name) / "integration.db"
    os.environ["TEST_DATABASE_URL"] = f"sqlite:///{db_file}"
    os.environ["ARIA_ENABLE_TEST_ROUTES"] = "1"
    os.environ.setdefault("AUTO_APPLY_MIGRATIONS", "0")

    from fastapi.testclient import TestClient

    from aria.main import create_app

    context.app = create_app()
    context.base_url = "http://testserver"
    context.client = TestClient(context.app)
    # Entering runs startup hooks, which create the schema on the empty database
    context.client.__enter__()


def after_all(context: Any) -> None:  # pragma: no cover - executed by Behave
    client = getattr(context, "client", None)
    if client is None:
        return
    if getattr(context, "app", None) is not None:
        client.__exit__(None, None, None)
        from aria.db.base import dispose_engine

        dispose_engine()
        context.tmpdir.cleanup()
    else:
        client.close()


def before_scenario(context: Any, scenario: Any) -> None:  # pragma: no cover - executed by Behave
    context.vars = {}
    context.last_response = None
