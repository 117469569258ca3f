"""Functional test bootstrap.

Points the service at a file-backed SQLite database before anything
imports `aria.main`, applies the SQL migrations once per session with a
throwaway journal, and provides client-side fakes shared by the async
tests.
"""

from __future__ import annotations

import asyncio
import os
import pathlib
from typing import Any, Dict, List, Optional, Tuple

import pytest

_ROOT = pathlib.Path(__file__).resolve().parents[2]
_TMP = _ROOT / "tmp"
_TMP.mkdir(parents=True, exist_ok=True)
_DB_FILE = _TMP / "functional_tests.db"
_JOURNAL = _TMP / "functional_migrations_journal.json"
for _stale in (_DB_FILE, _JOURNAL):
    if _stale.exists():
        _stale.unlink()

os.environ["TEST_DATABASE_URL"] = f"sqlite:///{_DB_FILE}"
os.environ["AUTO_APPLY_MIGRATIONS"] = "0"
os.environ["ARIA_ENABLE_TEST_ROUTES"] = "1"

from aria.logic.remote_store import MemoryStepStore, RemoteStoreError  # noqa: E402
from aria.logic.safe_storage import SafeStorage  # noqa: E402
from aria.logic.storage_backends import MemoryBackend  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def functional_sqlite_bootstrap():
    from aria.db.base import get_engine
    from aria.db.migrations_runner import apply_migrations

    apply_migrations(get_engine(os.environ["TEST_DATABASE_URL"]), journal_path=_JOURNAL)
    yield


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class RecordingStepStore(MemoryStepStore):
    """MemoryStepStore that records calls and can be told to fail."""

    def __init__(self, demo: bool = False) -> None:
        super().__init__(demo=demo)
        self.saves: List[Tuple[str, str, Any]] = []
        self.reads: List[Tuple[str, str]] = []
        self.created: List[Dict[str, Any]] = []
        self.fail_saves = False
        self.fail_reads = False
        self.fail_create = False
        # Seconds to stall each successive save_step call before it lands
        self.save_delays: List[float] = []

    async def get_step_data(self, assessment_id: str, step_key: str) -> Optional[Any]:
        self.reads.append((assessment_id, step_key))
        if self.fail_reads:
            raise RemoteStoreError("read unavailable", 503)
        return await super().get_step_data(assessment_id, step_key)

    async def save_step(self, assessment_id: str, step_key: str, data: Any) -> None:
        self.saves.append((assessment_id, step_key, data))
        if self.fail_saves:
            raise RemoteStoreError("write unavailable", 503)
        if self.save_delays:
            await asyncio.sleep(self.save_delays.pop(0))
        await super().save_step(assessment_id, step_key, data)

    async def create_assessment(self, evaluation_type: str, owner_id: Optional[str] = None) -> Dict[str, Any]:
        if self.fail_create:
            raise RemoteStoreError("create unavailable", 503)
        record = await super().create_assessment(evaluation_type, owner_id)
        self.created.append(record)
        return record


@pytest.fixture
def storage() -> SafeStorage:
    return SafeStorage(MemoryBackend())


@pytest.fixture
def session_storage() -> SafeStorage:
    return SafeStorage(MemoryBackend(), name="session")


@pytest.fixture
def remote() -> RecordingStepStore:
    return RecordingStepStore()


@pytest.fixture
def client():
    from fastapi.testclient import TestClient

    from aria.main import create_app

    with TestClient(create_app()) as c:
        c.post("/__test__/reset-state")
        yield c
