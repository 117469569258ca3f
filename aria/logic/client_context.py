"""Client-side wiring for one wizard navigation session.

`ClientContext` owns the local storage, the session-scoped storage, the
remote step store and the navigator, and ties their lifetimes together:

    async with ClientContext.from_config(load_config(), "/assessment/goals") as ctx:
        goals = ctx.session.step_data("goals", {"goals": []})
        await goals.load()

Entering runs the one-time legacy migration sweep and initializes the
assessment session. Leaving flushes nothing: pending debounced writes are
cancelled and in-flight writes are awaited, then the HTTP client closes.
Call `session.save_all()` first to flush.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from aria.config import AppConfig
from aria.logic.assessment_id import Navigator
from aria.logic.assessment_session import AssessmentSession
from aria.logic.remote_store import HttpStepStore, RemoteStepStore
from aria.logic.safe_storage import SafeStorage
from aria.logic.step_data import DEFAULT_DEBOUNCE_MS, DEFAULT_SAVED_RESET_MS, Notify
from aria.logic.storage_backends import JsonFileBackend, MemoryBackend
from aria.logic.storage_migration import MigrationReport, run_storage_migration

logger = logging.getLogger(__name__)


class ClientContext:
    def __init__(
        self,
        *,
        storage: SafeStorage,
        remote: RemoteStepStore,
        navigator: Navigator,
        session_storage: Optional[SafeStorage] = None,
        owner_id: Optional[str] = None,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        saved_reset_ms: int = DEFAULT_SAVED_RESET_MS,
        notify: Optional[Notify] = None,
    ) -> None:
        self.storage = storage
        self.session_storage = session_storage or SafeStorage(MemoryBackend(), name="session")
        self.remote = remote
        self.navigator = navigator
        self.migration_report: Optional[MigrationReport] = None
        self.session = AssessmentSession(
            storage=storage,
            remote=remote,
            navigator=navigator,
            owner_id=owner_id,
            debounce_ms=debounce_ms,
            saved_reset_ms=saved_reset_ms,
            notify=notify,
        )

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        url: str = "/",
        *,
        owner_id: Optional[str] = None,
        notify: Optional[Notify] = None,
    ) -> "ClientContext":
        path = Path(config.storage.path)
        path.parent.mkdir(parents=True, exist_ok=True)
        return cls(
            storage=SafeStorage(JsonFileBackend(path)),
            remote=HttpStepStore(config.sync.remote_base_url, timeout_s=config.sync.request_timeout_s),
            navigator=Navigator(url),
            owner_id=owner_id,
            debounce_ms=config.sync.debounce_ms,
            saved_reset_ms=config.sync.saved_reset_ms,
            notify=notify,
        )

    @property
    def assessment_id(self) -> Optional[str]:
        return self.session.assessment_id

    async def open(self) -> Optional[str]:
        """Run the migration sweep, then resolve the active assessment."""
        self.migration_report = run_storage_migration(self.storage, self.session_storage)
        assessment_id = await self.session.initialize()
        logger.info("client_context.opened id=%s url=%s", assessment_id, self.navigator.url)
        return assessment_id

    async def aclose(self) -> None:
        try:
            await self.session.close()
        finally:
            await self.remote.aclose()

    async def __aenter__(self) -> "ClientContext":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[no-untyped-def]
        await self.aclose()


__all__ = ["ClientContext"]
