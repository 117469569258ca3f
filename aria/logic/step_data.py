"""Step data synchronization: local cache first, remote store authoritative.

One `StepDataSynchronizer` owns the lifecycle of one wizard step's data for
one assessment:

- load: adopt the cached value instantly, then reconcile with the remote
  value; when the remote has nothing, migrate the first legacy local key
  that holds data and push it to the remote once.
- edit: every `set_value` writes the cache synchronously and restarts a
  debounce timer; only the latest value inside an idle window is sent.
  Fired writes reach the remote one at a time, in firing order.
- save: remote failures surface as `status == "error"` and never raise;
  the cache keeps the edit so nothing is lost while offline.

Save status moves idle -> loading -> saved -> idle, or loading -> error.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Generic, Iterable, List, Optional, TypeVar, Union

from aria.logic.remote_store import RemoteStepStore
from aria.logic.safe_storage import SafeStorage
from aria.logic.storage_keys import step_cache_key

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_DEBOUNCE_MS = 1000
DEFAULT_SAVED_RESET_MS = 2000


class SaveStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SAVED = "saved"
    ERROR = "error"


StatusListener = Callable[[SaveStatus], None]
Notify = Callable[[str, str], None]


def _has_content(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (dict, list, str)):
        return len(value) > 0
    return True


class StepDataSynchronizer(Generic[T]):
    def __init__(
        self,
        step_key: str,
        default: T,
        *,
        storage: SafeStorage,
        remote: RemoteStepStore,
        assessment_id: Optional[str],
        legacy_keys: Iterable[str] = (),
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        saved_reset_ms: int = DEFAULT_SAVED_RESET_MS,
        notify: Optional[Notify] = None,
    ) -> None:
        self.step_key = step_key
        self.default = default
        self.storage = storage
        self.remote = remote
        self.assessment_id = assessment_id
        self.legacy_keys = tuple(legacy_keys)
        self.debounce_ms = debounce_ms
        self.saved_reset_ms = saved_reset_ms
        self.notify = notify

        self._value: T = copy.deepcopy(default)
        self._status = SaveStatus.IDLE
        self.last_saved_at: Optional[datetime] = None
        self._listeners: List[StatusListener] = []
        self._debounce_task: Optional[asyncio.Task] = None
        self._write_task: Optional[asyncio.Task] = None
        self._reset_task: Optional[asyncio.Task] = None
        # One remote write at a time, in the order they were fired
        self._write_lock = asyncio.Lock()
        self._closed = False

    # -- state ---------------------------------------------------------

    @property
    def value(self) -> T:
        return self._value

    @property
    def status(self) -> SaveStatus:
        return self._status

    @property
    def cache_key(self) -> Optional[str]:
        if not self.assessment_id:
            return None
        return step_cache_key(self.assessment_id, self.step_key)

    @property
    def has_pending_write(self) -> bool:
        return self._debounce_task is not None and not self._debounce_task.done()

    def on_status(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def _set_status(self, status: SaveStatus) -> None:
        if status is self._status:
            return
        self._status = status
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:
                logger.error("step_data.status_listener_failed step=%s", self.step_key, exc_info=True)

    def _write_cache(self, value: Any) -> None:
        key = self.cache_key
        if key is not None:
            self.storage.safe_set_json(key, value)

    # -- load ----------------------------------------------------------

    def _migrate_legacy(self) -> Optional[Any]:
        for legacy_key in self.legacy_keys:
            data = self.storage.safe_get_json(legacy_key, None)
            if data is not None:
                logger.info("step_data.legacy_found step=%s key=%s", self.step_key, legacy_key)
                return data
        return None

    async def load(self) -> None:
        """Load the step: cache first, then the remote, then legacy keys."""
        key = self.cache_key
        if key is None:
            logger.warning("step_data.load_skipped step=%s reason=no_assessment_id", self.step_key)
            return

        self._set_status(SaveStatus.LOADING)
        cached = self.storage.safe_get_json(key, None)
        if cached is not None:
            self._value = cached
            logger.info("step_data.cache_hit step=%s", self.step_key)

        try:
            remote_value = await self.remote.get_step_data(self.assessment_id, self.step_key)
            if _has_content(remote_value):
                self._value = remote_value
                self.storage.safe_set_json(key, remote_value)
                logger.info("step_data.remote_loaded step=%s", self.step_key)
            else:
                migrated = self._migrate_legacy()
                if migrated is not None:
                    self._value = migrated
                    await self.remote.save_step(self.assessment_id, self.step_key, migrated)
                    self.storage.safe_set_json(key, migrated)
                    for legacy_key in self.legacy_keys:
                        self.storage.safe_remove_item(legacy_key)
                    logger.info("step_data.legacy_migrated step=%s", self.step_key)
            self._set_status(SaveStatus.IDLE)
        except Exception:
            logger.error("step_data.load_failed step=%s", self.step_key, exc_info=True)
            self._set_status(SaveStatus.ERROR)

    # -- edit ----------------------------------------------------------

    def set_value(self, value: Union[T, Callable[[T], T]]) -> None:
        """Replace the value (or apply `fn(previous)`) and schedule a save.

        Must be called from within the running event loop. The cache is
        written before returning.
        """
        new_value = value(self._value) if callable(value) else value
        self._value = new_value

        if self.cache_key is None:
            logger.warning("step_data.write_dropped step=%s reason=no_assessment_id", self.step_key)
            return
        self._write_cache(new_value)
        self._schedule_save()

    def _schedule_save(self) -> None:
        if self._closed:
            return
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = asyncio.get_running_loop().create_task(self._debounced_save())

    async def _debounced_save(self) -> None:
        await asyncio.sleep(self.debounce_ms / 1000)
        # The write outlives cancellation of this timer
        self._write_task = asyncio.get_running_loop().create_task(self._save(self._value))
        await asyncio.shield(self._write_task)

    # -- save ----------------------------------------------------------

    async def _save(self, data: T) -> bool:
        assessment_id = self.assessment_id
        if not assessment_id:
            logger.warning("step_data.save_skipped step=%s reason=no_assessment_id", self.step_key)
            return False

        async with self._write_lock:
            self._cancel_reset()
            self._set_status(SaveStatus.LOADING)
            try:
                await self.remote.save_step(assessment_id, self.step_key, data)
            except Exception as e:
                logger.error("step_data.save_failed step=%s error=%s", self.step_key, e)
                self._set_status(SaveStatus.ERROR)
                if self.notify is not None:
                    self.notify("error", f"Could not save {self.step_key}; your changes are kept locally.")
                return False

            self.last_saved_at = datetime.now(timezone.utc)
            self._set_status(SaveStatus.SAVED)
            logger.info("step_data.saved step=%s", self.step_key)
            if not self._closed:
                self._reset_task = asyncio.get_running_loop().create_task(self._reset_to_idle())
            return True

    async def _reset_to_idle(self) -> None:
        await asyncio.sleep(self.saved_reset_ms / 1000)
        if self._status is SaveStatus.SAVED:
            self._set_status(SaveStatus.IDLE)

    def _cancel_reset(self) -> None:
        if self._reset_task is not None and not self._reset_task.done():
            self._reset_task.cancel()
        self._reset_task = None

    async def save_now(self) -> bool:
        """Cancel any pending debounce and write the current value immediately."""
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = None
        return await self._save(self._value)

    async def rebind(self, assessment_id: Optional[str]) -> None:
        """Switch to another assessment and load its value.

        A pending edit is flushed to the previous assessment first; the value
        then restarts from the default so nothing carries across assessments.
        """
        if assessment_id == self.assessment_id:
            return
        if self.has_pending_write:
            await self.save_now()
        await self.drain()
        self._cancel_reset()
        logger.info("step_data.rebound step=%s from=%s to=%s", self.step_key, self.assessment_id, assessment_id)
        self.assessment_id = assessment_id
        self._value = copy.deepcopy(self.default)
        self._set_status(SaveStatus.IDLE)
        await self.load()

    async def drain(self) -> None:
        """Wait until any scheduled or in-flight write has finished."""
        while True:
            pending = [
                t for t in (self._debounce_task, self._write_task) if t is not None and not t.done()
            ]
            if not pending:
                return
            await asyncio.wait(pending)

    async def close(self) -> None:
        """Stop timers; unsaved edits stay in the cache for the next load."""
        self._closed = True
        timers = [t for t in (self._debounce_task, self._reset_task) if t is not None and not t.done()]
        for task in timers:
            task.cancel()
        if timers:
            await asyncio.gather(*timers, return_exceptions=True)
        if self._write_task is not None and not self._write_task.done():
            await asyncio.wait([self._write_task])


__all__ = [
    "SaveStatus",
    "StepDataSynchronizer",
    "DEFAULT_DEBOUNCE_MS",
    "DEFAULT_SAVED_RESET_MS",
]
