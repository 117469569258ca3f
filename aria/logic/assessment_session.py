"""Assessment session: the single active assessment for this navigation session.

The session resolves (or creates) the active assessment id once, keeps the
evaluation type normalized and persisted, and hands out step synchronizers
bound to that id. Switching assessments rebinds every open synchronizer. When no id can be resolved or created the session stays
loading; creating an assessment requires the remote store.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional

from aria.logic.assessment_id import (
    WIZARD_PATH_PREFIX,
    Navigator,
    forget_assessment_id,
    is_valid_assessment_id,
    remember_assessment_id,
    resolve_assessment_id,
    with_aid,
)
from aria.logic.evaluation_type import EvaluationType, INITIAL_ASSESSMENT, normalize_evaluation_type
from aria.logic.remote_store import RemoteStepStore
from aria.logic.safe_storage import SafeStorage
from aria.logic.step_data import DEFAULT_DEBOUNCE_MS, DEFAULT_SAVED_RESET_MS, Notify, StepDataSynchronizer
from aria.logic.storage_keys import EVALUATION_TYPE_KEY
from aria.models.steps import legacy_keys_for

logger = logging.getLogger(__name__)


class AssessmentSession:
    def __init__(
        self,
        *,
        storage: SafeStorage,
        remote: RemoteStepStore,
        navigator: Navigator,
        owner_id: Optional[str] = None,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        saved_reset_ms: int = DEFAULT_SAVED_RESET_MS,
        notify: Optional[Notify] = None,
    ) -> None:
        self.storage = storage
        self.remote = remote
        self.navigator = navigator
        self.owner_id = owner_id
        self.debounce_ms = debounce_ms
        self.saved_reset_ms = saved_reset_ms
        self.notify = notify

        self.assessment_id: Optional[str] = None
        self.evaluation_type: EvaluationType = INITIAL_ASSESSMENT
        self.is_loading = True
        self._synchronizers: List[StepDataSynchronizer] = []

    def _rewrite_url(self, assessment_id: str) -> None:
        if self.navigator.pathname.startswith(WIZARD_PATH_PREFIX):
            self.navigator.replace(with_aid(self.navigator.url, assessment_id))

    async def _create(self) -> str:
        record = await self.remote.create_assessment(self.evaluation_type, self.owner_id)
        new_id = str(record["id"])
        remember_assessment_id(self.storage, new_id)
        logger.info("session.assessment_created id=%s type=%s", new_id, self.evaluation_type)
        return new_id

    async def initialize(self) -> Optional[str]:
        """Resolve the active assessment id; create one when none resolves."""
        self.is_loading = True
        stored_type = self.storage.safe_get_string(EVALUATION_TYPE_KEY)
        self.evaluation_type = normalize_evaluation_type(stored_type)
        self.storage.safe_set_string(EVALUATION_TYPE_KEY, self.evaluation_type)

        try:
            resolved = resolve_assessment_id(self.navigator, self.storage)
            final_id = resolved.id
            if not is_valid_assessment_id(final_id):
                if final_id:
                    logger.warning("session.invalid_id id=%r source=%s", final_id, resolved.source)
                final_id = await self._create()
                self._rewrite_url(final_id)
            elif resolved.source == "storage":
                self._rewrite_url(final_id)
        except Exception:
            logger.error("session.initialize_failed", exc_info=True)
            return None

        self.assessment_id = final_id
        self.is_loading = False
        logger.info("session.initialized id=%s type=%s", final_id, self.evaluation_type)
        return final_id

    async def load_assessment(self, assessment_id: str) -> None:
        """Make `assessment_id` active; open synchronizers follow it."""
        logger.info("session.load_assessment id=%s", assessment_id)
        self.assessment_id = assessment_id
        self.is_loading = False
        remember_assessment_id(self.storage, assessment_id)
        self._rewrite_url(assessment_id)
        for sync in self._synchronizers:
            await sync.rebind(assessment_id)

    async def start_new(self, evaluation_type: Optional[str] = None) -> str:
        """Forget the current assessment and create a fresh one."""
        if evaluation_type is not None:
            self.set_evaluation_type(evaluation_type)
        forget_assessment_id(self.storage)
        new_id = await self._create()
        await self.load_assessment(new_id)
        return new_id

    async def save_patch(self, step_key: str, data: Any) -> None:
        """Write one step straight to the remote store; errors propagate."""
        if not self.assessment_id:
            logger.warning("session.save_patch_skipped step=%s reason=no_assessment_id", step_key)
            return
        await self.remote.save_step(self.assessment_id, step_key, data)
        logger.info("session.patch_saved step=%s", step_key)

    def set_evaluation_type(self, value: str) -> EvaluationType:
        self.evaluation_type = normalize_evaluation_type(value)
        self.storage.safe_set_string(EVALUATION_TYPE_KEY, self.evaluation_type)
        logger.info("session.evaluation_type_set value=%s", self.evaluation_type)
        return self.evaluation_type

    def step_data(
        self,
        step_key: str,
        default: Any,
        *,
        legacy_keys: Optional[Iterable[str]] = None,
        debounce_ms: Optional[int] = None,
    ) -> StepDataSynchronizer:
        sync = StepDataSynchronizer(
            step_key,
            default,
            storage=self.storage,
            remote=self.remote,
            assessment_id=self.assessment_id,
            legacy_keys=legacy_keys_for(step_key) if legacy_keys is None else legacy_keys,
            debounce_ms=self.debounce_ms if debounce_ms is None else debounce_ms,
            saved_reset_ms=self.saved_reset_ms,
            notify=self.notify,
        )
        self._synchronizers.append(sync)
        return sync

    async def save_all(self) -> bool:
        """Flush every open synchronizer; True when all writes succeeded."""
        results = [await sync.save_now() for sync in self._synchronizers if sync.has_pending_write]
        return all(results)

    async def close(self) -> None:
        for sync in self._synchronizers:
            await sync.close()
        self._synchronizers.clear()


__all__ = ["AssessmentSession"]
