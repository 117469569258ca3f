"""Remote Step Store: the authoritative home of assessment step data.

`RemoteStepStore` is the interface the synchronizer and the session depend
on. `HttpStepStore` talks to the assessment service (`aria.main`);
`MemoryStepStore` keeps records in process memory for demo sessions and
tests. Upserts overwrite the whole step value and are safe to repeat.
"""

from __future__ import annotations

import copy
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

import httpx

from aria.logic.evaluation_type import normalize_evaluation_type

logger = logging.getLogger(__name__)


class RemoteStoreError(Exception):
    """A remote store call failed (transport error or non-2xx response)."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RemoteStepStore(ABC):
    @abstractmethod
    async def get_step_data(self, assessment_id: str, step_key: str) -> Optional[Any]:
        """Return the stored value for the step, or None when nothing is stored."""

    @abstractmethod
    async def save_step(self, assessment_id: str, step_key: str, data: Any) -> None:
        """Overwrite the stored value for the step."""

    @abstractmethod
    async def create_assessment(self, evaluation_type: str, owner_id: Optional[str] = None) -> Dict[str, Any]:
        """Allocate a new assessment record; the result carries its `id`."""

    async def aclose(self) -> None:
        return None


class MemoryStepStore(RemoteStepStore):
    """In-process store; `demo=True` issues `demo-` prefixed identifiers."""

    def __init__(self, demo: bool = False) -> None:
        self.demo = demo
        self.assessments: Dict[str, Dict[str, Any]] = {}
        self.steps: Dict[Tuple[str, str], Any] = {}

    async def get_step_data(self, assessment_id: str, step_key: str) -> Optional[Any]:
        value = self.steps.get((assessment_id, step_key))
        return copy.deepcopy(value)

    async def save_step(self, assessment_id: str, step_key: str, data: Any) -> None:
        self.steps[(assessment_id, step_key)] = copy.deepcopy(data)
        record = self.assessments.get(assessment_id)
        if record is not None and record.get("status") == "draft":
            record["status"] = "in_progress"

    async def create_assessment(self, evaluation_type: str, owner_id: Optional[str] = None) -> Dict[str, Any]:
        new_id = f"demo-{uuid.uuid4()}" if self.demo else str(uuid.uuid4())
        record = {
            "id": new_id,
            "owner_id": owner_id,
            "evaluation_type": normalize_evaluation_type(evaluation_type),
            "status": "draft",
        }
        self.assessments[new_id] = record
        return dict(record)


class HttpStepStore(RemoteStepStore):
    """Async HTTP client for the assessment service."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_s: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout_s)

    def _step_path(self, assessment_id: str, step_key: str) -> str:
        return f"/assessments/{assessment_id}/steps/{step_key}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error("remote_store_transport_error method=%s path=%s error=%s", method, path, e)
            raise RemoteStoreError(f"{method} {path} failed: {e}") from e
        return resp

    @staticmethod
    def _raise_for_status(resp: httpx.Response, what: str) -> None:
        if resp.status_code >= 400:
            detail = resp.text[:200]
            logger.error("remote_store_error what=%s status=%s detail=%s", what, resp.status_code, detail)
            raise RemoteStoreError(f"{what} returned {resp.status_code}: {detail}", resp.status_code)

    async def get_step_data(self, assessment_id: str, step_key: str) -> Optional[Any]:
        resp = await self._request("GET", self._step_path(assessment_id, step_key))
        if resp.status_code == 404:
            return None
        self._raise_for_status(resp, "get_step_data")
        return (resp.json() or {}).get("data")

    async def save_step(self, assessment_id: str, step_key: str, data: Any) -> None:
        resp = await self._request("PUT", self._step_path(assessment_id, step_key), json={"data": data})
        self._raise_for_status(resp, "save_step")

    async def create_assessment(self, evaluation_type: str, owner_id: Optional[str] = None) -> Dict[str, Any]:
        payload = {"evaluation_type": evaluation_type, "owner_id": owner_id}
        resp = await self._request("POST", "/assessments", json=payload)
        self._raise_for_status(resp, "create_assessment")
        body = resp.json() or {}
        if not body.get("id"):
            raise RemoteStoreError("create_assessment response carried no id", resp.status_code)
        return body

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = [
    "RemoteStoreError",
    "RemoteStepStore",
    "MemoryStepStore",
    "HttpStepStore",
]
