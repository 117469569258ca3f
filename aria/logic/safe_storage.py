"""Non-throwing wrapper over a local key/value backend.

Every read and write goes through here so that a malformed value heals
itself on the next read instead of crashing a consumer. Storage failures
(disabled storage, quota exceeded, corrupt entries) are soft everywhere:
callers always get a usable default back and must not assume a write
persisted.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from aria.logic.storage_backends import KeyValueBackend, StorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class StorageResult(Generic[T]):
    """Outcome of a single backend call."""

    ok: bool
    value: Optional[T] = None
    error: Optional[StorageError] = None


class SafeStorage:
    def __init__(self, backend: KeyValueBackend, name: str = "local") -> None:
        self.backend = backend
        self.name = name

    def _call(self, op: str, key: str, fn: Callable[[], T]) -> StorageResult[T]:
        try:
            return StorageResult(ok=True, value=fn())
        except StorageError as e:
            logger.warning("storage_%s_failed store=%s key=%s error=%s", op, self.name, key, e)
            return StorageResult(ok=False, error=e)

    def read_raw(self, key: str) -> Optional[str]:
        """Return the stored string as-is, or None when absent/unreadable."""
        return self._call("read", key, lambda: self.backend.get_item(key)).value

    def safe_get_json(self, key: str, fallback: T) -> T:
        raw = self.read_raw(key)
        if raw is None:
            return fallback
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning("storage_corrupt_entry_removed store=%s key=%s", self.name, key)
            self.safe_remove_item(key)
            return fallback

    def safe_set_json(self, key: str, value: Any) -> bool:
        try:
            encoded = json.dumps(value)
        except (TypeError, ValueError):
            logger.error("storage_serialize_failed store=%s key=%s", self.name, key, exc_info=True)
            return False
        return self._call("write", key, lambda: self.backend.set_item(key, encoded)).ok

    def safe_get_string(self, key: str, fallback: Optional[str] = None) -> Optional[str]:
        raw = self.read_raw(key)
        return fallback if raw is None else raw

    def safe_set_string(self, key: str, value: str) -> bool:
        return self._call("write", key, lambda: self.backend.set_item(key, str(value))).ok

    def safe_remove_item(self, key: str) -> bool:
        return self._call("remove", key, lambda: self.backend.remove_item(key)).ok

    def safe_keys(self) -> list[str]:
        return self._call("keys", "*", self.backend.keys).value or []

    def safe_clear(self) -> bool:
        return self._call("clear", "*", self.backend.clear).ok


__all__ = ["SafeStorage", "StorageResult"]
