"""Key/value backends behind Safe Storage.

A backend is the raw persistent store (the browser's local or session
storage in the web client). Backends are allowed to raise; only
`SafeStorage` is allowed to talk to them directly, and it converts every
failure into a soft result.
"""

from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Base class for local storage failures."""


class StorageUnavailable(StorageError):
    """Storage is disabled (private browsing, policy, unreadable file)."""


class StorageQuotaExceeded(StorageError):
    """A write would exceed the backend's quota."""


class KeyValueBackend(ABC):
    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove_item(self, key: str) -> None:
        ...

    @abstractmethod
    def keys(self) -> list[str]:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...


def _size_of(items: Dict[str, str]) -> int:
    return sum(len(k) + len(v) for k, v in items.items())


class MemoryBackend(KeyValueBackend):
    """Process-memory store, used for session storage and tests.

    `quota_chars` bounds the total key+value length the way browsers bound
    localStorage; exceeding it raises `StorageQuotaExceeded`.
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None, quota_chars: Optional[int] = None) -> None:
        self._items: Dict[str, str] = dict(initial or {})
        self.quota_chars = quota_chars

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.quota_chars is not None:
            projected = dict(self._items)
            projected[key] = value
            if _size_of(projected) > self.quota_chars:
                raise StorageQuotaExceeded(f"quota of {self.quota_chars} chars exceeded writing {key!r}")
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items.keys())

    def clear(self) -> None:
        self._items.clear()


class JsonFileBackend(KeyValueBackend):
    """Persistent store kept in a single JSON object on disk.

    The whole file is rewritten atomically on every mutation (tmp file then
    os.replace), so a crash never leaves a half-written store behind.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, UnicodeDecodeError) as e:
            raise StorageUnavailable(f"cannot read {self.path}: {e}") from e
        except json.JSONDecodeError:
            # The container itself is corrupt; start over rather than lock the user out
            logger.error("storage_file_corrupt path=%s; resetting", str(self.path), exc_info=True)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write(self, items: Dict[str, str]) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(items, ensure_ascii=False, indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StorageUnavailable(f"cannot write {self.path}: {e}") from e

    def get_item(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._load()
        items[key] = value
        self._write(items)

    def remove_item(self, key: str) -> None:
        items = self._load()
        if key in items:
            del items[key]
            self._write(items)

    def keys(self) -> list[str]:
        return list(self._load().keys())

    def clear(self) -> None:
        self._write({})


class UnavailableBackend(KeyValueBackend):
    """Backend for environments where storage is disabled entirely."""

    def _fail(self) -> None:
        raise StorageUnavailable("storage is disabled")

    def get_item(self, key: str) -> Optional[str]:
        self._fail()
        return None

    def set_item(self, key: str, value: str) -> None:
        self._fail()

    def remove_item(self, key: str) -> None:
        self._fail()

    def keys(self) -> list[str]:
        self._fail()
        return []

    def clear(self) -> None:
        self._fail()


__all__ = [
    "StorageError",
    "StorageUnavailable",
    "StorageQuotaExceeded",
    "KeyValueBackend",
    "MemoryBackend",
    "JsonFileBackend",
    "UnavailableBackend",
]
