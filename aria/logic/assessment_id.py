"""Assessment id resolution with the URL as the source of truth.

Priority: `aid` query parameter, then `aria_current_assessment_id`, then
the legacy `aria_active_assessment_id` (migrated forward on read).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from aria.logic.safe_storage import SafeStorage
from aria.logic.storage_keys import ACTIVE_ASSESSMENT_ID_KEY, CURRENT_ASSESSMENT_ID_KEY
from aria.logic.storage_migration import looks_like_assessment_id

logger = logging.getLogger(__name__)

AID_PARAM = "aid"
WIZARD_PATH_PREFIX = "/assessment/"

IdSource = Literal["url", "storage", "none"]


@dataclass(frozen=True)
class ResolvedId:
    id: Optional[str]
    source: IdSource


class Navigator:
    """Holds the current location and supports in-place replacement."""

    def __init__(self, url: str = "/") -> None:
        self.url = url
        self.history: list[str] = []

    @property
    def pathname(self) -> str:
        return urlsplit(self.url).path or "/"

    def query_param(self, name: str) -> Optional[str]:
        for key, value in parse_qsl(urlsplit(self.url).query, keep_blank_values=False):
            if key == name:
                return value
        return None

    def replace(self, url: str) -> None:
        logger.info("navigation.replace from=%s to=%s", self.url, url)
        self.history.append(self.url)
        self.url = url


def is_valid_assessment_id(value: Optional[str]) -> bool:
    return bool(value) and looks_like_assessment_id(str(value))


def with_aid(path: str, aid: Optional[str]) -> str:
    """Return `path` with its `aid` query parameter set to `aid`."""
    if not aid:
        return path
    parts = urlsplit(path)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != AID_PARAM]
    query.append((AID_PARAM, aid))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def resolve_assessment_id(navigator: Navigator, storage: SafeStorage) -> ResolvedId:
    url_id = navigator.query_param(AID_PARAM)
    if url_id:
        storage.safe_set_string(CURRENT_ASSESSMENT_ID_KEY, url_id)
        logger.info("assessment_id.resolved source=url id=%s", url_id)
        return ResolvedId(url_id, "url")

    current = storage.safe_get_string(CURRENT_ASSESSMENT_ID_KEY)
    if current:
        logger.info("assessment_id.resolved source=storage id=%s", current)
        return ResolvedId(current, "storage")

    active = storage.safe_get_string(ACTIVE_ASSESSMENT_ID_KEY)
    if active:
        storage.safe_set_string(CURRENT_ASSESSMENT_ID_KEY, active)
        logger.info("assessment_id.resolved source=storage_legacy id=%s", active)
        return ResolvedId(active, "storage")

    logger.info("assessment_id.unresolved")
    return ResolvedId(None, "none")


def remember_assessment_id(storage: SafeStorage, assessment_id: str) -> None:
    storage.safe_set_string(CURRENT_ASSESSMENT_ID_KEY, assessment_id)


def forget_assessment_id(storage: SafeStorage) -> None:
    storage.safe_remove_item(CURRENT_ASSESSMENT_ID_KEY)
    storage.safe_remove_item(ACTIVE_ASSESSMENT_ID_KEY)


__all__ = [
    "AID_PARAM",
    "WIZARD_PATH_PREFIX",
    "ResolvedId",
    "Navigator",
    "is_valid_assessment_id",
    "with_aid",
    "resolve_assessment_id",
    "remember_assessment_id",
    "forget_assessment_id",
]
