"""Storage inspection and cleanup helpers for the wizard's local data."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Tuple

from aria.logic.safe_storage import SafeStorage
from aria.logic.storage_keys import JSON_STORAGE_KEYS

logger = logging.getLogger(__name__)

_SECTION_NAMES = {
    "aria-client-info": "Client Information",
    "aria-background-history": "Background History",
    "aria-assessment-context": "Assessment Data",
    "aria-domains": "Domains",
    "aria-abc-observation": "ABC Observations",
    "aria-risk-assessment": "Risk Assessment",
    "aria-goals": "Goals",
    "aria-service-plan": "Service Plan",
    "aria-cpt-authorization": "CPT Authorization",
    "aria-medical-necessity": "Medical Necessity",
    "aria-progress-data": "Progress Dashboard",
}

_EMPTY_VALUES = ("{}", "null")
_CACHE_PREFIXES: Tuple[str, ...] = ("aria-", "aria_")


@dataclass(frozen=True)
class SectionStatus:
    section: str
    key: str
    has_data: bool
    data_size: str


def _format_size(raw: str | None) -> str:
    return f"{len(raw) / 1024:.2f} KB" if raw else "0 KB"


def storage_status(storage: SafeStorage) -> List[SectionStatus]:
    """Report, per known section key, whether it holds data and how much."""
    report: List[SectionStatus] = []
    for key in JSON_STORAGE_KEYS:
        raw = storage.read_raw(key)
        report.append(
            SectionStatus(
                section=_SECTION_NAMES.get(key, key),
                key=key,
                has_data=raw is not None and raw not in _EMPTY_VALUES,
                data_size=_format_size(raw),
            )
        )
    return report


def _is_assessment_key(key: str) -> bool:
    return key.startswith(_CACHE_PREFIXES) or "assessment" in key


def clear_assessment_cache(storage: SafeStorage) -> List[str]:
    """Remove every assessment-related key; return the keys removed."""
    removed = [key for key in storage.safe_keys() if _is_assessment_key(key)]
    for key in removed:
        storage.safe_remove_item(key)
    logger.info("assessment_cache_cleared keys_removed=%d", len(removed))
    return removed


def clear_assessment_by_id(storage: SafeStorage, assessment_id: str) -> List[str]:
    """Remove every key that embeds `assessment_id`; return the keys removed."""
    if not assessment_id:
        return []
    removed = [key for key in storage.safe_keys() if assessment_id in key]
    for key in removed:
        storage.safe_remove_item(key)
    logger.info("assessment_cache_cleared id=%s keys_removed=%d", assessment_id, len(removed))
    return removed


__all__ = [
    "SectionStatus",
    "storage_status",
    "clear_assessment_cache",
    "clear_assessment_by_id",
]
