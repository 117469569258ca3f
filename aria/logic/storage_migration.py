"""One-time-per-session storage sweep.

Normalizes data written by older versions of the wizard before any step
reads it:

1. legacy assessment id keys are moved to `aria_current_assessment_id`
2. id keys holding JSON or malformed values are collapsed or removed
3. the plain-string evaluation type is normalized (default "Initial Assessment")
4. `assessmentType`/`evaluationType` fields inside legacy JSON objects are normalized
5. every legacy JSON key is read through the self-healing getter
6. the session flag is set so the sweep does not repeat this session

A failure part-way through is logged and the flag is still set, so a
broken entry cannot trigger a retry on every page load.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Optional

from aria.logic.evaluation_type import INITIAL_ASSESSMENT, normalize_evaluation_type
from aria.logic.safe_storage import SafeStorage
from aria.logic.storage_keys import (
    ACTIVE_ASSESSMENT_ID_KEY,
    ASSESSMENT_ID_KEYS,
    CURRENT_ASSESSMENT_ID_KEY,
    EVALUATION_TYPE_KEY,
    JSON_STORAGE_KEYS,
    LEGACY_ASSESSMENT_ID_KEY,
    MIGRATION_SESSION_FLAG,
)

logger = logging.getLogger(__name__)

_UUID_SHAPE = re.compile(r"^[a-f0-9-]{36}$", re.IGNORECASE)
_NORMALIZED_FIELDS = ("assessmentType", "evaluationType")


@dataclass
class MigrationReport:
    ids_migrated: int = 0
    ids_removed: int = 0
    ids_collapsed: int = 0
    evaluation_type_rewritten: bool = False
    json_objects_normalized: int = 0
    corrupt_keys_cleaned: int = 0
    failed: bool = False


def looks_like_assessment_id(value: str) -> bool:
    return bool(_UUID_SHAPE.match(value)) or value.startswith("demo-")


def _migrate_legacy_assessment_id(storage: SafeStorage, report: MigrationReport) -> None:
    legacy_id = storage.safe_get_string(LEGACY_ASSESSMENT_ID_KEY)
    if legacy_id:
        storage.safe_set_string(CURRENT_ASSESSMENT_ID_KEY, legacy_id)
        storage.safe_remove_item(LEGACY_ASSESSMENT_ID_KEY)
        report.ids_migrated += 1
        logger.info("migration.legacy_id_moved from=%s", LEGACY_ASSESSMENT_ID_KEY)

    active_id = storage.safe_get_string(ACTIVE_ASSESSMENT_ID_KEY)
    current_id = storage.safe_get_string(CURRENT_ASSESSMENT_ID_KEY)
    if active_id and not current_id:
        storage.safe_set_string(CURRENT_ASSESSMENT_ID_KEY, active_id)
        report.ids_migrated += 1
        logger.info("migration.legacy_id_copied from=%s", ACTIVE_ASSESSMENT_ID_KEY)


def clean_assessment_id_value(storage: SafeStorage, key: str) -> Optional[str]:
    """Sanitize one id key in place and return what it now holds.

    "{}" and "null" are removed; a JSON object with an `id` collapses to the
    bare id; any other JSON is removed; bare strings that are neither
    UUID-shaped nor `demo-` prefixed are removed.
    """
    raw = storage.read_raw(key)
    if not raw:
        return None
    if raw in ("{}", "null"):
        storage.safe_remove_item(key)
        logger.info("migration.id_removed key=%s reason=empty_json", key)
        return None
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, ValueError):
        parsed = None
        is_json = False
    else:
        is_json = True

    if is_json:
        if isinstance(parsed, dict) and parsed.get("id"):
            bare = str(parsed["id"])
            storage.safe_set_string(key, bare)
            logger.info("migration.id_collapsed key=%s", key)
            return bare
        storage.safe_remove_item(key)
        logger.info("migration.id_removed key=%s reason=json_value", key)
        return None

    if not looks_like_assessment_id(raw):
        storage.safe_remove_item(key)
        logger.info("migration.id_removed key=%s reason=malformed", key)
        return None
    return raw


def _clean_assessment_ids(storage: SafeStorage, report: MigrationReport) -> None:
    for key in ASSESSMENT_ID_KEYS:
        raw = storage.read_raw(key)
        if not raw:
            continue
        cleaned = clean_assessment_id_value(storage, key)
        if cleaned is None:
            report.ids_removed += 1
        elif cleaned != raw:
            report.ids_collapsed += 1


def _migrate_evaluation_type(storage: SafeStorage, report: MigrationReport) -> None:
    raw = storage.read_raw(EVALUATION_TYPE_KEY)
    if not raw:
        storage.safe_set_string(EVALUATION_TYPE_KEY, INITIAL_ASSESSMENT)
        logger.info("migration.evaluation_type_defaulted value=%s", INITIAL_ASSESSMENT)
        return
    normalized = normalize_evaluation_type(raw)
    if raw != normalized:
        storage.safe_set_string(EVALUATION_TYPE_KEY, normalized)
        report.evaluation_type_rewritten = True
        logger.info("migration.evaluation_type_normalized from=%r to=%s", raw, normalized)


def _migrate_evaluation_types_in_json(storage: SafeStorage, report: MigrationReport) -> None:
    for key in JSON_STORAGE_KEYS:
        had_value = storage.read_raw(key) is not None
        data = storage.safe_get_json(key, None)
        if had_value and storage.read_raw(key) is None:
            report.corrupt_keys_cleaned += 1
        if not isinstance(data, dict):
            continue
        updated = False
        for field in _NORMALIZED_FIELDS:
            current = data.get(field)
            if isinstance(current, str) and current:
                normalized = normalize_evaluation_type(current)
                if normalized != current:
                    data[field] = normalized
                    updated = True
        if updated:
            storage.safe_set_json(key, data)
            report.json_objects_normalized += 1
            logger.info("migration.json_evaluation_type_normalized key=%s", key)


def _validate_json_storage(storage: SafeStorage, report: MigrationReport) -> None:
    for key in JSON_STORAGE_KEYS:
        had_value = storage.read_raw(key) is not None
        storage.safe_get_json(key, None)
        if had_value and storage.read_raw(key) is None:
            report.corrupt_keys_cleaned += 1


def migration_has_run(session: SafeStorage) -> bool:
    return bool(session.safe_get_string(MIGRATION_SESSION_FLAG))


def run_storage_migration(storage: SafeStorage, session: SafeStorage) -> Optional[MigrationReport]:
    """Run the sweep once per session; return None when it already ran."""
    if migration_has_run(session):
        return None

    report = MigrationReport()
    logger.info("migration.start store=%s", storage.name)
    try:
        _migrate_legacy_assessment_id(storage, report)
        _clean_assessment_ids(storage, report)
        _migrate_evaluation_type(storage, report)
        _migrate_evaluation_types_in_json(storage, report)
        _validate_json_storage(storage, report)
    except Exception:
        report.failed = True
        logger.error("migration.failed", exc_info=True)
    finally:
        session.safe_set_string(MIGRATION_SESSION_FLAG, "true")
    logger.info("migration.complete report=%s", report)
    return report


__all__ = [
    "MigrationReport",
    "looks_like_assessment_id",
    "clean_assessment_id_value",
    "migration_has_run",
    "run_storage_migration",
]
