"""Names of every local storage key the client reads or writes."""

from __future__ import annotations

# Plain-string keys (never JSON-wrapped)
CURRENT_ASSESSMENT_ID_KEY = "aria_current_assessment_id"
ACTIVE_ASSESSMENT_ID_KEY = "aria_active_assessment_id"
LEGACY_ASSESSMENT_ID_KEY = "assessment_id"
EVALUATION_TYPE_KEY = "aria_evaluation_type"

ASSESSMENT_ID_KEYS = (
    LEGACY_ASSESSMENT_ID_KEY,
    "aria_assessment_id",
    ACTIVE_ASSESSMENT_ID_KEY,
    CURRENT_ASSESSMENT_ID_KEY,
)

# Session-scoped flag marking the one-time sweep as done
MIGRATION_SESSION_FLAG = "aria_migration_complete"

# Flat JSON keys written by older versions of the wizard
JSON_STORAGE_KEYS = (
    "aria-client-info",
    "aria-background-history",
    "aria-assessment-context",
    "aria-domains",
    "aria-abc-observation",
    "aria-risk-assessment",
    "aria-goals",
    "aria-service-plan",
    "aria-cpt-authorization",
    "aria-medical-necessity",
    "aria-progress-data",
)

STEP_CACHE_PREFIX = "aria_step_cache_"


def step_cache_key(assessment_id: str, step_key: str) -> str:
    return f"{STEP_CACHE_PREFIX}{assessment_id}_{step_key}"


__all__ = [
    "CURRENT_ASSESSMENT_ID_KEY",
    "ACTIVE_ASSESSMENT_ID_KEY",
    "LEGACY_ASSESSMENT_ID_KEY",
    "EVALUATION_TYPE_KEY",
    "ASSESSMENT_ID_KEYS",
    "MIGRATION_SESSION_FLAG",
    "JSON_STORAGE_KEYS",
    "STEP_CACHE_PREFIX",
    "step_cache_key",
]
