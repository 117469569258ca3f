"""Evaluation type normalization.

The stored evaluation type must always be exactly one of two canonical
values. Older code paths wrote lowercase, hyphenated, quoted and
double-quoted variants; every reader funnels through
`normalize_evaluation_type` so those variants collapse on first read.
"""

from __future__ import annotations

import logging
from typing import Any, Literal

logger = logging.getLogger(__name__)

INITIAL_ASSESSMENT = "Initial Assessment"
REASSESSMENT = "Reassessment"

EVALUATION_TYPES = (INITIAL_ASSESSMENT, REASSESSMENT)

EvaluationType = Literal["Initial Assessment", "Reassessment"]

_QUOTES = ('"', "'")


def _unwrap_quotes(value: str) -> str:
    out = value.strip()
    while len(out) >= 2 and out[0] in _QUOTES and out[-1] == out[0]:
        out = out[1:-1].strip()
    # A lone quote left behind by a JSON-encoded write
    if out in _QUOTES:
        return ""
    return out


def normalize_evaluation_type(value: Any) -> EvaluationType:
    """Return the canonical evaluation type for any historical variant.

    - Non-string input -> "Initial Assessment"
    - "reassessment", "Re-Assessment", '"Reassessment"' -> "Reassessment"
    - "initial", "initial-assessment" -> "Initial Assessment"
    - Unrecognised strings default to "Initial Assessment"
    """
    if not isinstance(value, str):
        if value is not None:
            logger.warning("evaluation_type.non_string value=%r", value)
        return INITIAL_ASSESSMENT

    normalized = _unwrap_quotes(value)
    lower = normalized.lower()

    if lower in {"reassessment", "re-assessment", "re assessment"} or (
        "re" in lower and "assess" in lower
    ):
        return REASSESSMENT
    if lower in {"initial", "initial assessment", "initial-assessment"} or "initial" in lower:
        return INITIAL_ASSESSMENT

    logger.warning("evaluation_type.unrecognised value=%r default=%s", value, INITIAL_ASSESSMENT)
    return INITIAL_ASSESSMENT


def is_reassessment(value: Any) -> bool:
    return normalize_evaluation_type(value) == REASSESSMENT


__all__ = [
    "INITIAL_ASSESSMENT",
    "REASSESSMENT",
    "EVALUATION_TYPES",
    "EvaluationType",
    "normalize_evaluation_type",
    "is_reassessment",
]
