"""Weak ETags for step resources.

The token is a SHA1 over the assessment id, step key and the canonical JSON
of the stored value, so identical state always yields the identical tag.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Optional


def compute_step_etag(assessment_id: str, step_key: str, data: Any) -> str:
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"))
    token = f"{assessment_id}|{step_key}|{canonical}".encode("utf-8")
    return f'W/"{hashlib.sha1(token).hexdigest()}"'


def normalize_if_match(value: Optional[str]) -> str:
    """Strip the weak prefix and quotes: W/"abc" -> abc."""
    v = (value or "").strip()
    if v.startswith("W/"):
        v = v[2:].strip()
    if len(v) >= 2 and v[0] == '"' and v[-1] == '"':
        v = v[1:-1]
    return v


def if_match_satisfied(if_match: Optional[str], current_etag: str) -> bool:
    """True when no precondition was sent, it is `*`, or it names the current tag."""
    if if_match is None or not if_match.strip():
        return True
    candidates = [normalize_if_match(part) for part in if_match.split(",")]
    return "*" in candidates or normalize_if_match(current_etag) in candidates


__all__ = ["compute_step_etag", "normalize_if_match", "if_match_satisfied"]
