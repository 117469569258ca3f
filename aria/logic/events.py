"""Assessment domain events.

Route handlers publish an event after each committed write. Events are
logged and kept in an in-memory buffer which tests drain through
`get_buffered_events`.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from aria.logic.repository_assessments import now_rfc3339

logger = logging.getLogger(__name__)

ASSESSMENT_CREATED = "assessment.created"
ASSESSMENT_STATUS_CHANGED = "assessment.status_changed"
STEP_SAVED = "step.saved"

EVENT_BUFFER: List[Dict[str, Any]] = []


def publish(event_type: str, payload: Dict[str, Any]) -> None:
    logger.info("event_publish type=%s assessment_id=%s", event_type, payload.get("assessment_id"))
    EVENT_BUFFER.append({"type": event_type, "payload": payload, "published_at": now_rfc3339()})


def get_buffered_events(clear: bool = True) -> List[Dict[str, Any]]:
    events = list(EVENT_BUFFER)
    if clear:
        EVENT_BUFFER.clear()
    return events


__all__ = [
    "ASSESSMENT_CREATED",
    "ASSESSMENT_STATUS_CHANGED",
    "STEP_SAVED",
    "EVENT_BUFFER",
    "publish",
    "get_buffered_events",
]
