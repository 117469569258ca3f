"""Client error report sink.

Client-side failures are posted here so they reach the server log;
`aria.logic.ai_request` reports exhausted text-generation retries to
`/api/v1/log-error` by default. Reports are accepted and logged; nothing
is persisted.
"""

from __future__ import annotations

import logging
from typing import Dict, List

from fastapi import APIRouter

from aria.models.ai import ClientErrorReport

logger = logging.getLogger(__name__)

router = APIRouter()

RECENT_REPORTS: List[ClientErrorReport] = []
_RECENT_LIMIT = 100


@router.post("/log-error", status_code=202, summary="Accept a client error report")
def log_client_error(report: ClientErrorReport) -> Dict[str, str]:
    logger.warning(
        "client_error type=%s timestamp=%s details=%s",
        report.type,
        report.timestamp,
        report.details,
    )
    RECENT_REPORTS.append(report)
    del RECENT_REPORTS[:-_RECENT_LIMIT]
    return {"status": "accepted"}


__all__ = ["router", "log_client_error", "RECENT_REPORTS"]
