"""Problem+JSON rendering and global exception handlers.

Every error leaving the assessment service is an RFC7807 document served
as application/problem+json. Route handlers raise `HTTPException` with a
problem dict as `detail` (see `problem`); the handlers here render it.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

PROBLEM_MEDIA_TYPE = "application/problem+json"

logger = logging.getLogger(__name__)


def problem(status: int, title: str, detail: str = "", **extra: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {"title": title, "status": status}
    if detail:
        body["detail"] = detail
    body.update(extra)
    return body


def problem_exception(
    status: int,
    title: str,
    detail: str = "",
    headers: Optional[Dict[str, str]] = None,
    **extra: Any,
) -> HTTPException:
    return HTTPException(status_code=status, detail=problem(status, title, detail, **extra), headers=headers)


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    status_code = int(exc.status_code or 500)
    if isinstance(exc.detail, dict):
        body = exc.detail
    else:
        body = problem(status_code, "Error", str(exc.detail or ""))
    headers = {str(k): str(v) for k, v in (exc.headers or {}).items()}
    return JSONResponse(body, status_code=status_code, media_type=PROBLEM_MEDIA_TYPE, headers=headers or None)


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info(
        "validation_422 route=%s method=%s errors_cnt=%s",
        request.url.path,
        request.method,
        len(exc.errors()),
    )
    body = problem(422, "Invalid Request", "Request validation failed", errors=jsonable_encoder(exc.errors()))
    return JSONResponse(body, status_code=422, media_type=PROBLEM_MEDIA_TYPE)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unexpected_error route=%s", request.url.path, exc_info=exc)
    return JSONResponse(problem(500, "Internal Server Error"), status_code=500, media_type=PROBLEM_MEDIA_TYPE)


__all__ = [
    "PROBLEM_MEDIA_TYPE",
    "problem",
    "problem_exception",
    "handle_http_exception",
    "handle_request_validation_error",
    "handle_unexpected_error",
]
