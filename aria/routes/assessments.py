"""Assessment and per-step data routes.

A step resource is one slice of an assessment's aggregate payload. PUT
overwrites the slice wholesale with any JSON value and is idempotent; GET
returns `data: null` for a step that was never saved. Both carry a weak
ETag derived from the stored value, and PUT honours an optional If-Match
precondition. Route-style aliases such as `risk` resolve to the canonical
step key, which is the key responses report.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Header, Response
from pydantic import ValidationError

from aria.http.problem import problem_exception
from aria.logic import repository_assessments as repo
from aria.logic.etag import compute_step_etag, if_match_satisfied
from aria.logic.evaluation_type import normalize_evaluation_type
from aria.logic.events import (
    ASSESSMENT_CREATED,
    ASSESSMENT_STATUS_CHANGED,
    STEP_SAVED,
    publish,
)
from aria.models.assessment import (
    AssessmentCreate,
    AssessmentOut,
    AssessmentStatusUpdate,
    StepDataIn,
    StepDataOut,
)
from aria.models.steps import UnknownStepKey, canonical_step_key, parse_step_data

router = APIRouter()
logger = logging.getLogger(__name__)


def _require_assessment(assessment_id: str) -> Dict[str, Any]:
    record = repo.get_assessment(assessment_id)
    if record is None:
        raise problem_exception(404, "Not Found", f"assessment {assessment_id} not found")
    return record


def _require_step_key(step_key: str) -> str:
    try:
        return canonical_step_key(step_key)
    except UnknownStepKey:
        raise problem_exception(404, "Not Found", f"unknown step {step_key}")


@router.post("/assessments", status_code=201, response_model=AssessmentOut, summary="Create an assessment")
def create_assessment(payload: Optional[AssessmentCreate] = None):
    body = payload or AssessmentCreate()
    evaluation_type = normalize_evaluation_type(body.evaluation_type)
    record = repo.create_assessment(evaluation_type, owner_id=body.owner_id)
    publish(ASSESSMENT_CREATED, {"assessment_id": record["id"], "evaluation_type": evaluation_type})
    return AssessmentOut(**record)


@router.get("/assessments/{assessment_id}", response_model=AssessmentOut, summary="Fetch an assessment")
def get_assessment(assessment_id: str):
    return AssessmentOut(**_require_assessment(assessment_id))


@router.patch("/assessments/{assessment_id}", response_model=AssessmentOut, summary="Update lifecycle status")
def update_assessment_status(assessment_id: str, payload: AssessmentStatusUpdate):
    record = repo.update_status(assessment_id, payload.status)
    if record is None:
        raise problem_exception(404, "Not Found", f"assessment {assessment_id} not found")
    publish(ASSESSMENT_STATUS_CHANGED, {"assessment_id": assessment_id, "status": payload.status})
    return AssessmentOut(**record)


@router.get(
    "/assessments/{assessment_id}/steps/{step_key}",
    response_model=StepDataOut,
    summary="Fetch one step's saved data",
)
def get_step(assessment_id: str, step_key: str, response: Response):
    step_key = _require_step_key(step_key)
    record = _require_assessment(assessment_id)
    data = record["data"].get(step_key)
    etag = compute_step_etag(assessment_id, step_key, data)
    response.headers["ETag"] = etag
    return StepDataOut(assessment_id=assessment_id, step_key=step_key, data=data, etag=etag)


@router.put(
    "/assessments/{assessment_id}/steps/{step_key}",
    response_model=StepDataOut,
    summary="Overwrite one step's data",
)
def put_step(
    assessment_id: str,
    step_key: str,
    payload: StepDataIn,
    response: Response,
    if_match: Optional[str] = Header(None, alias="If-Match"),
):
    step_key = _require_step_key(step_key)
    record = _require_assessment(assessment_id)
    if payload.data is not None:
        try:
            parse_step_data(step_key, payload.data)
        except ValidationError as exc:
            raise problem_exception(
                422,
                "Invalid Step Data",
                f"payload does not match the {step_key} schema",
                errors=exc.errors(include_url=False, include_context=False),
            )
    current_etag = compute_step_etag(assessment_id, step_key, record["data"].get(step_key))
    if not if_match_satisfied(if_match, current_etag):
        logger.info("step_precondition_failed id=%s step=%s", assessment_id, step_key)
        raise problem_exception(
            409,
            "Conflict",
            "If-Match does not match the current step version",
            headers={"ETag": current_etag},
        )
    updated = repo.upsert_step(assessment_id, step_key, payload.data)
    if updated is None:
        raise problem_exception(404, "Not Found", f"assessment {assessment_id} not found")
    etag = compute_step_etag(assessment_id, step_key, payload.data)
    response.headers["ETag"] = etag
    logger.info("step_saved id=%s step=%s", assessment_id, step_key)
    publish(STEP_SAVED, {"assessment_id": assessment_id, "step_key": step_key, "etag": etag})
    return StepDataOut(assessment_id=assessment_id, step_key=step_key, data=payload.data, etag=etag)


__all__ = [
    "router",
    "create_assessment",
    "get_assessment",
    "update_assessment_status",
    "get_step",
    "put_step",
]
