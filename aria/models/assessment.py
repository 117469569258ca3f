"""Pydantic models for assessment service request and response bodies."""

from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

AssessmentStatus = Literal["draft", "in_progress", "complete"]


class AssessmentCreate(BaseModel):
    evaluation_type: Optional[str] = None
    owner_id: Optional[str] = None


class AssessmentOut(BaseModel):
    id: str
    owner_id: Optional[str] = None
    evaluation_type: str
    status: AssessmentStatus
    data: Dict[str, Any] = Field(default_factory=dict)
    created_at: str
    updated_at: str


class AssessmentStatusUpdate(BaseModel):
    status: AssessmentStatus


class StepDataIn(BaseModel):
    data: Any = None


class StepDataOut(BaseModel):
    assessment_id: str
    step_key: str
    data: Any = None
    etag: str


__all__ = [
    "AssessmentStatus",
    "AssessmentCreate",
    "AssessmentOut",
    "AssessmentStatusUpdate",
    "StepDataIn",
    "StepDataOut",
]
