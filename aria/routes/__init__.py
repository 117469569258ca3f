"""APIRouter registration for the assessment service."""

from __future__ import annotations

from fastapi import APIRouter

from aria.routes.assessments import router as assessments_router
from aria.routes.errors import router as errors_router

api_router = APIRouter()
api_router.include_router(assessments_router, tags=["Assessments", "Steps"])
api_router.include_router(errors_router, tags=["Diagnostics"])

__all__ = ["api_router"]
