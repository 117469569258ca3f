"""Result and error-report models for text-generation calls."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class AIResult(BaseModel):
    success: bool
    content: str = ""
    error: Optional[str] = None
    used_fallback: Optional[bool] = None


class ClientErrorReport(BaseModel):
    type: str
    details: Dict[str, Any] = Field(default_factory=dict)
    timestamp: Optional[str] = None


__all__ = ["AIResult", "ClientErrorReport"]
