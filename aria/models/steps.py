"""Per-step payload schemas.

Each wizard step owns one slice of the assessment payload, keyed by its
step key. The slices are modelled as a tagged union: the step key selects
the schema. Schemas describe the fields the synchronization layer and the
report generator rely on and allow extra fields so wizard pages can add
inputs without a schema change.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class _StepModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class ClientInfoStep(_StepModel):
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    dateOfBirth: Optional[str] = None
    diagnosis: Optional[str] = None
    assessmentType: Optional[str] = None


class BackgroundHistoryStep(_StepModel):
    developmentalHistory: Optional[str] = None
    medicalHistory: Optional[str] = None
    previousServices: Optional[str] = None


class ProgressDashboardStep(_StepModel):
    goalProgress: List[Dict[str, Any]] = Field(default_factory=list)


class EvaluationStep(_StepModel):
    evaluationType: Optional[str] = None
    assessmentTools: List[Any] = Field(default_factory=list)


class DomainsStep(_StepModel):
    domains: List[Any] = Field(default_factory=list)


class AbcObservationStep(_StepModel):
    observations: List[Dict[str, Any]] = Field(default_factory=list)


class RiskAssessmentStep(_StepModel):
    riskLevel: Optional[str] = None
    riskFactors: List[Any] = Field(default_factory=list)


class GoalsStep(_StepModel):
    goals: List[Any] = Field(default_factory=list)


class ServicePlanStep(_StepModel):
    weeklyHours: Optional[float] = None
    schedule: List[Any] = Field(default_factory=list)


class CptAuthorizationStep(_StepModel):
    codes: List[Dict[str, Any]] = Field(default_factory=list)


class MedicalNecessityStep(_StepModel):
    statement: Optional[str] = None


class SignaturesStep(_StepModel):
    signatures: List[Dict[str, Any]] = Field(default_factory=list)


StepKey = Literal[
    "clientInfo",
    "backgroundHistory",
    "progressDashboard",
    "evaluation",
    "domains",
    "abcObservation",
    "riskAssessment",
    "goals",
    "servicePlan",
    "cptAuthorization",
    "medicalNecessity",
    "signatures",
]

STEP_SCHEMAS: Dict[str, Type[_StepModel]] = {
    "clientInfo": ClientInfoStep,
    "backgroundHistory": BackgroundHistoryStep,
    "progressDashboard": ProgressDashboardStep,
    "evaluation": EvaluationStep,
    "domains": DomainsStep,
    "abcObservation": AbcObservationStep,
    "riskAssessment": RiskAssessmentStep,
    "goals": GoalsStep,
    "servicePlan": ServicePlanStep,
    "cptAuthorization": CptAuthorizationStep,
    "medicalNecessity": MedicalNecessityStep,
    "signatures": SignaturesStep,
}

# Route-style keys wizard pages save under, resolved to the canonical key
STEP_KEY_ALIASES: Dict[str, str] = {
    "abc-observation": "abcObservation",
    "risk": "riskAssessment",
    "service-plan": "servicePlan",
    "cpt-authorization": "cptAuthorization",
    "client-info": "clientInfo",
    "background-history": "backgroundHistory",
    "progress-dashboard": "progressDashboard",
    "medical-necessity": "medicalNecessity",
}

# Flat keys older builds wrote each step to, in migration preference order
LEGACY_STEP_KEYS: Dict[str, tuple[str, ...]] = {
    "clientInfo": ("aria-client-info",),
    "backgroundHistory": ("aria-background-history",),
    "progressDashboard": ("aria-progress-data",),
    "evaluation": ("aria-assessment-context",),
    "domains": ("aria-domains",),
    "abcObservation": ("aria-abc-observation", "aria-abc-observations"),
    "riskAssessment": ("aria-risk-assessment",),
    "goals": ("aria-goals",),
    "servicePlan": ("aria-service-plan",),
    "cptAuthorization": ("aria-cpt-authorization",),
    "medicalNecessity": ("aria-medical-necessity",),
    "signatures": (),
}


class UnknownStepKey(KeyError):
    """Raised for a step key outside the known union."""


def canonical_step_key(step_key: str) -> str:
    """Return the canonical key for `step_key`, or raise UnknownStepKey."""
    key = STEP_KEY_ALIASES.get(step_key, step_key)
    if key not in STEP_SCHEMAS:
        raise UnknownStepKey(step_key)
    return key


def is_step_key(step_key: str) -> bool:
    return STEP_KEY_ALIASES.get(step_key, step_key) in STEP_SCHEMAS


def parse_step_data(step_key: str, data: Any) -> Any:
    """Validate `data` against the schema selected by `step_key`.

    Object payloads are validated and returned as the step model. Any other
    JSON (lists, scalars) is a whole-step value and is returned unchanged.

    Raises UnknownStepKey for unknown keys and pydantic ValidationError for
    object payloads that do not fit the step's schema.
    """
    schema = STEP_SCHEMAS[canonical_step_key(step_key)]
    if not isinstance(data, dict):
        return data
    return schema.model_validate(data)


def legacy_keys_for(step_key: str) -> tuple[str, ...]:
    return LEGACY_STEP_KEYS.get(STEP_KEY_ALIASES.get(step_key, step_key), ())


__all__ = [
    "StepKey",
    "STEP_SCHEMAS",
    "LEGACY_STEP_KEYS",
    "STEP_KEY_ALIASES",
    "UnknownStepKey",
    "ValidationError",
    "canonical_step_key",
    "is_step_key",
    "parse_step_data",
    "legacy_keys_for",
    "ClientInfoStep",
    "BackgroundHistoryStep",
    "ProgressDashboardStep",
    "EvaluationStep",
    "DomainsStep",
    "AbcObservationStep",
    "RiskAssessmentStep",
    "GoalsStep",
    "ServicePlanStep",
    "CptAuthorizationStep",
    "MedicalNecessityStep",
    "SignaturesStep",
]
