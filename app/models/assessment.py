# =============================================================================
# Assessment Model — The Output Contract
# =============================================================================
#
# AssessmentResult is the only shape a caller ever receives. The model's
# final answer is validated against it in strict mode (no "7" → 7
# coercion); anything that fails is replaced by the fallback default in
# app/agents/validator.py. A partially valid answer is never repaired.
#
# JSON keys are camelCase (growthAreas, overallScore, ...). Python code
# uses the snake_case attribute names.
# =============================================================================

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Recommendation = Literal["Strong Hire", "Hire", "Consider", "Pass"]


class AssessmentResult(BaseModel):
    """Structured hiring evaluation of one developer."""

    strengths: list[str] = Field(..., max_length=3)
    growth_areas: list[str] = Field(..., max_length=2)
    technical_keywords: list[str] = Field(..., max_length=8)
    best_contribution: str
    overall_score: float = Field(..., ge=1, le=10)
    recommendation: Recommendation
    interview_questions: list[str] = Field(..., max_length=3)
    risk_factors: list[str] | None = None

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        # Unknown keys from the model are dropped, not rejected
        extra="ignore",
    )
