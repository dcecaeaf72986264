# =============================================================================
# Output Validator — Parse, Validate, or Fall Back
# =============================================================================
#
# The single recovery boundary between the model's free-form final answer
# and the AssessmentResult contract:
#
#   text ──▶ strip code fence ──▶ json.loads ──▶ strict schema validation
#                                      │                   │
#                                      └──── any failure ──┴──▶ DEFAULT_ASSESSMENT
#
# DESIGN DECISION: Wholesale replacement, never repair.
# A record with one bad field is discarded entirely. Merging the valid
# parts with defaults would produce an assessment nobody actually made.
#
# DESIGN DECISION: Strict mode.
# "overallScore": "8" is rejected rather than coerced; the model was
# given the schema and a string there means it didn't follow it.
# =============================================================================

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from pydantic import ValidationError

from app.models.assessment import AssessmentResult

logger = logging.getLogger(__name__)


class AssessmentValidationError(Exception):
    """The final answer could not be parsed or failed the schema."""


# ---------------------------------------------------------------------------
# Fallback
# ---------------------------------------------------------------------------

DEFAULT_ASSESSMENT = AssessmentResult(
    strengths=[
        "Active GitHub contributor",
        "Diverse project portfolio",
        "Consistent development activity",
    ],
    growth_areas=["Code documentation", "Test coverage"],
    technical_keywords=["JavaScript", "TypeScript", "React", "Node.js", "Git"],
    best_contribution=(
        "Recent contributions show active development and project involvement"
    ),
    overall_score=7,
    recommendation="Consider",
    interview_questions=[
        "Tell me about your most challenging technical project",
        "How do you approach code reviews and collaboration?",
        "What's your process for testing and quality assurance?",
    ],
    risk_factors=[],
)


@dataclass(frozen=True)
class ValidatedAssessment:
    """Validator output: the result plus whether it is the fallback."""

    result: AssessmentResult
    fallback_used: bool = False
    reason: str | None = None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_assessment(text: str) -> AssessmentResult:
    """
    Parse and strictly validate a final answer.

    Raises:
        AssessmentValidationError: Not JSON, not an object, or fails the
            AssessmentResult schema.
    """
    try:
        data = json.loads(_strip_code_fence(text))
    # ValueError also covers oversized integer literals; deep nesting
    # surfaces as RecursionError
    except (ValueError, RecursionError) as e:
        raise AssessmentValidationError(f"Final answer is not JSON: {e}") from e

    if not isinstance(data, dict):
        raise AssessmentValidationError(
            f"Final answer is a JSON {type(data).__name__}, expected an object"
        )

    try:
        return AssessmentResult.model_validate(data, strict=True)
    except ValidationError as e:
        raise AssessmentValidationError(
            f"Final answer failed schema validation: {e}"
        ) from e


def validate_assessment(text: str) -> ValidatedAssessment:
    """
    Turn the final answer into an AssessmentResult. Never raises.

    Returns the parsed result, or DEFAULT_ASSESSMENT (with the reason)
    when the answer is unusable.
    """
    try:
        return ValidatedAssessment(result=parse_assessment(text))
    except AssessmentValidationError as e:
        logger.warning(
            "Failed to parse assessment output, using default: %s", e,
        )
        # Deep copy: the list fields stay mutable on a frozen model
        return ValidatedAssessment(
            result=DEFAULT_ASSESSMENT.model_copy(deep=True),
            fallback_used=True,
            reason=str(e),
        )


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _strip_code_fence(text: str) -> str:
    """Remove a surrounding ```json ... ``` fence if present."""
    content = text.strip()
    if not content.startswith("```"):
        return content
    lines = content.splitlines()
    end = len(lines)
    for i in range(len(lines) - 1, 0, -1):
        if lines[i].strip() == "```":
            end = i
            break
    return "\n".join(lines[1:end])
