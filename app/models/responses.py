# =============================================================================
# API Response Models — Pydantic V2 Schemas
# =============================================================================
#
# These models define the shape of data coming OUT of the API.
#
# The assessment itself (AssessmentResult) keeps its camelCase contract;
# the run metadata around it follows the API's snake_case convention.
# =============================================================================

from typing import Literal

from pydantic import BaseModel, Field

from app.models.assessment import AssessmentResult


class HealthResponse(BaseModel):
    """Response for GET /health — confirms the API is running."""

    status: str = "ok"
    version: str
    service: str


class ToolCallSummary(BaseModel):
    """One tool call the model made during the assessment."""

    name: str
    is_error: bool


class AssessmentResponse(BaseModel):
    """
    Response for POST /assess.

    `result` always satisfies the AssessmentResult contract. When the
    model's answer could not be validated it is the fixed default and
    `fallback_used` is true.
    """

    username: str
    result: AssessmentResult
    fallback_used: bool = Field(
        description="True when the model's answer was unusable and the "
        "default assessment was substituted",
    )
    model: str = Field(description="Model that produced the assessment")
    turns: int = Field(description="Number of model turns")
    input_tokens: int
    output_tokens: int
    latency_ms: int
    tool_calls: list[ToolCallSummary] = Field(default_factory=list)


class StreamChunkEvent(BaseModel):
    """NDJSON line carrying one streamed text fragment."""

    type: Literal["chunk"] = "chunk"
    text: str


class StreamResultEvent(BaseModel):
    """Terminal NDJSON line on success."""

    type: Literal["result"] = "result"
    assessment: AssessmentResponse


class StreamErrorEvent(BaseModel):
    """Terminal NDJSON line on failure."""

    type: Literal["error"] = "error"
    status_code: int
    detail: str
