# =============================================================================
# API Request Models — Pydantic V2 Schemas
# =============================================================================
#
# These models define the shape of data coming INTO the API.
# FastAPI uses them for:
# 1. Request body validation (automatic 422 errors for invalid data)
# 2. OpenAPI documentation generation (visible at /docs)
#
# Secrets (GitHub token, model keys) are server-side configuration only.
# No request model accepts them.
# =============================================================================

from pydantic import BaseModel, ConfigDict, Field

from app.models.evidence import USERNAME_PATTERN


class AssessRequest(BaseModel):
    """
    Request body for POST /assess and POST /assess/stream.

    Example:
        {"username": "octocat"}
    """

    # Validated against GitHub's login rules before anything is fetched,
    # so the value is always safe to put in a URL path or a prompt.
    username: str = Field(
        ...,
        min_length=1,
        max_length=39,
        pattern=USERNAME_PATTERN,
        description="GitHub username of the developer to assess",
        examples=["octocat"],
    )

    model_config = ConfigDict(
        str_strip_whitespace=True,
        json_schema_extra={"examples": [{"username": "octocat"}]},
    )
