# =============================================================================
# FastAPI Application
# =============================================================================
#
# Run locally:
#   uvicorn app.main:app --reload
#
# Only bootstrapping lives here: logging, the app object, routers and the
# health check.
# =============================================================================

import logging

from fastapi import FastAPI

from app.api import assess
from app.config import settings
from app.models.responses import HealthResponse

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    debug=settings.debug,
    description=(
        "Agentic developer screening: gathers GitHub evidence through "
        "tools and returns a structured hiring assessment."
    ),
)

app.include_router(assess.router)


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health() -> HealthResponse:
    return HealthResponse(version=settings.app_version, service=settings.app_name)
