# =============================================================================
# Assess API — Developer Screening Endpoints
# =============================================================================
#
# POST /assess         → run an assessment, return the validated result
# POST /assess/stream  → same run, streamed as NDJSON:
#                          {"type": "chunk", "text": "..."}      (0..n)
#                          {"type": "result", "assessment": {...}} (terminal)
#                       or {"type": "error", "status_code": 502, ...}
#
# This endpoint is thin by design — request validation, error mapping
# and response shaping. The loop lives in app/agents/orchestrator.py.
#
# ERROR MAPPING:
#   - Missing LLM API key      → 503 Service Unavailable
#   - Model runtime failure    → 502 Bad Gateway
#   - Deadline exceeded        → 504 Gateway Timeout
#   - GitHub failures and unusable model output are NOT errors here:
#     the first are relayed to the model, the second yield the default.
#
# DESIGN DECISION: Queue bridge for streaming.
# The orchestrator pushes chunks into a sink; StreamingResponse pulls from
# an async generator. An asyncio.Queue connects the two, with the run in
# its own task. If the client disconnects, the run task is cancelled.
# =============================================================================

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import AsyncIterator

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse

from app.agents.orchestrator import AssessmentRun, run_assessment
from app.config import settings
from app.models.requests import AssessRequest
from app.models.responses import (
    AssessmentResponse,
    StreamChunkEvent,
    StreamErrorEvent,
    StreamResultEvent,
    ToolCallSummary,
)
from app.services.llm import LLMProvider, TransportError, get_llm_provider

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Assessment"])


# ---------------------------------------------------------------------------
# POST /assess — Blocking assessment
# ---------------------------------------------------------------------------


@router.post(
    "/assess",
    response_model=AssessmentResponse,
    summary="Assess a developer from their GitHub activity",
    description=(
        "Runs the agentic screening loop: the model gathers GitHub evidence "
        "through tools and returns a structured hiring assessment."
    ),
)
async def assess_endpoint(request: AssessRequest) -> AssessmentResponse:
    llm = _resolve_provider()
    logger.info("Assess request: username=%s", request.username)

    start_time = time.monotonic()
    try:
        async with asyncio.timeout(settings.assessment_timeout_seconds):
            run = await run_assessment(request.username, llm=llm)
    except TransportError as e:
        logger.exception("Assessment failed: %s", e)
        raise HTTPException(
            status_code=502, detail=f"LLM service error: {e}",
        ) from e
    except TimeoutError as e:
        logger.error(
            "Assessment for %s exceeded %ss",
            request.username, settings.assessment_timeout_seconds,
        )
        raise HTTPException(
            status_code=504, detail="Assessment timed out",
        ) from e

    return _to_response(run, start_time)


# ---------------------------------------------------------------------------
# POST /assess/stream — Streaming assessment
# ---------------------------------------------------------------------------


@router.post(
    "/assess/stream",
    summary="Assess a developer, streaming model output",
    description=(
        "Same as POST /assess, but streams the model's text as NDJSON "
        "chunk events followed by one terminal result or error event."
    ),
    response_class=StreamingResponse,
)
async def assess_stream_endpoint(request: AssessRequest) -> StreamingResponse:
    # Resolved before streaming starts so config errors get a real 503
    llm = _resolve_provider()
    logger.info("Streaming assess request: username=%s", request.username)
    return StreamingResponse(
        _assessment_events(request.username, llm),
        media_type="application/x-ndjson",
    )


async def _assessment_events(
    username: str, llm: LLMProvider,
) -> AsyncIterator[str]:
    """Run the assessment in a task and yield its events as NDJSON lines."""
    queue: asyncio.Queue[str | None] = asyncio.Queue()

    async def sink(text: str) -> None:
        await queue.put(_line(StreamChunkEvent(text=text)))

    async def produce() -> None:
        start_time = time.monotonic()
        try:
            async with asyncio.timeout(settings.assessment_timeout_seconds):
                run = await run_assessment(username, on_chunk=sink, llm=llm)
            await queue.put(_line(
                StreamResultEvent(assessment=_to_response(run, start_time))
            ))
        except TransportError as e:
            logger.exception("Streaming assessment failed: %s", e)
            await queue.put(_line(StreamErrorEvent(
                status_code=502, detail=f"LLM service error: {e}",
            )))
        except TimeoutError:
            logger.error("Streaming assessment for %s timed out", username)
            await queue.put(_line(StreamErrorEvent(
                status_code=504, detail="Assessment timed out",
            )))
        except Exception as e:
            # Headers are already sent; the error has to travel in-band
            logger.exception("Streaming assessment crashed: %s", e)
            await queue.put(_line(StreamErrorEvent(
                status_code=500, detail="Internal error",
            )))
        finally:
            await queue.put(None)

    task = asyncio.create_task(produce())
    try:
        while True:
            line = await queue.get()
            if line is None:
                break
            yield line
    finally:
        if not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _resolve_provider() -> LLMProvider:
    try:
        return get_llm_provider()
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        raise HTTPException(
            status_code=503, detail=f"Service configuration error: {e}",
        ) from e


def _line(event: StreamChunkEvent | StreamResultEvent | StreamErrorEvent) -> str:
    return event.model_dump_json(by_alias=True) + "\n"


def _to_response(run: AssessmentRun, start_time: float) -> AssessmentResponse:
    return AssessmentResponse(
        username=run.username,
        result=run.result,
        fallback_used=run.fallback_used,
        model=run.model,
        turns=run.turns,
        input_tokens=run.input_tokens,
        output_tokens=run.output_tokens,
        latency_ms=int((time.monotonic() - start_time) * 1000),
        tool_calls=[
            ToolCallSummary(name=call.name, is_error=call.is_error)
            for call in run.tool_calls
        ],
    )
