# =============================================================================
# LangGraph Orchestrator — Tool-Calling Synthesis Loop
# =============================================================================
#
# Wires the model, the Evidence Catalog and the Output Validator into a
# LangGraph StateGraph:
#
#   START ──▶ generate ──(tool calls?)──▶ tools ──┐
#                 ▲          │ no                 │
#                 │          ▼                    │
#                 │      validate ──▶ END         │
#                 └───────────────────────────────┘
#
# generate  — stream one model turn; every text delta is awaited on the
#             caller's sink before the next one is read
# tools     — execute the requested tools one at a time, in request
#             order, and relay each result tagged with its call id
# validate  — parse the last turn's text into an AssessmentResult,
#             falling back to the default on any failure
#
# DESIGN DECISION: The model drives, the graph only executes.
# Which tools run, in what order, and how many times is decided by the
# model turn by turn. The graph has no fixed call sequence.
#
# DESIGN DECISION: Bounded loop.
# After settings.max_tool_turns tool-using turns, the next turn is issued
# with tool use disabled, so the run always reaches validate.
#
# DESIGN DECISION: Per-run collaborators travel in state.
# The GitHub client and chunk sink belong to one assessment and are put
# in the initial state, as is the LLM provider. NOTE: Not
# JSON-serialisable. Safe as long as no checkpointer is configured on
# the graph (current: no checkpointer).
#
# Run lifecycle: IDLE → STREAMING → COMPLETED, or → FAILED when the model
# runtime raises TransportError. Tool errors and invalid answers never
# fail a run.
# =============================================================================

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Any

from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from app.agents.catalog import describe_catalog, execute_tool, tool_definitions
from app.agents.validator import ValidatedAssessment, validate_assessment
from app.config import settings
from app.models.assessment import AssessmentResult
from app.services.github import GitHubClient
from app.services.llm import (
    ChunkSink,
    LLMProvider,
    ToolCall,
    TransportError,
    get_llm_provider,
)

logger = logging.getLogger(__name__)


class RunStatus(str, enum.Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ToolExchange:
    """Trace entry for one executed tool call."""

    call_id: str
    name: str
    is_error: bool


@dataclass
class AssessmentRun:
    """Everything one invocation produced."""

    username: str
    result: AssessmentResult
    status: RunStatus = RunStatus.COMPLETED
    fallback_used: bool = False
    fallback_reason: str | None = None
    model: str = "unknown"
    turns: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    tool_calls: list[ToolExchange] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = (
    "You are InsightRank, an AI-powered developer screening tool that "
    "provides objective, structured technical evaluations."
)

DEVELOPMENT_GUIDELINES: tuple[str, ...] = (
    "Code Quality: Well-structured, readable code with consistent formatting "
    "and meaningful variable names",
    "Testing: Comprehensive test coverage including unit tests, integration "
    "tests, and edge cases",
    "Documentation: Clear README files, inline comments for complex logic, "
    "and API documentation",
    "Version Control: Meaningful commit messages, logical commit history, and "
    "proper branching strategies",
    "Code Review: Responsive to feedback, constructive review comments, and "
    "collaborative development",
    "Architecture: Clean architecture patterns, separation of concerns, and "
    "scalable design",
    "Performance: Efficient algorithms, optimized database queries, and "
    "performance monitoring",
    "Security: Input validation, secure coding practices, and vulnerability "
    "awareness",
    "Maintainability: Modular code, DRY principles, and easy-to-extend "
    "codebase",
    "Collaboration: Clear communication, timely responses, and knowledge "
    "sharing",
)


def build_task_prompt(username: str) -> str:
    """The fixed task prompt for one subject."""
    guidelines = "\n".join(f"- {g}" for g in DEVELOPMENT_GUIDELINES)
    schema = json.dumps(
        AssessmentResult.model_json_schema(by_alias=True), indent=2,
    )
    return f"""Your task is to analyze a developer's GitHub profile and provide a \
comprehensive technical assessment for hiring decisions.

GitHub Username: "{username}"

Available tools:
{describe_catalog()}

Using the provided tools, gather comprehensive data about this developer's:
1. Profile information and activity
2. Repository quality and language distribution
3. Pull request patterns and collaboration
4. Commit history and message quality
5. Starred repositories (interests vs contributions)

If a tool returns an error, continue with the evidence you have.

Development best practices guidelines:
{guidelines}

Based on the guidelines and the gathered data, provide a structured evaluation:

**Strengths (Top 3):** The developer's strongest technical and collaboration skills
**Growth Areas (Top 2):** Areas where the developer could improve
**Technical Keywords:** 5-8 relevant technologies and skills
**Best Contribution:** Their most impactful recent work
**Overall Score:** 1-10 rating based on technical competence and collaboration
**Recommendation:** Strong Hire, Hire, Consider, or Pass
**Interview Questions:** 3 specific questions based on their actual work
**Risk Factors:** Any potential concerns (optional)

Be objective, constructive, and focus on evidence-based assessment. Consider:
- Code quality and architecture patterns
- Collaboration and communication skills
- Technical depth and breadth
- Consistency and reliability
- Growth trajectory and learning ability

When you have finished gathering evidence, reply with ONLY a JSON object \
(no prose, no markdown) that follows this exact schema:
{schema}"""


# ---------------------------------------------------------------------------
# Graph State Schema
# ---------------------------------------------------------------------------


class AssessmentState(TypedDict, total=False):
    """
    State that flows through the LangGraph graph.

    Uses total=False so nodes only need to return the keys they update.
    """

    # --- Input (set by caller) ---
    username: str
    llm: LLMProvider
    github: GitHubClient
    on_chunk: ChunkSink

    # --- Loop ---
    status: RunStatus
    messages: list[dict[str, Any]]
    pending_calls: list[ToolCall]
    turns: int
    tool_turns: int
    tool_log: list[ToolExchange]

    # --- Output ---
    final_text: str
    model: str
    input_tokens: int
    output_tokens: int
    assessment: ValidatedAssessment


# ---------------------------------------------------------------------------
# Node Functions
# ---------------------------------------------------------------------------


async def generate_node(state: AssessmentState) -> dict:
    """
    Stream one model turn.

    TransportError from the provider propagates out of the graph.
    """
    allow_tools = state["tool_turns"] < settings.max_tool_turns
    if not allow_tools:
        logger.warning(
            "Tool turn limit (%d) reached for %s — requesting final answer",
            settings.max_tool_turns, state["username"],
        )

    turn = await state["llm"].stream_turn(
        messages=state["messages"],
        on_chunk=state["on_chunk"],
        system=SYSTEM_PROMPT,
        tools=tool_definitions(),
        allow_tools=allow_tools,
    )

    logger.info(
        "Turn %d complete: model=%s, tool_calls=%d, tokens=%d+%d",
        state["turns"] + 1, turn.model, len(turn.tool_calls),
        turn.input_tokens, turn.output_tokens,
    )

    return {
        "messages": [*state["messages"], turn.assistant_message],
        # Calls requested despite tools being disabled are not executed
        "pending_calls": turn.tool_calls if allow_tools else [],
        "turns": state["turns"] + 1,
        "final_text": turn.text,
        "model": turn.model,
        "input_tokens": state["input_tokens"] + turn.input_tokens,
        "output_tokens": state["output_tokens"] + turn.output_tokens,
    }


async def tools_node(state: AssessmentState) -> dict:
    """Execute the pending tool calls one at a time and relay the results."""
    results = []
    for call in state["pending_calls"]:
        logger.info("Executing tool %s(%s)", call.name, call.arguments)
        results.append(
            await execute_tool(
                state["github"], call.name, call.arguments, call_id=call.id,
            )
        )

    return {
        "messages": [
            *state["messages"],
            *state["llm"].tool_result_messages(results),
        ],
        "pending_calls": [],
        "tool_turns": state["tool_turns"] + 1,
        "tool_log": [
            *state["tool_log"],
            *(
                ToolExchange(call_id=r.call_id, name=r.name, is_error=r.is_error)
                for r in results
            ),
        ],
    }


async def validate_node(state: AssessmentState) -> dict:
    """Validate the last turn's text against the output contract."""
    return {
        "assessment": validate_assessment(state.get("final_text", "")),
        "status": RunStatus.COMPLETED,
    }


def route_after_generate(state: AssessmentState) -> str:
    return "tools" if state.get("pending_calls") else "validate"


# ---------------------------------------------------------------------------
# Graph Assembly
# ---------------------------------------------------------------------------
# Compiled once at module level. The compiled graph is reusable and safe
# for concurrent FastAPI requests; all per-run data lives in the state.
# ---------------------------------------------------------------------------

_builder = StateGraph(AssessmentState)
_builder.add_node("generate", generate_node)
_builder.add_node("tools", tools_node)
_builder.add_node("validate", validate_node)

_builder.add_edge(START, "generate")
_builder.add_conditional_edges(
    "generate",
    route_after_generate,
    {"tools": "tools", "validate": "validate"},
)
_builder.add_edge("tools", "generate")
_builder.add_edge("validate", END)

graph = _builder.compile()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def run_assessment(
    username: str,
    on_chunk: ChunkSink | None = None,
    llm: LLMProvider | None = None,
    github: GitHubClient | None = None,
) -> AssessmentRun:
    """
    Entry point: assess one GitHub user.

    Args:
        username: GitHub login (validated by the caller).
        on_chunk: Optional async sink receiving every streamed text
            fragment in order. Omit to consume only the final result.
        llm: Optional LLM provider override (default: configured singleton).
        github: Optional GitHub client. When omitted a fresh client is
            created for this run and closed afterwards.

    Returns:
        AssessmentRun whose `result` always satisfies the AssessmentResult
        contract (possibly the fallback default).

    Raises:
        TransportError: The model runtime failed.
        ValueError: No LLM API key configured.
    """
    provider = llm or get_llm_provider()
    if github is None:
        async with GitHubClient() as owned_github:
            return await _run_graph(username, on_chunk, provider, owned_github)
    return await _run_graph(username, on_chunk, provider, github)


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


async def _discard_chunk(_: str) -> None:
    return None


async def _run_graph(
    username: str,
    on_chunk: ChunkSink | None,
    llm: LLMProvider,
    github: GitHubClient,
) -> AssessmentRun:
    initial_state: AssessmentState = {
        "username": username,
        "llm": llm,
        "github": github,
        "on_chunk": on_chunk or _discard_chunk,
        "status": RunStatus.STREAMING,
        "messages": [{"role": "user", "content": build_task_prompt(username)}],
        "pending_calls": [],
        "turns": 0,
        "tool_turns": 0,
        "tool_log": [],
        "input_tokens": 0,
        "output_tokens": 0,
    }

    logger.info("Starting assessment for %s", username)

    # Each loop iteration is two graph steps (generate + tools), plus the
    # forced final turn and validate
    recursion_limit = 2 * settings.max_tool_turns + 5
    try:
        final = await graph.ainvoke(
            initial_state, config={"recursion_limit": recursion_limit},
        )
    except TransportError:
        logger.error(
            "Assessment for %s %s: model runtime failure",
            username, RunStatus.FAILED.value,
        )
        raise

    assessment: ValidatedAssessment = final["assessment"]
    logger.info(
        "Assessment for %s %s: score=%s, recommendation=%s, fallback=%s, "
        "turns=%d, tool_calls=%d",
        username, final["status"].value,
        assessment.result.overall_score, assessment.result.recommendation,
        assessment.fallback_used, final["turns"], len(final["tool_log"]),
    )

    return AssessmentRun(
        username=username,
        result=assessment.result,
        status=final["status"],
        fallback_used=assessment.fallback_used,
        fallback_reason=assessment.reason,
        model=final.get("model", "unknown"),
        turns=final["turns"],
        input_tokens=final["input_tokens"],
        output_tokens=final["output_tokens"],
        tool_calls=final["tool_log"],
    )
