# =============================================================================
# Evidence Catalog — Tool Declarations & Dispatch
# =============================================================================
#
# The capability menu offered to the model: each Evidence Tool with its
# name, description, input schema and output schema. The same table is
# used to execute whatever the model asks for.
#
# DESIGN DECISION: Dispatch table, not a call sequence.
# The model decides which tools to call, in what order, and how often.
# This module never chooses — it only maps a requested name to a handler,
# validates the arguments, runs it, and serialises the outcome.
#
# DESIGN DECISION: Tool failures are data, not exceptions.
# An unknown tool name, bad arguments, or a GitHub error all come back as
# a ToolResult with is_error=True and a JSON error body. The model sees
# the error and can retry, adapt, or answer without that evidence.
# =============================================================================

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from app.agents.evidence import (
    fetch_commit_analysis,
    fetch_language_stats,
    fetch_profile,
    fetch_pull_requests,
    fetch_repos,
    fetch_starred_repos,
)
from app.models.evidence import (
    CommitAnalysis,
    GithubProfile,
    LanguageStats,
    PullRequestStats,
    RepoList,
    StarredSummary,
    ToolInput,
)
from app.services.github import GitHubClient, UpstreamError
from app.services.llm import ToolDefinition, ToolResult

logger = logging.getLogger(__name__)

ToolHandler = Callable[[GitHubClient, str], Awaitable[BaseModel]]


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EvidenceTool:
    """One entry of the catalog."""

    name: str
    description: str
    handler: ToolHandler
    output_model: type[BaseModel]
    input_model: type[BaseModel] = ToolInput

    @property
    def input_schema(self) -> dict[str, Any]:
        return self.input_model.model_json_schema()

    @property
    def output_schema(self) -> dict[str, Any]:
        return self.output_model.model_json_schema(by_alias=True)


# ---------------------------------------------------------------------------
# The Catalog
# ---------------------------------------------------------------------------

EVIDENCE_TOOLS: tuple[EvidenceTool, ...] = (
    EvidenceTool(
        name="fetchGithubUserProfile",
        description=(
            "Fetches the public profile of a GitHub user including bio, "
            "followers, company, etc."
        ),
        handler=fetch_profile,
        output_model=GithubProfile,
    ),
    EvidenceTool(
        name="fetchGithubRepos",
        description=(
            "Fetches a list of public repositories for a given GitHub "
            "username sorted by pushed date."
        ),
        handler=fetch_repos,
        output_model=RepoList,
    ),
    EvidenceTool(
        name="fetchLanguageStats",
        description=(
            "Analyzes programming languages used across all repositories "
            "to calculate usage statistics."
        ),
        handler=fetch_language_stats,
        output_model=LanguageStats,
    ),
    EvidenceTool(
        name="fetchPullRequests",
        description=(
            "Fetches recent pull requests for a user to analyze code "
            "quality and collaboration patterns."
        ),
        handler=fetch_pull_requests,
        output_model=PullRequestStats,
    ),
    EvidenceTool(
        name="fetchCommitAnalysis",
        description=(
            "Analyzes commit patterns, frequency, and message quality for "
            "a developer."
        ),
        handler=fetch_commit_analysis,
        output_model=CommitAnalysis,
    ),
    EvidenceTool(
        name="fetchStarredRepos",
        description=(
            "Fetches repositories that the user has starred to analyze "
            "their interests vs their own work."
        ),
        handler=fetch_starred_repos,
        output_model=StarredSummary,
    ),
)

EVIDENCE_CATALOG: dict[str, EvidenceTool] = {
    tool.name: tool for tool in EVIDENCE_TOOLS
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def tool_definitions() -> list[ToolDefinition]:
    """The catalog in the provider-neutral form the LLM layer accepts."""
    return [
        ToolDefinition(
            name=tool.name,
            description=tool.description,
            input_schema=tool.input_schema,
        )
        for tool in EVIDENCE_TOOLS
    ]


def describe_catalog() -> str:
    """
    Catalog summary for the task prompt: name, description and the
    fields each tool returns (the APIs carry input schemas only).
    """
    return "\n".join(
        f"- {tool.name}: {tool.description} "
        f"Returns: {', '.join(_output_fields(tool))}"
        for tool in EVIDENCE_TOOLS
    )


async def execute_tool(
    github: GitHubClient,
    name: str,
    arguments: dict[str, Any],
    call_id: str = "",
) -> ToolResult:
    """
    Validate and run one requested tool call.

    Never raises for tool-level problems; see module header.

    Args:
        github: Client scoped to the current assessment.
        name: Tool name as requested by the model.
        arguments: Decoded tool arguments as requested by the model.
        call_id: Provider-assigned id, echoed back so the result is
            associated with its originating request.
    """
    tool = EVIDENCE_CATALOG.get(name)
    if tool is None:
        logger.warning("Model requested unknown tool '%s'", name)
        return _error(call_id, name, f"Unknown tool '{name}'")

    try:
        params = tool.input_model.model_validate(arguments)
    except ValidationError as e:
        logger.warning("Invalid arguments for %s: %s", name, arguments)
        return _error(call_id, name, f"Invalid arguments: {e}")

    try:
        record = await tool.handler(github, params.username)
    except UpstreamError as e:
        logger.warning("Tool %s failed upstream: %s", name, e)
        return _error(call_id, name, str(e), status=e.status_code)
    except (ValidationError, KeyError, TypeError, AttributeError, ValueError) as e:
        # GitHub returned something that doesn't fit the output model
        logger.warning("Tool %s got an unexpected payload: %s", name, e)
        return _error(call_id, name, f"Unexpected upstream payload: {e}")

    return ToolResult(
        call_id=call_id,
        name=name,
        content=record.model_dump_json(by_alias=True),
    )


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _output_fields(tool: EvidenceTool) -> list[str]:
    schema = tool.output_schema
    if schema.get("type") == "array":
        # RootModel list: describe the item fields
        ref = schema["items"]["$ref"].rsplit("/", 1)[-1]
        return [f"list of {{{', '.join(schema['$defs'][ref]['properties'])}}}"]
    return list(schema.get("properties", {}))


def _error(
    call_id: str, name: str, message: str, status: int | None = None,
) -> ToolResult:
    body: dict[str, Any] = {"error": message, "tool": name}
    if status is not None:
        body["status"] = status
    return ToolResult(
        call_id=call_id, name=name, content=json.dumps(body), is_error=True,
    )
