# =============================================================================
# Multi-Provider LLM Abstraction — Streaming Tool-Calling Turns
# =============================================================================
#
# Provides a common interface for ONE streamed model turn with tools, with
# concrete implementations for Anthropic (Claude) and OpenAI-compatible
# APIs (OpenAI, Gemini's OpenAI endpoint, DeepSeek, Qwen, ...).
#
# A "turn" = send the conversation so far + tool definitions, relay text
# deltas to a sink as they arrive, and return the complete assistant
# message (text + any tool calls). Looping over turns and executing tools
# is the orchestrator's job (app/agents/orchestrator.py), not ours.
#
# DESIGN DECISION: Protocol (structural typing) over ABC.
# Any class with `stream_turn()` and `tool_result_messages()` works —
# tests pass an AsyncMock or a scripted fake.
#
# DESIGN DECISION: Native SDKs over LangChain wrappers.
# Using the anthropic and openai SDKs directly gives direct control over
# streaming and tool-call accumulation, and easier debugging.
#
# DESIGN DECISION: The provider owns the message format.
# Anthropic and OpenAI disagree on how tool calls and tool results are
# represented in history. Each provider builds its own assistant message
# (TurnResponse.assistant_message) and tool-result messages, so the
# orchestrator can stay format-agnostic.
#
# ARCHITECTURE:
#   LLMProvider (Protocol)
#   ├── AnthropicProvider        — Claude via messages.stream()
#   ├── OpenAICompatibleProvider — chat.completions with stream=True
#   └── get_llm_provider()       — Singleton factory, reads from config
# =============================================================================

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from app.config import settings

logger = logging.getLogger(__name__)

# Receives each text fragment, in order, as soon as it is produced
ChunkSink = Callable[[str], Awaitable[None]]


class TransportError(Exception):
    """The model runtime could not be reached or aborted the request."""


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ToolDefinition:
    """Provider-neutral tool declaration."""

    name: str
    description: str
    input_schema: dict[str, Any]


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the model."""

    id: str
    name: str
    arguments: dict[str, Any]


@dataclass(frozen=True)
class ToolResult:
    """Result of executing a ToolCall, to be relayed to the model."""

    call_id: str
    name: str
    content: str     # JSON text: the evidence record or an error body
    is_error: bool = False


@dataclass
class TurnResponse:
    """
    Standardised result of one streamed turn from any provider.

    `assistant_message` is the provider-native message to append to the
    conversation before the tool results.
    """

    text: str
    tool_calls: list[ToolCall]
    model: str
    input_tokens: int
    output_tokens: int
    stop_reason: str | None = None
    assistant_message: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class LLMProvider(Protocol):
    """Interface the orchestrator drives."""

    async def stream_turn(
        self,
        messages: list[dict[str, Any]],
        on_chunk: ChunkSink,
        system: str | None = None,
        tools: Sequence[ToolDefinition] = (),
        allow_tools: bool = True,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> TurnResponse:
        """
        Stream one assistant turn.

        Args:
            messages: Conversation so far, in this provider's format.
            on_chunk: Awaited once per text delta, in order.
            system: System prompt.
            tools: Tools the model may call.
            allow_tools: False forbids tool calls for this turn while still
                declaring the tools (history may reference them).
            temperature: Override sampling temperature (default from config).
            max_tokens: Override max output tokens (default from config).

        Raises:
            TransportError: The API call failed.
        """
        ...

    def tool_result_messages(
        self, results: Sequence[ToolResult],
    ) -> list[dict[str, Any]]:
        """Messages that relay tool results back to the model."""
        ...


# ---------------------------------------------------------------------------
# Implementation 1: Anthropic (Claude)
# ---------------------------------------------------------------------------


class AnthropicProvider:
    """
    Anthropic Claude provider using the native SDK's streaming helper.

    KEY API DIFFERENCE: Anthropic takes system prompts as a top-level
    `system=` kwarg and returns tool calls as `tool_use` content blocks.
    Tool results go back as `tool_result` blocks inside a USER message.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
    ) -> None:
        from anthropic import AsyncAnthropic

        resolved_key = api_key or settings.llm_api_key or settings.anthropic_api_key
        if not resolved_key:
            raise ValueError(
                "No Anthropic API key configured. Set LLM_API_KEY or "
                "ANTHROPIC_API_KEY in .env"
            )

        self._client = AsyncAnthropic(api_key=resolved_key)
        self._model = model or settings.llm_model
        self._temperature = settings.llm_temperature
        self._max_tokens = settings.llm_max_tokens

        logger.info("Initialized AnthropicProvider (model=%s)", self._model)

    async def stream_turn(
        self,
        messages: list[dict[str, Any]],
        on_chunk: ChunkSink,
        system: str | None = None,
        tools: Sequence[ToolDefinition] = (),
        allow_tools: bool = True,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> TurnResponse:
        """Stream one Claude turn."""
        import anthropic

        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "max_tokens": max_tokens or self._max_tokens,
            "temperature": (
                self._temperature if temperature is None else temperature
            ),
        }
        if system:
            kwargs["system"] = system
        if tools:
            kwargs["tools"] = [
                {
                    "name": tool.name,
                    "description": tool.description,
                    "input_schema": tool.input_schema,
                }
                for tool in tools
            ]
            if not allow_tools:
                kwargs["tool_choice"] = {"type": "none"}

        try:
            async with self._client.messages.stream(**kwargs) as stream:
                async for text in stream.text_stream:
                    await on_chunk(text)
                final = await stream.get_final_message()
        except anthropic.APIError as e:
            raise TransportError(f"Anthropic API error: {e}") from e

        text_parts: list[str] = []
        tool_calls: list[ToolCall] = []
        for block in final.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(
                    ToolCall(id=block.id, name=block.name, arguments=dict(block.input))
                )

        return TurnResponse(
            text="".join(text_parts),
            tool_calls=tool_calls,
            model=final.model,
            input_tokens=final.usage.input_tokens,
            output_tokens=final.usage.output_tokens,
            stop_reason=final.stop_reason,
            assistant_message={
                "role": "assistant",
                "content": [
                    block.model_dump(exclude_none=True) for block in final.content
                ],
            },
        )

    def tool_result_messages(
        self, results: Sequence[ToolResult],
    ) -> list[dict[str, Any]]:
        # All results of one turn travel in a single user message
        return [
            {
                "role": "user",
                "content": [
                    {
                        "type": "tool_result",
                        "tool_use_id": result.call_id,
                        "content": result.content,
                        "is_error": result.is_error,
                    }
                    for result in results
                ],
            }
        ]


# ---------------------------------------------------------------------------
# Implementation 2: OpenAI-Compatible
# ---------------------------------------------------------------------------


class OpenAICompatibleProvider:
    """
    OpenAI-compatible provider for any API that follows the OpenAI
    chat completions API with function calling.

    Streaming tool calls arrive as fragments keyed by `index`: the first
    fragment carries the id and name, later ones append to the JSON
    arguments string. They are reassembled here before being returned.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
    ) -> None:
        from openai import AsyncOpenAI

        resolved_key = api_key or settings.llm_api_key or settings.openai_api_key
        if not resolved_key:
            raise ValueError(
                "No API key configured for OpenAI-compatible provider. "
                "Set LLM_API_KEY in .env"
            )

        client_kwargs: dict = {"api_key": resolved_key}
        resolved_base_url = base_url or settings.llm_base_url
        if resolved_base_url:
            client_kwargs["base_url"] = resolved_base_url

        self._client = AsyncOpenAI(**client_kwargs)
        self._model = model or settings.llm_model
        self._temperature = settings.llm_temperature
        self._max_tokens = settings.llm_max_tokens

        logger.info(
            "Initialized OpenAICompatibleProvider (model=%s, base_url=%s)",
            self._model,
            resolved_base_url or "https://api.openai.com/v1",
        )

    async def stream_turn(
        self,
        messages: list[dict[str, Any]],
        on_chunk: ChunkSink,
        system: str | None = None,
        tools: Sequence[ToolDefinition] = (),
        allow_tools: bool = True,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> TurnResponse:
        """Stream one chat completion turn."""
        import openai

        # OpenAI: system prompt goes as the first message
        all_messages: list[dict[str, Any]] = []
        if system:
            all_messages.append({"role": "system", "content": system})
        all_messages.extend(messages)

        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": all_messages,
            "max_tokens": max_tokens or self._max_tokens,
            "temperature": (
                self._temperature if temperature is None else temperature
            ),
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if tools:
            kwargs["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": tool.input_schema,
                    },
                }
                for tool in tools
            ]
            if not allow_tools:
                kwargs["tool_choice"] = "none"

        text_parts: list[str] = []
        fragments: dict[int, dict[str, str]] = {}
        model = self._model
        input_tokens = output_tokens = 0
        stop_reason: str | None = None

        try:
            stream = await self._client.chat.completions.create(**kwargs)
            async for chunk in stream:
                model = chunk.model or model
                # Usage arrives on a final chunk with no choices
                if chunk.usage:
                    input_tokens = chunk.usage.prompt_tokens
                    output_tokens = chunk.usage.completion_tokens
                if not chunk.choices:
                    continue

                choice = chunk.choices[0]
                delta = choice.delta
                if delta.content:
                    text_parts.append(delta.content)
                    await on_chunk(delta.content)
                for fragment in delta.tool_calls or []:
                    entry = fragments.setdefault(
                        fragment.index, {"id": "", "name": "", "arguments": ""},
                    )
                    if fragment.id:
                        entry["id"] = fragment.id
                    if fragment.function:
                        entry["name"] += fragment.function.name or ""
                        entry["arguments"] += fragment.function.arguments or ""
                if choice.finish_reason:
                    stop_reason = choice.finish_reason
        except openai.APIError as e:
            raise TransportError(f"OpenAI-compatible API error: {e}") from e

        raw_calls = [fragments[index] for index in sorted(fragments)]
        text = "".join(text_parts)

        assistant_message: dict[str, Any] = {
            "role": "assistant",
            "content": text or None,
        }
        if raw_calls:
            assistant_message["tool_calls"] = [
                {
                    "id": call["id"],
                    "type": "function",
                    "function": {
                        "name": call["name"],
                        "arguments": call["arguments"],
                    },
                }
                for call in raw_calls
            ]

        return TurnResponse(
            text=text,
            tool_calls=[
                ToolCall(
                    id=call["id"],
                    name=call["name"],
                    arguments=_decode_arguments(call["name"], call["arguments"]),
                )
                for call in raw_calls
            ],
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            stop_reason=stop_reason,
            assistant_message=assistant_message,
        )

    def tool_result_messages(
        self, results: Sequence[ToolResult],
    ) -> list[dict[str, Any]]:
        # One "tool" role message per call
        return [
            {
                "role": "tool",
                "tool_call_id": result.call_id,
                "content": result.content,
            }
            for result in results
        ]


def _decode_arguments(name: str, raw: str) -> dict[str, Any]:
    """
    Decode a streamed JSON arguments string.

    Malformed arguments decode to {} so the call fails input validation
    and the model gets told, rather than aborting the turn.
    """
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Unparseable arguments for %s: %r", name, raw[:200])
        return {}
    return decoded if isinstance(decoded, dict) else {}


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

# Lazy singleton — avoid re-creating client on every request
_provider: AnthropicProvider | OpenAICompatibleProvider | None = None


def get_llm_provider() -> AnthropicProvider | OpenAICompatibleProvider:
    """
    Factory that returns the configured LLM provider.

    Reads `llm_provider` from settings:
    - "anthropic" → AnthropicProvider (Claude)
    - "openai_compatible" → OpenAICompatibleProvider

    DESIGN DECISION: Lazy singleton. The SDK clients manage their own
    connection pools and are safe to share between concurrent requests.
    All per-assessment state lives in the orchestrator.

    Raises:
        ValueError: No API key configured for the selected provider.
    """
    global _provider
    if _provider is None:
        if settings.llm_provider == "openai_compatible":
            _provider = OpenAICompatibleProvider()
        else:
            _provider = AnthropicProvider()
    return _provider
