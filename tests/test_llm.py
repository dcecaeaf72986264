# =============================================================================
# Unit Tests — LLM Providers
# =============================================================================
#
# The SDK clients are replaced with fakes after construction, so no API
# calls are made. Each test checks what a provider sends, what it relays
# to the sink, and how it assembles the turn.
# =============================================================================

from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import anthropic
import httpx
import openai
import pytest

from app.services import llm
from app.services.llm import (
    AnthropicProvider,
    OpenAICompatibleProvider,
    ToolDefinition,
    ToolResult,
    TransportError,
    _decode_arguments,
)

TOOLS = [
    ToolDefinition(
        name="fetchGithubRepos",
        description="List repositories",
        input_schema={"type": "object", "properties": {"username": {"type": "string"}}},
    )
]


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


class _Collector:
    def __init__(self) -> None:
        self.chunks: list[str] = []

    async def __call__(self, text: str) -> None:
        self.chunks.append(text)


# ---------------------------------------------------------------------------
# Test: Factory
# ---------------------------------------------------------------------------


class TestLLMProviderFactory:
    """Tests for the LLM provider factory function."""

    def test_factory_raises_without_api_key(self):
        """Factory should raise ValueError when no API key is set."""
        original = llm._provider
        llm._provider = None

        try:
            with patch.object(
                llm.settings, "llm_provider", "anthropic"
            ), patch.object(
                llm.settings, "llm_api_key", None
            ), patch.object(
                llm.settings, "anthropic_api_key", ""
            ):
                with pytest.raises(ValueError, match="API key"):
                    llm.get_llm_provider()
        finally:
            llm._provider = original

    def test_factory_selects_openai_compatible(self):
        original = llm._provider
        llm._provider = None

        try:
            with patch.object(
                llm.settings, "llm_provider", "openai_compatible"
            ), patch.object(
                llm.settings, "llm_api_key", "sk-test"
            ):
                provider = llm.get_llm_provider()
                assert isinstance(provider, OpenAICompatibleProvider)
                assert llm.get_llm_provider() is provider
        finally:
            llm._provider = original


class TestDecodeArguments:
    def test_valid_object(self):
        assert _decode_arguments("t", '{"username": "octocat"}') == {"username": "octocat"}

    def test_empty(self):
        assert _decode_arguments("t", "") == {}

    def test_malformed(self):
        assert _decode_arguments("t", '{"username": ') == {}

    def test_non_object(self):
        assert _decode_arguments("t", '["octocat"]') == {}


# ---------------------------------------------------------------------------
# Test: Anthropic
# ---------------------------------------------------------------------------


class _Block:
    """Stand-in for an Anthropic content block."""

    def __init__(self, **fields) -> None:
        self._fields = fields
        for key, value in fields.items():
            setattr(self, key, value)

    def model_dump(self, exclude_none: bool = False) -> dict:
        return dict(self._fields)


class _FakeAnthropicStream:
    def __init__(self, deltas: list[str], final) -> None:
        self._deltas = deltas
        self._final = final

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc) -> None:
        return None

    @property
    def text_stream(self):
        return _aiter(self._deltas)

    async def get_final_message(self):
        return self._final


def _anthropic_provider(deltas, final, error=None):
    provider = AnthropicProvider(api_key="test-key", model="claude-test")
    captured: dict = {}

    def stream(**kwargs):
        captured.update(kwargs)
        if error is not None:
            raise error
        return _FakeAnthropicStream(deltas, final)

    provider._client = SimpleNamespace(messages=SimpleNamespace(stream=stream))
    return provider, captured


class TestAnthropicProvider:
    """Tests for the Claude streaming turn."""

    def _final(self):
        return SimpleNamespace(
            model="claude-test",
            stop_reason="tool_use",
            usage=SimpleNamespace(input_tokens=120, output_tokens=30),
            content=[
                _Block(type="text", text="Checking repos."),
                _Block(
                    type="tool_use", id="toolu_1", name="fetchGithubRepos",
                    input={"username": "octocat"},
                ),
            ],
        )

    def test_streams_text_and_collects_tool_calls(self):
        provider, captured = _anthropic_provider(["Checking ", "repos."], self._final())
        sink = _Collector()

        turn = _run(provider.stream_turn(
            [{"role": "user", "content": "go"}], sink, system="sys", tools=TOOLS,
        ))

        assert sink.chunks == ["Checking ", "repos."]
        assert turn.text == "Checking repos."
        assert turn.tool_calls[0].id == "toolu_1"
        assert turn.tool_calls[0].arguments == {"username": "octocat"}
        assert turn.input_tokens == 120
        assert turn.assistant_message["role"] == "assistant"
        assert turn.assistant_message["content"][1]["type"] == "tool_use"
        assert captured["system"] == "sys"
        assert captured["tools"][0]["input_schema"] == TOOLS[0].input_schema
        assert "tool_choice" not in captured

    def test_tools_disallowed_sets_tool_choice_none(self):
        provider, captured = _anthropic_provider([], self._final())
        _run(provider.stream_turn([], _Collector(), tools=TOOLS, allow_tools=False))
        assert captured["tool_choice"] == {"type": "none"}
        assert captured["tools"]

    def test_api_error_becomes_transport_error(self):
        error = anthropic.APIConnectionError(
            request=httpx.Request("POST", "https://api.anthropic.com/v1/messages"),
        )
        provider, _ = _anthropic_provider([], None, error=error)
        with pytest.raises(TransportError):
            _run(provider.stream_turn([], _Collector(), tools=TOOLS))

    def test_tool_results_in_one_user_message(self):
        provider, _ = _anthropic_provider([], None)
        messages = provider.tool_result_messages([
            ToolResult(call_id="a", name="x", content="{}"),
            ToolResult(call_id="b", name="y", content='{"error": "e"}', is_error=True),
        ])
        assert len(messages) == 1
        assert messages[0]["role"] == "user"
        blocks = messages[0]["content"]
        assert [b["tool_use_id"] for b in blocks] == ["a", "b"]
        assert blocks[1]["is_error"] is True


# ---------------------------------------------------------------------------
# Test: OpenAI-Compatible
# ---------------------------------------------------------------------------


def _chunk(content=None, tool_calls=None, finish_reason=None, usage=None):
    choices = []
    if content is not None or tool_calls is not None or finish_reason is not None:
        choices = [
            SimpleNamespace(
                delta=SimpleNamespace(content=content, tool_calls=tool_calls),
                finish_reason=finish_reason,
            )
        ]
    return SimpleNamespace(model="gpt-test", choices=choices, usage=usage)


def _fragment(index, id=None, name=None, arguments=None):
    return SimpleNamespace(
        index=index,
        id=id,
        function=SimpleNamespace(name=name, arguments=arguments),
    )


async def _aiter(items):
    for item in items:
        yield item


def _openai_provider(chunks, error=None):
    provider = OpenAICompatibleProvider(api_key="sk-test", model="gpt-test")
    create = AsyncMock(
        side_effect=error, return_value=None if error else _aiter(chunks),
    )
    provider._client = SimpleNamespace(
        chat=SimpleNamespace(completions=SimpleNamespace(create=create)),
    )
    return provider, create


class TestOpenAICompatibleProvider:
    """Tests for the chat-completions streaming turn."""

    def test_assembles_fragmented_tool_calls(self):
        provider, create = _openai_provider([
            _chunk(content="Let me "),
            _chunk(content="look."),
            _chunk(tool_calls=[_fragment(0, id="call_a", name="fetchGithubRepos", arguments='{"user')]),
            _chunk(tool_calls=[_fragment(1, id="call_b", name="fetchStarredRepos", arguments="")]),
            _chunk(tool_calls=[_fragment(0, arguments='name": "octocat"}')]),
            _chunk(tool_calls=[_fragment(1, arguments='{"username": "octocat"}')]),
            _chunk(finish_reason="tool_calls"),
            _chunk(usage=SimpleNamespace(prompt_tokens=50, completion_tokens=12)),
        ])
        sink = _Collector()

        turn = _run(provider.stream_turn(
            [{"role": "user", "content": "go"}], sink, system="sys", tools=TOOLS,
        ))

        assert sink.chunks == ["Let me ", "look."]
        assert turn.text == "Let me look."
        assert [c.id for c in turn.tool_calls] == ["call_a", "call_b"]
        assert turn.tool_calls[0].arguments == {"username": "octocat"}
        assert turn.tool_calls[1].name == "fetchStarredRepos"
        assert turn.stop_reason == "tool_calls"
        assert (turn.input_tokens, turn.output_tokens) == (50, 12)

        sent = create.call_args.kwargs
        assert sent["messages"][0] == {"role": "system", "content": "sys"}
        assert sent["stream"] is True
        assert sent["tools"][0]["function"]["name"] == "fetchGithubRepos"

        history_calls = turn.assistant_message["tool_calls"]
        assert json.loads(history_calls[0]["function"]["arguments"]) == {"username": "octocat"}

    def test_text_only_turn(self):
        provider, create = _openai_provider([
            _chunk(content='{"overallScore": 8}'),
            _chunk(finish_reason="stop"),
        ])
        turn = _run(provider.stream_turn([], _Collector(), tools=TOOLS, allow_tools=False))

        assert turn.tool_calls == []
        assert "tool_calls" not in turn.assistant_message
        assert create.call_args.kwargs["tool_choice"] == "none"

    def test_api_error_becomes_transport_error(self):
        error = openai.APIConnectionError(
            request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"),
        )
        provider, _ = _openai_provider([], error=error)
        with pytest.raises(TransportError):
            _run(provider.stream_turn([], _Collector()))

    def test_tool_results_one_message_per_call(self):
        provider, _ = _openai_provider([])
        messages = provider.tool_result_messages([
            ToolResult(call_id="a", name="x", content="{}"),
            ToolResult(call_id="b", name="y", content="{}"),
        ])
        assert [m["tool_call_id"] for m in messages] == ["a", "b"]
        assert all(m["role"] == "tool" for m in messages)
