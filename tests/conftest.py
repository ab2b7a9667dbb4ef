"""Shared test fixtures.

This module provides a scripted LLM backend and factories for canned model
responses, so turn loop and orchestrator tests run without a real model.
"""

import itertools
from collections.abc import Callable, Sequence
from typing import Any

import pytest

from hive_agent.agent.messages import Message, TextBlock, ThinkingBlock, ToolUseBlock
from hive_agent.llm.base import TOOL_USE_STOP_REASON, LLMResponse, LlmOptions, Usage

DEFAULT_TEST_MODEL = "claude-sonnet-4-5"

type Step = LLMResponse | Callable[[str, Sequence[Message]], LLMResponse]

_tool_ids = itertools.count(1)


class ScriptedBackend:
    """LLM backend replaying a fixed list of responses.

    A step may also be a callable (system_prompt, messages) -> LLMResponse for
    responses that depend on the conversation. Every call is recorded.
    """

    def __init__(self, steps: Sequence[Step], repeat_last: bool = False) -> None:
        self._steps = list(steps)
        self._repeat_last = repeat_last
        self.calls: list[dict[str, Any]] = []

    async def chat(
        self,
        system_prompt: str,
        messages: Sequence[Message],
        tools: Sequence[dict[str, Any]],
        options: LlmOptions | None = None,
    ) -> LLMResponse:
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "messages": list(messages),
                "tools": [tool["name"] for tool in tools],
                "options": options,
            }
        )
        index = len(self.calls) - 1
        if index >= len(self._steps):
            if not self._repeat_last or not self._steps:
                raise AssertionError(f"Backend called {len(self.calls)} times, only {len(self._steps)} scripted")
            index = len(self._steps) - 1
        step = self._steps[index]
        return step(system_prompt, messages) if callable(step) else step


def make_text_reply(
    text: str,
    input_tokens: int = 10,
    output_tokens: int = 5,
    model: str = DEFAULT_TEST_MODEL,
    thinking: str | None = None,
) -> LLMResponse:
    content: list = [ThinkingBlock(thinking=thinking)] if thinking else []
    content.append(TextBlock(text=text))
    return LLMResponse(
        content=content,
        stop_reason="end_turn",
        usage=Usage(input_tokens=input_tokens, output_tokens=output_tokens),
        model=model,
    )


def make_tool_reply(
    *calls: tuple[str, dict[str, Any]],
    input_tokens: int = 10,
    output_tokens: int = 5,
    model: str = DEFAULT_TEST_MODEL,
    cache_read_tokens: int = 0,
) -> LLMResponse:
    return LLMResponse(
        content=[ToolUseBlock(id=f"toolu_{next(_tool_ids)}", name=name, input=tool_input) for name, tool_input in calls],
        stop_reason=TOOL_USE_STOP_REASON,
        usage=Usage(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cache_read_input_tokens=cache_read_tokens,
        ),
        model=model,
    )


@pytest.fixture
def scripted_backend() -> type[ScriptedBackend]:
    """The scripted backend class; instantiate with a list of steps."""
    return ScriptedBackend


@pytest.fixture
def text_reply() -> Callable[..., LLMResponse]:
    """Factory for a final-answer response."""
    return make_text_reply


@pytest.fixture
def tool_reply() -> Callable[..., LLMResponse]:
    """Factory for a tool-use response; pass (name, input) pairs."""
    return make_tool_reply
