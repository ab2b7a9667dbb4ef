"""Integration test fixtures.

This module provides shared fixtures for integration tests including:
- Simple user tools with observable side effects
- A recording trace sink
- A Hive factory wired to a scripted backend

Tests here drive the turn loop and orchestrator end to end with a scripted
LLM backend in place of a real model.
"""

from collections.abc import Callable
from typing import Any

import pytest

from hive_agent.agent.config import HiveConfig
from hive_agent.agent.messages import ToolResult
from hive_agent.agent.orchestrator import Hive
from hive_agent.agent.tools import Tool, ToolContext

# =============================================================================
# Tool Fixtures
# =============================================================================


def make_tool(name: str, execute=None, description: str | None = None) -> Tool:
    """Build a tool; by default it echoes its input back."""

    async def echo(params: dict[str, Any], context: ToolContext) -> ToolResult:
        return ToolResult.ok(params)

    return Tool(
        name=name,
        description=description or f"The {name} tool",
        parameters={"type": "object", "properties": {}},
        execute=execute or echo,
    )


@pytest.fixture
def tool_factory() -> Callable[..., Tool]:
    """Factory for user tools: tool_factory(name, execute=None)."""
    return make_tool


@pytest.fixture
def echo_tool() -> Tool:
    """Tool returning its input as data."""
    return make_tool("echo")


# =============================================================================
# Trace Fixtures
# =============================================================================


class RecordingSink:
    """Trace sink that records every hook call as (hook, agent name)."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str | None]] = []

    def on_trace_start(self, trace) -> None:
        self.calls.append(("on_trace_start", None))

    def on_agent_start(self, span, trace) -> None:
        self.calls.append(("on_agent_start", span.agent_name))

    def on_llm_call(self, event, span, trace) -> None:
        self.calls.append(("on_llm_call", span.agent_name))

    def on_tool_call(self, event, span, trace) -> None:
        self.calls.append(("on_tool_call", span.agent_name))

    def on_agent_end(self, span, trace) -> None:
        self.calls.append(("on_agent_end", span.agent_name))

    def on_trace_end(self, trace) -> None:
        self.calls.append(("on_trace_end", None))

    def hooks(self, name: str) -> list[str | None]:
        return [agent for hook, agent in self.calls if hook == name]


@pytest.fixture
def recording_sink() -> RecordingSink:
    """Fresh recording trace sink."""
    return RecordingSink()


# =============================================================================
# Orchestrator Fixtures
# =============================================================================


@pytest.fixture
def make_hive() -> Callable[..., Hive]:
    """Factory building a Hive around a backend with test defaults."""

    def factory(llm, system_prompt: str = "You are a helpful assistant.", **overrides: Any) -> Hive:
        return Hive(HiveConfig(system_prompt=system_prompt, llm=llm, **overrides))

    return factory
