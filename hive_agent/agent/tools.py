"""Tool model and dispatcher.

Tools are resolved by exact name from a per-run registry and executed through
a single capability contract. The dispatcher converts every outcome, including
unknown names and handler exceptions, into a ToolResult and never raises.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from time import monotonic
from typing import TYPE_CHECKING, Any

from hive_agent.agent.messages import ToolResult
from hive_agent.observability.metrics import ToolMetricsLabels, record_tool_call

if TYPE_CHECKING:
    from hive_agent.agent.shared_context import SharedContext
    from hive_agent.tracing.builder import TraceHandle

logger = logging.getLogger(__name__)

# Metric label for model-requested names that match no registered tool
UNKNOWN_TOOL_LABEL = "unknown"

type ToolExecutor = Callable[[dict[str, Any], "ToolContext"], Awaitable[ToolResult]]


@dataclass
class ToolContext:
    """Run-scoped information handed to every tool execution.

    Attributes:
        remaining_tokens: Context budget left at the start of the current turn
        conversation_id: Conversation identifier, if any
        user_id: End-user identifier, if any
        metadata: Free-form caller metadata
        shared_context: Key-value store shared with sub-agents, if any
        trace: Handle on the span of the agent executing the tool
        signal: Abort signal of the run, if any
    """

    remaining_tokens: int = 0
    conversation_id: str | None = None
    user_id: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    shared_context: SharedContext | None = None
    trace: TraceHandle | None = None
    signal: asyncio.Event | None = None


@dataclass(frozen=True)
class Tool:
    """A model-invokable tool.

    Attributes:
        name: Unique name within a run's tool set
        description: Description shown to the model
        parameters: JSON schema of the input
        execute: Async executor (input, context) -> ToolResult
    """

    name: str
    description: str
    parameters: dict[str, Any]
    execute: ToolExecutor

    def schema(self) -> dict[str, Any]:
        """Schema in the shape sent to the LLM backend."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.parameters,
        }


@dataclass(frozen=True)
class ToolExecution:
    """Result of one dispatch together with its wall-clock duration."""

    result: ToolResult
    duration_ms: float
    known: bool = True


class ToolDispatcher:
    """Registry that resolves tool names to tools and executes them."""

    def __init__(self, tools: Iterable[Tool], agent_name: str = "main") -> None:
        """Initialize the dispatcher.

        Args:
            tools: Tools available to the run
            agent_name: Agent name used for metrics labeling

        Raises:
            ValueError: If two tools share a name
        """
        self._tools: dict[str, Tool] = {}
        self._agent_name = agent_name
        for tool in tools:
            if tool.name in self._tools:
                raise ValueError(f"Tool name collision: '{tool.name}' is registered twice")
            self._tools[tool.name] = tool

    @property
    def tools(self) -> list[Tool]:
        return list(self._tools.values())

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def schemas(self) -> list[dict[str, Any]]:
        return [tool.schema() for tool in self._tools.values()]

    async def dispatch(self, name: str, tool_input: dict[str, Any], context: ToolContext) -> ToolExecution:
        """Execute a tool by name.

        Args:
            name: Requested tool name
            tool_input: Input payload from the model
            context: Run-scoped tool context

        Returns:
            The execution result and duration; failures are captured in the result
        """
        start_time = monotonic()
        tool = self._tools.get(name)
        if tool is None:
            logger.warning("Model requested unknown tool '%s'", name)
            result = ToolResult.fail(f"Unknown tool: {name}")
        else:
            try:
                result = await tool.execute(tool_input, context)
            except Exception as e:
                logger.warning("Tool '%s' raised: %s", name, e)
                result = ToolResult.fail(str(e) or type(e).__name__)

        duration = monotonic() - start_time
        record_tool_call(
            ToolMetricsLabels(self._agent_name, name if tool is not None else UNKNOWN_TOOL_LABEL),
            duration=duration,
            error=not result.success,
        )
        return ToolExecution(result=result, duration_ms=duration * 1000, known=tool is not None)
