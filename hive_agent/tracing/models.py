"""Execution trace models.

A Trace is an arena of AgentSpans keyed by span id. Each span represents one
agent invocation; sub-agent spans reference their parent by id only, so the
tree can be walked in both directions without ownership cycles:

  main (depth 0)
  ├── llm_call
  ├── tool_call __task__
  │   └── researcher (depth 1)
  │       ├── llm_call
  │       └── tool_call search
  └── llm_call

Every span carries rolled-up counters equal to the sum over the events of its
entire subtree.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from hive_agent.agent.messages import ToolResult


class SpanStatus(StrEnum):
    RUNNING = "running"
    COMPLETE = "complete"
    ERROR = "error"
    INTERRUPTED = "interrupted"


@dataclass(frozen=True)
class LLMCallEvent:
    """One LLM call made by the agent of a span."""

    model_id: str
    input_tokens: int
    output_tokens: int
    cost: float
    duration_ms: float
    timestamp: float
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    type: Literal["llm_call"] = "llm_call"


@dataclass(frozen=True)
class ToolCallEvent:
    """One tool call executed by the agent of a span."""

    tool_name: str
    input: dict[str, Any]
    output: ToolResult
    duration_ms: float
    timestamp: float
    type: Literal["tool_call"] = "tool_call"


type TraceEvent = LLMCallEvent | ToolCallEvent


@dataclass(frozen=True)
class UsageDelta:
    """Counter increments applied to a span and all of its ancestors."""

    cost: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    llm_calls: int = 0
    tool_calls: int = 0


@dataclass
class AgentSpan:
    """One agent invocation in the trace tree.

    Attributes:
        span_id: Unique span identifier
        trace_id: Identifier of the owning trace
        agent_name: Name of the agent
        depth: 0 for the root, parent depth + 1 for sub-agents
        parent_id: Parent span id (back-reference only)
        children: Child span ids, in start order
        events: LLM and tool call events, in occurrence order
        status: Lifecycle status
        input_message: Message the agent was invoked with
        output_response: Final response, once ended
    """

    span_id: str
    trace_id: str
    agent_name: str
    depth: int
    start_time: float
    parent_id: str | None = None
    children: list[str] = field(default_factory=list)
    events: list[TraceEvent] = field(default_factory=list)
    status: SpanStatus = SpanStatus.RUNNING
    input_message: str | None = None
    output_response: str | None = None
    end_time: float | None = None
    duration_ms: float | None = None
    total_cost: float = 0.0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_cache_creation_tokens: int = 0
    total_cache_read_tokens: int = 0
    llm_call_count: int = 0
    tool_call_count: int = 0

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    @property
    def is_finished(self) -> bool:
        return self.end_time is not None

    def apply(self, delta: UsageDelta) -> None:
        self.total_cost += delta.cost
        self.total_input_tokens += delta.input_tokens
        self.total_output_tokens += delta.output_tokens
        self.total_cache_creation_tokens += delta.cache_creation_tokens
        self.total_cache_read_tokens += delta.cache_read_tokens
        self.llm_call_count += delta.llm_calls
        self.tool_call_count += delta.tool_calls


@dataclass(frozen=True)
class ModelPricing:
    """Per-million-token rates in USD for one model."""

    input: float
    output: float
    cache_write: float = 0.0
    cache_read: float = 0.0


@dataclass
class ModelCost:
    """Usage and cost of a single model across the whole trace."""

    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    cost: float = 0.0
    calls: int = 0


@dataclass
class Trace:
    """The span tree of one root run plus run-wide totals.

    Totals and the per-model breakdown are filled in when the trace ends.
    """

    trace_id: str
    root_span_id: str
    start_time: float
    spans: dict[str, AgentSpan] = field(default_factory=dict)
    end_time: float | None = None
    duration_ms: float | None = None
    total_cost: float = 0.0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_cache_creation_tokens: int = 0
    total_cache_read_tokens: int = 0
    total_llm_calls: int = 0
    total_tool_calls: int = 0
    cost_by_model: dict[str, ModelCost] = field(default_factory=dict)

    @property
    def root(self) -> AgentSpan:
        return self.spans[self.root_span_id]

    @property
    def is_finished(self) -> bool:
        return self.end_time is not None

    def get(self, span_id: str) -> AgentSpan:
        return self.spans[span_id]

    def parent(self, span: AgentSpan) -> AgentSpan | None:
        return self.spans.get(span.parent_id) if span.parent_id else None

    def children(self, span: AgentSpan) -> list[AgentSpan]:
        return [self.spans[child_id] for child_id in span.children]

    def ancestors(self, span_id: str) -> Iterator[AgentSpan]:
        """Yield the span itself, then each ancestor up to the root."""
        current: AgentSpan | None = self.spans[span_id]
        while current is not None:
            yield current
            current = self.parent(current)

    def path(self, span_id: str) -> list[str]:
        """Agent names from the root down to the span."""
        return [span.agent_name for span in self.ancestors(span_id)][::-1]

    def walk(self, span_id: str | None = None) -> Iterator[AgentSpan]:
        """Depth-first pre-order traversal of a subtree (root by default)."""
        stack = [span_id or self.root_span_id]
        while stack:
            span = self.spans[stack.pop()]
            yield span
            stack.extend(reversed(span.children))
