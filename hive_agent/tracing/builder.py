"""Trace construction.

A TraceBuilder owns one Trace for the lifetime of a root run. Sub-agent runs
do not get their own builder; they receive a TraceHandle pointing at the
parent span and open their span under it, so one builder sees the whole
call tree.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from hive_agent.tracing.models import (
    AgentSpan,
    LLMCallEvent,
    ModelCost,
    ModelPricing,
    SpanStatus,
    ToolCallEvent,
    Trace,
    UsageDelta,
)
from hive_agent.tracing.pricing import calculate_cost, merge_pricing
from hive_agent.tracing.sinks import TraceSink

if TYPE_CHECKING:
    from hive_agent.agent.messages import ToolResult

logger = logging.getLogger(__name__)


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:16]}"


class TraceBuilder:
    """Builds the span tree of one root run and notifies sinks of every step."""

    def __init__(
        self,
        sinks: Sequence[TraceSink] = (),
        pricing: Mapping[str, ModelPricing] | None = None,
    ) -> None:
        """Initialize the builder.

        Args:
            sinks: Receivers notified of trace events, in order
            pricing: Custom per-model pricing merged over the defaults
        """
        self._sinks = list(sinks)
        self._pricing = merge_pricing(pricing)
        self._trace: Trace | None = None

    @property
    def trace(self) -> Trace:
        if self._trace is None:
            raise RuntimeError("Trace has not been started")
        return self._trace

    @property
    def pricing(self) -> dict[str, ModelPricing]:
        return self._pricing

    def start_trace(self, agent_name: str, input_message: str | None = None) -> AgentSpan:
        """Create the trace and its root span.

        Args:
            agent_name: Name of the root agent
            input_message: Message the root agent was invoked with

        Returns:
            The root span

        Raises:
            RuntimeError: If this builder already started a trace
        """
        if self._trace is not None:
            raise RuntimeError("Trace already started")

        now = time.time()
        trace_id = _new_id("trace")
        root = AgentSpan(
            span_id=_new_id("span"),
            trace_id=trace_id,
            agent_name=agent_name,
            depth=0,
            start_time=now,
            input_message=input_message,
        )
        self._trace = Trace(trace_id=trace_id, root_span_id=root.span_id, start_time=now)
        self._trace.spans[root.span_id] = root

        self._notify("on_trace_start", self._trace)
        self._notify("on_agent_start", root, self._trace)
        return root

    def start_agent(self, agent_name: str, input_message: str | None, parent_id: str) -> AgentSpan:
        """Open a child span one level below its parent."""
        trace = self.trace
        parent = trace.get(parent_id)
        span = AgentSpan(
            span_id=_new_id("span"),
            trace_id=trace.trace_id,
            agent_name=agent_name,
            depth=parent.depth + 1,
            start_time=time.time(),
            parent_id=parent.span_id,
            input_message=input_message,
        )
        trace.spans[span.span_id] = span
        parent.children.append(span.span_id)

        self._notify("on_agent_start", span, trace)
        return span

    def record_llm_call(
        self,
        span_id: str,
        model_id: str,
        input_tokens: int,
        output_tokens: int,
        cache_creation_tokens: int = 0,
        cache_read_tokens: int = 0,
        duration_ms: float = 0.0,
    ) -> LLMCallEvent | None:
        """Record an LLM call on a span and roll its usage up to every ancestor.

        Returns:
            The recorded event, or None if the span was already finished
        """
        span = self._open_span(span_id)
        if span is None:
            return None

        cost = calculate_cost(
            model_id,
            input_tokens,
            output_tokens,
            cache_creation_tokens,
            cache_read_tokens,
            pricing=self._pricing,
        )
        event = LLMCallEvent(
            model_id=model_id,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cache_creation_tokens=cache_creation_tokens,
            cache_read_tokens=cache_read_tokens,
            cost=cost,
            duration_ms=duration_ms,
            timestamp=time.time(),
        )
        span.events.append(event)
        self._roll_up(
            span_id,
            UsageDelta(
                cost=cost,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                cache_creation_tokens=cache_creation_tokens,
                cache_read_tokens=cache_read_tokens,
                llm_calls=1,
            ),
        )

        self._notify("on_llm_call", event, span, self.trace)
        return event

    def record_tool_call(
        self,
        span_id: str,
        tool_name: str,
        tool_input: dict[str, Any],
        output: ToolResult,
        duration_ms: float,
    ) -> ToolCallEvent | None:
        """Record a tool call on a span and roll the count up to every ancestor."""
        span = self._open_span(span_id)
        if span is None:
            return None

        event = ToolCallEvent(
            tool_name=tool_name,
            input=tool_input,
            output=output,
            duration_ms=duration_ms,
            timestamp=time.time(),
        )
        span.events.append(event)
        self._roll_up(span_id, UsageDelta(tool_calls=1))

        self._notify("on_tool_call", event, span, self.trace)
        return event

    def end_agent(
        self,
        span_id: str,
        status: SpanStatus = SpanStatus.COMPLETE,
        output_response: str | None = None,
    ) -> AgentSpan:
        """Close a span. Ending an already finished span is a no-op."""
        span = self.trace.get(span_id)
        if span.is_finished:
            logger.warning("Span %s (%s) already ended", span_id, span.agent_name)
            return span

        span.end_time = time.time()
        span.duration_ms = (span.end_time - span.start_time) * 1000
        span.status = SpanStatus(status)
        span.output_response = output_response

        self._notify("on_agent_end", span, self.trace)
        return span

    def end_trace(self) -> Trace:
        """Finalize the trace: end time, run-wide totals and per-model costs.

        Totals are recomputed from every event in the arena rather than taken
        from the root's rolled-up counters. Ending a finished trace returns it
        unchanged.
        """
        trace = self.trace
        if trace.is_finished:
            return trace

        trace.end_time = time.time()
        trace.duration_ms = (trace.end_time - trace.start_time) * 1000

        for span in trace.spans.values():
            for event in span.events:
                if isinstance(event, ToolCallEvent):
                    trace.total_tool_calls += 1
                    continue
                trace.total_llm_calls += 1
                trace.total_cost += event.cost
                trace.total_input_tokens += event.input_tokens
                trace.total_output_tokens += event.output_tokens
                trace.total_cache_creation_tokens += event.cache_creation_tokens
                trace.total_cache_read_tokens += event.cache_read_tokens

                model = trace.cost_by_model.setdefault(event.model_id, ModelCost())
                model.calls += 1
                model.cost += event.cost
                model.input_tokens += event.input_tokens
                model.output_tokens += event.output_tokens
                model.cache_creation_tokens += event.cache_creation_tokens
                model.cache_read_tokens += event.cache_read_tokens

        self._notify("on_trace_end", trace)
        return trace

    def _open_span(self, span_id: str) -> AgentSpan | None:
        span = self.trace.get(span_id)
        if span.is_finished or self.trace.is_finished:
            logger.warning("Ignoring event for finished span %s (%s)", span_id, span.agent_name)
            return None
        return span

    def _roll_up(self, span_id: str, delta: UsageDelta) -> None:
        for span in self.trace.ancestors(span_id):
            span.apply(delta)

    def _notify(self, method: str, *args: Any) -> None:
        for sink in self._sinks:
            handler = getattr(sink, method, None)
            if handler is None:
                continue
            try:
                handler(*args)
            except Exception:
                logger.exception("Trace sink %s failed in %s", type(sink).__name__, method)


@dataclass(frozen=True)
class TraceHandle:
    """A builder plus the span id of the agent currently executing.

    Passed explicitly to sub-agent runs so that their spans nest under the
    span of the agent that spawned them.
    """

    builder: TraceBuilder
    span_id: str

    @property
    def trace(self) -> Trace:
        return self.builder.trace

    @property
    def span(self) -> AgentSpan:
        return self.builder.trace.get(self.span_id)

    def child(self, agent_name: str, input_message: str | None = None) -> TraceHandle:
        span = self.builder.start_agent(agent_name, input_message, self.span_id)
        return TraceHandle(self.builder, span.span_id)

    def record_llm_call(self, model_id: str, input_tokens: int, output_tokens: int, **kwargs: Any) -> None:
        self.builder.record_llm_call(self.span_id, model_id, input_tokens, output_tokens, **kwargs)

    def record_tool_call(
        self, tool_name: str, tool_input: dict[str, Any], output: ToolResult, duration_ms: float
    ) -> None:
        self.builder.record_tool_call(self.span_id, tool_name, tool_input, output, duration_ms)

    def end(self, status: SpanStatus = SpanStatus.COMPLETE, output_response: str | None = None) -> None:
        self.builder.end_agent(self.span_id, status, output_response)
