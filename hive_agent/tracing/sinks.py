"""Trace sinks.

Sinks receive trace lifecycle notifications from the TraceBuilder. Every hook
is optional: the builder skips hooks a sink does not define, and a hook that
raises is logged and ignored.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from opentelemetry import trace as otel_trace
from opentelemetry.trace import Status, StatusCode, set_span_in_context

from hive_agent.observability.metrics import record_agent_tokens, record_llm_cost

if TYPE_CHECKING:
    from hive_agent.settings import TelemetrySettings
    from hive_agent.tracing.models import AgentSpan, LLMCallEvent, ToolCallEvent, Trace

PATH_SEPARATOR = " → "


class TraceSink(Protocol):
    """Receiver of trace events."""

    def on_trace_start(self, trace: Trace) -> None: ...

    def on_agent_start(self, span: AgentSpan, trace: Trace) -> None: ...

    def on_llm_call(self, event: LLMCallEvent, span: AgentSpan, trace: Trace) -> None: ...

    def on_tool_call(self, event: ToolCallEvent, span: AgentSpan, trace: Trace) -> None: ...

    def on_agent_end(self, span: AgentSpan, trace: Trace) -> None: ...

    def on_trace_end(self, trace: Trace) -> None: ...


def _ns(seconds: float | None) -> int | None:
    return int(seconds * 1_000_000_000) if seconds is not None else None


class LoggingTraceSink:
    """Renders the trace tree as indented log lines."""

    def __init__(
        self,
        show_llm_calls: bool = True,
        show_tool_calls: bool = True,
        show_costs: bool = True,
        show_messages: bool = True,
        max_message_length: int = 80,
        indent: str = "  ",
        logger: logging.Logger | None = None,
    ) -> None:
        self.show_llm_calls = show_llm_calls
        self.show_tool_calls = show_tool_calls
        self.show_costs = show_costs
        self.show_messages = show_messages
        self.max_message_length = max_message_length
        self.indent = indent
        self._logger = logger or logging.getLogger(__name__)

    def _truncate(self, text: str | None) -> str:
        if not text:
            return ""
        single_line = text.replace("\n", " ").strip()
        if len(single_line) <= self.max_message_length:
            return single_line
        return single_line[: self.max_message_length - 3] + "..."

    def _path(self, span: AgentSpan, trace: Trace) -> str:
        return PATH_SEPARATOR.join(trace.path(span.span_id))

    @staticmethod
    def _cost(cost: float) -> str:
        return f"${cost:.6f}"

    def on_trace_start(self, trace: Trace) -> None:
        self._logger.info("━━━ Trace: %s ━━━", trace.trace_id)

    def on_agent_start(self, span: AgentSpan, trace: Trace) -> None:
        pad = self.indent * span.depth
        name = self._path(span, trace) if span.depth else span.agent_name
        line = f"{pad}{'agent' if span.depth == 0 else 'sub-agent'} {name} started"
        if self.show_messages and span.input_message:
            line += f"\n{pad}   ↳ {self._truncate(span.input_message)}"
        self._logger.info(line)

    def on_llm_call(self, event: LLMCallEvent, span: AgentSpan, trace: Trace) -> None:
        if not self.show_llm_calls:
            return
        pad = self.indent * (span.depth + 1)
        line = (
            f"{pad}{self._path(span, trace)}{PATH_SEPARATOR}LLM: {event.model_id} "
            f"({event.input_tokens}/{event.output_tokens} tokens"
        )
        if event.cache_read_tokens:
            line += f" +{event.cache_read_tokens} cached"
        line += f", {event.duration_ms:.0f}ms"
        if self.show_costs:
            line += f", {self._cost(event.cost)}"
        self._logger.info(line + ")")

    def on_tool_call(self, event: ToolCallEvent, span: AgentSpan, trace: Trace) -> None:
        if not self.show_tool_calls:
            return
        pad = self.indent * (span.depth + 1)
        status = "ok" if event.output.success else "failed"
        self._logger.info(
            "%s%s%s%s %s (%.0fms)",
            pad,
            self._path(span, trace),
            PATH_SEPARATOR,
            event.tool_name,
            status,
            event.duration_ms,
        )

    def on_agent_end(self, span: AgentSpan, trace: Trace) -> None:
        pad = self.indent * span.depth
        name = self._path(span, trace) if span.depth else span.agent_name
        line = f"{pad}{name} {span.status} ({span.duration_ms or 0:.0f}ms"
        if self.show_costs and span.total_cost > 0:
            line += f", {self._cost(span.total_cost)}"
        line += ")"
        if self.show_messages and span.output_response:
            line += f"\n{pad}   ↳ {self._truncate(span.output_response)}"
        self._logger.info(line)

    def on_trace_end(self, trace: Trace) -> None:
        lines = [
            "━━━ Trace Complete ━━━",
            f"Duration: {trace.duration_ms or 0:.0f}ms",
            f"Total LLM calls: {trace.total_llm_calls}",
            f"Total tool calls: {trace.total_tool_calls}",
        ]
        tokens = f"Total tokens: {trace.total_input_tokens} in / {trace.total_output_tokens} out"
        if trace.total_cache_creation_tokens or trace.total_cache_read_tokens:
            tokens += (
                f" [cache: +{trace.total_cache_creation_tokens} write, {trace.total_cache_read_tokens} read]"
            )
        lines.append(tokens)

        if self.show_costs:
            lines.append(f"Total cost: {self._cost(trace.total_cost)}")
            if len(trace.cost_by_model) > 1:
                lines.append("Cost by model:")
                for model_id, data in trace.cost_by_model.items():
                    line = (
                        f"  {model_id}: {self._cost(data.cost)} "
                        f"({data.calls} calls, {data.input_tokens}/{data.output_tokens} tokens"
                    )
                    if data.cache_read_tokens:
                        line += f", {data.cache_read_tokens} cached"
                    lines.append(line + ")")
        self._logger.info("\n".join(lines))


class OpenTelemetryTraceSink:
    """Mirrors agent spans into OpenTelemetry spans.

    Each AgentSpan becomes an OTel span parented to the span of the agent that
    spawned it; LLM and tool calls are recorded as span events.
    """

    def __init__(self, tracer: otel_trace.Tracer | None = None) -> None:
        self._tracer = tracer or otel_trace.get_tracer(__name__)
        self._spans: dict[str, otel_trace.Span] = {}

    def on_agent_start(self, span: AgentSpan, trace: Trace) -> None:
        parent = self._spans.get(span.parent_id) if span.parent_id else None
        context = set_span_in_context(parent) if parent is not None else None
        self._spans[span.span_id] = self._tracer.start_span(
            f"agent {span.agent_name}",
            context=context,
            start_time=_ns(span.start_time),
            attributes={
                "hive.trace_id": trace.trace_id,
                "hive.span_id": span.span_id,
                "hive.agent.name": span.agent_name,
                "hive.agent.depth": span.depth,
            },
        )

    def on_llm_call(self, event: LLMCallEvent, span: AgentSpan, trace: Trace) -> None:
        otel_span = self._spans.get(span.span_id)
        if otel_span is None:
            return
        otel_span.add_event(
            "llm_call",
            attributes={
                "llm.model": event.model_id,
                "llm.input_tokens": event.input_tokens,
                "llm.output_tokens": event.output_tokens,
                "llm.cache_creation_tokens": event.cache_creation_tokens,
                "llm.cache_read_tokens": event.cache_read_tokens,
                "llm.cost_usd": event.cost,
                "llm.duration_ms": event.duration_ms,
            },
            timestamp=_ns(event.timestamp),
        )

    def on_tool_call(self, event: ToolCallEvent, span: AgentSpan, trace: Trace) -> None:
        otel_span = self._spans.get(span.span_id)
        if otel_span is None:
            return
        attributes: dict[str, str | bool | float] = {
            "tool.name": event.tool_name,
            "tool.success": event.output.success,
            "tool.duration_ms": event.duration_ms,
        }
        if event.output.error:
            attributes["tool.error"] = event.output.error
        otel_span.add_event("tool_call", attributes=attributes, timestamp=_ns(event.timestamp))

    def on_agent_end(self, span: AgentSpan, trace: Trace) -> None:
        otel_span = self._spans.pop(span.span_id, None)
        if otel_span is None:
            return
        otel_span.set_attributes(
            {
                "hive.agent.status": str(span.status),
                "hive.cost_usd": span.total_cost,
                "hive.input_tokens": span.total_input_tokens,
                "hive.output_tokens": span.total_output_tokens,
                "hive.llm_calls": span.llm_call_count,
                "hive.tool_calls": span.tool_call_count,
            }
        )
        if span.status == "error":
            otel_span.set_status(Status(StatusCode.ERROR))
        otel_span.end(end_time=_ns(span.end_time))


class MetricsTraceSink:
    """Feeds LLM token usage and cost into Prometheus."""

    def on_llm_call(self, event: LLMCallEvent, span: AgentSpan, trace: Trace) -> None:
        record_agent_tokens(
            span.agent_name,
            event.model_id,
            event.input_tokens,
            event.output_tokens,
            event.cache_creation_tokens,
            event.cache_read_tokens,
        )
        record_llm_cost(span.agent_name, event.model_id, event.cost)


def build_trace_sinks(telemetry: TelemetrySettings) -> list[TraceSink]:
    """Sinks enabled by the telemetry settings."""
    sinks: list[TraceSink] = []
    if telemetry.console_trace:
        sinks.append(LoggingTraceSink())
    if telemetry.otel_enabled:
        sinks.append(OpenTelemetryTraceSink())
    if telemetry.prometheus_enabled:
        sinks.append(MetricsTraceSink())
    return sinks
