"""Execution tracing.

This module provides:
- The arena-backed trace model (Trace, AgentSpan, call events)
- Per-model pricing and cost calculation
- TraceBuilder and TraceHandle for recording nested agent runs
- Trace sinks for logging, OpenTelemetry and Prometheus
"""

from hive_agent.tracing.builder import TraceBuilder, TraceHandle
from hive_agent.tracing.models import (
    AgentSpan,
    LLMCallEvent,
    ModelCost,
    ModelPricing,
    SpanStatus,
    ToolCallEvent,
    Trace,
)
from hive_agent.tracing.pricing import DEFAULT_PRICING, calculate_cost, resolve_pricing
from hive_agent.tracing.sinks import (
    LoggingTraceSink,
    MetricsTraceSink,
    OpenTelemetryTraceSink,
    TraceSink,
    build_trace_sinks,
)

__all__ = [
    # Builder
    "TraceBuilder",
    "TraceHandle",
    # Models
    "AgentSpan",
    "LLMCallEvent",
    "ModelCost",
    "ModelPricing",
    "SpanStatus",
    "ToolCallEvent",
    "Trace",
    # Pricing
    "DEFAULT_PRICING",
    "calculate_cost",
    "resolve_pricing",
    # Sinks
    "LoggingTraceSink",
    "MetricsTraceSink",
    "OpenTelemetryTraceSink",
    "TraceSink",
    "build_trace_sinks",
]
