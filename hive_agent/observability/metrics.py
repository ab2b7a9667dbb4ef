"""Prometheus metrics for agent execution.

This module provides counters and histograms for agent runs, LLM token usage
and cost, and tool calls, plus small helpers that record them.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from time import monotonic
from typing import NamedTuple

import prometheus_client

BUCKETS = (
    # these are log spaced with 1 sig-fig rounding so there are 3 per decade
    0.001,  # 1 ms
    0.002,
    0.005,
    0.01,
    0.02,
    0.05,
    0.1,
    0.2,
    0.5,
    1,
    2,
    5,
    10,
    20,
    50,
    100,
    200,  # long multi-turn runs with nested sub-agents
    float("inf"),
)


class AgentMetricsLabels(NamedTuple):
    agent: str


class ToolMetricsLabels(NamedTuple):
    agent: str
    tool_name: str


def setup_metrics_factory(registry, name, documentation, labelnames):
    """Create a Prometheus histogram with standard bucket configuration.

    Args:
        registry: Prometheus registry to register the metric with
        name: Metric name (e.g., "hive_tool_call_duration_seconds")
        documentation: Human-readable metric description
        labelnames: Tuple of label names for the histogram

    Returns:
        Configured Prometheus Histogram instance
    """
    return prometheus_client.Histogram(
        name=name,
        documentation=documentation,
        labelnames=labelnames,
        registry=registry,
        buckets=BUCKETS,
    )


agent_run_histogram = setup_metrics_factory(
    prometheus_client.REGISTRY,
    name="hive_agent_run_duration_seconds",
    documentation="Agent run duration (seconds)",
    labelnames=AgentMetricsLabels._fields + ("status",),
)
agent_runs_in_progress = prometheus_client.Gauge(
    "hive_agent_runs_in_progress",
    "Agent runs currently executing",
    labelnames=AgentMetricsLabels._fields,
)
tool_call_histogram = setup_metrics_factory(
    prometheus_client.REGISTRY,
    name="hive_tool_call_duration_seconds",
    documentation="Tool call duration (seconds)",
    labelnames=ToolMetricsLabels._fields + ("status",),
)
tool_calls_total = prometheus_client.Counter(
    "hive_tool_calls_total",
    "Tool calls by status",
    labelnames=ToolMetricsLabels._fields + ("status",),
)
llm_tokens_total = prometheus_client.Counter(
    "hive_llm_tokens_total",
    "LLM tokens by model and token type",
    labelnames=("agent", "model", "token_type"),
)
llm_cost_total = prometheus_client.Counter(
    "hive_llm_cost_usd_total",
    "Estimated LLM cost in USD",
    labelnames=("agent", "model"),
)


def record_tool_call(labels: ToolMetricsLabels, duration: float, error: bool = False) -> None:
    """Record one tool call.

    Args:
        labels: Agent and tool labels
        duration: Execution time in seconds
        error: Whether the tool failed
    """
    status = "error" if error else "success"
    tool_call_histogram.labels(*labels, status).observe(duration)
    tool_calls_total.labels(*labels, status).inc()


def record_agent_tokens(
    agent: str,
    model: str,
    input_tokens: int,
    output_tokens: int,
    cache_creation_tokens: int = 0,
    cache_read_tokens: int = 0,
) -> None:
    """Record token usage of one LLM call. Zero counts are skipped."""
    for token_type, count in (
        ("input", input_tokens),
        ("output", output_tokens),
        ("cache_creation", cache_creation_tokens),
        ("cache_read", cache_read_tokens),
    ):
        if count > 0:
            llm_tokens_total.labels(agent, model, token_type).inc(count)


def record_llm_cost(agent: str, model: str, cost: float) -> None:
    """Record the estimated cost of one LLM call."""
    if cost > 0:
        llm_cost_total.labels(agent, model).inc(cost)


@asynccontextmanager
async def collect_agent_metrics(labels: AgentMetricsLabels) -> AsyncIterator[None]:
    """Track an agent run: in-progress gauge and duration by outcome.

    Usage:
        ```
        async with collect_agent_metrics(AgentMetricsLabels("main")):
            result = await loop.run(...)
        ```
    """
    agent_runs_in_progress.labels(*labels).inc()
    start_time = monotonic()
    status = "success"
    try:
        yield
    except BaseException:
        status = "error"
        raise
    finally:
        agent_runs_in_progress.labels(*labels).dec()
        agent_run_histogram.labels(*labels, status).observe(monotonic() - start_time)


def metrics() -> tuple[bytes, str]:
    """Generate Prometheus metrics output for a /metrics endpoint.

    Returns:
        Tuple of (metrics_body, content_type)
    """
    return (
        prometheus_client.generate_latest(prometheus_client.REGISTRY),
        prometheus_client.CONTENT_TYPE_LATEST,
    )
