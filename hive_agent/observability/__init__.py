"""Observability module.

This module provides:
- Structured logging via structlog with run ID propagation
- Prometheus metrics for agent runs, LLM usage and tool calls
"""

from hive_agent.observability.logging import (
    bind_run_id,
    configure_logging,
    run_id_ctx,
)
from hive_agent.observability.metrics import (
    AgentMetricsLabels,
    ToolMetricsLabels,
    collect_agent_metrics,
    record_agent_tokens,
    record_llm_cost,
    record_tool_call,
)

__all__ = [
    # Logging
    "bind_run_id",
    "configure_logging",
    "run_id_ctx",
    # Metrics
    "AgentMetricsLabels",
    "ToolMetricsLabels",
    "collect_agent_metrics",
    "record_agent_tokens",
    "record_llm_cost",
    "record_tool_call",
]
