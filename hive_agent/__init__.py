"""hive-agent - An agent execution core with sub-agents, tool dispatch, context budgeting and cost tracing."""

from hive_agent.agent import (
    AgentResult,
    AgentStatus,
    HiveConfig,
    Hive,
    LlmConfig,
    Message,
    ReviewConfig,
    RunOptions,
    SharedContext,
    SubAgentConfig,
    Tool,
    ToolContext,
    ToolResult,
)
from hive_agent.observability.logging import configure_logging
from hive_agent.settings import HiveSettings

__all__ = [
    "AgentResult",
    "AgentStatus",
    "Hive",
    "HiveConfig",
    "HiveSettings",
    "LlmConfig",
    "Message",
    "ReviewConfig",
    "RunOptions",
    "SharedContext",
    "SubAgentConfig",
    "Tool",
    "ToolContext",
    "ToolResult",
    "configure_logging",
]
