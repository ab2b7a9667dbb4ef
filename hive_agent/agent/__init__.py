"""Agent execution core.

This module provides:
- Message, content block and result types
- Configuration dataclasses for the orchestrator, sub-agents and review
- The tool model and dispatcher
- Context window management, todo and review tracking, shared context
- The turn loop and the Hive orchestrator
"""

from hive_agent.agent.config import (
    ContextStrategy,
    HiveConfig,
    LlmConfig,
    ReviewConfig,
    ReviewPolicy,
    SubAgentConfig,
)
from hive_agent.agent.context import ContextWindowManager, truncate_old_messages
from hive_agent.agent.exceptions import (
    ContextLimitExceededError,
    HiveError,
    MaxIterationsExceededError,
)
from hive_agent.agent.executor import ExecutorConfig, TurnLoop
from hive_agent.agent.messages import (
    AgentResult,
    AgentStatus,
    ContentBlock,
    Interruption,
    Message,
    PendingQuestion,
    Role,
    TextBlock,
    ThinkingBlock,
    TokenUsage,
    ToolCallLog,
    ToolResult,
    ToolResultBlock,
    ToolUseBlock,
)
from hive_agent.agent.orchestrator import Hive, RunOptions
from hive_agent.agent.protocol import Recorder, Summarizer
from hive_agent.agent.review import ReviewIssue, ReviewResult, ReviewSeverity, ReviewTracker
from hive_agent.agent.shared_context import SharedContext
from hive_agent.agent.todo import TodoItem, TodoStatus, TodoTracker
from hive_agent.agent.tokens import estimate_message_tokens, estimate_tokens, estimate_total_tokens
from hive_agent.agent.tools import Tool, ToolContext, ToolDispatcher

__all__ = [
    # Orchestration
    "Hive",
    "RunOptions",
    "TurnLoop",
    "ExecutorConfig",
    # Configuration
    "ContextStrategy",
    "HiveConfig",
    "LlmConfig",
    "ReviewConfig",
    "ReviewPolicy",
    "SubAgentConfig",
    # Messages and results
    "AgentResult",
    "AgentStatus",
    "ContentBlock",
    "Interruption",
    "Message",
    "PendingQuestion",
    "Role",
    "TextBlock",
    "ThinkingBlock",
    "TokenUsage",
    "ToolCallLog",
    "ToolResult",
    "ToolResultBlock",
    "ToolUseBlock",
    # Tools
    "Tool",
    "ToolContext",
    "ToolDispatcher",
    # Components
    "ContextWindowManager",
    "truncate_old_messages",
    "ReviewIssue",
    "ReviewResult",
    "ReviewSeverity",
    "ReviewTracker",
    "SharedContext",
    "TodoItem",
    "TodoStatus",
    "TodoTracker",
    "estimate_message_tokens",
    "estimate_tokens",
    "estimate_total_tokens",
    # Protocols
    "Recorder",
    "Summarizer",
    # Exceptions
    "ContextLimitExceededError",
    "HiveError",
    "MaxIterationsExceededError",
]
