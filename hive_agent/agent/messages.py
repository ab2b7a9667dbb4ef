"""Framework-agnostic message and result types.

These types are used across all components and define the common
vocabulary for agent execution: conversation messages and their content
blocks, tool results, and the outcome of a run.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from hive_agent.agent.review import ReviewResult
    from hive_agent.agent.todo import TodoItem
    from hive_agent.tracing.models import Trace


@dataclass(frozen=True)
class TextBlock:
    """Plain text produced by the model or the user."""

    text: str
    type: Literal["text"] = "text"


@dataclass(frozen=True)
class ThinkingBlock:
    """Reasoning trace emitted by the model. Advisory only, never executed."""

    thinking: str
    type: Literal["thinking"] = "thinking"


@dataclass(frozen=True)
class ToolUseBlock:
    """A tool invocation requested by the model.

    Attributes:
        id: Identifier the matching tool_result must reference
        name: Requested tool name
        input: Tool input payload
    """

    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)
    type: Literal["tool_use"] = "tool_use"


@dataclass(frozen=True)
class ToolResultBlock:
    """Answer to a ToolUseBlock with the same id.

    Attributes:
        tool_use_id: Id of the tool_use block being answered
        content: Serialized tool result
        is_error: True when the tool failed
    """

    tool_use_id: str
    content: str
    is_error: bool = False
    type: Literal["tool_result"] = "tool_result"


type ContentBlock = TextBlock | ThinkingBlock | ToolUseBlock | ToolResultBlock


class Role(StrEnum):
    """Conversation roles."""

    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    """A single conversation turn.

    Attributes:
        role: Message role ("user" or "assistant")
        content: Either plain text or an ordered list of content blocks
    """

    role: Role
    content: str | Sequence[ContentBlock]

    @classmethod
    def user(cls, content: str | Sequence[ContentBlock]) -> Message:
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str | Sequence[ContentBlock]) -> Message:
        return cls(role=Role.ASSISTANT, content=content)

    @property
    def blocks(self) -> list[ContentBlock]:
        """Content as a list of blocks, wrapping plain text in a TextBlock."""
        if isinstance(self.content, str):
            return [TextBlock(text=self.content)]
        return list(self.content)

    def tool_uses(self) -> list[ToolUseBlock]:
        """Tool invocations requested in this message."""
        return [block for block in self.blocks if isinstance(block, ToolUseBlock)]


@dataclass(frozen=True)
class ToolResult:
    """Outcome of a tool execution.

    Tools never raise to report failure; they return a result with
    success=False and an error message instead.
    """

    success: bool
    data: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, data: Any = None) -> ToolResult:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, data: Any = None) -> ToolResult:
        return cls(success=False, error=error, data=data)

    def to_json(self) -> str:
        """Serialize into the payload carried by a tool_result block."""
        payload: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            payload["data"] = self.data
        if self.error is not None:
            payload["error"] = self.error
        return json.dumps(payload, default=_json_default)


def _json_default(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if hasattr(value, "__dataclass_fields__"):
        return asdict(value)
    return str(value)


@dataclass(frozen=True)
class ToolCallLog:
    """Record of one executed tool invocation."""

    name: str
    input: dict[str, Any]
    output: ToolResult
    duration_ms: float


@dataclass(frozen=True)
class PendingQuestion:
    """Question the agent asked the user via the ask-user tool."""

    question: str
    options: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"question": self.question}
        if self.options is not None:
            data["options"] = self.options
        return data


@dataclass(frozen=True)
class TokenUsage:
    """Token usage accumulated over one run."""

    total_input_tokens: int = 0
    total_output_tokens: int = 0
    cache_creation_input_tokens: int | None = None
    cache_read_input_tokens: int | None = None


@dataclass(frozen=True)
class Interruption:
    """Why a run stopped early and how far it got."""

    reason: str
    iterations_completed: int


class AgentStatus(StrEnum):
    """Terminal status of a run."""

    COMPLETE = "complete"
    NEEDS_INPUT = "needs_input"
    INTERRUPTED = "interrupted"


@dataclass(frozen=True)
class AgentResult:
    """Externally visible outcome of one run.

    Attributes:
        response: Final assistant text (empty unless complete)
        history: Full conversation history including this run
        tool_calls: Every executed tool invocation, in order
        status: Terminal status of the run
        usage: Token usage summary
        thinking: Thinking blocks collected during the run, if any
        todos: Todo snapshot, if the agent used the todo list
        review: Current review, if one was submitted
        pending_question: Set when status is needs_input
        interruption: Set when status is interrupted
        trace: Execution trace (root runs only)
    """

    response: str
    history: list[Message]
    tool_calls: list[ToolCallLog]
    status: AgentStatus
    usage: TokenUsage = field(default_factory=TokenUsage)
    thinking: list[str] | None = None
    todos: list[TodoItem] | None = None
    review: ReviewResult | None = None
    pending_question: PendingQuestion | None = None
    interruption: Interruption | None = None
    trace: Trace | None = None


def extract_text(content: str | Sequence[ContentBlock]) -> str:
    """Join the text blocks of a message body."""
    if isinstance(content, str):
        return content
    return "\n".join(block.text for block in content if isinstance(block, TextBlock))


def extract_thinking(content: Sequence[ContentBlock]) -> list[str]:
    """Collect the reasoning traces of a message body."""
    return [block.thinking for block in content if isinstance(block, ThinkingBlock)]
