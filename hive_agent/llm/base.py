"""LLM backend protocol definitions.

This module defines the backend-agnostic contract the turn loop talks to,
enabling interchangeable model providers.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from hive_agent.agent.messages import ContentBlock, Message

TOOL_USE_STOP_REASON = "tool_use"


@dataclass(frozen=True)
class Usage:
    """Token usage reported by the backend for one call."""

    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0


@dataclass(frozen=True)
class LLMResponse:
    """Response from one backend call.

    Attributes:
        content: Ordered content blocks produced by the model
        stop_reason: Why generation ended ("tool_use" requests tool execution)
        usage: Token usage for this call
        model: Model identifier that served the call, if known
    """

    content: list[ContentBlock]
    stop_reason: str
    usage: Usage = field(default_factory=Usage)
    model: str | None = None

    @property
    def wants_tools(self) -> bool:
        return self.stop_reason == TOOL_USE_STOP_REASON


@dataclass(frozen=True)
class LlmOptions:
    """Per-call options forwarded to the backend.

    Attributes:
        model: Optional model override (sub-agents may run on a different model)
        thinking_mode: Extended thinking mode ("enabled", "disabled" or None)
        thinking_budget: Token budget for extended thinking
        max_tokens: Maximum output tokens
    """

    model: str | None = None
    thinking_mode: str | None = None
    thinking_budget: int | None = None
    max_tokens: int | None = None


@runtime_checkable
class LLMBackend(Protocol):
    """Protocol for a chat model backend.

    Implementations must not raise for ordinary model refusals, only for
    transport-level failures.
    """

    async def chat(
        self,
        system_prompt: str,
        messages: Sequence[Message],
        tools: Sequence[dict[str, Any]],
        options: LlmOptions | None = None,
    ) -> LLMResponse:
        """Send the conversation to the model and return its response.

        Args:
            system_prompt: System prompt for the run
            messages: Conversation history, already fitted to the context budget
            tools: Tool schemas ({name, description, input_schema})
            options: Optional per-call options

        Returns:
            The model response
        """
        ...
