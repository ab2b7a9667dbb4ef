"""Configuration dataclasses for agent components.

This module provides immutable configuration objects for the LLM client,
the orchestrator, sub-agents, and the review system.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from hive_agent.tracing.sinks import build_trace_sinks

if TYPE_CHECKING:
    from hive_agent.agent.protocol import Recorder, Summarizer
    from hive_agent.agent.tools import Tool
    from hive_agent.llm.base import LLMBackend
    from hive_agent.repository.base import Repository
    from hive_agent.settings import HiveSettings
    from hive_agent.tracing.models import ModelPricing
    from hive_agent.tracing.sinks import TraceSink


DEFAULT_MAX_ITERATIONS = 50
DEFAULT_MAX_CONTEXT_TOKENS = 100_000
DEFAULT_REVIEW_CATEGORIES: tuple[str, ...] = ("completeness", "correctness", "quality", "security")


class ContextStrategy(StrEnum):
    """How the context window manager reacts to an over-budget conversation."""

    TRUNCATE_OLD = "truncate_old"
    SUMMARIZE = "summarize"
    ERROR = "error"


class ReviewPolicy(StrEnum):
    """Whether a failed review blocks completion."""

    ADVISORY = "advisory"
    REQUIRE_PASS = "require_pass"


@dataclass(frozen=True)
class LlmConfig:
    """Configuration for language model clients.

    Attributes:
        model: Model identifier (e.g., "litellm_proxy/anthropic/claude-sonnet-4-5")
        api_key: API key for the LLM provider
        base_url: Base URL for the API (e.g., LiteLLM proxy URL)
        temperature: Sampling temperature (0.0 to 1.0)
    """

    model: str
    api_key: str | None = None
    base_url: str | None = None
    temperature: float = 0.7


@dataclass(frozen=True)
class ReviewConfig:
    """Configuration for the self-review tool.

    Attributes:
        enabled: Expose the review tool to the model
        auto_review: Instruct the model to always review before completing
        require_approval: Instruct the model to fix errors found by a review
        categories: Review categories listed in the tool description
        policy: Advisory (default) or require a passing review before completion
    """

    enabled: bool
    auto_review: bool = False
    require_approval: bool = False
    categories: tuple[str, ...] = DEFAULT_REVIEW_CATEGORIES
    policy: ReviewPolicy = ReviewPolicy.ADVISORY


@dataclass(frozen=True)
class SubAgentConfig:
    """Statically declared sub-agent that the orchestrator may spawn.

    Attributes:
        name: Registry name the model uses to select the agent
        description: What the agent is good at (shown to the parent model)
        system_prompt: System prompt of the sub-agent
        tools: Tools available to the sub-agent
        model: Optional model override passed to the backend
        llm: Optional backend override, defaults to the parent's backend
        max_iterations: Optional iteration budget, defaults to the parent's
        input_schema: Optional JSON schema of extra inputs the agent accepts
        output_schema: Optional JSON schema; enables the structured output tool
    """

    name: str
    description: str
    system_prompt: str
    tools: Sequence[Tool] = ()
    model: str | None = None
    llm: LLMBackend | None = None
    max_iterations: int | None = None
    input_schema: dict[str, Any] | None = None
    output_schema: dict[str, Any] | None = None


@dataclass(frozen=True)
class HiveConfig:
    """Configuration for one orchestrator.

    Attributes:
        system_prompt: Base system prompt
        llm: Chat backend
        tools: User-supplied tools
        agents: Sub-agent registry
        name: Agent name used for trace spans
        max_iterations: Hard ceiling on turn loop iterations
        max_context_tokens: Context window budget
        context_strategy: Over-budget strategy
        summarizer: Optional summarizer for the summarize strategy
        thinking_mode: Extended thinking mode forwarded to the backend
        thinking_budget: Extended thinking budget forwarded to the backend
        model: Optional model override forwarded to the backend
        review: Optional review configuration
        output_schema: Structured output contract (sub-agents only)
        repository: Optional conversation history store
        trace_sinks: Trace notification receivers
        pricing: Custom per-model pricing merged over the defaults
        recorder: Optional collaborator notified after each root run
    """

    system_prompt: str
    llm: LLMBackend
    tools: Sequence[Tool] = ()
    agents: Sequence[SubAgentConfig] = ()
    name: str = "main"
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    max_context_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS
    context_strategy: ContextStrategy = ContextStrategy.TRUNCATE_OLD
    summarizer: Summarizer | None = None
    thinking_mode: str | None = None
    thinking_budget: int | None = None
    model: str | None = None
    review: ReviewConfig | None = None
    output_schema: dict[str, Any] | None = None
    repository: Repository | None = None
    trace_sinks: Sequence[TraceSink] = ()
    pricing: dict[str, ModelPricing] = field(default_factory=dict)
    recorder: Recorder | None = None

    @classmethod
    def from_settings(
        cls,
        settings: HiveSettings,
        system_prompt: str,
        llm: LLMBackend,
        **overrides: Any,
    ) -> HiveConfig:
        """Build a config whose run defaults come from application settings.

        Args:
            settings: Loaded application settings
            system_prompt: Base system prompt
            llm: Chat backend
            **overrides: Any other HiveConfig field

        Returns:
            A HiveConfig instance
        """
        defaults: dict[str, Any] = {
            "max_iterations": settings.agent.max_iterations,
            "max_context_tokens": settings.agent.max_context_tokens,
            "context_strategy": settings.agent.context_strategy,
            "trace_sinks": build_trace_sinks(settings.telemetry),
        }
        defaults.update(overrides)
        return cls(system_prompt=system_prompt, llm=llm, **defaults)
