"""Agent orchestrator.

Hive assembles a run: it loads history, resumes pending tool requests, builds
the per-run tool set and trackers, drives the turn loop, and spawns sub-agents
through the ``__task__`` tool. Root runs own the trace and persistence;
sub-agent runs nest their span under the spawning agent and skip both.
"""

import asyncio
import dataclasses
import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from hive_agent.agent.builtins import (
    ASK_USER_TOOL_NAME,
    TASK_TOOL_NAME,
    create_ask_user_tool,
    create_output_tool,
    create_task_tool,
    find_structured_output,
)
from hive_agent.agent.config import HiveConfig, ReviewPolicy, SubAgentConfig
from hive_agent.agent.context import ContextWindowManager
from hive_agent.agent.executor import ExecutorConfig, ShouldContinue, TurnLoop
from hive_agent.agent.messages import (
    AgentResult,
    AgentStatus,
    Message,
    Role,
    TextBlock,
    ToolResult,
    ToolResultBlock,
)
from hive_agent.agent.prompt import OUTPUT_TOOL_NAME, build_system_prompt
from hive_agent.agent.review import REVIEW_TOOL_NAME, ReviewTracker, create_review_tool
from hive_agent.agent.shared_context import SharedContext, create_context_tools
from hive_agent.agent.todo import TODO_TOOL_NAME, TodoTracker, create_todo_tool
from hive_agent.agent.tools import Tool, ToolContext, ToolDispatcher
from hive_agent.llm.base import LlmOptions
from hive_agent.observability.logging import bind_run_id
from hive_agent.observability.metrics import AgentMetricsLabels, collect_agent_metrics
from hive_agent.tracing.builder import TraceBuilder, TraceHandle
from hive_agent.tracing.models import SpanStatus

logger = logging.getLogger(__name__)

CANCELLED_TOOL_ERROR = "Tool execution was cancelled"
SUB_AGENT_NEEDS_INPUT_ERROR = "Sub-agent needs user input"

RESERVED_TOOL_NAMES = frozenset(
    {
        ASK_USER_TOOL_NAME,
        TASK_TOOL_NAME,
        OUTPUT_TOOL_NAME,
        TODO_TOOL_NAME,
        REVIEW_TOOL_NAME,
        "context_ls",
        "context_read",
        "context_write",
    }
)


@dataclass
class RunOptions:
    """Per-run options.

    Attributes:
        conversation_id: Conversation to load and persist history for
        user_id: End-user identifier passed to tools
        metadata: Free-form metadata passed to tools
        history: Explicit history, takes precedence over the repository
        shared_context: Key-value store shared with tools and sub-agents
        signal: Abort signal; the run stops at the next iteration boundary once set
        should_continue: Predicate (iteration, messages) that may stop the run
        parent: Span handle of the spawning agent (sub-agent runs only)
    """

    conversation_id: str | None = None
    user_id: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    history: Sequence[Message] | None = None
    shared_context: SharedContext | None = None
    signal: asyncio.Event | None = None
    should_continue: ShouldContinue | None = None
    parent: TraceHandle | None = None


def resume_conversation(history: Sequence[Message], message: str) -> list[Message]:
    """Append a new user message, answering any tool requests left pending.

    A history ending in an assistant message with tool_use blocks has
    unanswered requests (the run stopped to ask the user). Ask-user requests
    are answered with the new message; every other pending request is
    answered as cancelled. When no ask-user request was pending, the new
    message is added as a text block of the same user message.
    """
    messages = list(history)
    pending = messages[-1].tool_uses() if messages and messages[-1].role == Role.ASSISTANT else []
    if not pending:
        messages.append(Message.user(message))
        return messages

    blocks: list[TextBlock | ToolResultBlock] = []
    answered = False
    for tool_use in pending:
        if tool_use.name == ASK_USER_TOOL_NAME:
            answered = True
            blocks.append(ToolResultBlock(tool_use_id=tool_use.id, content=ToolResult.ok(message).to_json()))
        else:
            blocks.append(
                ToolResultBlock(
                    tool_use_id=tool_use.id,
                    content=ToolResult.fail(CANCELLED_TOOL_ERROR).to_json(),
                    is_error=True,
                )
            )
    if not answered:
        blocks.append(TextBlock(text=message))
    messages.append(Message.user(blocks))
    return messages


def _span_status(status: AgentStatus) -> SpanStatus:
    return SpanStatus.INTERRUPTED if status is AgentStatus.INTERRUPTED else SpanStatus.COMPLETE


def _sub_agent_message(prompt: str, extra: dict[str, Any]) -> str:
    if not extra:
        return prompt
    return f"{prompt}\n\nInputs:\n{json.dumps(extra, indent=2, default=str)}"


class Hive:
    """Runs an agent, and recursively its sub-agents, against an LLM backend."""

    def __init__(self, config: HiveConfig) -> None:
        """Initialize the orchestrator.

        Args:
            config: Orchestrator configuration

        Raises:
            ValueError: If user tools collide with each other or with built-in tool names
        """
        names = [tool.name for tool in config.tools]
        reserved = sorted(RESERVED_TOOL_NAMES.intersection(names))
        if reserved:
            raise ValueError(f"Tool names are reserved: {', '.join(reserved)}")
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate tool names: {', '.join(duplicates)}")

        self.config = config
        self._agents = {agent.name: agent for agent in config.agents}
        self._system_prompt = build_system_prompt(
            config.system_prompt,
            review=config.review,
            output_schema=config.output_schema,
        )

    @property
    def name(self) -> str:
        return self.config.name

    async def run(self, message: str, options: RunOptions | None = None) -> AgentResult:
        """Run the agent on a user message.

        Args:
            message: User message (or the answer to a pending question)
            options: Per-run options

        Returns:
            The run result; root runs carry the finished trace

        Raises:
            MaxIterationsExceededError: If the turn loop runs out of iterations
            ContextLimitExceededError: If over budget under the error strategy
        """
        options = options or RunOptions()
        is_root = options.parent is None

        messages = resume_conversation(await self._load_history(options), message)

        builder: TraceBuilder | None = None
        if is_root:
            builder = TraceBuilder(self.config.trace_sinks, self.config.pricing)
            handle = TraceHandle(builder, builder.start_trace(self.name, message).span_id)
        else:
            handle = options.parent.child(self.name, message)

        with bind_run_id(handle.trace.trace_id if is_root else None):
            todo_tracker = TodoTracker()
            review_tracker = ReviewTracker(self.config.review) if self.config.review else None
            dispatcher = ToolDispatcher(
                self._run_tools(todo_tracker, review_tracker, options.shared_context),
                agent_name=self.name,
            )
            loop = TurnLoop(
                ExecutorConfig(
                    system_prompt=self._system_prompt,
                    dispatcher=dispatcher,
                    llm=self.config.llm,
                    context_manager=ContextWindowManager(
                        max_tokens=self.config.max_context_tokens,
                        strategy=self.config.context_strategy,
                        summarizer=self.config.summarizer,
                    ),
                    todo_tracker=todo_tracker,
                    review_tracker=review_tracker,
                    max_iterations=self.config.max_iterations,
                    llm_options=LlmOptions(
                        model=self.config.model,
                        thinking_mode=self.config.thinking_mode,
                        thinking_budget=self.config.thinking_budget,
                    ),
                    review_policy=self.config.review.policy if self.config.review else ReviewPolicy.ADVISORY,
                )
            )
            tool_context = ToolContext(
                conversation_id=options.conversation_id,
                user_id=options.user_id,
                metadata=options.metadata,
                shared_context=options.shared_context,
                trace=handle,
                signal=options.signal,
            )

            logger.info("Agent '%s' started (depth %d)", self.name, handle.span.depth)
            try:
                async with collect_agent_metrics(AgentMetricsLabels(self.name)):
                    result = await loop.run(
                        messages,
                        tool_context,
                        trace=handle,
                        signal=options.signal,
                        should_continue=options.should_continue,
                    )
            except Exception:
                logger.exception("Agent '%s' failed", self.name)
                handle.end(SpanStatus.ERROR)
                if builder is not None:
                    builder.end_trace()
                raise

            output = result.response or (result.pending_question.question if result.pending_question else None)
            handle.end(_span_status(result.status), output)
            logger.info(
                "Agent '%s' finished with status %s (%d tool calls)",
                self.name,
                result.status,
                len(result.tool_calls),
            )

            if builder is None:
                return result
            return await self._complete_root(result, builder, options)

    async def _load_history(self, options: RunOptions) -> list[Message]:
        if options.history is not None:
            return list(options.history)
        if options.conversation_id and self.config.repository is not None:
            return await self.config.repository.get_history(options.conversation_id)
        return []

    def _run_tools(
        self,
        todo_tracker: TodoTracker,
        review_tracker: ReviewTracker | None,
        shared_context: SharedContext | None,
    ) -> list[Tool]:
        tools = [*self.config.tools, create_ask_user_tool()]
        if self._agents:
            tools.append(create_task_tool(list(self._agents.values()), self._spawn))
        if shared_context is not None:
            tools.extend(create_context_tools(shared_context, self.name))
        tools.append(create_todo_tool(todo_tracker))
        if review_tracker is not None and review_tracker.is_enabled():
            tools.append(create_review_tool(review_tracker))
        if self.config.output_schema:
            tools.append(create_output_tool(self.config.output_schema))
        return tools

    async def _complete_root(self, result: AgentResult, builder: TraceBuilder, options: RunOptions) -> AgentResult:
        if options.conversation_id and self.config.repository is not None:
            await self.config.repository.save_history(options.conversation_id, result.history)

        trace = builder.end_trace()
        result = dataclasses.replace(result, trace=trace)

        if self.config.recorder is not None:
            try:
                await self.config.recorder.record(result, trace)
            except Exception:
                logger.exception("Recorder failed for trace %s", trace.trace_id)
        return result

    def _sub_agent_config(self, agent: SubAgentConfig) -> HiveConfig:
        return HiveConfig(
            system_prompt=agent.system_prompt,
            llm=agent.llm or self.config.llm,
            tools=agent.tools,
            name=agent.name,
            max_iterations=agent.max_iterations or self.config.max_iterations,
            max_context_tokens=self.config.max_context_tokens,
            context_strategy=self.config.context_strategy,
            summarizer=self.config.summarizer,
            thinking_mode=self.config.thinking_mode,
            thinking_budget=self.config.thinking_budget,
            model=agent.model or self.config.model,
            output_schema=agent.output_schema,
            pricing=self.config.pricing,
        )

    async def _spawn(
        self,
        agent: SubAgentConfig,
        prompt: str,
        extra: dict[str, Any],
        context: ToolContext,
    ) -> ToolResult:
        """Run a sub-agent inside the parent's tool call and map its outcome."""
        try:
            result = await Hive(self._sub_agent_config(agent)).run(
                _sub_agent_message(prompt, extra),
                RunOptions(
                    conversation_id=context.conversation_id,
                    user_id=context.user_id,
                    metadata=context.metadata,
                    history=[],
                    shared_context=context.shared_context,
                    signal=context.signal,
                    parent=context.trace,
                ),
            )
        except Exception as e:
            logger.warning("Sub-agent '%s' failed: %s", agent.name, e)
            return ToolResult.fail(str(e) or type(e).__name__)

        match result.status:
            case AgentStatus.NEEDS_INPUT:
                return ToolResult.fail(SUB_AGENT_NEEDS_INPUT_ERROR, data=result.pending_question)
            case AgentStatus.INTERRUPTED:
                reason = result.interruption.reason if result.interruption else "unknown"
                return ToolResult.fail(f"Sub-agent was interrupted: {reason}")

        structured = find_structured_output(result.tool_calls)
        if structured is not None:
            return ToolResult.ok(structured)
        return ToolResult.ok(result.response)
