"""Turn loop.

Alternates LLM calls and tool execution until the model produces a final
answer, asks the user a question, is cancelled, or runs out of iterations.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from time import monotonic
from typing import TYPE_CHECKING, Any

from hive_agent.agent.builtins import ASK_USER_TOOL_NAME
from hive_agent.agent.config import ReviewPolicy
from hive_agent.agent.context import ContextWindowManager
from hive_agent.agent.exceptions import MaxIterationsExceededError
from hive_agent.agent.messages import (
    AgentResult,
    AgentStatus,
    Interruption,
    Message,
    PendingQuestion,
    TokenUsage,
    ToolCallLog,
    ToolResultBlock,
    ToolUseBlock,
    extract_text,
    extract_thinking,
)
from hive_agent.agent.review import REVIEW_TOOL_NAME, ReviewTracker
from hive_agent.agent.todo import TodoTracker
from hive_agent.agent.tools import ToolContext, ToolDispatcher
from hive_agent.llm.base import LLMBackend, LlmOptions

if TYPE_CHECKING:
    from hive_agent.tracing.builder import TraceHandle

logger = logging.getLogger(__name__)

ABORTED_REASON = "aborted"
STOPPED_REASON = "stopped"
UNKNOWN_MODEL_ID = "unknown"

type ShouldContinue = Callable[[int, Sequence[Message]], bool]


@dataclass(frozen=True)
class ExecutorConfig:
    """Everything one turn loop needs.

    Attributes:
        system_prompt: Full system prompt for the run
        dispatcher: Per-run tool registry
        llm: Chat backend
        context_manager: Context window manager consulted before each LLM call
        todo_tracker: Per-run todo tracker
        review_tracker: Per-run review tracker, if review is configured
        max_iterations: Iteration ceiling
        llm_options: Options forwarded to every backend call
        review_policy: Whether a failed review blocks completion
    """

    system_prompt: str
    dispatcher: ToolDispatcher
    llm: LLMBackend
    context_manager: ContextWindowManager
    todo_tracker: TodoTracker
    review_tracker: ReviewTracker | None = None
    max_iterations: int = 50
    llm_options: LlmOptions = field(default_factory=LlmOptions)
    review_policy: ReviewPolicy = ReviewPolicy.ADVISORY


@dataclass
class _RunState:
    messages: list[Message]
    tool_calls: list[ToolCallLog] = field(default_factory=list)
    thinking: list[str] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0

    def usage(self) -> TokenUsage:
        return TokenUsage(
            total_input_tokens=self.input_tokens,
            total_output_tokens=self.output_tokens,
            cache_creation_input_tokens=self.cache_creation_tokens or None,
            cache_read_input_tokens=self.cache_read_tokens or None,
        )


def _pending_question(tool_input: dict[str, Any]) -> PendingQuestion:
    options = tool_input.get("options")
    return PendingQuestion(
        question=str(tool_input.get("question", "")),
        options=[str(option) for option in options] if isinstance(options, list) else None,
    )


class TurnLoop:
    """Runs the LLM/tool iteration for one agent invocation."""

    def __init__(self, config: ExecutorConfig) -> None:
        self._config = config

    async def run(
        self,
        messages: Sequence[Message],
        tool_context: ToolContext,
        trace: TraceHandle | None = None,
        signal: asyncio.Event | None = None,
        should_continue: ShouldContinue | None = None,
    ) -> AgentResult:
        """Run the loop on a conversation ending with the new user input.

        Args:
            messages: Initial conversation (copied, never mutated)
            tool_context: Context handed to every tool execution
            trace: Span handle receiving LLM and tool call events
            signal: Abort signal checked at every iteration boundary
            should_continue: Predicate (iteration, messages) checked at every iteration boundary

        Returns:
            A complete, needs_input or interrupted result

        Raises:
            MaxIterationsExceededError: If no terminal state is reached in max_iterations
            ContextLimitExceededError: If over budget under the error strategy
        """
        config = self._config
        state = _RunState(messages=list(messages))
        schemas = config.dispatcher.schemas()

        for iteration in range(config.max_iterations):
            if signal is not None and signal.is_set():
                return self._interrupted(state, ABORTED_REASON, iteration)
            if should_continue is not None and not should_continue(iteration, state.messages):
                return self._interrupted(state, STOPPED_REASON, iteration)

            logger.debug("Iteration %d with %d messages", iteration, len(state.messages))

            managed = config.context_manager.manage(state.messages)
            config.context_manager.update_token_count(managed)
            tool_context.remaining_tokens = config.context_manager.remaining_tokens

            start_time = monotonic()
            response = await config.llm.chat(config.system_prompt, managed, schemas, config.llm_options)
            duration_ms = (monotonic() - start_time) * 1000

            usage = response.usage
            state.input_tokens += usage.input_tokens
            state.output_tokens += usage.output_tokens
            state.cache_creation_tokens += usage.cache_creation_input_tokens
            state.cache_read_tokens += usage.cache_read_input_tokens
            if trace is not None:
                trace.record_llm_call(
                    response.model or config.llm_options.model or UNKNOWN_MODEL_ID,
                    usage.input_tokens,
                    usage.output_tokens,
                    cache_creation_tokens=usage.cache_creation_input_tokens,
                    cache_read_tokens=usage.cache_read_input_tokens,
                    duration_ms=duration_ms,
                )

            state.thinking.extend(extract_thinking(response.content))
            state.messages.append(Message.assistant(response.content))

            if not response.wants_tools:
                if self._review_blocks_completion():
                    state.messages.append(Message.user(self._review_reminder()))
                    continue
                return self._result(state, AgentStatus.COMPLETE, response=extract_text(response.content))

            tool_results: list[ToolResultBlock] = []
            for tool_use in (block for block in response.content if isinstance(block, ToolUseBlock)):
                if tool_use.name == ASK_USER_TOOL_NAME:
                    return self._result(
                        state,
                        AgentStatus.NEEDS_INPUT,
                        pending_question=_pending_question(tool_use.input),
                    )
                tool_results.append(await self._execute(tool_use, tool_context, trace, state))

            state.messages.append(Message.user(tool_results))

        raise MaxIterationsExceededError(config.max_iterations)

    async def _execute(
        self,
        tool_use: ToolUseBlock,
        tool_context: ToolContext,
        trace: TraceHandle | None,
        state: _RunState,
    ) -> ToolResultBlock:
        execution = await self._config.dispatcher.dispatch(tool_use.name, tool_use.input, tool_context)
        result = execution.result
        if execution.known:
            state.tool_calls.append(
                ToolCallLog(
                    name=tool_use.name,
                    input=tool_use.input,
                    output=result,
                    duration_ms=execution.duration_ms,
                )
            )
        if trace is not None:
            trace.record_tool_call(tool_use.name, tool_use.input, result, execution.duration_ms)
        return ToolResultBlock(tool_use_id=tool_use.id, content=result.to_json(), is_error=not result.success)

    def _review_blocks_completion(self) -> bool:
        tracker = self._config.review_tracker
        return (
            self._config.review_policy is ReviewPolicy.REQUIRE_PASS
            and tracker is not None
            and tracker.is_enabled()
            and not tracker.last_review_passed()
        )

    def _review_reminder(self) -> str:
        review = self._config.review_tracker.current if self._config.review_tracker else None
        summary = review.summary if review else ""
        return (
            f"Your latest review did not pass: {summary}\n"
            "Address the issues it found and submit a new review with the "
            f"{REVIEW_TOOL_NAME} tool before completing."
        )

    def _interrupted(self, state: _RunState, reason: str, iterations_completed: int) -> AgentResult:
        logger.info("Run interrupted (%s) after %d iterations", reason, iterations_completed)
        return self._result(
            state,
            AgentStatus.INTERRUPTED,
            interruption=Interruption(reason=reason, iterations_completed=iterations_completed),
        )

    def _result(
        self,
        state: _RunState,
        status: AgentStatus,
        response: str = "",
        pending_question: PendingQuestion | None = None,
        interruption: Interruption | None = None,
    ) -> AgentResult:
        todos = self._config.todo_tracker.items
        review = self._config.review_tracker.current if self._config.review_tracker else None
        return AgentResult(
            response=response,
            history=state.messages,
            tool_calls=state.tool_calls,
            status=status,
            usage=state.usage(),
            thinking=state.thinking or None,
            todos=todos or None,
            review=review,
            pending_question=pending_question,
            interruption=interruption,
        )
