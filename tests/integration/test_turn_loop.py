"""Integration tests for the turn loop.

Drives TurnLoop with a scripted backend and real tools, trackers and context
management, covering every terminal state of a run.
"""

import asyncio
import json

import pytest

from hive_agent.agent.builtins import create_ask_user_tool
from hive_agent.agent.config import ContextStrategy, ReviewConfig, ReviewPolicy
from hive_agent.agent.context import ContextWindowManager
from hive_agent.agent.exceptions import ContextLimitExceededError, MaxIterationsExceededError
from hive_agent.agent.executor import ABORTED_REASON, STOPPED_REASON, UNKNOWN_MODEL_ID, ExecutorConfig, TurnLoop
from hive_agent.agent.messages import (
    AgentStatus,
    Interruption,
    Message,
    PendingQuestion,
    TextBlock,
    TokenUsage,
    ToolResult,
    ToolResultBlock,
)
from hive_agent.agent.review import ReviewTracker, create_review_tool
from hive_agent.agent.todo import TodoStatus, TodoTracker, create_todo_tool
from hive_agent.agent.tools import ToolContext, ToolDispatcher
from hive_agent.llm.base import LLMResponse, LlmOptions
from hive_agent.tracing.builder import TraceBuilder, TraceHandle


@pytest.fixture
def build_loop(echo_tool):
    """Factory for a TurnLoop with the standard per-run tools."""

    def factory(
        llm,
        tools=None,
        max_iterations=50,
        review: ReviewConfig | None = None,
        max_context_tokens=100_000,
        strategy=ContextStrategy.TRUNCATE_OLD,
        llm_options=None,
    ) -> TurnLoop:
        todo_tracker = TodoTracker()
        review_tracker = ReviewTracker(review) if review else None
        run_tools = [*(tools if tools is not None else [echo_tool]), create_ask_user_tool()]
        run_tools.append(create_todo_tool(todo_tracker))
        if review_tracker is not None:
            run_tools.append(create_review_tool(review_tracker))
        return TurnLoop(
            ExecutorConfig(
                system_prompt="sys",
                dispatcher=ToolDispatcher(run_tools),
                llm=llm,
                context_manager=ContextWindowManager(max_context_tokens, strategy),
                todo_tracker=todo_tracker,
                review_tracker=review_tracker,
                max_iterations=max_iterations,
                llm_options=llm_options or LlmOptions(),
                review_policy=review.policy if review else ReviewPolicy.ADVISORY,
            )
        )

    return factory


class TestCompletion:
    """Tests for runs that end with a final answer."""

    async def test_hello_hi(self, build_loop, scripted_backend, text_reply):
        """A plain answer completes the run in one iteration."""
        backend = scripted_backend([text_reply("hi", input_tokens=10, output_tokens=5)])
        messages = [Message.user("hello")]

        result = await build_loop(backend).run(messages, ToolContext())

        assert result.status is AgentStatus.COMPLETE
        assert result.response == "hi"
        assert result.history == [Message.user("hello"), Message.assistant([TextBlock(text="hi")])]
        assert result.tool_calls == []
        assert result.usage == TokenUsage(total_input_tokens=10, total_output_tokens=5)
        assert result.thinking is None
        assert result.todos is None
        assert result.review is None
        assert messages == [Message.user("hello")]

    async def test_backend_receives_prompt_and_tools(self, build_loop, scripted_backend, text_reply):
        """The backend sees the system prompt, history and tool schemas."""
        backend = scripted_backend([text_reply("hi")])
        await build_loop(backend).run([Message.user("hello")], ToolContext())

        call = backend.calls[0]
        assert call["system_prompt"] == "sys"
        assert call["messages"] == [Message.user("hello")]
        assert call["tools"] == ["echo", "__ask_user__", "__todo__"]

    async def test_llm_options_forwarded(self, build_loop, scripted_backend, text_reply):
        """Per-run options reach every backend call."""
        options = LlmOptions(model="gpt-4o", thinking_mode="enabled", thinking_budget=2048)
        backend = scripted_backend([text_reply("hi")])
        await build_loop(backend, llm_options=options).run([Message.user("hello")], ToolContext())
        assert backend.calls[0]["options"] == options

    async def test_thinking_collected(self, build_loop, scripted_backend, text_reply):
        """Thinking blocks are gathered into the result."""
        backend = scripted_backend([text_reply("hi", thinking="pondering")])
        result = await build_loop(backend).run([Message.user("hello")], ToolContext())
        assert result.thinking == ["pondering"]
        assert result.response == "hi"


class TestToolExecution:
    """Tests for tool dispatch inside the loop."""

    async def test_tool_then_answer(self, build_loop, scripted_backend, text_reply, tool_reply):
        """Tool results are fed back and the run completes afterwards."""
        request = tool_reply(("echo", {"x": 1}))
        backend = scripted_backend([request, text_reply("done")])

        result = await build_loop(backend).run([Message.user("go")], ToolContext())

        assert result.response == "done"
        assert [(call.name, call.input, call.output) for call in result.tool_calls] == [
            ("echo", {"x": 1}, ToolResult.ok({"x": 1}))
        ]
        tool_use_id = request.content[0].id
        assert result.history[2] == Message.user(
            [ToolResultBlock(tool_use_id=tool_use_id, content=ToolResult.ok({"x": 1}).to_json())]
        )
        assert backend.calls[1]["messages"] == result.history[:3]
        assert result.usage.total_input_tokens == 20
        assert result.usage.total_output_tokens == 10

    async def test_tools_run_in_order(self, build_loop, scripted_backend, text_reply, tool_reply):
        """Several tool calls in one turn are answered in one message, in order."""
        request = tool_reply(("echo", {"n": 1}), ("echo", {"n": 2}))
        backend = scripted_backend([request, text_reply("done")])

        result = await build_loop(backend).run([Message.user("go")], ToolContext())

        assert [call.input["n"] for call in result.tool_calls] == [1, 2]
        results = result.history[2].content
        assert [block.tool_use_id for block in results] == [block.id for block in request.content]

    async def test_unknown_tool(self, build_loop, scripted_backend, text_reply, tool_reply):
        """Unknown tools produce an error result and are not logged as calls."""
        backend = scripted_backend([tool_reply(("foo", {})), text_reply("sorry")])

        result = await build_loop(backend).run([Message.user("go")], ToolContext())

        assert result.status is AgentStatus.COMPLETE
        assert result.tool_calls == []
        block = result.history[2].content[0]
        assert block.is_error
        assert json.loads(block.content) == {"success": False, "error": "Unknown tool: foo"}

    async def test_failing_tool_does_not_abort(
        self, build_loop, scripted_backend, text_reply, tool_reply, tool_factory
    ):
        """Tool exceptions become error results and the loop continues."""

        async def explode(params, context):
            raise RuntimeError("disk full")

        backend = scripted_backend([tool_reply(("explode", {})), text_reply("recovered")])
        result = await build_loop(backend, tools=[tool_factory("explode", explode)]).run(
            [Message.user("go")], ToolContext()
        )

        assert result.response == "recovered"
        assert result.tool_calls[0].output == ToolResult.fail("disk full")
        assert result.history[2].content[0].is_error

    async def test_remaining_tokens_visible_to_tools(
        self, build_loop, scripted_backend, text_reply, tool_reply, tool_factory
    ):
        """Tools see the context budget left for the turn."""
        seen = []

        async def budget(params, context):
            seen.append(context.remaining_tokens)
            return ToolResult.ok()

        backend = scripted_backend([tool_reply(("budget", {})), text_reply("ok")])
        await build_loop(backend, tools=[tool_factory("budget", budget)], max_context_tokens=1000).run(
            [Message.user("hello")], ToolContext()
        )
        assert seen == [998]

    async def test_todo_progress(self, build_loop, scripted_backend, text_reply, tool_reply):
        """The todo tool tracks progress across turns and lands in the result."""
        backend = scripted_backend(
            [
                tool_reply(("__todo__", {"action": "set", "items": ["A", "B"]})),
                tool_reply(("__todo__", {"action": "complete"})),
                text_reply("halfway"),
            ]
        )

        result = await build_loop(backend).run([Message.user("plan")], ToolContext())

        complete = result.tool_calls[1].output.data
        assert complete["completed"] == "A"
        assert complete["next"] == "B"
        assert complete["progress"] == {"total": 2, "completed": 1, "pending": 0, "inProgress": 1}
        assert [(item.content, item.status) for item in result.todos] == [
            ("A", TodoStatus.COMPLETED),
            ("B", TodoStatus.IN_PROGRESS),
        ]


class TestTermination:
    """Tests for non-complete terminal states."""

    async def test_max_iterations(self, build_loop, scripted_backend, tool_reply):
        """A model that never stops calling tools exhausts the budget after exactly N calls."""
        backend = scripted_backend([tool_reply(("echo", {}))], repeat_last=True)

        with pytest.raises(MaxIterationsExceededError) as exc_info:
            await build_loop(backend, max_iterations=3).run([Message.user("loop")], ToolContext())

        assert exc_info.value.max_iterations == 3
        assert len(backend.calls) == 3

    async def test_ask_user(self, build_loop, scripted_backend, tool_reply):
        """Asking the user ends the run with the pending question."""
        request = tool_reply(
            ("echo", {"a": 1}),
            ("__ask_user__", {"question": "Which city?", "options": ["SF", "LA"]}),
        )
        backend = scripted_backend([request])

        result = await build_loop(backend).run([Message.user("weather")], ToolContext())

        assert result.status is AgentStatus.NEEDS_INPUT
        assert result.pending_question == PendingQuestion(question="Which city?", options=["SF", "LA"])
        assert result.response == ""
        assert result.history == [Message.user("weather"), Message.assistant(request.content)]
        assert [call.name for call in result.tool_calls] == ["echo"]
        assert len(backend.calls) == 1

    async def test_ask_user_without_options(self, build_loop, scripted_backend, tool_reply):
        """Options are optional."""
        backend = scripted_backend([tool_reply(("__ask_user__", {"question": "Why?"}))])
        result = await build_loop(backend).run([Message.user("x")], ToolContext())
        assert result.pending_question == PendingQuestion(question="Why?")

    async def test_context_limit_error(self, build_loop, scripted_backend, text_reply):
        """The error strategy aborts before calling the model."""
        backend = scripted_backend([text_reply("never")])
        loop = build_loop(backend, max_context_tokens=5, strategy=ContextStrategy.ERROR)

        with pytest.raises(ContextLimitExceededError):
            await loop.run([Message.user("x" * 100)], ToolContext())
        assert backend.calls == []

    async def test_truncation_keeps_full_history(self, build_loop, scripted_backend, text_reply):
        """The model sees the managed window while the result keeps everything."""
        messages = [Message.user("a" * 40), Message.assistant("b" * 40), Message.user("c" * 40)]
        backend = scripted_backend([text_reply("ok")])

        result = await build_loop(backend, max_context_tokens=25).run(messages, ToolContext())

        assert backend.calls[0]["messages"] == [messages[0], messages[2]]
        assert result.history[:3] == messages


class TestCancellation:
    """Tests for the abort signal and continuation predicate."""

    async def test_signal_set_before_run(self, build_loop, scripted_backend, text_reply):
        """A pre-set signal interrupts before any LLM call."""
        signal = asyncio.Event()
        signal.set()
        backend = scripted_backend([text_reply("never")])

        result = await build_loop(backend).run([Message.user("x")], ToolContext(), signal=signal)

        assert result.status is AgentStatus.INTERRUPTED
        assert result.interruption == Interruption(reason=ABORTED_REASON, iterations_completed=0)
        assert backend.calls == []

    async def test_signal_set_during_run(
        self, build_loop, scripted_backend, text_reply, tool_reply, tool_factory
    ):
        """A signal set by a tool stops the run at the next iteration boundary."""
        signal = asyncio.Event()

        async def stop(params, context):
            signal.set()
            return ToolResult.ok("stopping")

        backend = scripted_backend([tool_reply(("stop", {})), text_reply("never")])
        result = await build_loop(backend, tools=[tool_factory("stop", stop)]).run(
            [Message.user("x")], ToolContext(), signal=signal
        )

        assert result.interruption == Interruption(reason=ABORTED_REASON, iterations_completed=1)
        assert len(backend.calls) == 1
        assert len(result.history) == 3
        assert [call.name for call in result.tool_calls] == ["stop"]

    async def test_should_continue(self, build_loop, scripted_backend, tool_reply):
        """The continuation predicate can stop the run."""
        seen = []

        def should_continue(iteration, messages):
            seen.append((iteration, len(messages)))
            return iteration < 2

        backend = scripted_backend([tool_reply(("echo", {}))], repeat_last=True)
        result = await build_loop(backend).run(
            [Message.user("x")], ToolContext(), should_continue=should_continue
        )

        assert result.status is AgentStatus.INTERRUPTED
        assert result.interruption == Interruption(reason=STOPPED_REASON, iterations_completed=2)
        assert seen == [(0, 1), (1, 3), (2, 5)]
        assert len(backend.calls) == 2


class TestReviewPolicy:
    """Tests for review gating of completion."""

    @staticmethod
    def _script(tool_reply, text_reply):
        return [
            tool_reply(("__review__", {"action": "submit", "passed": False, "summary": "tests missing"})),
            text_reply("done early"),
            tool_reply(("__review__", {"action": "submit", "passed": True, "summary": "all good"})),
            text_reply("done"),
        ]

    async def test_advisory_review_does_not_block(self, build_loop, scripted_backend, text_reply, tool_reply):
        """By default a failed review is informational only."""
        backend = scripted_backend(self._script(tool_reply, text_reply))

        result = await build_loop(backend, review=ReviewConfig(enabled=True)).run(
            [Message.user("build it")], ToolContext()
        )

        assert result.response == "done early"
        assert result.review is not None
        assert result.review.passed is False
        assert len(backend.calls) == 2

    async def test_require_pass_blocks_completion(self, build_loop, scripted_backend, text_reply, tool_reply):
        """With require-pass, a failed review sends the model back to work."""
        backend = scripted_backend(self._script(tool_reply, text_reply))
        review = ReviewConfig(enabled=True, policy=ReviewPolicy.REQUIRE_PASS)

        result = await build_loop(backend, review=review).run([Message.user("build it")], ToolContext())

        assert result.response == "done"
        assert result.review.passed is True
        assert len(backend.calls) == 4
        reminder = result.history[4]
        assert reminder.role == "user"
        assert reminder.content.startswith("Your latest review did not pass: tests missing")
        assert "__review__" in reminder.content

    async def test_require_pass_without_review_completes(self, build_loop, scripted_backend, text_reply):
        """Require-pass does not force a review when none was submitted."""
        backend = scripted_backend([text_reply("done")])
        review = ReviewConfig(enabled=True, policy=ReviewPolicy.REQUIRE_PASS)

        result = await build_loop(backend, review=review).run([Message.user("x")], ToolContext())

        assert result.response == "done"


class TestTracing:
    """Tests for trace recording from the loop."""

    async def test_records_llm_and_tool_calls(self, build_loop, scripted_backend, text_reply, tool_reply):
        """LLM and tool calls land on the handle's span in order."""
        builder = TraceBuilder()
        root = builder.start_trace("main")
        backend = scripted_backend(
            [tool_reply(("echo", {}), cache_read_tokens=4), text_reply("done", input_tokens=30, output_tokens=7)]
        )

        await build_loop(backend).run([Message.user("x")], ToolContext(), trace=TraceHandle(builder, root.span_id))

        assert [event.type for event in root.events] == ["llm_call", "tool_call", "llm_call"]
        assert root.events[0].model_id == "claude-sonnet-4-5"
        assert root.events[0].cache_read_tokens == 4
        assert root.total_input_tokens == 40
        assert root.llm_call_count == 2
        assert root.tool_call_count == 1

    async def test_model_id_fallbacks(self, build_loop, scripted_backend):
        """Events use the response model, then the configured model, then a placeholder."""
        anonymous = LLMResponse(content=[TextBlock(text="ok")], stop_reason="end_turn", model=None)

        builder = TraceBuilder()
        root = builder.start_trace("main")
        await build_loop(scripted_backend([anonymous]), llm_options=LlmOptions(model="gpt-4o")).run(
            [Message.user("x")], ToolContext(), trace=TraceHandle(builder, root.span_id)
        )
        assert root.events[0].model_id == "gpt-4o"

        builder = TraceBuilder()
        root = builder.start_trace("main")
        await build_loop(scripted_backend([anonymous])).run(
            [Message.user("x")], ToolContext(), trace=TraceHandle(builder, root.span_id)
        )
        assert root.events[0].model_id == UNKNOWN_MODEL_ID
