"""Unit tests for the tool model and dispatcher."""

import prometheus_client
import pytest

from hive_agent.agent.messages import ToolResult
from hive_agent.agent.tools import UNKNOWN_TOOL_LABEL, Tool, ToolContext, ToolDispatcher


def _tool(name: str, execute=None) -> Tool:
    async def echo(params, context):
        return ToolResult.ok(params)

    return Tool(
        name=name,
        description=f"{name} tool",
        parameters={"type": "object", "properties": {}},
        execute=execute or echo,
    )


class TestTool:
    """Tests for Tool."""

    def test_schema(self):
        """Schemas use the backend's name/description/input_schema shape."""
        assert _tool("echo").schema() == {
            "name": "echo",
            "description": "echo tool",
            "input_schema": {"type": "object", "properties": {}},
        }


class TestToolDispatcher:
    """Tests for ToolDispatcher."""

    def test_rejects_duplicate_names(self):
        """Two tools with one name cannot be registered."""
        with pytest.raises(ValueError, match="collision"):
            ToolDispatcher([_tool("a"), _tool("a")])

    def test_lookup_and_schemas(self):
        """Tools are resolved by exact name in registration order."""
        dispatcher = ToolDispatcher([_tool("a"), _tool("b")])
        assert dispatcher.get("a").name == "a"
        assert dispatcher.get("A") is None
        assert [schema["name"] for schema in dispatcher.schemas()] == ["a", "b"]
        assert [tool.name for tool in dispatcher.tools] == ["a", "b"]

    async def test_dispatch_success(self):
        """Known tools run with the given input and context."""
        dispatcher = ToolDispatcher([_tool("echo")])
        execution = await dispatcher.dispatch("echo", {"x": 1}, ToolContext())
        assert execution.known
        assert execution.result == ToolResult.ok({"x": 1})
        assert execution.duration_ms >= 0

    async def test_dispatch_passes_context(self):
        """Executors receive the run's tool context."""
        seen = []

        async def capture(params, context):
            seen.append(context)
            return ToolResult.ok()

        context = ToolContext(conversation_id="c1", user_id="u1")
        await ToolDispatcher([_tool("capture", capture)]).dispatch("capture", {}, context)
        assert seen == [context]

    async def test_unknown_tool(self):
        """Unknown names produce a failed result instead of raising."""
        execution = await ToolDispatcher([_tool("echo")]).dispatch("foo", {}, ToolContext())
        assert not execution.known
        assert execution.result == ToolResult.fail("Unknown tool: foo")

    async def test_unknown_tools_share_one_metric_label(self):
        """Unknown tool names are counted under a fixed label, not the requested name."""
        dispatcher = ToolDispatcher([_tool("echo")], agent_name="label-agent")
        await dispatcher.dispatch("made_up_1", {}, ToolContext())
        await dispatcher.dispatch("made_up_2", {}, ToolContext())

        registry = prometheus_client.REGISTRY
        labels = {"agent": "label-agent", "status": "error"}
        assert registry.get_sample_value("hive_tool_calls_total", {**labels, "tool_name": UNKNOWN_TOOL_LABEL}) == 2
        assert registry.get_sample_value("hive_tool_calls_total", {**labels, "tool_name": "made_up_1"}) is None

    async def test_exception_becomes_failure(self):
        """Exceptions raised by a tool are converted to failed results."""

        async def boom(params, context):
            raise RuntimeError("disk full")

        execution = await ToolDispatcher([_tool("boom", boom)]).dispatch("boom", {}, ToolContext())
        assert execution.known
        assert execution.result == ToolResult.fail("disk full")

    async def test_exception_without_message(self):
        """Exceptions with no message report their type name."""

        async def boom(params, context):
            raise KeyError()

        execution = await ToolDispatcher([_tool("boom", boom)]).dispatch("boom", {}, ToolContext())
        assert execution.result.error == "KeyError"

    async def test_failed_result_passes_through(self):
        """Tools reporting failure as data are not altered."""

        async def refuse(params, context):
            return ToolResult.fail("not allowed", data={"code": 403})

        execution = await ToolDispatcher([_tool("refuse", refuse)]).dispatch("refuse", {}, ToolContext())
        assert execution.result.error == "not allowed"
        assert execution.result.data == {"code": 403}
