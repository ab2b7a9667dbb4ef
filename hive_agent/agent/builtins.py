"""Built-in tools added to every run by the orchestrator.

- ``__ask_user__``: pauses the run with a question for the user
- ``__task__``: spawns a registered sub-agent
- ``__output__``: submits the structured result of an agent with an output schema
"""

from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from hive_agent.agent.config import SubAgentConfig
from hive_agent.agent.messages import ToolCallLog, ToolResult
from hive_agent.agent.prompt import OUTPUT_TOOL_NAME, build_agent_list_section
from hive_agent.agent.tools import Tool, ToolContext

ASK_USER_TOOL_NAME = "__ask_user__"
TASK_TOOL_NAME = "__task__"

type SpawnFn = Callable[[SubAgentConfig, str, dict[str, Any], ToolContext], Awaitable[ToolResult]]


def create_ask_user_tool() -> Tool:
    """Create the ask-user tool.

    The turn loop intercepts calls to this tool before dispatch and ends the
    run with status needs_input, so the executor below only runs if a caller
    dispatches it directly.
    """

    async def execute(params: dict[str, Any], context: ToolContext) -> ToolResult:
        return ToolResult.ok("Question sent to user")

    return Tool(
        name=ASK_USER_TOOL_NAME,
        description=(
            "Ask the user a clarifying question when you need more information.\n\n"
            "Usage:\n"
            "- Use when requirements are ambiguous\n"
            "- Use when you need the user to make a decision\n"
            "- Use when you need specific information to proceed\n\n"
            "Examples:\n"
            '- { "question": "Which database should I use?", "options": ["PostgreSQL", "MySQL"] }\n'
            '- { "question": "What is the target directory for the output files?" }'
        ),
        parameters={
            "type": "object",
            "properties": {
                "question": {"type": "string", "description": "The question to ask the user"},
                "options": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Optional choices for the user",
                },
            },
            "required": ["question"],
        },
        execute=execute,
    )


def create_task_tool(agents: Sequence[SubAgentConfig], spawn: SpawnFn) -> Tool:
    """Create the sub-agent spawning tool.

    Args:
        agents: Sub-agent registry
        spawn: Runs the selected agent and maps its outcome to a ToolResult

    Returns:
        The ``__task__`` tool
    """
    registry = {agent.name: agent for agent in agents}

    async def execute(params: dict[str, Any], context: ToolContext) -> ToolResult:
        agent_name = params.get("agent")
        prompt = params.get("prompt")
        agent = registry.get(agent_name) if isinstance(agent_name, str) else None
        if agent is None:
            return ToolResult.fail(f"Unknown agent: {agent_name}")
        if not prompt:
            return ToolResult.fail('"prompt" is required')
        extra = {k: v for k, v in params.items() if k not in ("agent", "prompt")}
        return await spawn(agent, prompt, extra, context)

    return Tool(
        name=TASK_TOOL_NAME,
        description=(
            "Spawn a sub-agent to handle a specific task.\n"
            f"{build_agent_list_section(agents)}\n\n"
            "Usage:\n"
            "- Use sub-agents for specialized tasks\n"
            "- Provide a clear, specific prompt for the task\n"
            "- The sub-agent will return its result"
        ),
        parameters={
            "type": "object",
            "properties": {
                "agent": {"type": "string", "enum": list(registry), "description": "Which agent to spawn"},
                "prompt": {"type": "string", "description": "The task for the agent to perform"},
            },
            "required": ["agent", "prompt"],
            "additionalProperties": True,
        },
        execute=execute,
    )


def create_output_tool(output_schema: dict[str, Any]) -> Tool:
    """Create the structured output tool for an agent with an output schema.

    Only the presence of the schema's required top-level fields is checked.
    """
    required = [str(name) for name in output_schema.get("required") or []]

    async def execute(params: dict[str, Any], context: ToolContext) -> ToolResult:
        missing = [name for name in required if name not in params]
        if missing:
            return ToolResult.fail(f"Missing required output fields: {', '.join(missing)}")
        return ToolResult.ok({"accepted": True})

    return Tool(
        name=OUTPUT_TOOL_NAME,
        description="Submit the final structured result of your task. Call this once, when the task is done.",
        parameters=output_schema,
        execute=execute,
    )


def find_structured_output(tool_calls: Sequence[ToolCallLog]) -> dict[str, Any] | None:
    """Input of the last successful output tool call, if any."""
    for call in reversed(tool_calls):
        if call.name == OUTPUT_TOOL_NAME and call.output.success:
            return call.input
    return None
