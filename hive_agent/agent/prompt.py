"""System prompt sections appended to an agent's base prompt."""

import json
from collections.abc import Sequence
from typing import Any

from hive_agent.agent.config import ReviewConfig, SubAgentConfig
from hive_agent.agent.review import REVIEW_TOOL_NAME

OUTPUT_TOOL_NAME = "__output__"


def build_agent_list_section(agents: Sequence[SubAgentConfig]) -> str:
    """List the spawnable sub-agents with their descriptions and extra inputs."""
    if not agents:
        return ""
    lines = ["", "Available agents:"]
    for agent in agents:
        lines.append(f"- {agent.name}: {agent.description}")
        properties = (agent.input_schema or {}).get("properties") or {}
        for field_name, field_schema in properties.items():
            description = field_schema.get("description", "") if isinstance(field_schema, dict) else ""
            lines.append(f"    - {field_name}: {description}" if description else f"    - {field_name}")
    return "\n".join(lines)


def build_review_instructions(config: ReviewConfig | None) -> str:
    """Review section surfacing the auto-review and approval flags to the model."""
    if config is None or not config.enabled:
        return ""

    lines = [
        "",
        "## Review Requirements",
        "",
        "Before completing a task, you should review your work for quality.",
        f"Review categories: {', '.join(config.categories)}",
        "",
    ]
    if config.auto_review:
        lines.append("You MUST perform a self-review before completing any significant task.")
    if config.require_approval:
        lines.append("If your review finds errors or critical issues, you must fix them before completing.")
    lines += ["", f"Use the {REVIEW_TOOL_NAME} tool to submit your review findings."]
    return "\n".join(lines)


def build_output_instructions(output_schema: dict[str, Any] | None) -> str:
    if not output_schema:
        return ""
    return "\n".join(
        [
            "",
            "## Output",
            "",
            f"When the task is done, call the {OUTPUT_TOOL_NAME} tool exactly once with your result.",
            "The input must match this JSON schema:",
            json.dumps(output_schema, indent=2),
        ]
    )


def build_system_prompt(
    base: str,
    review: ReviewConfig | None = None,
    output_schema: dict[str, Any] | None = None,
) -> str:
    """Base prompt followed by the review and output sections, when they apply."""
    sections = [base, build_review_instructions(review), build_output_instructions(output_schema)]
    return "\n".join(section for section in sections if section)
