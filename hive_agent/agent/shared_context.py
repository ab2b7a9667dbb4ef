"""Shared key-value context for agent coordination.

A flat namespace that tools, the parent agent and its sub-agents read and
write during a run, so that data does not have to travel through tool return
values. Writes are last-writer-wins.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

from hive_agent.agent.messages import ToolResult
from hive_agent.agent.tools import Tool, ToolContext

PREVIEW_MAX_LENGTH = 50


@dataclass(frozen=True)
class ContextEntry:
    value: Any
    created_at: float
    updated_at: float
    written_by: str | None = None


@dataclass(frozen=True)
class ContextListItem:
    path: str
    updated_at: float
    preview: str
    written_by: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "updatedAt": self.updated_at,
            "writtenBy": self.written_by,
            "preview": self.preview,
        }


def preview_value(value: Any) -> str:
    """Short human-readable preview of a stored value."""
    if value is None:
        return "null"
    if isinstance(value, str):
        if len(value) > PREVIEW_MAX_LENGTH:
            return f'"{value[: PREVIEW_MAX_LENGTH - 3]}..."'
        return f'"{value}"'
    if isinstance(value, bool | int | float):
        return str(value)
    if isinstance(value, list | tuple):
        return f"Array[{len(value)}]"
    if isinstance(value, dict):
        keys = [str(k) for k in value]
        if len(keys) <= 3:
            return "{" + ", ".join(keys) + "}"
        return "{" + ", ".join(keys[:3]) + f", ...+{len(keys) - 3}" + "}"
    return type(value).__name__


class SharedContext:
    """Dict-backed store keyed by dot-separated paths (e.g. ``meals.today``)."""

    def __init__(self) -> None:
        self._data: dict[str, ContextEntry] = {}

    def write(self, path: str, value: Any, written_by: str | None = None) -> None:
        now = time.time()
        existing = self._data.get(path)
        self._data[path] = ContextEntry(
            value=value,
            created_at=existing.created_at if existing else now,
            updated_at=now,
            written_by=written_by,
        )

    def read(self, path: str, default: Any = None) -> Any:
        entry = self._data.get(path)
        return entry.value if entry else default

    def get_entry(self, path: str) -> ContextEntry | None:
        return self._data.get(path)

    def has(self, path: str) -> bool:
        return path in self._data

    def delete(self, path: str) -> bool:
        return self._data.pop(path, None) is not None

    def keys(self, prefix: str | None = None) -> list[str]:
        return sorted(k for k in self._data if not prefix or k.startswith(prefix))

    def list(self, prefix: str | None = None) -> list[ContextListItem]:
        """Entries sorted by path, optionally filtered by prefix."""
        return [
            ContextListItem(
                path=path,
                updated_at=self._data[path].updated_at,
                written_by=self._data[path].written_by,
                preview=preview_value(self._data[path].value),
            )
            for path in self.keys(prefix)
        ]

    def clear(self) -> None:
        self._data.clear()

    def to_dict(self) -> dict[str, Any]:
        return {path: entry.value for path, entry in self._data.items()}

    def update(self, values: dict[str, Any], written_by: str | None = None) -> None:
        for path, value in values.items():
            self.write(path, value, written_by)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, path: object) -> bool:
        return path in self._data


def create_context_tools(context: SharedContext, agent_name: str | None = None) -> list[Tool]:
    """Create the context_ls, context_read and context_write tools."""

    async def context_ls(params: dict[str, Any], tool_context: ToolContext) -> ToolResult:
        prefix = params.get("prefix")
        items = context.list(prefix)
        if not items:
            message = f'No entries found with prefix "{prefix}"' if prefix else "Context is empty"
            return ToolResult.ok({"message": message, "items": []})
        return ToolResult.ok({"count": len(items), "items": [item.to_dict() for item in items]})

    async def context_read(params: dict[str, Any], tool_context: ToolContext) -> ToolResult:
        path = params.get("path")
        if not path:
            return ToolResult.fail('"path" is required')
        entry = context.get_entry(path)
        if entry is None:
            return ToolResult.ok({"found": False, "path": path, "value": None})
        return ToolResult.ok(
            {
                "found": True,
                "path": path,
                "value": entry.value,
                "updatedAt": entry.updated_at,
                "writtenBy": entry.written_by,
            }
        )

    async def context_write(params: dict[str, Any], tool_context: ToolContext) -> ToolResult:
        path = params.get("path")
        if not path:
            return ToolResult.fail('"path" is required')
        if "value" not in params:
            return ToolResult.fail('"value" is required')
        context.write(path, params["value"], agent_name)
        return ToolResult.ok({"path": path, "written": True})

    return [
        Tool(
            name="context_ls",
            description=(
                "List all paths in the shared context, optionally filtered by prefix.\n\n"
                "The shared context is a key-value store that tools and agents read and write. "
                "Use this to discover what data is available."
            ),
            parameters={
                "type": "object",
                "properties": {"prefix": {"type": "string", "description": "Optional prefix to filter paths"}},
            },
            execute=context_ls,
        ),
        Tool(
            name="context_read",
            description="Read a value from the shared context. Returns found=false if the path is missing.",
            parameters={
                "type": "object",
                "properties": {"path": {"type": "string", "description": "The path to read from"}},
                "required": ["path"],
            },
            execute=context_read,
        ),
        Tool(
            name="context_write",
            description=(
                "Write a value to the shared context so it is available to other tools, "
                "agents, or the caller after the run completes."
            ),
            parameters={
                "type": "object",
                "properties": {
                    "path": {"type": "string", "description": "The path to write to"},
                    "value": {"description": "The value to store (any JSON value)"},
                },
                "required": ["path", "value"],
            },
            execute=context_write,
        ),
    ]
