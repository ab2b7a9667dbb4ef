"""Todo list tracking.

Gives the agent an ordered task list with at most one task in progress, and
exposes it to the model as the ``__todo__`` tool.
"""

import json
import time
import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from hive_agent.agent.messages import ToolResult
from hive_agent.agent.tools import Tool, ToolContext

TODO_TOOL_NAME = "__todo__"


class TodoStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass
class TodoItem:
    """A single task.

    Attributes:
        id: Unique identifier
        content: Imperative description ("Run tests")
        active_form: Present-continuous description ("Running tests")
        status: Current status
        created_at: Creation time (epoch seconds)
        completed_at: Completion time (epoch seconds), if completed
    """

    id: str
    content: str
    active_form: str | None = None
    status: TodoStatus = TodoStatus.PENDING
    created_at: float = field(default_factory=time.time)
    completed_at: float | None = None

    @property
    def label(self) -> str:
        """Active form while in progress, content otherwise."""
        if self.status is TodoStatus.IN_PROGRESS and self.active_form:
            return self.active_form
        return self.content

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "activeForm": self.active_form,
            "status": str(self.status),
            "createdAt": self.created_at,
            "completedAt": self.completed_at,
        }


@dataclass(frozen=True)
class TodoProgress:
    total: int
    completed: int
    pending: int
    in_progress: int

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "completed": self.completed,
            "pending": self.pending,
            "inProgress": self.in_progress,
        }


@dataclass(frozen=True)
class TodoInput:
    """Item accepted by the set operation."""

    content: str
    active_form: str | None = None


_STATUS_MARKERS = {
    TodoStatus.PENDING: "[ ]",
    TodoStatus.IN_PROGRESS: "[~]",
    TodoStatus.COMPLETED: "[x]",
}


def format_todo_list(items: list[TodoItem]) -> str:
    """Render the list as numbered lines with status markers."""
    if not items:
        return "No tasks in the todo list."
    return "\n".join(
        f"{index}. {_STATUS_MARKERS[item.status]} {item.label}"
        for index, item in enumerate(items, start=1)
    )


def _new_id() -> str:
    return uuid.uuid4().hex[:8]


class TodoTracker:
    """Ordered todo list with a single active task.

    Invariant: at most one item is in progress at any time.
    """

    def __init__(self) -> None:
        self._items: dict[str, TodoItem] = {}
        self._current_id: str | None = None

    @property
    def items(self) -> list[TodoItem]:
        return list(self._items.values())

    @property
    def current(self) -> TodoItem | None:
        if self._current_id is None:
            return None
        return self._items.get(self._current_id)

    def add(self, content: str, active_form: str | None = None) -> TodoItem:
        item = TodoItem(id=_new_id(), content=content, active_form=active_form)
        self._items[item.id] = item
        return item

    def set_all(self, items: list[TodoInput]) -> list[TodoItem]:
        """Replace the whole list and start the first task.

        Raises:
            ValueError: If items is empty
        """
        if not items:
            raise ValueError("Todo list cannot be empty")

        self._items.clear()
        self._current_id = None
        for entry in items:
            self.add(entry.content, entry.active_form)

        first_pending = self._first_pending()
        if first_pending is not None:
            self._activate(first_pending)
        return self.items

    def start(self, item_id: str) -> TodoItem | None:
        """Mark an item in progress, demoting any other active item to pending."""
        item = self._items.get(item_id)
        if item is None:
            return None
        current = self.current
        if current is not None and current.id != item_id and current.status is TodoStatus.IN_PROGRESS:
            current.status = TodoStatus.PENDING
        self._activate(item)
        return item

    def complete(self, item_id: str) -> tuple[TodoItem | None, TodoItem | None]:
        """Complete an in-progress item and start the next pending one.

        Items that are not in progress cannot be completed.

        Returns:
            (completed item, newly started item)
        """
        item = self._items.get(item_id)
        if item is None or item.status is not TodoStatus.IN_PROGRESS:
            return None, None

        item.status = TodoStatus.COMPLETED
        item.completed_at = time.time()
        if self._current_id == item_id:
            self._current_id = None

        next_item = self._first_pending()
        if next_item is not None:
            self._activate(next_item)
        return item, next_item

    def complete_current(self) -> tuple[TodoItem | None, TodoItem | None]:
        """Complete the active task and advance.

        When nothing is active, the first pending task is started instead.

        Returns:
            (completed item, newly started item)
        """
        if self._current_id is None:
            pending = self._first_pending()
            if pending is None:
                return None, None
            self._activate(pending)
            return None, pending
        return self.complete(self._current_id)

    def is_all_completed(self) -> bool:
        return all(item.status is TodoStatus.COMPLETED for item in self._items.values())

    def progress(self) -> TodoProgress:
        statuses = [item.status for item in self._items.values()]
        return TodoProgress(
            total=len(statuses),
            completed=statuses.count(TodoStatus.COMPLETED),
            pending=statuses.count(TodoStatus.PENDING),
            in_progress=statuses.count(TodoStatus.IN_PROGRESS),
        )

    def _first_pending(self) -> TodoItem | None:
        return next(
            (item for item in self._items.values() if item.status is TodoStatus.PENDING),
            None,
        )

    def _activate(self, item: TodoItem) -> None:
        item.status = TodoStatus.IN_PROGRESS
        self._current_id = item.id


def parse_todo_items(raw: Any) -> list[TodoInput]:
    """Normalize the items argument of the todo tool.

    Accepts a JSON string, a single plain string, a list of strings, or a list
    of objects with ``content`` and optional ``activeForm``.
    """
    if raw is None:
        return []
    parsed = raw
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = [raw]
        if isinstance(parsed, str):
            parsed = [parsed]
    if not isinstance(parsed, list):
        return []

    items: list[TodoInput] = []
    for entry in parsed:
        if isinstance(entry, str):
            items.append(TodoInput(content=entry))
        elif isinstance(entry, dict) and "content" in entry:
            items.append(
                TodoInput(
                    content=str(entry["content"]),
                    active_form=entry.get("activeForm") or entry.get("active_form"),
                )
            )
        else:
            items.append(TodoInput(content=str(entry)))
    return items


TODO_TOOL_DESCRIPTION = """Manage a todo list to track REAL tasks you are performing.

Only use for tasks YOU will actually execute using tools. Mark tasks complete
AFTER you have actually performed them.

Actions:
- "set": Create a list of tasks (replaces the current list)
- "complete": Mark the current task done and start the next one
- "list": Show current progress

Items format:
- content: Task description (e.g., "Update config file")
- activeForm: Active form (e.g., "Updating config file")

Example:
{ "action": "set", "items": [
  {"content": "Search for error handling", "activeForm": "Searching for error handling"},
  {"content": "Run tests", "activeForm": "Running tests"}
]}"""


def create_todo_tool(tracker: TodoTracker) -> Tool:
    """Create the ``__todo__`` tool bound to a tracker."""

    async def execute(params: dict[str, Any], context: ToolContext) -> ToolResult:
        action = params.get("action")

        if action == "set":
            items = parse_todo_items(params.get("items"))
            if not items:
                return ToolResult.fail('Items array is required for "set" action')
            todos = tracker.set_all(items)
            current = tracker.current
            current_label = current.label if current else None
            return ToolResult.ok(
                {
                    "message": f'Created {len(todos)} tasks. Starting: "{current_label}"',
                    "todos": [item.to_dict() for item in tracker.items],
                    "current": current_label,
                }
            )

        if action == "complete":
            completed, next_item = tracker.complete_current()
            if completed is None and next_item is None:
                return ToolResult.ok(
                    {
                        "message": "No tasks to complete.",
                        "todos": [item.to_dict() for item in tracker.items],
                    }
                )

            progress = tracker.progress()
            message = ""
            if completed is not None:
                message = f'Completed: "{completed.content}". '
            if next_item is not None:
                message += f'Next: "{next_item.label}". '
            elif tracker.is_all_completed():
                message += "All tasks completed! "
            message += f"Progress: {progress.completed}/{progress.total}"

            return ToolResult.ok(
                {
                    "message": message,
                    "todos": [item.to_dict() for item in tracker.items],
                    "completed": completed.content if completed else None,
                    "next": next_item.content if next_item else None,
                    "current": next_item.label if next_item else None,
                    "progress": progress.to_dict(),
                }
            )

        if action == "list":
            current = tracker.current
            return ToolResult.ok(
                {
                    "message": format_todo_list(tracker.items),
                    "todos": [item.to_dict() for item in tracker.items],
                    "current": current.label if current else None,
                    "progress": tracker.progress().to_dict(),
                }
            )

        return ToolResult.fail(f"Unknown action: {action}")

    return Tool(
        name=TODO_TOOL_NAME,
        description=TODO_TOOL_DESCRIPTION,
        parameters={
            "type": "object",
            "properties": {
                "action": {
                    "type": "string",
                    "enum": ["set", "complete", "list"],
                    "description": "The action to perform",
                },
                "items": {
                    "type": "array",
                    "description": 'Tasks for the "set" action',
                    "items": {
                        "type": "object",
                        "properties": {
                            "content": {"type": "string"},
                            "activeForm": {"type": "string"},
                        },
                        "required": ["content"],
                    },
                },
            },
            "required": ["action"],
        },
        execute=execute,
    )
