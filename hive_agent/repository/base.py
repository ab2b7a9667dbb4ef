"""Repository protocol for conversation persistence.

The orchestrator only needs history; state and cache are available to tools
and host applications that share the same store.
"""

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from hive_agent.agent.messages import Message


@runtime_checkable
class Repository(Protocol):
    """Store for conversation history, per-conversation state and cached values."""

    async def get_history(self, conversation_id: str) -> list[Message]:
        """Return the stored history, or an empty list for unknown conversations."""
        ...

    async def save_history(self, conversation_id: str, messages: Sequence[Message]) -> None: ...

    async def get_state(self, conversation_id: str) -> dict[str, Any] | None: ...

    async def save_state(self, conversation_id: str, state: dict[str, Any]) -> None: ...

    async def get_cached(self, key: str) -> Any | None:
        """Return a cached value, or None if missing or expired."""
        ...

    async def set_cached(self, key: str, value: Any, ttl_ms: int | None = None) -> None: ...
