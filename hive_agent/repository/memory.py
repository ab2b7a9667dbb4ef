"""In-memory repository.

Suitable for tests and single-process use; nothing survives a restart.
"""

import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from hive_agent.agent.messages import Message


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    expires_at: float | None = None

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now > self.expires_at


class MemoryRepository:
    """Dict-backed implementation of the Repository protocol."""

    def __init__(self) -> None:
        self._history: dict[str, list[Message]] = {}
        self._state: dict[str, dict[str, Any]] = {}
        self._cache: dict[str, CacheEntry] = {}

    async def get_history(self, conversation_id: str) -> list[Message]:
        return list(self._history.get(conversation_id, []))

    async def save_history(self, conversation_id: str, messages: Sequence[Message]) -> None:
        self._history[conversation_id] = list(messages)

    async def get_state(self, conversation_id: str) -> dict[str, Any] | None:
        state = self._state.get(conversation_id)
        return dict(state) if state is not None else None

    async def save_state(self, conversation_id: str, state: dict[str, Any]) -> None:
        self._state[conversation_id] = dict(state)

    async def get_cached(self, key: str) -> Any | None:
        entry = self._cache.get(key)
        if entry is None:
            return None
        if entry.is_expired(time.time()):
            del self._cache[key]
            return None
        return entry.value

    async def set_cached(self, key: str, value: Any, ttl_ms: int | None = None) -> None:
        expires_at = time.time() + ttl_ms / 1000 if ttl_ms else None
        self._cache[key] = CacheEntry(value=value, expires_at=expires_at)

    def clear(self) -> None:
        self._history.clear()
        self._state.clear()
        self._cache.clear()

    def conversation_ids(self) -> list[str]:
        return list(self._history)
