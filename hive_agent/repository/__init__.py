"""Conversation persistence: the Repository protocol and an in-memory store."""

from hive_agent.repository.base import Repository
from hive_agent.repository.memory import MemoryRepository

__all__ = [
    "MemoryRepository",
    "Repository",
]
