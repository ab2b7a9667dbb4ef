"""Protocols for optional orchestrator collaborators."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from hive_agent.agent.messages import AgentResult, Message
    from hive_agent.tracing.models import Trace


@runtime_checkable
class Recorder(Protocol):
    """Receives the outcome of every root run (e.g., for analytics)."""

    async def record(self, result: AgentResult, trace: Trace | None) -> None:
        """Record a finished root run.

        Args:
            result: The run result
            trace: The finalized trace of the run
        """
        ...


class Summarizer(Protocol):
    """Condenses messages dropped from the context window into a short text."""

    def __call__(self, messages: Sequence[Message]) -> str:
        ...
