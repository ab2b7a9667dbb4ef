"""Context window management.

Keeps the conversation sent to the model within a token budget by applying
the configured reduction strategy before every LLM call.
"""

import logging
from collections.abc import Sequence

from hive_agent.agent.config import DEFAULT_MAX_CONTEXT_TOKENS, ContextStrategy
from hive_agent.agent.exceptions import ContextLimitExceededError
from hive_agent.agent.messages import Message, ToolResultBlock
from hive_agent.agent.protocol import Summarizer
from hive_agent.agent.tokens import estimate_message_tokens, estimate_total_tokens

logger = logging.getLogger(__name__)

SUMMARY_PREFIX = "Summary of earlier conversation:\n"


def truncate_old_messages(
    messages: Sequence[Message],
    max_tokens: int,
    preserve_first: int = 1,
) -> list[Message]:
    """Drop the oldest non-pinned messages until the conversation fits.

    The first ``preserve_first`` messages are always kept, even if they alone
    exceed the budget. The remaining budget is then filled with the most
    recent messages, scanning backward and stopping at the first message that
    does not fit. A kept message answering a tool call that was dropped is
    dropped as well, so every tool_result keeps its tool_use.

    Args:
        messages: Conversation history
        max_tokens: Token budget
        preserve_first: Number of leading messages that are never dropped

    Returns:
        The pinned prefix followed by the most recent messages that fit
    """
    if len(messages) <= preserve_first:
        return list(messages)

    pinned = list(messages[:preserve_first])
    total = estimate_total_tokens(pinned)

    kept: list[Message] = []
    for message in reversed(messages[preserve_first:]):
        tokens = estimate_message_tokens(message)
        if total + tokens > max_tokens:
            break
        kept.append(message)
        total += tokens

    kept.reverse()
    return pinned + _drop_orphaned_results(pinned, kept)


def _drop_orphaned_results(pinned: list[Message], kept: list[Message]) -> list[Message]:
    requested = {tool_use.id for message in pinned for tool_use in message.tool_uses()}
    while kept:
        answered = {block.tool_use_id for block in kept[0].blocks if isinstance(block, ToolResultBlock)}
        if answered <= requested:
            break
        kept = kept[1:]
    return kept


class ContextWindowManager:
    """Tracks token usage of a conversation and enforces the budget."""

    def __init__(
        self,
        max_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS,
        strategy: ContextStrategy = ContextStrategy.TRUNCATE_OLD,
        preserve_first: int = 1,
        summarizer: Summarizer | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            max_tokens: Token budget for the conversation
            strategy: What to do when the budget is exceeded
            preserve_first: Leading messages pinned by truncation
            summarizer: Optional summarizer used by the summarize strategy
        """
        self._max_tokens = max_tokens
        self._strategy = ContextStrategy(strategy)
        self._preserve_first = preserve_first
        self._summarizer = summarizer
        self._current_tokens = 0

    @property
    def max_tokens(self) -> int:
        return self._max_tokens

    @property
    def current_tokens(self) -> int:
        return self._current_tokens

    @property
    def strategy(self) -> ContextStrategy:
        return self._strategy

    @property
    def remaining_tokens(self) -> int:
        """Tokens left before the budget is reached (never negative)."""
        return max(0, self._max_tokens - self._current_tokens)

    def update_token_count(self, messages: Sequence[Message]) -> None:
        self._current_tokens = estimate_total_tokens(messages)

    def is_within_limits(self) -> bool:
        return self._current_tokens <= self._max_tokens

    def manage(self, messages: Sequence[Message]) -> list[Message]:
        """Fit a conversation into the budget according to the strategy.

        Args:
            messages: Live conversation history

        Returns:
            The messages to send to the model

        Raises:
            ContextLimitExceededError: If over budget under the error strategy
        """
        self.update_token_count(messages)
        if self.is_within_limits():
            return list(messages)

        match self._strategy:
            case ContextStrategy.ERROR:
                raise ContextLimitExceededError(self._current_tokens, self._max_tokens)
            case ContextStrategy.SUMMARIZE:
                managed = self._summarize(messages)
            case _:
                managed = truncate_old_messages(messages, self._max_tokens, self._preserve_first)

        logger.info(
            "Trimmed messages from %d to %d (%d tokens, budget %d)",
            len(messages),
            len(managed),
            self._current_tokens,
            self._max_tokens,
        )
        return managed

    def _summarize(self, messages: Sequence[Message]) -> list[Message]:
        """Replace dropped messages with a summary when it fits, else truncate."""
        truncated = truncate_old_messages(messages, self._max_tokens, self._preserve_first)
        if self._summarizer is None:
            return truncated

        pinned = truncated[: self._preserve_first]
        recent = truncated[self._preserve_first :]
        dropped = list(messages[self._preserve_first : len(messages) - len(recent)])
        if not dropped:
            return truncated

        summary = Message.user(SUMMARY_PREFIX + self._summarizer(dropped))
        candidate = [*pinned, summary, *recent]
        if estimate_total_tokens(candidate) > self._max_tokens:
            return truncated
        return candidate
