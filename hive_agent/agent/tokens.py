"""Approximate token estimation for context budgeting.

Uses a fixed ratio of about four characters per token. The numbers are not
exact, only deterministic and monotonic in the size of the input.
"""

import json
import math
from collections.abc import Iterable

from hive_agent.agent.messages import (
    ContentBlock,
    Message,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
)

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Estimate the token count of a string."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_block_tokens(block: ContentBlock) -> int:
    """Estimate the token count of a single content block.

    Unknown block types contribute zero.
    """
    match block:
        case TextBlock(text=text):
            return estimate_tokens(text)
        case ThinkingBlock(thinking=thinking):
            return estimate_tokens(thinking)
        case ToolUseBlock(name=name, input=tool_input):
            return estimate_tokens(name) + estimate_tokens(json.dumps(tool_input, default=str))
        case ToolResultBlock(content=content):
            return estimate_tokens(content)
        case _:
            return 0


def estimate_message_tokens(message: Message) -> int:
    """Estimate the token count of a message."""
    if isinstance(message.content, str):
        return estimate_tokens(message.content)
    return sum(estimate_block_tokens(block) for block in message.content)


def estimate_total_tokens(messages: Iterable[Message]) -> int:
    """Estimate the token count of a conversation."""
    return sum(estimate_message_tokens(message) for message in messages)
