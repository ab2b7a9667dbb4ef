"""LLM backends.

The turn loop depends only on the LLMBackend protocol defined here. The
LangChain adapter lives in ``hive_agent.llm.langchain``.
"""

from hive_agent.llm.base import (
    TOOL_USE_STOP_REASON,
    LLMBackend,
    LlmOptions,
    LLMResponse,
    Usage,
)

__all__ = [
    "TOOL_USE_STOP_REASON",
    "LLMBackend",
    "LlmOptions",
    "LLMResponse",
    "Usage",
]
