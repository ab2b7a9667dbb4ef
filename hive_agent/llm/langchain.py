"""LLM backend adapter over LangChain chat models.

Wraps any LangChain ``BaseChatModel`` (by default ``ChatLiteLLM`` pointed at a
LiteLLM proxy) behind the LLMBackend protocol: converts conversation messages
to LangChain messages, binds tool schemas, and maps the reply back to content
blocks and token usage.
"""

import logging
import uuid
from collections.abc import Sequence
from typing import Any, Self

import httpx
import litellm
import tenacity
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage
from langchain_litellm import ChatLiteLLM

from hive_agent.agent.config import LlmConfig
from hive_agent.agent.messages import (
    ContentBlock,
    Message,
    Role,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
)
from hive_agent.llm.base import TOOL_USE_STOP_REASON, LLMResponse, LlmOptions, Usage

logger = logging.getLogger(__name__)

END_TURN_STOP_REASON = "end_turn"

RETRYABLE_ERRORS: tuple[type[Exception], ...] = (
    httpx.TransportError,
    litellm.APIConnectionError,
    litellm.Timeout,
    litellm.RateLimitError,
    litellm.ServiceUnavailableError,
    litellm.InternalServerError,
)


def to_langchain_messages(system_prompt: str, messages: Sequence[Message]) -> list[BaseMessage]:
    """Convert a conversation into LangChain messages, system prompt first.

    Tool results become ToolMessages placed before any text of the same user
    message, so they directly follow the AIMessage that requested them.
    """
    converted: list[BaseMessage] = [SystemMessage(content=system_prompt)]
    for message in messages:
        if message.role == Role.ASSISTANT:
            converted.append(_to_ai_message(message))
            continue

        if isinstance(message.content, str):
            converted.append(HumanMessage(content=message.content))
            continue

        texts: list[str] = []
        for block in message.content:
            if isinstance(block, ToolResultBlock):
                converted.append(
                    ToolMessage(
                        content=block.content,
                        tool_call_id=block.tool_use_id,
                        status="error" if block.is_error else "success",
                    )
                )
            elif isinstance(block, TextBlock):
                texts.append(block.text)
        if texts:
            converted.append(HumanMessage(content="\n".join(texts)))
    return converted


def _to_ai_message(message: Message) -> AIMessage:
    blocks = message.blocks
    text = "\n".join(block.text for block in blocks if isinstance(block, TextBlock))
    tool_calls = [
        {"name": block.name, "args": block.input, "id": block.id, "type": "tool_call"}
        for block in blocks
        if isinstance(block, ToolUseBlock)
    ]
    return AIMessage(content=text, tool_calls=tool_calls)


def to_openai_tool(schema: dict[str, Any]) -> dict[str, Any]:
    """Convert a {name, description, input_schema} tool schema for ``bind_tools``."""
    return {
        "type": "function",
        "function": {
            "name": schema["name"],
            "description": schema.get("description", ""),
            "parameters": schema.get("input_schema") or {"type": "object", "properties": {}},
        },
    }


def from_langchain_message(message: AIMessage) -> list[ContentBlock]:
    """Content blocks of a LangChain reply: thinking, then text, then tool calls."""
    blocks: list[ContentBlock] = []
    if isinstance(message.content, str):
        if message.content:
            blocks.append(TextBlock(text=message.content))
    else:
        for part in message.content:
            if isinstance(part, str):
                blocks.append(TextBlock(text=part))
            elif part.get("type") == "thinking" and part.get("thinking"):
                blocks.append(ThinkingBlock(thinking=part["thinking"]))
            elif part.get("type") == "text" and part.get("text"):
                blocks.append(TextBlock(text=part["text"]))

    for tool_call in message.tool_calls:
        blocks.append(
            ToolUseBlock(
                id=tool_call.get("id") or f"call_{uuid.uuid4().hex[:12]}",
                name=tool_call["name"],
                input=dict(tool_call.get("args") or {}),
            )
        )
    return blocks


def extract_usage(message: AIMessage) -> Usage:
    """Token usage from an AIMessage's usage metadata, zero when unavailable."""
    usage = getattr(message, "usage_metadata", None)
    if not usage:
        return Usage()
    details = usage.get("input_token_details") or {}
    return Usage(
        input_tokens=usage.get("input_tokens", 0),
        output_tokens=usage.get("output_tokens", 0),
        cache_creation_input_tokens=details.get("cache_creation", 0) or 0,
        cache_read_input_tokens=details.get("cache_read", 0) or 0,
    )


class LangChainBackend:
    """LLMBackend implementation backed by a LangChain chat model."""

    def __init__(self, llm: BaseChatModel, model_name: str | None = None) -> None:
        """Initialize the backend.

        Args:
            llm: LangChain chat model
            model_name: Model identifier reported in traces when the reply carries none
        """
        self._llm = llm
        self._model_name = model_name

    @classmethod
    def from_config(cls, config: LlmConfig) -> Self:
        """Build a backend using ChatLiteLLM.

        Args:
            config: LLM configuration

        Returns:
            A backend instance
        """
        llm = ChatLiteLLM(
            model_name=config.model,
            api_key=config.api_key,
            api_base=config.base_url,
            temperature=config.temperature,
        )
        return cls(llm, model_name=config.model)

    @property
    def model_name(self) -> str | None:
        return self._model_name

    async def chat(
        self,
        system_prompt: str,
        messages: Sequence[Message],
        tools: Sequence[dict[str, Any]],
        options: LlmOptions | None = None,
    ) -> LLMResponse:
        options = options or LlmOptions()
        llm = self._llm.bind_tools([to_openai_tool(schema) for schema in tools]) if tools else self._llm

        response = await self._ainvoke(
            llm,
            to_langchain_messages(system_prompt, messages),
            **self._call_kwargs(options),
        )
        if not isinstance(response, AIMessage):
            raise TypeError(f"Expected AIMessage from chat model, got {type(response).__name__}")

        content = from_langchain_message(response)
        stop_reason = TOOL_USE_STOP_REASON if response.tool_calls else END_TURN_STOP_REASON
        model = response.response_metadata.get("model_name") or options.model or self._model_name
        return LLMResponse(content=content, stop_reason=stop_reason, usage=extract_usage(response), model=model)

    @staticmethod
    def _call_kwargs(options: LlmOptions) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        if options.model:
            kwargs["model"] = options.model
        if options.max_tokens:
            kwargs["max_tokens"] = options.max_tokens
        if options.thinking_mode == "enabled":
            thinking: dict[str, Any] = {"type": "enabled"}
            if options.thinking_budget:
                thinking["budget_tokens"] = options.thinking_budget
            kwargs["thinking"] = thinking
        return kwargs

    @tenacity.retry(
        wait=tenacity.wait_fixed(2),
        stop=tenacity.stop_after_attempt(3),
        retry=tenacity.retry_if_exception_type(RETRYABLE_ERRORS),
        before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _ainvoke(self, llm: Any, messages: list[BaseMessage], **kwargs: Any) -> BaseMessage:
        return await llm.ainvoke(messages, **kwargs)

