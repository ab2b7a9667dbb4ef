"""Application settings and configuration.

This module provides Pydantic settings classes for agent configuration,
loaded from environment variables with support for nested configuration
(e.g. ``HIVE_AGENT__MAX_ITERATIONS=20``).
"""

import logging

import pydantic_settings
from pydantic import BaseModel, Field, field_validator

from hive_agent.agent.config import (
    DEFAULT_MAX_CONTEXT_TOKENS,
    DEFAULT_MAX_ITERATIONS,
    ContextStrategy,
    LlmConfig,
)


class LoggingSettings(BaseModel):
    level: str = Field("INFO")
    json_output: bool = Field(True, description="True=JSON, False=colored console")

    @field_validator("level")
    @classmethod
    def _validate_level(cls, v):
        v_upper = v.upper()
        if v_upper not in logging._nameToLevel:
            raise ValueError(f'invalid value "{v}"')
        return v_upper


class AgentSettings(BaseModel):
    max_iterations: int = Field(DEFAULT_MAX_ITERATIONS, gt=0)
    max_context_tokens: int = Field(DEFAULT_MAX_CONTEXT_TOKENS, gt=0)
    context_strategy: ContextStrategy = Field(ContextStrategy.TRUNCATE_OLD)


class LlmSettings(BaseModel):
    """LLM connection settings.

    Attributes:
        model: Model identifier (e.g., "litellm_proxy/anthropic/claude-sonnet-4-5")
        api_base: Base URL of the LiteLLM proxy
        api_key: API key for the proxy or provider
        temperature: Sampling temperature
    """

    model: str = Field("litellm_proxy/anthropic/claude-sonnet-4-5")
    api_base: str | None = None
    api_key: str | None = None
    temperature: float = Field(0.7, ge=0.0, le=2.0)

    def to_config(self) -> LlmConfig:
        return LlmConfig(
            model=self.model,
            api_key=self.api_key,
            base_url=self.api_base,
            temperature=self.temperature,
        )


class TelemetrySettings(BaseModel):
    console_trace: bool = Field(False, description="Render every trace to the log")
    otel_enabled: bool = Field(False, description="Mirror agent spans into OpenTelemetry")
    prometheus_enabled: bool = Field(True, description="Record LLM token and cost metrics")


class HiveSettings(pydantic_settings.BaseSettings):
    model_config = pydantic_settings.SettingsConfigDict(env_prefix="HIVE_", env_nested_delimiter="__")

    logging: LoggingSettings = LoggingSettings()
    agent: AgentSettings = AgentSettings()
    llm: LlmSettings = LlmSettings()
    telemetry: TelemetrySettings = TelemetrySettings()
