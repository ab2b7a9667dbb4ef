"""Model pricing lookup and cost calculation."""

from collections.abc import Mapping

from hive_agent.tracing.models import ModelPricing

ZERO_PRICING = ModelPricing(input=0.0, output=0.0)

# USD per million tokens
DEFAULT_PRICING: dict[str, ModelPricing] = {
    "claude-opus-4": ModelPricing(input=15.0, output=75.0, cache_write=18.75, cache_read=1.5),
    "claude-sonnet-4": ModelPricing(input=3.0, output=15.0, cache_write=3.75, cache_read=0.3),
    "claude-3-7-sonnet": ModelPricing(input=3.0, output=15.0, cache_write=3.75, cache_read=0.3),
    "claude-3-5-sonnet": ModelPricing(input=3.0, output=15.0, cache_write=3.75, cache_read=0.3),
    "claude-3-5-haiku": ModelPricing(input=0.8, output=4.0, cache_write=1.0, cache_read=0.08),
    "claude-haiku-4": ModelPricing(input=1.0, output=5.0, cache_write=1.25, cache_read=0.1),
    "gpt-4o": ModelPricing(input=2.5, output=10.0, cache_read=1.25),
    "gpt-4o-mini": ModelPricing(input=0.15, output=0.6, cache_read=0.075),
    "gpt-4.1": ModelPricing(input=2.0, output=8.0, cache_read=0.5),
    "gpt-4.1-mini": ModelPricing(input=0.4, output=1.6, cache_read=0.1),
}


def _normalize(model_id: str) -> str:
    # Provider-routed ids ("litellm_proxy/anthropic/claude-sonnet-4-5") price by their last segment
    return model_id.rsplit("/", 1)[-1]


def resolve_pricing(model_id: str, pricing: Mapping[str, ModelPricing] | None = None) -> ModelPricing:
    """Find the pricing entry for a model.

    Lookup order: exact id, then the longest known prefix, then a zero-cost
    default. Never raises.

    Args:
        model_id: Model identifier as reported by the backend
        pricing: Pricing table (defaults to DEFAULT_PRICING)

    Returns:
        The matching pricing entry
    """
    table = DEFAULT_PRICING if pricing is None else pricing
    for candidate in dict.fromkeys((model_id, _normalize(model_id))):
        if candidate in table:
            return table[candidate]
        matches = [key for key in table if candidate.startswith(key)]
        if matches:
            return table[max(matches, key=len)]
    return ZERO_PRICING


def calculate_cost(
    model_id: str,
    input_tokens: int,
    output_tokens: int,
    cache_creation_tokens: int = 0,
    cache_read_tokens: int = 0,
    pricing: Mapping[str, ModelPricing] | None = None,
) -> float:
    """Cost in USD of one LLM call."""
    rates = resolve_pricing(model_id, pricing)
    return (
        input_tokens * rates.input
        + output_tokens * rates.output
        + cache_creation_tokens * rates.cache_write
        + cache_read_tokens * rates.cache_read
    ) / 1_000_000


def merge_pricing(custom: Mapping[str, ModelPricing] | None) -> dict[str, ModelPricing]:
    """Default pricing table with custom entries taking precedence."""
    return {**DEFAULT_PRICING, **(custom or {})}
