"""Pricing helpers."""

from __future__ import annotations

from extractplan.exceptions import UnknownModelPricingError
from extractplan.logging import get_logger
from extractplan.typing.enums import PricingPolicy
from extractplan.typing.models import ModelPricing, PricingCall, PricingTable

logger = get_logger(__name__)

_TOKENS_PER_MILLION = 1_000_000


def default_model_pricing() -> PricingTable:
    """Return a fresh copy of the built-in USD price table.

    Returns:
        PricingTable: Model identifier -> prices per million tokens.
    """
    return {
        # OpenAI
        "gpt-4o": ModelPricing(input_price_per_million=5.0, output_price_per_million=20.0),
        "gpt-4o-mini": ModelPricing(input_price_per_million=0.6, output_price_per_million=2.4),
        "gpt-4.1": ModelPricing(input_price_per_million=2.0, output_price_per_million=8.0),
        "gpt-4.1-mini": ModelPricing(input_price_per_million=0.4, output_price_per_million=1.6),
        "gpt-4.1-nano": ModelPricing(input_price_per_million=0.1, output_price_per_million=0.4),
        "gpt-3.5-turbo": ModelPricing(input_price_per_million=0.5, output_price_per_million=1.5),
        # Google Gemini
        "gemini-2.5-pro": ModelPricing(input_price_per_million=1.25, output_price_per_million=10.0),
        "gemini-2.5-flash": ModelPricing(input_price_per_million=0.3, output_price_per_million=2.5),
        "gemini-2.0-flash": ModelPricing(input_price_per_million=0.15, output_price_per_million=0.6),
        "gemini-1.5-pro": ModelPricing(input_price_per_million=1.25, output_price_per_million=5.0),
        "gemini-1.5-flash": ModelPricing(input_price_per_million=0.075, output_price_per_million=0.3),
        # Anthropic Claude 3
        "claude-3-opus": ModelPricing(input_price_per_million=15.0, output_price_per_million=75.0),
        "claude-3-sonnet": ModelPricing(input_price_per_million=3.0, output_price_per_million=15.0),
        "claude-3-haiku": ModelPricing(input_price_per_million=0.8, output_price_per_million=4.0),
    }


def real_cost(model: str, input_tokens: int, output_tokens: int, pricing: PricingTable) -> float:
    """Compute the currency cost of one call.

    Args:
        model: Model identifier.
        input_tokens: Input tokens.
        output_tokens: Output tokens.
        pricing: Price table.

    Raises:
        UnknownModelPricingError: If the model has no pricing entry.

    Returns:
        float: Cost in the table's currency.
    """
    price = pricing.get(model)
    if price is None:
        raise UnknownModelPricingError(model=model)
    return (
        input_tokens / _TOKENS_PER_MILLION * price.input_price_per_million
        + output_tokens / _TOKENS_PER_MILLION * price.output_price_per_million
    )


def price_call(
    model: str,
    input_tokens: int,
    output_tokens: int,
    pricing: PricingTable,
    policy: PricingPolicy = PricingPolicy.ERROR,
) -> float | None:
    """Compute the cost of one call under a missing-price policy.

    Args:
        model: Model identifier.
        input_tokens: Input tokens.
        output_tokens: Output tokens.
        pricing: Price table.
        policy: ``error`` propagates missing entries, ``unpriced`` returns None.

    Raises:
        UnknownModelPricingError: If the model is unknown and the policy is ``error``.

    Returns:
        float | None: Cost, or None when the model is unpriced.
    """
    try:
        return real_cost(model, input_tokens, output_tokens, pricing)
    except UnknownModelPricingError:
        if policy == PricingPolicy.ERROR:
            raise
        logger.warning("Model has no pricing entry; marking call unpriced", extra={"model": model})
        return None


def _sum_optional_int(values: list[int | None]) -> int | None:
    """Sum integer values while preserving unknown state.

    Args:
        values: Optional integer values.

    Returns:
        int | None: Sum when at least one value is known, else None.
    """
    known_values = [value for value in values if value is not None]
    if not known_values:
        return None
    return sum(known_values)


def _sum_optional_float(values: list[float | None]) -> float | None:
    known_values = [value for value in values if value is not None]
    if not known_values:
        return None
    return sum(known_values)


def merge_pricing_calls(calls: list[PricingCall]) -> PricingCall | None:
    """Aggregate observed usage into a single summary.

    The summary keeps the provider of the first call and lists every distinct
    model, comma separated, in first-seen order.

    Args:
        calls: Observed calls.

    Returns:
        PricingCall | None: Aggregated call or None if empty.
    """
    if not calls:
        return None

    models = list(dict.fromkeys(call.model for call in calls))
    return PricingCall(
        provider=calls[0].provider,
        model=",".join(models),
        input_tokens=_sum_optional_int([call.input_tokens for call in calls]),
        output_tokens=_sum_optional_int([call.output_tokens for call in calls]),
        total_cost_usd=_sum_optional_float([call.total_cost_usd for call in calls]),
    )


def attach_cost(call: PricingCall, pricing: PricingTable) -> PricingCall:
    """Return ``call`` with ``total_cost_usd`` filled from the price table.

    Calls with unknown token counts or an unpriced model are returned as-is.
    """
    if call.total_cost_usd is not None or call.input_tokens is None or call.output_tokens is None:
        return call
    price = pricing.get(call.model)
    if price is None or price.currency != "USD":
        return call
    cost = real_cost(call.model, call.input_tokens, call.output_tokens, pricing)
    return call.model_copy(update={"total_cost_usd": cost})
