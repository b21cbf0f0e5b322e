"""Estimation and pricing configuration models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class TokenEstimationConfig(BaseModel):
    """Heuristics used to turn text and field counts into token estimates."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    chars_per_token: float = Field(default=4, gt=0)
    tokens_per_word_ratio: float = Field(default=1.3, gt=0)
    base_prompt_tokens: int = Field(default=50, ge=0)
    document_tokens: int = Field(default=200, ge=0)
    schema_base_tokens: int = Field(default=20, ge=0)
    tokens_per_field: int = Field(default=5, ge=0)
    output_base_tokens: int = Field(default=10, ge=0)
    output_tokens_per_field: int = Field(default=2, ge=0)
    output_tokens_by_keyword: tuple[tuple[tuple[str, ...], int], ...] = (
        (("name", "title"), 15),
        (("address", "description"), 30),
        (("email", "phone", "url"), 20),
        (("age", "count", "number"), 5),
        (("date", "time"), 10),
    )
    default_output_tokens: int = Field(default=20, ge=0)


class CostCalculationConfig(BaseModel):
    """Abstract, unit-less cost constants per plan node type."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    schema_analysis_base_cost: float = 1.0
    schema_analysis_per_field: float = 0.5
    prompt_call_base_cost: float = 3.0
    prompt_call_token_factor: float = 0.01
    merge_fragments_base_cost: float = 0.5
    merge_fragments_per_field: float = 0.1
    transform_cost: float = 1.5
    default_node_cost: float = 1.0


class ModelPricing(BaseModel):
    """Price per million tokens for one model."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    input_price_per_million: float = Field(ge=0)
    output_price_per_million: float = Field(ge=0)
    currency: str = "USD"


PricingTable = dict[str, ModelPricing]
