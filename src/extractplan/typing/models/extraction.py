"""Execution statistics, pricing and extraction result models."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from extractplan.typing.models.plan import PlanNode


class GroupExecution(BaseModel):
    """Observed or simulated statistics for one group call."""

    model_config = ConfigDict(extra="forbid")

    prompt_name: str
    model: str
    options: dict[str, str] = Field(default_factory=dict)
    fields: list[str]
    input_tokens: int = 0
    output_tokens: int = 0
    parent_path: str = ""


class ExecutionStats(BaseModel):
    """Statistics for one dry-run or extraction pass."""

    model_config = ConfigDict(extra="forbid")

    prompt_calls: int = 0
    prompt_groups: int = 0
    fields_extracted: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    model_calls: dict[str, int] = Field(default_factory=dict)
    group_details: list[GroupExecution] = Field(default_factory=list)


class PricingCall(BaseModel):
    """Token usage reported by one model call."""

    model_config = ConfigDict(extra="forbid")

    provider: str
    model: str
    input_tokens: int | None = Field(default=None)
    output_tokens: int | None = Field(default=None)
    total_cost_usd: float | None = Field(default=None)


class ExtractionResult(BaseModel):
    """Merged output of an extraction pass."""

    model_config = ConfigDict(extra="forbid")

    data: dict[str, Any]
    flat: dict[str, Any]
    stats: ExecutionStats
    usage: list[PricingCall] = Field(default_factory=list)
    total_usage: PricingCall | None = None
    plan: PlanNode | None = None
