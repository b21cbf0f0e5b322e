"""Execution plan builder."""

from __future__ import annotations

from typing import TYPE_CHECKING

from extractplan.dry_run import dry_run, simulate_group_calls
from extractplan.estimation import abstract_cost, estimate_schema_tokens
from extractplan.grouping import resolve_groups
from extractplan.logging import get_logger
from extractplan.pricing import price_call
from extractplan.typing.enums import PlanNodeType, PricingPolicy
from extractplan.typing.models import (
    CostCalculationConfig,
    ExecutionStats,
    GroupExecution,
    GroupResolution,
    PlanNode,
    PricingTable,
    SchemaSpec,
    TokenEstimationConfig,
)

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

    from extractplan.grouping import GroupRegistry

logger = get_logger(__name__)


def _call_label(call: GroupExecution) -> str:
    label = call.prompt_name or "<fallback>"
    if call.options:
        label += "?" + "&".join(f"{key}={value}" for key, value in sorted(call.options.items()))
    if call.parent_path:
        label = f"{call.parent_path}: {label}"
    return label


def _prompt_call_node(
    call: GroupExecution,
    *,
    cost_config: CostCalculationConfig,
    pricing: PricingTable | None,
    pricing_policy: PricingPolicy,
) -> PlanNode:
    own_cost = abstract_cost(PlanNodeType.PROMPT_CALL, tokens=call.input_tokens, config=cost_config)
    node = PlanNode(
        type=PlanNodeType.PROMPT_CALL,
        label=_call_label(call),
        prompt=call.prompt_name,
        model=call.model,
        options=dict(call.options),
        parent_path=call.parent_path,
        fields=list(call.fields),
        input_tokens=call.input_tokens,
        output_tokens=call.output_tokens,
        own_cost=own_cost,
        cost=own_cost,
    )
    if pricing is not None:
        priced = price_call(call.model, call.input_tokens, call.output_tokens, pricing, pricing_policy)
        node.own_real_cost = priced
        node.real_cost = priced
        node.unpriced = priced is None
    return node


def _assemble(
    schema_name: str,
    calls: list[GroupExecution],
    *,
    token_config: TokenEstimationConfig,
    cost_config: CostCalculationConfig,
    pricing: PricingTable | None,
    pricing_policy: PricingPolicy,
) -> PlanNode:
    fields = list(dict.fromkeys(name for call in calls for name in call.fields))

    children = [
        _prompt_call_node(call, cost_config=cost_config, pricing=pricing, pricing_policy=pricing_policy)
        for call in calls
    ]

    merge_cost = abstract_cost(PlanNodeType.MERGE, field_count=len(fields), config=cost_config)
    merge = PlanNode(
        type=PlanNodeType.MERGE,
        label="merge fragments",
        fields=fields,
        own_cost=merge_cost,
        cost=merge_cost,
    )
    if pricing is not None:
        merge.own_real_cost = 0.0
        merge.real_cost = 0.0
    children.append(merge)

    call_counts: dict[str, int] = {}
    for call in calls:
        call_counts[call.model] = call_counts.get(call.model, 0) + 1

    own_cost = abstract_cost(PlanNodeType.SCHEMA_ANALYSIS, field_count=len(fields), config=cost_config)
    root = PlanNode(
        type=PlanNodeType.SCHEMA_ANALYSIS,
        label=schema_name,
        fields=fields,
        input_tokens=estimate_schema_tokens(len(fields), token_config),
        own_cost=own_cost,
        cost=own_cost + sum(child.cost for child in children),
        children=children,
        expected_models=list(call_counts),
        expected_call_counts=call_counts,
    )
    if pricing is not None:
        root.own_real_cost = 0.0
        root.real_cost = sum(child.real_cost for child in children if child.real_cost is not None)
        root.unpriced = any(child.unpriced for child in children)
    return root


def build_plan(
    resolution: GroupResolution,
    *,
    token_config: TokenEstimationConfig | None = None,
    cost_config: CostCalculationConfig | None = None,
    pricing: PricingTable | None = None,
    pricing_policy: PricingPolicy = PricingPolicy.ERROR,
) -> PlanNode:
    """Build a cost-annotated plan from resolved groups.

    The tree is a schema-analysis root with one prompt-call child per group,
    in group order, followed by a single merge node. Costs roll up: every
    node's ``cost`` is its ``own_cost`` plus its children's ``cost``, and
    ``real_cost`` is summed the same way when a pricing table is given.

    Args:
        resolution: Resolved prompt groups.
        token_config: Token heuristics.
        cost_config: Abstract cost constants.
        pricing: Optional price table enabling real costs.
        pricing_policy: Behaviour for models missing from ``pricing``.

    Returns:
        PlanNode: Plan root.
    """
    token_config = token_config or TokenEstimationConfig()
    calls = simulate_group_calls(resolution, None, token_config)
    return _assemble(
        resolution.schema_name,
        calls,
        token_config=token_config,
        cost_config=cost_config or CostCalculationConfig(),
        pricing=pricing,
        pricing_policy=pricing_policy,
    )


def build_plan_from_stats(
    stats: ExecutionStats,
    *,
    schema_name: str = "schema",
    token_config: TokenEstimationConfig | None = None,
    cost_config: CostCalculationConfig | None = None,
    pricing: PricingTable | None = None,
    pricing_policy: PricingPolicy = PricingPolicy.ERROR,
) -> PlanNode:
    """Build a plan whose prompt-call nodes mirror dry-run group details.

    Returns:
        PlanNode: Plan root.
    """
    return _assemble(
        schema_name,
        list(stats.group_details),
        token_config=token_config or TokenEstimationConfig(),
        cost_config=cost_config or CostCalculationConfig(),
        pricing=pricing,
        pricing_policy=pricing_policy,
    )


def explain(
    schema: SchemaSpec,
    *,
    fallback_model: str,
    registry: GroupRegistry | None = None,
    fallback_prompt: str = "",
    field_models: Mapping[str, str] | None = None,
    field_prompts: Mapping[str, str] | None = None,
    flatten_groups: bool = False,
    sample_document: str | Path | None = None,
    token_config: TokenEstimationConfig | None = None,
    cost_config: CostCalculationConfig | None = None,
    pricing: PricingTable | None = None,
    pricing_policy: PricingPolicy = PricingPolicy.ERROR,
) -> PlanNode:
    """Resolve groups and build a plan in one call.

    With a sample document the plan is built from a dry run against it;
    otherwise the document share of each call uses the configured guess.
    Any configuration error aborts before a tree is produced.

    Returns:
        PlanNode: Plan root.
    """
    resolution = resolve_groups(
        schema,
        registry,
        fallback_model=fallback_model,
        fallback_prompt=fallback_prompt,
        field_models=field_models,
        field_prompts=field_prompts,
        flatten_groups=flatten_groups,
    )
    if sample_document is None:
        plan = build_plan(
            resolution,
            token_config=token_config,
            cost_config=cost_config,
            pricing=pricing,
            pricing_policy=pricing_policy,
        )
    else:
        stats = dry_run(resolution, sample_document, config=token_config)
        plan = build_plan_from_stats(
            stats,
            schema_name=resolution.schema_name,
            token_config=token_config,
            cost_config=cost_config,
            pricing=pricing,
            pricing_policy=pricing_policy,
        )

    logger.info(
        "Execution plan built",
        extra={
            "schema": resolution.schema_name,
            "prompt_calls": len(plan.prompt_calls),
            "cost": plan.cost,
            "real_cost": plan.real_cost,
        },
    )
    return plan
