"""Dry-run execution: simulate every group call without contacting a model."""

from __future__ import annotations

from pathlib import Path

from extractplan.estimation import estimate_group_tokens
from extractplan.exceptions import ConfigurationError
from extractplan.logging import get_logger
from extractplan.typing.models import (
    ExecutionStats,
    GroupExecution,
    GroupResolution,
    TokenEstimationConfig,
)

logger = get_logger(__name__)


def simulate_group_calls(
    resolution: GroupResolution,
    sample_document: str | None = None,
    config: TokenEstimationConfig | None = None,
) -> list[GroupExecution]:
    """Estimate one call per resolved group.

    Args:
        resolution: Resolved prompt groups.
        sample_document: Document used for the document token share, if any.
        config: Estimation heuristics.

    Returns:
        list[GroupExecution]: Simulated calls in group order.
    """
    calls: list[GroupExecution] = []
    for group in resolution.groups:
        input_tokens, output_tokens = estimate_group_tokens(group, sample_document, config)
        calls.append(
            GroupExecution(
                prompt_name=group.key.prompt or resolution.fallback_prompt,
                model=group.key.model,
                options=group.key.options_dict,
                fields=list(group.fields),
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                parent_path=group.key.parent_path,
            ),
        )
    return calls


def stats_from_calls(calls: list[GroupExecution]) -> ExecutionStats:
    """Aggregate per-group calls into execution statistics.

    Returns:
        ExecutionStats: Totals, model histogram and group details.
    """
    model_calls: dict[str, int] = {}
    for call in calls:
        model_calls[call.model] = model_calls.get(call.model, 0) + 1

    return ExecutionStats(
        prompt_calls=len(calls),
        prompt_groups=len({(call.prompt_name, call.model) for call in calls}),
        fields_extracted=sum(len(call.fields) for call in calls),
        total_input_tokens=sum(call.input_tokens for call in calls),
        total_output_tokens=sum(call.output_tokens for call in calls),
        model_calls=model_calls,
        group_details=calls,
    )


def _read_sample(sample_input: str | Path) -> str:
    if isinstance(sample_input, Path):
        return sample_input.read_text(encoding="utf-8")
    return sample_input


def dry_run(
    resolution: GroupResolution,
    sample_input: str | Path,
    *,
    config: TokenEstimationConfig | None = None,
) -> ExecutionStats:
    """Simulate an extraction pass against a concrete sample document.

    Args:
        resolution: Resolved prompt groups.
        sample_input: Sample text, or a path to a UTF-8 text file.
        config: Estimation heuristics.

    Raises:
        ConfigurationError: If the sample document is empty.

    Returns:
        ExecutionStats: Fresh statistics for this pass.
    """
    sample_document = _read_sample(sample_input)
    if not sample_document:
        raise ConfigurationError(message="Dry run requires a non-empty sample document")

    logger.debug(
        "Starting dry run analysis",
        extra={"group_count": len(resolution.groups), "field_count": len(resolution.field_names)},
    )
    calls = simulate_group_calls(resolution, sample_document, config)
    for call in calls:
        logger.debug(
            "Simulated prompt call",
            extra={
                "prompt": call.prompt_name,
                "model": call.model,
                "fields": call.fields,
                "input_tokens": call.input_tokens,
                "output_tokens": call.output_tokens,
            },
        )

    stats = stats_from_calls(calls)
    logger.info(
        "Dry run completed",
        extra={
            "prompt_calls": stats.prompt_calls,
            "total_input_tokens": stats.total_input_tokens,
            "total_output_tokens": stats.total_output_tokens,
            "models_used": len(stats.model_calls),
        },
    )
    return stats
