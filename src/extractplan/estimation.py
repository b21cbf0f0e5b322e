"""Token and abstract-cost heuristics.

Every function here is pure: configuration is passed in explicitly, and a
fresh default configuration is used only when the caller supplies none.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from extractplan.typing.enums import PlanNodeType, TokenBasis
from extractplan.typing.models import CostCalculationConfig, TokenEstimationConfig

if TYPE_CHECKING:
    from collections.abc import Sequence

    from extractplan.typing.models import PromptGroup


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def estimate_tokens_from_words(word_count: int, config: TokenEstimationConfig | None = None) -> int:
    """Estimate tokens from a word count.

    Args:
        word_count: Number of whitespace-separated words.
        config: Estimation heuristics.

    Returns:
        int: Estimated tokens, at least 1.
    """
    config = config or TokenEstimationConfig()
    return max(1, _round_half_up(word_count * config.tokens_per_word_ratio))


def estimate_tokens(
    text: str,
    config: TokenEstimationConfig | None = None,
    basis: TokenBasis | str = TokenBasis.CHARS,
) -> int:
    """Estimate the token count of a text.

    Args:
        text: Text to measure.
        config: Estimation heuristics.
        basis: ``chars`` divides the length by ``chars_per_token``; ``words``
            multiplies the word count by ``tokens_per_word_ratio``.

    Returns:
        int: Estimated tokens, at least 1.
    """
    config = config or TokenEstimationConfig()
    if TokenBasis.from_str(str(basis)) == TokenBasis.WORDS:
        return estimate_tokens_from_words(len(text.split()), config)
    return max(1, _round_half_up(len(text) / config.chars_per_token))


def document_tokens(sample_document: str | None, config: TokenEstimationConfig | None = None) -> int:
    """Return the document contribution to a prompt's input tokens.

    Without a sample document the configured ``document_tokens`` guess is used.
    """
    config = config or TokenEstimationConfig()
    if not sample_document:
        return config.document_tokens
    return estimate_tokens(sample_document, config)


def _content_tokens(field_name: str, config: TokenEstimationConfig) -> int:
    lowered = field_name.lower()
    for keywords, tokens in config.output_tokens_by_keyword:
        if any(keyword in lowered for keyword in keywords):
            return tokens
    return config.default_output_tokens


def estimate_output_tokens(fields: Sequence[str], config: TokenEstimationConfig | None = None) -> int:
    """Estimate the JSON answer size for a set of fields.

    The answer carries a fixed envelope, a small per-key overhead, and a
    content estimate picked from the first keyword found in each field name.

    Args:
        fields: Field names requested in one call.
        config: Estimation heuristics.

    Returns:
        int: Estimated output tokens.
    """
    config = config or TokenEstimationConfig()
    overhead = config.output_base_tokens + config.output_tokens_per_field * len(fields)
    return overhead + sum(_content_tokens(name, config) for name in fields)


def estimate_group_tokens(
    group: PromptGroup,
    sample_document: str | None = None,
    config: TokenEstimationConfig | None = None,
) -> tuple[int, int]:
    """Estimate input and output tokens for one prompt group.

    Args:
        group: Resolved prompt group.
        sample_document: Optional document used instead of the fixed document guess.
        config: Estimation heuristics.

    Returns:
        tuple[int, int]: Input and output token estimates.
    """
    config = config or TokenEstimationConfig()
    input_tokens = (
        config.base_prompt_tokens
        + document_tokens(sample_document, config)
        + config.schema_base_tokens
        + config.tokens_per_field * len(group.fields)
    )
    return input_tokens, estimate_output_tokens(group.fields, config)


def estimate_schema_tokens(field_count: int, config: TokenEstimationConfig | None = None) -> int:
    """Return the schema-analysis overhead for ``field_count`` fields."""
    config = config or TokenEstimationConfig()
    return config.schema_base_tokens + config.tokens_per_field * field_count


def abstract_cost(
    node_type: PlanNodeType,
    *,
    tokens: int = 0,
    field_count: int = 0,
    config: CostCalculationConfig | None = None,
) -> float:
    """Return the unit-less own cost of one plan node.

    Args:
        node_type: Kind of plan node.
        tokens: Input tokens of the node.
        field_count: Number of fields covered by the node.
        config: Cost constants.

    Returns:
        float: Own cost, excluding children.
    """
    config = config or CostCalculationConfig()
    match node_type:
        case PlanNodeType.SCHEMA_ANALYSIS:
            return config.schema_analysis_base_cost + config.schema_analysis_per_field * field_count
        case PlanNodeType.PROMPT_CALL:
            return config.prompt_call_base_cost + config.prompt_call_token_factor * tokens
        case PlanNodeType.MERGE:
            return config.merge_fragments_base_cost + config.merge_fragments_per_field * field_count
        case PlanNodeType.TRANSFORM:
            return config.transform_cost
        case _:
            return config.default_node_cost
