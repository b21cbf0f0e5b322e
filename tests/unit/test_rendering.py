from __future__ import annotations

import json
import re

import pytest

from extractplan.exceptions import ConfigurationError, UnsupportedFormatError
from extractplan.grouping import resolve_groups
from extractplan.planning import build_plan
from extractplan.rendering import TEXT_HEADER, parse_plan_json, render
from extractplan.typing.enums import PricingPolicy, RenderFormat
from extractplan.typing.models import FieldSpec, ModelPricing, PlanNode, SchemaSpec


def _plan(*, priced: bool = False) -> PlanNode:
    # "zeta" sorts after "alpha" so any alphabetical reordering would show
    schema = SchemaSpec(
        fields=[
            FieldSpec(name="title", prompt="zeta", model="fast-model"),
            FieldSpec(name="name", prompt="alpha", model="fast-model"),
            FieldSpec(name="email", prompt="alpha", model="fast-model"),
        ],
    )
    pricing = {"fast-model": ModelPricing(input_price_per_million=1.0, output_price_per_million=2.0)}
    return build_plan(
        resolve_groups(schema, fallback_model="default-model"),
        pricing=pricing if priced else None,
        pricing_policy=PricingPolicy.UNPRICED,
    )


def test_text_render_draws_tree() -> None:
    lines = render(_plan(), RenderFormat.TEXT).splitlines()

    assert lines[0] == TEXT_HEADER
    assert lines[1].startswith('schema_analysis "schema" (cost=')
    assert lines[2].startswith('  ├─ prompt_call "zeta" (model=fast-model, cost=')
    assert "tokens(in=275,out=27)" in lines[2]
    assert "field=title" in lines[2]
    assert lines[3].startswith('  ├─ prompt_call "alpha"')
    assert "fields=[name email]" in lines[3]
    assert lines[4].startswith('  └─ merge "merge fragments" (cost=0.8')


def test_real_costs_are_opt_in_per_render() -> None:
    plan = _plan(priced=True)

    without = render(plan, "text")
    with_costs = render(plan, "text", include_costs=True)

    assert "$" not in without
    assert re.search(r"\$0\.\d{6}", with_costs)


def test_json_render_round_trips() -> None:
    plan = _plan(priced=True)

    payload = render(plan, RenderFormat.JSON, include_costs=True)

    assert parse_plan_json(payload) == plan


def test_json_render_strips_real_costs_when_not_requested() -> None:
    payload = json.loads(render(_plan(priced=True), RenderFormat.JSON))

    assert "real_cost" not in payload
    assert all("real_cost" not in child for child in payload["children"])
    assert [child["prompt"] for child in payload["children"][:2]] == ["zeta", "alpha"]


def test_dot_render_emits_nodes_and_edges_in_tree_order() -> None:
    output = render(_plan(), RenderFormat.DOT)

    assert output.startswith("digraph plan {")
    assert output.rstrip().endswith("}")
    assert re.findall(r"n\d+ -> n\d+;", output) == ["n0 -> n1;", "n0 -> n2;", "n0 -> n3;"]
    assert output.index('\\"zeta\\"') < output.index('\\"alpha\\"')


def test_dot_render_keeps_multiline_labels_on_one_line() -> None:
    schema = SchemaSpec(
        name="line one\nline two",
        fields=[FieldSpec(name="title", prompt="first\r\nsecond", model="fast-model")],
    )
    plan = build_plan(resolve_groups(schema, fallback_model="default-model"), pricing_policy=PricingPolicy.UNPRICED)

    output = render(plan, RenderFormat.DOT)
    node_lines = [line for line in output.splitlines() if "[label=" in line]

    assert len(node_lines) == 3
    assert all(line.rstrip().endswith('"];') for line in node_lines)
    assert '\\"line one\\nline two\\"' in output
    assert '\\"first\\nsecond\\"' in output


def test_html_render_is_escaped_and_ordered() -> None:
    output = render(_plan(), RenderFormat.HTML)

    assert output.startswith("<!DOCTYPE html>")
    assert "&quot;zeta&quot;" in output
    assert output.index("zeta") < output.index("alpha")
    assert output.count("<ul>") == 2


def test_unknown_format_is_rejected() -> None:
    with pytest.raises(UnsupportedFormatError, match="yaml") as exc_info:
        render(_plan(), "yaml")

    assert isinstance(exc_info.value, ConfigurationError)


def test_format_names_are_case_insensitive() -> None:
    assert render(_plan(), "DOT") == render(_plan(), RenderFormat.DOT)
