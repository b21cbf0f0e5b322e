"""Plan renderers: text tree, JSON, Graphviz DOT and HTML."""

from __future__ import annotations

import html
import json
from typing import TYPE_CHECKING, Any

from extractplan.typing.enums import RenderFormat
from extractplan.typing.models import PlanNode

if TYPE_CHECKING:
    from collections.abc import Callable

TEXT_HEADER = "Execution Plan (estimated costs)"
_REAL_COST_KEYS = ("own_real_cost", "real_cost", "unpriced")


def _node_summary(node: PlanNode, *, include_costs: bool) -> str:
    parts = [node.type.value, f'"{node.label}"']

    details: list[str] = []
    if node.model:
        details.append(f"model={node.model}")
    details.append(f"cost={node.cost:.1f}")
    if node.output_tokens > 0:
        details.append(f"tokens(in={node.input_tokens},out={node.output_tokens})")
    elif node.input_tokens > 0:
        details.append(f"tokens(in={node.input_tokens})")
    if len(node.fields) == 1:
        details.append(f"field={node.fields[0]}")
    elif node.fields:
        details.append(f"fields=[{' '.join(node.fields)}]")
    if include_costs:
        if node.real_cost is not None:
            details.append(f"${node.real_cost:.6f}")
        if node.unpriced:
            details.append("unpriced")

    parts.append(f"({', '.join(details)})")
    return " ".join(parts)


def _render_text(plan: PlanNode, *, include_costs: bool) -> str:
    lines = [TEXT_HEADER]

    def _walk(node: PlanNode, prefix: str, connector: str, child_prefix: str) -> None:
        lines.append(f"{prefix}{connector}{_node_summary(node, include_costs=include_costs)}")
        for index, child in enumerate(node.children):
            is_last = index == len(node.children) - 1
            _walk(
                child,
                child_prefix,
                "└─ " if is_last else "├─ ",
                child_prefix + ("   " if is_last else "│  "),
            )

    _walk(plan, "", "", "  ")
    return "\n".join(lines) + "\n"


def _strip_real_costs(payload: dict[str, Any]) -> dict[str, Any]:
    for key in _REAL_COST_KEYS:
        payload.pop(key, None)
    for child in payload.get("children", []):
        _strip_real_costs(child)
    return payload


def _render_json(plan: PlanNode, *, include_costs: bool) -> str:
    if include_costs:
        return plan.model_dump_json(indent=2)
    payload = _strip_real_costs(plan.model_dump(mode="json"))
    return json.dumps(payload, indent=2, ensure_ascii=False)


def _dot_escape(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    # DOT strings cannot span lines
    return escaped.replace("\r\n", "\\n").replace("\n", "\\n").replace("\r", "\\n")


def _render_dot(plan: PlanNode, *, include_costs: bool) -> str:
    node_lines: list[str] = []
    edge_lines: list[str] = []
    counter = 0

    def _walk(node: PlanNode) -> int:
        nonlocal counter
        node_id = counter
        counter += 1
        label = _dot_escape(_node_summary(node, include_costs=include_costs))
        node_lines.append(f'  n{node_id} [label="{label}"];')
        for child in node.children:
            child_id = _walk(child)
            edge_lines.append(f"  n{node_id} -> n{child_id};")
        return node_id

    _walk(plan)
    return "\n".join(["digraph plan {", "  node [shape=box];", *node_lines, *edge_lines, "}"]) + "\n"


def _render_html(plan: PlanNode, *, include_costs: bool) -> str:
    body: list[str] = []

    def _walk(node: PlanNode, depth: int) -> None:
        indent = "  " * depth
        summary = html.escape(_node_summary(node, include_costs=include_costs))
        css_class = html.escape(node.type.value)
        if not node.children:
            body.append(f'{indent}<li class="{css_class}">{summary}</li>')
            return
        body.append(f'{indent}<li class="{css_class}">{summary}')
        body.append(f"{indent}  <ul>")
        for child in node.children:
            _walk(child, depth + 2)
        body.append(f"{indent}  </ul>")
        body.append(f"{indent}</li>")

    _walk(plan, 2)
    return "\n".join(
        [
            "<!DOCTYPE html>",
            "<html>",
            "<head>",
            '  <meta charset="utf-8">',
            f"  <title>{html.escape(TEXT_HEADER)}</title>",
            "</head>",
            "<body>",
            f"  <h1>{html.escape(TEXT_HEADER)}</h1>",
            "  <ul>",
            *body,
            "  </ul>",
            "</body>",
            "</html>",
        ],
    ) + "\n"


_RENDERERS: dict[RenderFormat, Callable[..., str]] = {
    RenderFormat.TEXT: _render_text,
    RenderFormat.JSON: _render_json,
    RenderFormat.DOT: _render_dot,
    RenderFormat.HTML: _render_html,
}


def render(plan: PlanNode, fmt: RenderFormat | str = RenderFormat.TEXT, *, include_costs: bool = False) -> str:
    """Render a plan in one of the supported formats.

    Node order always follows the tree's own child order. Real costs are
    shown only when ``include_costs`` is set, even if the plan carries them.

    Args:
        plan: Plan root.
        fmt: Output format, as an enum or its name.
        include_costs: Show currency-denominated costs.

    Raises:
        UnsupportedFormatError: If the format is unknown.

    Returns:
        str: Rendered plan.
    """
    render_format = fmt if isinstance(fmt, RenderFormat) else RenderFormat.from_str(fmt)
    return _RENDERERS[render_format](plan, include_costs=include_costs)


def parse_plan_json(payload: str) -> PlanNode:
    """Parse a plan previously rendered as JSON.

    Returns:
        PlanNode: Plan root.
    """
    return PlanNode.model_validate_json(payload)
