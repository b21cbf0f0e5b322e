"""Execution plan tree model."""

from __future__ import annotations

from collections.abc import Iterator

from pydantic import BaseModel, ConfigDict, Field

from extractplan.typing.enums import PlanNodeType


class PlanNode(BaseModel):
    """Cost-annotated node of an execution plan.

    ``cost`` always equals ``own_cost`` plus the children's ``cost``. The same
    holds for ``real_cost`` once a pricing table has been applied.
    """

    model_config = ConfigDict(extra="forbid")

    type: PlanNodeType
    label: str
    prompt: str | None = None
    model: str | None = None
    options: dict[str, str] = Field(default_factory=dict)
    parent_path: str | None = None
    fields: list[str] = Field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0
    own_cost: float = 0.0
    cost: float = 0.0
    own_real_cost: float | None = None
    real_cost: float | None = None
    unpriced: bool = False
    children: list[PlanNode] = Field(default_factory=list)
    expected_models: list[str] | None = None
    expected_call_counts: dict[str, int] | None = None

    def walk(self) -> Iterator[PlanNode]:
        """Yield this node and its descendants in pre-order."""
        yield self
        for child in self.children:
            yield from child.walk()

    @property
    def prompt_calls(self) -> list[PlanNode]:
        """Return prompt-call nodes in tree order."""
        return [node for node in self.walk() if node.type == PlanNodeType.PROMPT_CALL]
