"""Typing-centric domain modules."""

from extractplan.typing.enums import (
    PlanNodeType,
    PricingPolicy,
    RenderFormat,
    RunnerBackend,
    RunnerState,
    TokenBasis,
)
from extractplan.typing.models import (
    CostCalculationConfig,
    ExecutionStats,
    ExtractionResult,
    FieldSpec,
    GroupDefinition,
    GroupExecution,
    GroupKey,
    GroupResolution,
    ModelPricing,
    PlanNode,
    PricingCall,
    PricingTable,
    PromptGroup,
    SchemaSpec,
    TokenEstimationConfig,
)
from extractplan.typing.protocol import ActivityHost, Invoker, PromptProvider, Runner

__all__ = [
    "ActivityHost",
    "CostCalculationConfig",
    "ExecutionStats",
    "ExtractionResult",
    "FieldSpec",
    "GroupDefinition",
    "GroupExecution",
    "GroupKey",
    "GroupResolution",
    "Invoker",
    "ModelPricing",
    "PlanNode",
    "PlanNodeType",
    "PricingCall",
    "PricingPolicy",
    "PricingTable",
    "PromptGroup",
    "PromptProvider",
    "RenderFormat",
    "Runner",
    "RunnerBackend",
    "RunnerState",
    "SchemaSpec",
    "TokenBasis",
    "TokenEstimationConfig",
]
