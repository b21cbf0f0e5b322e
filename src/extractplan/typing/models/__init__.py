"""Core domain model exports."""

from extractplan.typing.models.config import (
    CostCalculationConfig,
    ModelPricing,
    PricingTable,
    TokenEstimationConfig,
)
from extractplan.typing.models.extraction import (
    ExecutionStats,
    ExtractionResult,
    GroupExecution,
    PricingCall,
)
from extractplan.typing.models.groups import GroupKey, GroupResolution, PromptGroup
from extractplan.typing.models.plan import PlanNode
from extractplan.typing.models.schema import (
    FieldSpec,
    GroupDefinition,
    SchemaSpec,
    join_path,
    normalize_options,
)

__all__ = [
    "CostCalculationConfig",
    "ExecutionStats",
    "ExtractionResult",
    "FieldSpec",
    "GroupDefinition",
    "GroupExecution",
    "GroupKey",
    "GroupResolution",
    "ModelPricing",
    "PlanNode",
    "PricingCall",
    "PricingTable",
    "PromptGroup",
    "SchemaSpec",
    "TokenEstimationConfig",
    "join_path",
    "normalize_options",
]
