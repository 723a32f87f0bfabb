"""Core memory models, formulas, validation and utilization."""

from llm_mem_estimator.core.models import (
    CalculationMode,
    InferenceMemory,
    MemoryCalculationResult,
    ModelParameters,
    OptimizerType,
    PrecisionType,
    TrainingMemory,
    UtilizationConfig,
)
from llm_mem_estimator.core.utilization import standardize_utilization
from llm_mem_estimator.core.validation import validate_model_parameters

__all__ = [
    "CalculationMode",
    "InferenceMemory",
    "MemoryCalculationResult",
    "ModelParameters",
    "OptimizerType",
    "PrecisionType",
    "TrainingMemory",
    "UtilizationConfig",
    "standardize_utilization",
    "validate_model_parameters",
]

# Import the calculator separately to avoid circular import
# Use: from llm_mem_estimator.core.calculator import calculate_memory_requirements
