"""Estimate LLM GPU memory, recommend hardware and size batches."""

from llm_mem_estimator.core.calculator import MemoryCalculator, calculate_memory_requirements
from llm_mem_estimator.core.models import (
    BatchOptimizationResult,
    CalculationMode,
    HardwareRecommendation,
    MemoryCalculationResult,
    ModelParameters,
    OptimizerType,
    PrecisionType,
    RecommendationOptions,
    UtilizationConfig,
    ValidationReport,
)
from llm_mem_estimator.core.utilization import standardize_utilization
from llm_mem_estimator.core.validation import validate_model_parameters
from llm_mem_estimator.exceptions import ConfigParseError, EstimatorError, InvalidArgumentError
from llm_mem_estimator.hardware.recommender import recommend, recommend_for_result
from llm_mem_estimator.optimizer.batch_size import optimize_batch_size

__version__ = "0.1.0"

__all__ = [
    "BatchOptimizationResult",
    "CalculationMode",
    "ConfigParseError",
    "EstimatorError",
    "HardwareRecommendation",
    "InvalidArgumentError",
    "MemoryCalculationResult",
    "MemoryCalculator",
    "ModelParameters",
    "OptimizerType",
    "PrecisionType",
    "RecommendationOptions",
    "UtilizationConfig",
    "ValidationReport",
    "calculate_memory_requirements",
    "optimize_batch_size",
    "recommend",
    "recommend_for_result",
    "standardize_utilization",
    "validate_model_parameters",
]
