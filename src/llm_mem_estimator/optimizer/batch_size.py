"""Batch size optimization.

Scans candidate batch sizes, recomputes memory for each one and picks the
largest batch size that stays within a safety-margined memory budget.

``optimize_batch_size`` always returns a ``BatchOptimizationResult``. Bad
input and infeasible requests come back as a result whose
``validation.is_valid`` is False instead of raising.
"""

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from llm_mem_estimator.core.calculator import calculate_memory_requirements
from llm_mem_estimator.core.formulas import parse_optimizer
from llm_mem_estimator.core.models import (
    BatchAnalysisPoint,
    BatchOptimizationErrorCode,
    BatchOptimizationResult,
    CalculationMode,
    Confidence,
    FieldError,
    MemoryCalculationResult,
    ModelParameters,
    OptimizationValidation,
    OptimizerType,
    PerformanceEstimate,
    PrecisionType,
)
from llm_mem_estimator.exceptions import InvalidArgumentError

logger = logging.getLogger(__name__)

DEFAULT_SAFETY_MARGIN = 0.9
MAX_BATCH_SIZE = 128
MAX_MEMORY_LIMIT_GB = 1000.0

# Rough step time used for relative throughput comparisons only
SECONDS_PER_BATCH = 0.05

LONG_SEQUENCE_THRESHOLD = 8192

FAILURE_RECOMMENDATIONS = (
    "Increase the available GPU memory",
    "Reduce the model parameter count",
    "Use quantization (int8 or int4) to shrink the model weights",
)

_CONFIDENCE_ORDER = {Confidence.LOW: 0, Confidence.MEDIUM: 1, Confidence.HIGH: 2}


@dataclass(frozen=True)
class BatchOptimizationFailure:
    """Structured reason an optimization could not produce a batch size."""

    code: BatchOptimizationErrorCode
    message: str
    field_errors: list[FieldError] = field(default_factory=list)


@dataclass(frozen=True)
class _ScanOutcome:
    analysis: list[BatchAnalysisPoint]
    optimal: BatchAnalysisPoint


def _mode_total(result: MemoryCalculationResult, mode: CalculationMode) -> float:
    return result.total_for(mode)


def _breakdown(result: MemoryCalculationResult, mode: CalculationMode) -> dict[str, float]:
    if mode is CalculationMode.TRAINING:
        return {
            "weights": result.training.model_weights,
            "activations": result.training.activations,
            "gradients": result.training.gradients,
            "optimizer": result.training.optimizer_states,
        }
    return {
        "weights": result.inference.model_weights,
        "activations": result.inference.activations,
    }


def estimate_throughput(batch_size: int, sequence_length: int) -> float:
    """Very rough tokens/second estimate, for relative comparisons only."""
    return batch_size * sequence_length / SECONDS_PER_BATCH


def _check_preconditions(
    params: ModelParameters,
    max_memory_gb: Any,
    safety_margin: Any,
) -> list[FieldError]:
    errors = []

    if not _is_number(max_memory_gb) or not 0 < max_memory_gb <= MAX_MEMORY_LIMIT_GB:
        errors.append(
            FieldError(
                field="max_memory_gb",
                message=f"Memory limit must be greater than 0 and at most {MAX_MEMORY_LIMIT_GB:g} GB",
            )
        )
    if not _is_number(safety_margin) or not 0 < safety_margin <= 1:
        errors.append(
            FieldError(
                field="safety_margin",
                message="Safety margin must be greater than 0 and at most 1",
            )
        )
    if params.batch_size <= 0:
        errors.append(FieldError(field="batch_size", message="Batch size must be greater than 0"))

    return errors


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _scan(
    params: ModelParameters,
    max_memory_gb: float,
    mode: CalculationMode,
    safety_margin: float,
    optimizer: OptimizerType,
) -> _ScanOutcome | BatchOptimizationFailure:
    """Evaluate batch sizes from 1 upwards until memory exceeds the limit."""
    safe_limit = max_memory_gb * safety_margin
    max_candidate = max(1, min(MAX_BATCH_SIZE, math.floor(max_memory_gb * 2)))

    analysis: list[BatchAnalysisPoint] = []
    optimal: BatchAnalysisPoint | None = None

    for batch_size in range(1, max_candidate + 1):
        result = calculate_memory_requirements(
            params.model_copy(update={"batch_size": batch_size}),
            mode=mode,
            optimizer=optimizer,
            include_recommendations=False,
        )
        memory = _mode_total(result, mode)
        point = BatchAnalysisPoint(
            batch_size=batch_size,
            memory_usage=memory,
            utilization_rate=memory / max_memory_gb,
            within_limit=memory <= max_memory_gb,
            safety_margin_exceeded=memory > safe_limit,
            estimated_throughput=estimate_throughput(batch_size, params.sequence_length),
            memory_breakdown=_breakdown(result, mode),
        )
        analysis.append(point)

        if not point.safety_margin_exceeded:
            optimal = point
        # memory only grows with batch size
        if not point.within_limit:
            break

    logger.debug(f"Evaluated {len(analysis)} batch sizes (cap {max_candidate})")

    if optimal is None:
        return BatchOptimizationFailure(
            code=BatchOptimizationErrorCode.NO_FEASIBLE_SOLUTION,
            message=(
                f"No batch size fits within {safe_limit:.2f} GB "
                f"({safety_margin:.0%} of {max_memory_gb:g} GB) in {mode.value} mode"
            ),
        )
    return _ScanOutcome(analysis=analysis, optimal=optimal)


def _generate_advice(
    params: ModelParameters,
    mode: CalculationMode,
    outcome: _ScanOutcome,
    max_memory_gb: float,
) -> tuple[list[str], list[str]]:
    warnings: list[str] = []
    recommendations: list[str] = []
    optimal = outcome.optimal

    feasible = [p for p in outcome.analysis if not p.safety_margin_exceeded]
    average_utilization = sum(p.utilization_rate for p in feasible) / len(feasible)
    if average_utilization < 0.5:
        recommendations.append(
            f"Average memory utilization across feasible batch sizes is "
            f"{average_utilization:.0%}; a smaller GPU would be used more efficiently"
        )
    elif average_utilization > 0.8:
        warnings.append(
            f"Average memory utilization across feasible batch sizes is "
            f"{average_utilization:.0%}; little headroom remains"
        )

    if optimal.batch_size == 1:
        warnings.append("Only batch size 1 fits within the safety margin")
    elif optimal.batch_size >= 32:
        recommendations.append(
            "Large batch sizes may affect convergence; adjust the learning rate accordingly"
        )
    if optimal.batch_size == MAX_BATCH_SIZE:
        recommendations.append(
            f"The search stopped at the maximum batch size of {MAX_BATCH_SIZE}; "
            "memory is not the limiting factor"
        )

    if mode is CalculationMode.TRAINING:
        if optimal.batch_size < 8:
            recommendations.append(
                "Use gradient accumulation to reach a larger effective batch size"
            )
        if params.precision is PrecisionType.FP32:
            recommendations.append("Mixed precision training (fp16) halves weight and activation memory")
    elif optimal.batch_size > 1:
        recommendations.append(
            f"Serve up to {optimal.batch_size} requests per batch to improve throughput"
        )

    base_ratio = outcome.analysis[0].memory_usage / max_memory_gb
    if base_ratio > 0.7:
        warnings.append(f"Batch size 1 already uses {base_ratio:.0%} of the memory limit")
        recommendations.append(
            "Consider int8 or int4 quantization, or a GPU with more memory"
        )

    if params.sequence_length >= LONG_SEQUENCE_THRESHOLD and optimal.batch_size <= 2:
        warnings.append(
            f"Sequence length {params.sequence_length} limits the batch size to {optimal.batch_size}"
        )
        recommendations.append("Shorten the sequence length or split long inputs into chunks")

    return warnings, recommendations


def _downgrade(current: Confidence, candidate: Confidence) -> Confidence:
    return candidate if _CONFIDENCE_ORDER[candidate] < _CONFIDENCE_ORDER[current] else current


def _validate_result(
    params: ModelParameters,
    outcome: _ScanOutcome,
) -> OptimizationValidation:
    """Flag implausible results by lowering confidence. Never invalidates."""
    optimal = outcome.optimal
    confidence = Confidence.HIGH
    warnings = []
    recommendations = []

    if optimal.utilization_rate < 0.3:
        warnings.append(
            f"The optimal batch size uses only {optimal.utilization_rate:.0%} of the memory limit"
        )
        recommendations.append("Check that the memory limit matches the target GPU")
        confidence = _downgrade(confidence, Confidence.MEDIUM)
    elif optimal.utilization_rate > 0.95:
        warnings.append(
            f"The optimal batch size uses {optimal.utilization_rate:.0%} of the memory limit"
        )
        recommendations.append("Use a stricter safety margin to avoid out-of-memory errors")
        confidence = _downgrade(confidence, Confidence.LOW)

    ratio = optimal.batch_size / params.batch_size
    if ratio >= 8 or ratio <= 1 / 8:
        warnings.append(
            f"The optimal batch size {optimal.batch_size} differs greatly from "
            f"the current batch size {params.batch_size}"
        )
        confidence = _downgrade(confidence, Confidence.MEDIUM)

    if len(outcome.analysis) < 3:
        warnings.append("Few batch sizes were evaluated; the estimate is coarse")
        confidence = _downgrade(confidence, Confidence.MEDIUM)

    return OptimizationValidation(
        is_valid=True,
        warnings=warnings,
        recommendations=recommendations,
        confidence=confidence,
    )


def _performance_estimate(
    params: ModelParameters,
    optimal: BatchAnalysisPoint,
) -> PerformanceEstimate:
    current_throughput = estimate_throughput(params.batch_size, params.sequence_length)
    return PerformanceEstimate(
        throughput_improvement=(optimal.estimated_throughput / current_throughput - 1) * 100,
        memory_efficiency=min(100.0, optimal.utilization_rate * 100),
        recommended_for_training=optimal.batch_size >= 4,
        recommended_for_inference=optimal.utilization_rate <= 0.85,
    )


def _run_optimization(
    params: ModelParameters | Mapping[str, Any],
    max_memory_gb: float,
    mode: CalculationMode | str,
    safety_margin: float,
    optimizer: OptimizerType | str,
) -> BatchOptimizationResult | BatchOptimizationFailure:
    try:
        params = ModelParameters.model_validate(params)
        mode = CalculationMode(mode)
        optimizer = parse_optimizer(optimizer)
    except (ValidationError, ValueError) as e:
        return BatchOptimizationFailure(
            code=BatchOptimizationErrorCode.INVALID_PARAMS,
            message=f"Input parameter validation failed: {e}",
        )

    field_errors = _check_preconditions(params, max_memory_gb, safety_margin)
    if field_errors:
        only_margin = all(e.field == "safety_margin" for e in field_errors)
        return BatchOptimizationFailure(
            code=(
                BatchOptimizationErrorCode.SAFETY_MARGIN_INVALID
                if only_margin
                else BatchOptimizationErrorCode.INVALID_PARAMS
            ),
            message="Input parameter validation failed: "
            + "; ".join(e.message for e in field_errors),
            field_errors=field_errors,
        )

    try:
        base = calculate_memory_requirements(
            params.model_copy(update={"batch_size": 1}),
            mode=CalculationMode.INFERENCE,
            optimizer=optimizer,
            include_recommendations=False,
        )
    except InvalidArgumentError as e:
        return BatchOptimizationFailure(
            code=BatchOptimizationErrorCode.INVALID_PARAMS,
            message=f"Input parameter validation failed: {e}",
        )

    if base.inference.total > max_memory_gb:
        return BatchOptimizationFailure(
            code=BatchOptimizationErrorCode.MEMORY_LIMIT_TOO_LOW,
            message=(
                f"Even batch size 1 needs {base.inference.total:.2f} GB, "
                f"more than the {max_memory_gb:g} GB memory limit"
            ),
        )

    outcome = _scan(params, max_memory_gb, mode, safety_margin, optimizer)
    if isinstance(outcome, BatchOptimizationFailure):
        return outcome

    warnings, recommendations = _generate_advice(params, mode, outcome, max_memory_gb)
    optimal = outcome.optimal

    logger.info(
        f"Optimal {mode.value} batch size {optimal.batch_size} uses "
        f"{optimal.memory_usage:.2f} of {max_memory_gb:g} GB"
    )

    return BatchOptimizationResult(
        optimal_batch_size=optimal.batch_size,
        memory_usage=optimal.memory_usage,
        utilization_rate=optimal.utilization_rate,
        analysis_data=outcome.analysis,
        warnings=warnings,
        recommendations=recommendations,
        performance_estimate=_performance_estimate(params, optimal),
        validation=_validate_result(params, outcome),
        safety_margin=safety_margin,
        max_memory_limit=max_memory_gb,
    )


def _fallback_memory(
    params: ModelParameters | Mapping[str, Any],
    mode: CalculationMode | str,
    optimizer: OptimizerType | str,
) -> float:
    """Memory at batch size 1, or 0 when even that cannot be computed."""
    try:
        base = ModelParameters.model_validate(params).model_copy(update={"batch_size": 1})
        result = calculate_memory_requirements(
            base, mode=mode, optimizer=optimizer, include_recommendations=False
        )
        return result.total_for(mode)
    except Exception as e:
        logger.warning(f"Fallback memory calculation failed: {e}")
        return 0.0


def _as_float(value: Any) -> float:
    return float(value) if _is_number(value) else math.nan


def _failure_result(
    failure: BatchOptimizationFailure,
    params: ModelParameters | Mapping[str, Any],
    max_memory_gb: Any,
    mode: CalculationMode | str,
    safety_margin: Any,
    optimizer: OptimizerType | str,
) -> BatchOptimizationResult:
    memory_usage = _fallback_memory(params, mode, optimizer)
    limit = _as_float(max_memory_gb)
    utilization = memory_usage / limit if math.isfinite(limit) and limit > 0 else 0.0

    warnings = [failure.message]
    recommendations = list(FAILURE_RECOMMENDATIONS)

    logger.warning(f"Batch size optimization failed ({failure.code.value}): {failure.message}")

    return BatchOptimizationResult(
        optimal_batch_size=1,
        memory_usage=memory_usage,
        utilization_rate=utilization,
        warnings=warnings,
        recommendations=recommendations,
        validation=OptimizationValidation(
            is_valid=False,
            error_message=failure.message,
            warnings=list(warnings),
            recommendations=list(recommendations),
            confidence=Confidence.LOW,
        ),
        safety_margin=_as_float(safety_margin),
        max_memory_limit=limit,
        error_code=failure.code,
    )


def optimize_batch_size(
    params: ModelParameters | Mapping[str, Any],
    max_memory_gb: float,
    mode: CalculationMode | str = CalculationMode.INFERENCE,
    safety_margin: float = DEFAULT_SAFETY_MARGIN,
    optimizer: OptimizerType | str = OptimizerType.ADAM,
) -> BatchOptimizationResult:
    """Find the largest batch size that fits a memory budget.

    Args:
        params: Model parameters; ``batch_size`` is the current batch size
            used for comparison
        max_memory_gb: Memory limit in GB, in (0, 1000]
        mode: Which workload to size (inference or training)
        safety_margin: Fraction of the limit the result may use, in (0, 1]
        optimizer: Optimizer used for training state memory

    Returns:
        BatchOptimizationResult. On failure ``optimal_batch_size`` is 1,
        ``validation.is_valid`` is False and ``warnings`` explain why.
    """
    try:
        outcome = _run_optimization(params, max_memory_gb, mode, safety_margin, optimizer)
    except Exception as e:
        logger.error(f"Unexpected error during batch size optimization: {e}", exc_info=True)
        outcome = BatchOptimizationFailure(
            code=BatchOptimizationErrorCode.CALCULATION_FAILED,
            message=f"Batch size optimization failed: {e}",
        )

    if isinstance(outcome, BatchOptimizationFailure):
        return _failure_result(outcome, params, max_memory_gb, mode, safety_margin, optimizer)
    return outcome
