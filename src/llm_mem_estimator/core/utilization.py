"""Memory utilization normalization.

Turns raw (needed, capacity) pairs into bounded utilization figures that
account for system reservations, driver overhead and fragmentation.
"""

import math

from llm_mem_estimator.core.models import (
    EfficiencyRating,
    EfficiencyTier,
    MultiCardReport,
    StandardizedUtilization,
    UtilizationConfig,
    UtilizationReport,
)
from llm_mem_estimator.exceptions import InvalidArgumentError
from llm_mem_estimator.utils.precision import bytes_from_gb

DEFAULT_UTILIZATION_CONFIG = UtilizationConfig()

MAX_UTILIZATION = 10.0
MAX_UTILIZATION_PERCENTAGE = 1000.0

# Optimal utilization band used by the detailed report
OPTIMAL_UTILIZATION_MIN = 0.70
OPTIMAL_UTILIZATION_MAX = 0.85


def rate_efficiency(utilization: float) -> EfficiencyRating:
    """Rate a practical utilization level.

    Bands overlap and are checked from the narrowest outwards, so 0.85 is
    excellent and 0.95 is good.
    """
    if not math.isfinite(utilization) or utilization < 0:
        return EfficiencyRating.POOR

    if 0.70 <= utilization <= 0.85:
        return EfficiencyRating.EXCELLENT
    if 0.50 <= utilization <= 0.95:
        return EfficiencyRating.GOOD
    if 0.30 <= utilization <= 1.00:
        return EfficiencyRating.FAIR
    return EfficiencyRating.POOR


def standardize_utilization(
    memory_needed_bytes: float,
    gpu_memory_bytes: float,
    config: UtilizationConfig | None = None,
) -> StandardizedUtilization:
    """Calculate standardized utilization for one card.

    Args:
        memory_needed_bytes: Memory requirement in bytes (>= 0)
        gpu_memory_bytes: Card capacity in bytes (> 0)
        config: Overhead configuration (default: DEFAULT_UTILIZATION_CONFIG)

    Returns:
        StandardizedUtilization with values clamped to display ranges

    Raises:
        InvalidArgumentError: For a negative requirement, a non-positive
            capacity or non-finite inputs
    """
    if not (math.isfinite(memory_needed_bytes) and math.isfinite(gpu_memory_bytes)):
        raise InvalidArgumentError("Memory sizes must be finite numbers")
    if memory_needed_bytes < 0 or gpu_memory_bytes <= 0:
        raise InvalidArgumentError(
            f"Invalid memory sizes: needed={memory_needed_bytes}, capacity={gpu_memory_bytes}"
        )

    config = config or DEFAULT_UTILIZATION_CONFIG

    system_overhead_bytes = bytes_from_gb(config.system_reserved_gb + config.driver_overhead_gb)
    available_bytes = max(0.0, gpu_memory_bytes - system_overhead_bytes)

    fragmentation_bytes = memory_needed_bytes * config.fragmentation_factor
    total_needed_bytes = memory_needed_bytes + fragmentation_bytes

    theoretical = memory_needed_bytes / gpu_memory_bytes
    practical = total_needed_bytes / available_bytes if available_bytes > 0 else math.inf

    bounded_practical = min(MAX_UTILIZATION, practical) if math.isfinite(practical) else MAX_UTILIZATION
    percentage = min(MAX_UTILIZATION_PERCENTAGE, max(0.0, practical * 100))

    return StandardizedUtilization(
        theoretical_utilization=min(MAX_UTILIZATION, theoretical),
        practical_utilization=bounded_practical,
        utilization_percentage=percentage,
        is_over_capacity=practical > 1.0,
        efficiency_rating=rate_efficiency(bounded_practical),
    )


def _utilization_score(utilization: float) -> float:
    if OPTIMAL_UTILIZATION_MIN <= utilization <= OPTIMAL_UTILIZATION_MAX:
        return 100.0
    if utilization < OPTIMAL_UTILIZATION_MIN:
        return max(0.0, utilization / OPTIMAL_UTILIZATION_MIN * 80)
    return max(20.0, 80 - (utilization - OPTIMAL_UTILIZATION_MAX) * 200)


def real_utilization(
    memory_needed_gb: float,
    gpu_memory_gb: float,
    config: UtilizationConfig | None = None,
) -> UtilizationReport:
    """Detailed utilization analysis for a single card.

    Unlike ``standardize_utilization`` this keeps ``config.safety_margin``
    of the available memory as a buffer.

    Args:
        memory_needed_gb: Memory requirement in GB
        gpu_memory_gb: Card capacity in GB
        config: Overhead configuration

    Returns:
        UtilizationReport with overheads, score and advice
    """
    if memory_needed_gb < 0 or gpu_memory_gb <= 0:
        raise InvalidArgumentError(
            f"Invalid memory sizes: needed={memory_needed_gb}, capacity={gpu_memory_gb}"
        )
    config = config or DEFAULT_UTILIZATION_CONFIG

    system_overhead = config.system_reserved_gb + config.driver_overhead_gb
    available = gpu_memory_gb - system_overhead
    fragmentation_loss = memory_needed_gb * config.fragmentation_factor
    safety_buffer = max(0.0, available * config.safety_margin)
    total_needed = memory_needed_gb + fragmentation_loss

    theoretical = memory_needed_gb / gpu_memory_gb
    usable = available - safety_buffer
    practical = total_needed / usable if usable > 0 else math.inf

    score = _utilization_score(practical) if math.isfinite(practical) else 20.0
    if score >= 80 and practical <= 0.9:
        efficiency = EfficiencyTier.HIGH
    elif score >= 50 and practical <= 0.95:
        efficiency = EfficiencyTier.MEDIUM
    else:
        efficiency = EfficiencyTier.LOW

    recommendations = []
    if practical < 0.5:
        recommendations.append(
            "Memory utilization is low; consider a smaller GPU or a larger batch size"
        )
    elif practical > 0.95:
        recommendations.append("Memory utilization is very high and risks OOM; use a larger GPU")
    if practical - theoretical > 0.2:
        recommendations.append("System overhead is significant; review the allocation strategy")
    if config.fragmentation_factor > 0.1:
        recommendations.append("Fragmentation is high; use a memory pool or pre-allocation")
    if config.safety_margin > 0.2:
        recommendations.append("Safety margin is large; lowering it would raise utilization")

    return UtilizationReport(
        theoretical_utilization=theoretical,
        practical_utilization=max(0.0, min(practical, MAX_UTILIZATION)),
        fragmentation_loss=fragmentation_loss,
        system_overhead=system_overhead,
        safety_buffer=safety_buffer,
        total_memory_needed=total_needed,
        available_memory=available,
        wasted_memory=system_overhead + fragmentation_loss + safety_buffer,
        utilization_score=score,
        efficiency=efficiency,
        recommendations=recommendations,
    )


def load_balancing_efficiency(card_count: int) -> float:
    """Load balancing efficiency, decreasing with the number of cards."""
    if card_count <= 1:
        return 1.0
    if card_count == 2:
        return 0.95
    if card_count <= 4:
        return 0.90
    if card_count <= 8:
        return 0.85
    return 0.80


def multi_card_efficiency(
    memory_needed_gb: float,
    single_card_gb: float,
    card_count: int,
    config: UtilizationConfig | None = None,
) -> MultiCardReport:
    """Analyze spreading a requirement over ``card_count`` identical cards.

    Args:
        memory_needed_gb: Total memory requirement in GB
        single_card_gb: Memory of one card in GB
        card_count: Number of cards
        config: Overhead configuration

    Returns:
        MultiCardReport with effective memory, scaling and advice
    """
    if memory_needed_gb < 0 or single_card_gb <= 0 or card_count < 1:
        raise InvalidArgumentError(
            f"Invalid multi-card arguments: needed={memory_needed_gb}, "
            f"card={single_card_gb}, cards={card_count}"
        )
    config = config or DEFAULT_UTILIZATION_CONFIG

    raw_memory = single_card_gb * card_count
    communication_overhead = raw_memory * config.multi_card_communication_overhead
    effective_memory = raw_memory - communication_overhead
    balancing = load_balancing_efficiency(card_count)
    scaling_factor = effective_memory * balancing / single_card_gb

    base_count = max(1, math.ceil(memory_needed_gb / single_card_gb))
    optimal_count = base_count
    penalty = config.multi_card_communication_overhead + (1 - load_balancing_efficiency(base_count))
    if base_count > 2 and penalty > 0.3:
        optimal_count = max(2, base_count - 1)

    per_card = [memory_needed_gb / card_count / single_card_gb] * card_count

    cost_efficiency = scaling_factor / card_count * 100
    if memory_needed_gb / single_card_gb < 1.0:
        # a single card would already do
        cost_efficiency *= 0.7
    cost_efficiency = min(100.0, cost_efficiency)

    recommendations = []
    if card_count > optimal_count:
        recommendations.append(
            f"{card_count} cards configured; {optimal_count} would be more cost efficient"
        )
    elif card_count < optimal_count:
        recommendations.append(f"Memory may be insufficient; increase to {optimal_count} cards")
    if scaling_factor < card_count * 0.8:
        recommendations.append("Multi-card scaling is weak; consider a single larger card")
    if balancing < 0.9:
        recommendations.append("Load balancing efficiency is low; check the parallelism strategy")
    if card_count > 4:
        recommendations.append("Large multi-card setups need a tuned interconnect topology")

    return MultiCardReport(
        total_effective_memory=effective_memory,
        communication_overhead=communication_overhead,
        load_balancing_efficiency=balancing,
        scaling_factor=scaling_factor,
        optimal_card_count=optimal_count,
        per_card_utilization=per_card,
        cost_efficiency=cost_efficiency,
        recommendations=recommendations,
    )
