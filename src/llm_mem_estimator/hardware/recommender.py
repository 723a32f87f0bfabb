"""Hardware recommendation engine.

Scores every catalog entry against a memory requirement, derives
utilization and cost metrics, and returns a ranked list.
"""

import logging
import math
from collections.abc import Iterable

from llm_mem_estimator.core.models import (
    CalculationMode,
    EfficiencyRating,
    EfficiencyTier,
    HardwareRecommendation,
    MemoryCalculationResult,
    RecommendationOptions,
    SortBy,
    UtilizationConfig,
)
from llm_mem_estimator.core.utilization import (
    multi_card_efficiency,
    real_utilization,
    standardize_utilization,
)
from llm_mem_estimator.exceptions import InvalidArgumentError
from llm_mem_estimator.hardware.catalog import GPU_CATALOG, GPUSpec
from llm_mem_estimator.utils.precision import bytes_from_gb

logger = logging.getLogger(__name__)

# Suitable cards are ranked by how close the requirement is to this share of the card
TARGET_UTILIZATION = 0.8

TIER_BASE_SCORE = {
    EfficiencyTier.HIGH: 0.9,
    EfficiencyTier.MEDIUM: 0.75,
    EfficiencyTier.LOW: 0.6,
}

RATING_BONUS = {
    EfficiencyRating.EXCELLENT: 0.10,
    EfficiencyRating.GOOD: 0.05,
    EfficiencyRating.FAIR: 0.02,
    EfficiencyRating.POOR: 0.0,
}

SINGLE_CARD_BONUS = 0.05
EXTRA_CARD_PENALTY = 0.05


def _efficiency_score(
    tier: EfficiencyTier,
    rating: EfficiencyRating,
    suitable: bool,
    cards: int,
) -> float:
    score = TIER_BASE_SCORE[tier]
    if suitable:
        return min(1.0, score + RATING_BONUS[rating] + SINGLE_CARD_BONUS)
    return max(0.0, score - (cards - 1) * EXTRA_CARD_PENALTY)


def _describe(gpu: GPUSpec, total_memory_gb: float, suitable: bool, cards: int) -> str:
    if not suitable:
        pooled = gpu.memory_size * cards
        return (
            f"Requires {cards} x {gpu.name} in parallel ({pooled:g} GB total) "
            f"for {total_memory_gb:.1f} GB"
        )

    utilization = total_memory_gb / gpu.memory_size * 100
    if utilization > 90:
        advice = "utilization is high, consider a card with more memory"
    elif utilization > 70:
        advice = "good balance of headroom and cost"
    else:
        advice = "plenty of headroom for future growth"
    return f"Single card is sufficient, memory utilization {utilization:.1f}% ({advice})"


def evaluate_gpu(
    gpu: GPUSpec,
    total_memory_gb: float,
    config: UtilizationConfig | None = None,
) -> HardwareRecommendation:
    """Evaluate one catalog entry against a memory requirement.

    Args:
        gpu: Catalog entry
        total_memory_gb: Memory requirement in GB
        config: Utilization overhead configuration

    Returns:
        HardwareRecommendation for this entry
    """
    config = config or UtilizationConfig()

    suitable = gpu.memory_size >= total_memory_gb
    cards = 1 if suitable else math.ceil(total_memory_gb / gpu.memory_size)
    pooled_memory = gpu.memory_size * cards
    total_price = gpu.price * cards

    standardized = standardize_utilization(
        bytes_from_gb(total_memory_gb / cards),
        bytes_from_gb(gpu.memory_size),
        config,
    )

    return HardwareRecommendation(
        id=gpu.id,
        name=gpu.name,
        memory_size=gpu.memory_size,
        price=gpu.price,
        total_price=total_price,
        efficiency=gpu.efficiency,
        architecture=gpu.architecture,
        suitable=suitable,
        multi_card_required=cards,
        description=_describe(gpu, total_memory_gb, suitable, cards),
        memory_utilization=total_memory_gb / pooled_memory * 100,
        cost_per_gb=total_price / pooled_memory,
        efficiency_score=_efficiency_score(
            gpu.efficiency, standardized.efficiency_rating, suitable, cards
        ),
        standardized_utilization=standardized,
        utilization_details=(
            real_utilization(total_memory_gb, gpu.memory_size, config) if suitable else None
        ),
        multi_card_details=(
            None
            if suitable
            else multi_card_efficiency(total_memory_gb, gpu.memory_size, cards, config)
        ),
    )


def _sort_key(sort_by: SortBy, total_memory_gb: float):
    match sort_by:
        case SortBy.PRICE:
            return lambda rec: rec.total_price
        case SortBy.MEMORY:
            return lambda rec: -rec.memory_size
        case SortBy.EFFICIENCY:
            return lambda rec: -rec.efficiency_score
        case _:
            # Suitable first; closest to target utilization, then fewest cards
            return lambda rec: (
                (0, abs(TARGET_UTILIZATION - total_memory_gb / rec.memory_size))
                if rec.suitable
                else (1, rec.multi_card_required)
            )


def recommend(
    total_memory_gb: float,
    catalog: Iterable[GPUSpec] = GPU_CATALOG,
    options: RecommendationOptions | None = None,
) -> list[HardwareRecommendation]:
    """Rank catalog entries for a memory requirement.

    Args:
        total_memory_gb: Memory requirement in GB. Zero is accepted and makes
            every entry suitable.
        catalog: Entries to evaluate (default: built-in GPU catalog)
        options: Budget, ordering and truncation options

    Returns:
        Ordered list of HardwareRecommendation; empty for an empty catalog

    Raises:
        InvalidArgumentError: If the requirement is negative or not finite
    """
    if not math.isfinite(total_memory_gb) or total_memory_gb < 0:
        raise InvalidArgumentError(f"Invalid memory requirement: {total_memory_gb}")

    options = options or RecommendationOptions()

    recommendations = [
        evaluate_gpu(gpu, total_memory_gb, options.utilization) for gpu in catalog
    ]

    if options.budget is not None and options.budget > 0:
        recommendations = [rec for rec in recommendations if rec.total_price <= options.budget]

    recommendations.sort(key=_sort_key(options.sort_by, total_memory_gb))

    if options.max_results is not None:
        recommendations = recommendations[: options.max_results]

    logger.debug(
        f"Recommended {len(recommendations)} GPUs for {total_memory_gb:.2f} GB "
        f"({sum(rec.suitable for rec in recommendations)} single-card fits)"
    )
    return recommendations


def recommend_for_result(
    result: MemoryCalculationResult,
    mode: CalculationMode | str | None = None,
    options: RecommendationOptions | None = None,
    catalog: Iterable[GPUSpec] = GPU_CATALOG,
) -> list[HardwareRecommendation]:
    """Rank catalog entries for a computed memory result.

    Args:
        result: Memory calculation result
        mode: Which total to use (default: the mode of the result)
        options: Budget, ordering and truncation options
        catalog: Entries to evaluate

    Returns:
        Ordered list of HardwareRecommendation
    """
    return recommend(result.total_for(mode or result.mode), catalog, options)


def best_recommendation(
    recommendations: list[HardwareRecommendation],
) -> HardwareRecommendation | None:
    """First single-card fit, else the first entry, else None."""
    return next((rec for rec in recommendations if rec.suitable), None) or next(
        iter(recommendations), None
    )


def compatible_recommendations(
    recommendations: list[HardwareRecommendation],
) -> list[HardwareRecommendation]:
    """Entries where a single card holds the requirement."""
    return [rec for rec in recommendations if rec.suitable]


def incompatible_recommendations(
    recommendations: list[HardwareRecommendation],
) -> list[HardwareRecommendation]:
    """Entries that need more than one card."""
    return [rec for rec in recommendations if not rec.suitable]
