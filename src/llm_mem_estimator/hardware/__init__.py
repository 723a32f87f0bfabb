"""Hardware catalog and recommendation engine."""

from llm_mem_estimator.hardware.catalog import GPU_CATALOG, GPUSpec, get_gpu
from llm_mem_estimator.hardware.recommender import (
    best_recommendation,
    recommend,
    recommend_for_result,
)

__all__ = [
    "GPU_CATALOG",
    "GPUSpec",
    "get_gpu",
    "recommend",
    "recommend_for_result",
    "best_recommendation",
]
