"""Batch size optimization."""

from llm_mem_estimator.optimizer.batch_size import (
    BatchOptimizationFailure,
    optimize_batch_size,
)

__all__ = ["BatchOptimizationFailure", "optimize_batch_size"]
