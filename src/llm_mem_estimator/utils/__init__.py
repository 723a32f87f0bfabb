"""Utility functions."""

from llm_mem_estimator.utils.precision import Precision, bytes_per_param, get_precision

__all__ = ["Precision", "bytes_per_param", "get_precision"]
