"""Precision and memory unit utilities."""

import math
import re
from dataclasses import dataclass

from llm_mem_estimator.exceptions import InvalidArgumentError

# Binary units throughout: 1 GB = 1024**3 bytes
BYTES_PER_KB = 1024
BYTES_PER_MB = 1024**2
BYTES_PER_GB = 1024**3
BYTES_PER_TB = 1024**4

_UNIT_BYTES = {
    "B": 1,
    "KB": BYTES_PER_KB,
    "MB": BYTES_PER_MB,
    "GB": BYTES_PER_GB,
    "TB": BYTES_PER_TB,
}

_MEMORY_STRING_RE = re.compile(r"^\s*([0-9]*\.?[0-9]+(?:[eE][-+]?[0-9]+)?)\s*([KMGT]?B)?\s*$", re.I)


@dataclass(frozen=True)
class Precision:
    """Precision information for a data type."""

    name: str
    bits_per_param: int
    bytes_per_param: float
    is_integer: bool = False


# Standard precision definitions
PRECISION_MAP = {
    "fp32": Precision(name="FP32", bits_per_param=32, bytes_per_param=4.0),
    "fp16": Precision(name="FP16", bits_per_param=16, bytes_per_param=2.0),
    "int8": Precision(name="INT8", bits_per_param=8, bytes_per_param=1.0, is_integer=True),
    "int4": Precision(name="INT4", bits_per_param=4, bytes_per_param=0.5, is_integer=True),
}


def get_precision(precision: str) -> Precision:
    """Get precision info from a precision name.

    Args:
        precision: Precision name ("fp32", "fp16", "int8", "int4") or a
            Precision-like enum member

    Returns:
        Precision object with bytes per parameter information

    Raises:
        ValueError: If the precision is not supported
    """
    key = str(getattr(precision, "value", precision)).lower()
    if key not in PRECISION_MAP:
        raise ValueError(
            f"Unsupported precision: {precision}. Supported types: {list(PRECISION_MAP.keys())}"
        )
    return PRECISION_MAP[key]


def bytes_per_param(precision: str) -> float:
    """Bytes needed to store one parameter at the given precision."""
    return get_precision(precision).bytes_per_param


def gb_from_bytes(num_bytes: float) -> float:
    """Convert bytes to gigabytes.

    Args:
        num_bytes: Number of bytes

    Returns:
        Number of gigabytes

    Raises:
        InvalidArgumentError: If num_bytes is negative
    """
    if num_bytes < 0:
        raise InvalidArgumentError(f"Byte count cannot be negative: {num_bytes}")
    return num_bytes / BYTES_PER_GB


def bytes_from_gb(num_gb: float) -> float:
    """Convert gigabytes to bytes."""
    if num_gb < 0:
        raise InvalidArgumentError(f"Gigabyte count cannot be negative: {num_gb}")
    return num_gb * BYTES_PER_GB


def gb_from_params(num_params: float, precision: str) -> float:
    """Calculate memory in GB for a given number of parameters.

    Args:
        num_params: Number of parameters (not billions)
        precision: Precision name

    Returns:
        Memory in GB
    """
    return gb_from_bytes(num_params * bytes_per_param(precision))


def format_memory_size(num_bytes: float, precision: int = 2) -> str:
    """Format a byte count with the largest binary unit that keeps it >= 1.

    Examples:
        format_memory_size(512) -> "512 B"
        format_memory_size(24 * 1024**3) -> "24.00 GB"
    """
    if num_bytes < 0 or not math.isfinite(num_bytes):
        raise InvalidArgumentError(f"Cannot format memory size: {num_bytes}")

    if num_bytes < BYTES_PER_KB:
        return f"{int(num_bytes)} B"
    for unit in ("TB", "GB", "MB", "KB"):
        if num_bytes >= _UNIT_BYTES[unit]:
            return f"{num_bytes / _UNIT_BYTES[unit]:.{precision}f} {unit}"
    return f"{int(num_bytes)} B"


def parse_memory_string(value: str) -> float:
    """Parse strings like "24GB", "512 MB" or "1.5tb" into bytes.

    A bare number is read as gigabytes.
    """
    match = _MEMORY_STRING_RE.match(value)
    if match is None:
        raise InvalidArgumentError(f"Cannot parse memory size: {value!r}")
    amount = float(match.group(1))
    unit = (match.group(2) or "GB").upper()
    return amount * _UNIT_BYTES[unit]
