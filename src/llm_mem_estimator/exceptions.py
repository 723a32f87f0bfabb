"""Exceptions raised by the memory estimator."""

from typing import Any


class EstimatorError(Exception):
    """Base exception for estimator errors."""

    pass


class InvalidArgumentError(EstimatorError, ValueError):
    """Raised when a calculation receives an argument outside its domain.

    Examples are a non-positive GPU capacity, a negative memory requirement
    or a non-positive model dimension.
    """

    pass


class ConfigParseError(EstimatorError):
    """Error parsing configuration file."""

    def __init__(self, message: str, errors: list[Any] | None = None):
        super().__init__(message)
        self.errors = errors or []
