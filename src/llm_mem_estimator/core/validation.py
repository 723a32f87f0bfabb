"""Model parameter validation.

Validation never raises. Every check runs independently and the caller
receives a report listing all problems found.
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic.alias_generators import to_camel

from llm_mem_estimator.core.models import (
    FieldError,
    ModelParameters,
    PrecisionType,
    ValidationReport,
)


@dataclass(frozen=True)
class FieldRange:
    """Accepted range for a numeric field. Bounds are inclusive unless noted."""

    label: str
    min: float
    max: float = math.inf
    min_exclusive: bool = False

    def contains(self, value: float) -> bool:
        above = value > self.min if self.min_exclusive else value >= self.min
        return above and value <= self.max

    def describe(self) -> str:
        if self.min_exclusive and math.isinf(self.max):
            return f"{self.label} must be greater than {self.min:g}"
        return f"{self.label} must be between {self.min:g} and {self.max:g}"


VALIDATION_RANGES = {
    "parameter_count": FieldRange("Parameter count", 0, min_exclusive=True),
    "sequence_length": FieldRange("Sequence length", 1, 32768),
    "batch_size": FieldRange("Batch size", 1, 1024),
    "hidden_size": FieldRange("Hidden size", 0, min_exclusive=True),
    "num_layers": FieldRange("Number of layers", 0, min_exclusive=True),
    "vocabulary_size": FieldRange("Vocabulary size", 0, min_exclusive=True),
}

INTEGER_FIELDS = frozenset(
    {"sequence_length", "batch_size", "hidden_size", "num_layers", "vocabulary_size"}
)


def _as_field_dict(params: ModelParameters | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(params, ModelParameters):
        return params.model_dump()

    values: dict[str, Any] = {}
    for name in (*VALIDATION_RANGES, "precision"):
        if name in params:
            values[name] = params[name]
        elif to_camel(name) in params:
            values[name] = params[to_camel(name)]
    return values


def _check_number(name: str, value: Any) -> str | None:
    label = VALIDATION_RANGES[name].label
    if value is None:
        return f"{label} is required"
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return f"{label} must be a valid number"
    try:
        finite = math.isfinite(value)
    except OverflowError:
        # ints too large for a float
        finite = False
    if not finite:
        return f"{label} must be a valid number"
    if name in INTEGER_FIELDS and isinstance(value, float) and not value.is_integer():
        return f"{label} must be a whole number"
    if not VALIDATION_RANGES[name].contains(value):
        return VALIDATION_RANGES[name].describe()
    return None


def _check_precision(value: Any) -> str | None:
    valid = [p.value for p in PrecisionType]
    if str(getattr(value, "value", value)) not in valid:
        return f"Precision must be one of: {', '.join(valid)}"
    return None


def check_parameter_consistency(params: ModelParameters) -> list[str]:
    """Soft consistency checks that do not block a calculation."""
    warnings = []

    expected_params = params.hidden_size**2 * params.num_layers * 12
    actual_params = params.parameter_count * 1e9
    if abs(expected_params - actual_params) / actual_params > 0.5:
        warnings.append(
            "Parameter count may not match the architecture; check hidden size and layer count"
        )

    if params.sequence_length > 8192 and params.batch_size > 4:
        warnings.append("Long sequences combined with a large batch size may run out of memory")

    if params.vocabulary_size > 200000:
        warnings.append("Vocabulary size is very large and may affect performance")

    if params.parameter_count > 100 and params.precision is PrecisionType.FP32:
        warnings.append("Large models should use FP16 or lower precision to save memory")

    return warnings


def validate_model_parameters(params: ModelParameters | Mapping[str, Any]) -> ValidationReport:
    """Range-check a set of model parameters.

    Args:
        params: ModelParameters or a raw mapping with snake_case or
            camelCase keys

    Returns:
        ValidationReport; ``is_valid`` is True when no errors were found
    """
    values = _as_field_dict(params)
    field_errors = []

    for name in VALIDATION_RANGES:
        message = _check_number(name, values.get(name))
        if message:
            field_errors.append(FieldError(field=name, message=message))

    precision_message = _check_precision(values.get("precision"))
    if precision_message:
        field_errors.append(FieldError(field="precision", message=precision_message))

    warnings: list[str] = []
    if not field_errors:
        model = params if isinstance(params, ModelParameters) else ModelParameters(**values)
        warnings = check_parameter_consistency(model)

    return ValidationReport(
        is_valid=not field_errors,
        errors=[e.message for e in field_errors],
        field_errors=field_errors,
        warnings=warnings,
    )


def validate_field(
    name: str,
    value: Any,
    params: ModelParameters | None = None,
) -> tuple[str | None, str | None]:
    """Validate a single field as it is being edited.

    Args:
        name: Field name (snake_case)
        value: Candidate value
        params: Current parameters, used for context-dependent advice

    Returns:
        Tuple of (error, warning); either may be None
    """
    if name == "precision":
        return _check_precision(value), None
    if name not in VALIDATION_RANGES:
        return None, None

    error = _check_number(name, value)
    if error:
        return error, None

    warning = None
    match name:
        case "parameter_count":
            if value > 100 and params is not None and params.precision is PrecisionType.FP32:
                warning = "Large models should use FP16 precision"
        case "sequence_length":
            if value > 8192 and params is not None and params.batch_size > 4:
                warning = "Long sequences with a large batch size may run out of memory"
        case "batch_size":
            if value > 32:
                warning = "Large batch sizes may run out of memory"
        case "hidden_size":
            if value % 64 != 0:
                warning = "Hidden size should be a multiple of 64 for best performance"
        case "vocabulary_size":
            if value > 100000:
                warning = "Large vocabularies may affect performance"
    return None, warning


def assess_memory_requirement(total_memory_gb: float) -> tuple[str, bool, str]:
    """Classify a total memory requirement.

    Returns:
        Tuple of (level, is_reasonable, message); level is one of
        "low", "medium", "high" or "extreme"
    """
    if total_memory_gb < 8:
        return "low", True, "Low memory requirement; most modern GPUs can handle it"
    if total_memory_gb < 24:
        return "medium", True, "Moderate memory requirement; needs a mid to high-end GPU"
    if total_memory_gb < 80:
        return "high", True, "High memory requirement; needs a data-center GPU or several cards"
    return (
        "extreme",
        False,
        "Extreme memory requirement; consider quantization or distributed deployment",
    )


def format_validation_errors(errors: list[str]) -> str:
    """Render validation errors for display."""
    if not errors:
        return ""
    if len(errors) == 1:
        return errors[0]
    return f"Found {len(errors)} errors:\n" + "\n".join(f"• {e}" for e in errors)
