"""Memory calculation formulas.

This module contains the closed-form formulas that turn model
hyperparameters into memory sizes. All results are in GB (1024**3 bytes)
and no rounding is applied.
"""

from llm_mem_estimator.core.models import ModelParameters, OptimizerType
from llm_mem_estimator.exceptions import InvalidArgumentError
from llm_mem_estimator.utils.precision import BYTES_PER_GB, bytes_per_param

# Activation term coefficients, relative to batch * seq * hidden * layers
HIDDEN_STATE_FACTOR = 1
KV_CACHE_FACTOR = 2  # key + value tensors
INTERMEDIATE_ACTIVATION_FACTOR = 4  # feed-forward expansion
ACTIVATION_SAFETY_FACTOR = 1.2

# Training keeps forward activations around for the backward pass.
# This is a fixed approximation, not a derived quantity.
TRAINING_ACTIVATION_MULTIPLIER = 2

# Optimizer state size relative to model weights
OPTIMIZER_MEMORY_MULTIPLIERS = {
    OptimizerType.ADAM: 2,  # momentum + variance
    OptimizerType.ADAMW: 2,
    OptimizerType.SGD: 1,  # momentum
}


def _require_positive(name: str, value: float) -> None:
    if not value > 0:
        raise InvalidArgumentError(f"{name} must be greater than 0, got {value}")


def calculate_model_weights(params: ModelParameters) -> float:
    """Calculate memory in GB for model weights.

    Args:
        params: Model parameters (parameter count in billions)

    Returns:
        Memory in GB

    Raises:
        InvalidArgumentError: If the parameter count is not positive
    """
    _require_positive("parameter_count", params.parameter_count)
    total_bytes = params.parameter_count * 1e9 * bytes_per_param(params.precision)
    return total_bytes / BYTES_PER_GB


def calculate_activations(params: ModelParameters) -> float:
    """Calculate inference activation memory in GB.

    Three terms share the same shape ``batch * seq * hidden * layers``:
    the hidden states themselves, the KV cache and the feed-forward
    intermediates. Their sum is stored at the parameter precision and
    scaled by a safety factor.

    Args:
        params: Model parameters

    Returns:
        Memory in GB

    Raises:
        InvalidArgumentError: If any dimension is not positive
    """
    _require_positive("batch_size", params.batch_size)
    _require_positive("sequence_length", params.sequence_length)
    _require_positive("hidden_size", params.hidden_size)
    _require_positive("num_layers", params.num_layers)

    elements_per_term = (
        params.batch_size * params.sequence_length * params.hidden_size * params.num_layers
    )
    total_elements = elements_per_term * (
        HIDDEN_STATE_FACTOR + KV_CACHE_FACTOR + INTERMEDIATE_ACTIVATION_FACTOR
    )
    total_bytes = total_elements * bytes_per_param(params.precision)

    return total_bytes * ACTIVATION_SAFETY_FACTOR / BYTES_PER_GB


def calculate_training_activations(params: ModelParameters) -> float:
    """Calculate training activation memory in GB."""
    return calculate_activations(params) * TRAINING_ACTIVATION_MULTIPLIER


def calculate_gradients(model_weights_gb: float) -> float:
    """Calculate memory in GB for gradients.

    One gradient value is kept per weight at the same precision.

    Args:
        model_weights_gb: Model weights memory in GB

    Returns:
        Memory in GB
    """
    if model_weights_gb < 0:
        raise InvalidArgumentError(f"Model weights memory cannot be negative: {model_weights_gb}")
    return model_weights_gb


def calculate_optimizer_states(
    model_weights_gb: float,
    optimizer: OptimizerType | str = OptimizerType.ADAM,
) -> float:
    """Calculate memory in GB for optimizer states.

    Args:
        model_weights_gb: Model weights memory in GB
        optimizer: Optimizer type (adam, adamw, sgd)

    Returns:
        Memory in GB

    Raises:
        InvalidArgumentError: For negative weights memory or an unknown optimizer
    """
    if model_weights_gb < 0:
        raise InvalidArgumentError(f"Model weights memory cannot be negative: {model_weights_gb}")

    return model_weights_gb * OPTIMIZER_MEMORY_MULTIPLIERS[parse_optimizer(optimizer)]


def parse_optimizer(optimizer: OptimizerType | str) -> OptimizerType:
    """Resolve an optimizer name case-insensitively.

    Raises:
        InvalidArgumentError: If the optimizer is unknown
    """
    try:
        return OptimizerType(str(getattr(optimizer, "value", optimizer)).strip().lower())
    except ValueError as e:
        raise InvalidArgumentError(
            f"Unsupported optimizer: {optimizer}. "
            f"Supported types: {[o.value for o in OptimizerType]}"
        ) from e
