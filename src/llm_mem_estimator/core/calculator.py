"""Main memory calculator.

Combines the per-component formulas into inference and training
breakdowns and attaches hardware recommendations for the chosen mode.
"""

import logging
from pathlib import Path

from llm_mem_estimator.core.formulas import (
    calculate_activations,
    calculate_gradients,
    calculate_model_weights,
    calculate_optimizer_states,
    calculate_training_activations,
    parse_optimizer,
)
from llm_mem_estimator.core.models import (
    CalculationMode,
    InferenceMemory,
    MemoryCalculationResult,
    ModelParameters,
    OptimizerType,
    RecommendationOptions,
    TrainingMemory,
)

logger = logging.getLogger(__name__)


def calculate_memory_requirements(
    params: ModelParameters,
    mode: CalculationMode | str = CalculationMode.INFERENCE,
    optimizer: OptimizerType | str = OptimizerType.ADAM,
    options: RecommendationOptions | None = None,
    include_recommendations: bool = True,
) -> MemoryCalculationResult:
    """Calculate inference and training memory for a model.

    Both breakdowns are always computed; ``mode`` only selects the total
    used for hardware recommendations.

    Args:
        params: Model parameters
        mode: Calculation mode (inference or training)
        optimizer: Optimizer used for training state memory
        options: Hardware recommendation options
        include_recommendations: Skip the hardware ranking when False

    Returns:
        MemoryCalculationResult with both breakdowns and recommendations

    Raises:
        InvalidArgumentError: If a model dimension is not positive or the
            optimizer is unknown
    """
    from llm_mem_estimator.hardware.recommender import recommend

    mode = CalculationMode(mode)

    model_weights = calculate_model_weights(params)
    activations = calculate_activations(params)
    gradients = calculate_gradients(model_weights)
    optimizer_states = calculate_optimizer_states(model_weights, optimizer)

    inference = InferenceMemory(model_weights=model_weights, activations=activations)
    training = TrainingMemory(
        model_weights=model_weights,
        activations=calculate_training_activations(params),
        gradients=gradients,
        optimizer_states=optimizer_states,
    )

    highlighted_total = training.total if mode is CalculationMode.TRAINING else inference.total
    recommendations = (
        recommend(highlighted_total, options=options) if include_recommendations else []
    )

    logger.debug(
        f"Memory for {params.parameter_count}B/{params.precision.value} "
        f"batch={params.batch_size}: inference={inference.total:.2f} GB, "
        f"training={training.total:.2f} GB"
    )

    return MemoryCalculationResult(
        parameters=params,
        mode=mode,
        optimizer=parse_optimizer(optimizer),
        inference=inference,
        training=training,
        recommendations=recommendations,
    )


class MemoryCalculator:
    """High-level interface for memory calculation.

    Holds one configuration and produces results on demand.
    """

    def __init__(
        self,
        params: ModelParameters,
        mode: CalculationMode | str = CalculationMode.INFERENCE,
        optimizer: OptimizerType | str = OptimizerType.ADAM,
        options: RecommendationOptions | None = None,
    ) -> None:
        """Initialize the calculator.

        Args:
            params: Model parameters
            mode: Calculation mode (default: inference)
            optimizer: Optimizer type (default: adam)
            options: Hardware recommendation options (default: no filtering)
        """
        self.params = params
        self.mode = CalculationMode(mode)
        self.optimizer = parse_optimizer(optimizer)
        self.options = options or RecommendationOptions()

    def calculate(self) -> MemoryCalculationResult:
        """Calculate memory requirements for the configured model."""
        return calculate_memory_requirements(
            self.params,
            mode=self.mode,
            optimizer=self.optimizer,
            options=self.options,
        )

    @classmethod
    def from_config_file(cls, config_path: str | Path) -> "MemoryCalculator":
        """Create calculator from configuration file.

        Args:
            config_path: Path to JSON configuration file

        Returns:
            Configured MemoryCalculator instance
        """
        from llm_mem_estimator.config.parser import ConfigParser

        params, mode, optimizer, options = ConfigParser.parse_full_config(config_path)
        return cls(params=params, mode=mode, optimizer=optimizer, options=options)

    def to_dict(self) -> dict:
        """Export calculator configuration to dictionary."""
        return {
            "model": self.params.model_dump(mode="json", by_alias=True),
            "mode": self.mode.value,
            "optimizer": self.optimizer.value,
            "recommendation": self.options.model_dump(mode="json", by_alias=True),
        }
