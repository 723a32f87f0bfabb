"""Data models for LLM memory estimation and hardware recommendation."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

# Every model accepts snake_case and camelCase keys and is immutable once built
_VALUE_OBJECT = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    frozen=True,
    protected_namespaces=(),
)


class PrecisionType(str, Enum):
    """Supported numeric precisions for model parameters."""

    FP32 = "fp32"
    FP16 = "fp16"
    INT8 = "int8"
    INT4 = "int4"


class OptimizerType(str, Enum):
    """Supported optimizer types."""

    ADAM = "adam"
    ADAMW = "adamw"
    SGD = "sgd"


class CalculationMode(str, Enum):
    """Which workload total the caller is interested in."""

    INFERENCE = "inference"
    TRAINING = "training"


class EfficiencyTier(str, Enum):
    """Static efficiency tier of a catalog entry."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class EfficiencyRating(str, Enum):
    """Qualitative rating of a memory utilization level."""

    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class Confidence(str, Enum):
    """Confidence level of a batch optimization result."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SortBy(str, Enum):
    """Ordering for hardware recommendations."""

    FIT = "fit"
    PRICE = "price"
    MEMORY = "memory"
    EFFICIENCY = "efficiency"


class BatchOptimizationErrorCode(str, Enum):
    """Reasons a batch size optimization can fail."""

    INVALID_PARAMS = "INVALID_PARAMS"
    CALCULATION_FAILED = "CALCULATION_FAILED"
    NO_FEASIBLE_SOLUTION = "NO_FEASIBLE_SOLUTION"
    MEMORY_LIMIT_TOO_LOW = "MEMORY_LIMIT_TOO_LOW"
    SAFETY_MARGIN_INVALID = "SAFETY_MARGIN_INVALID"


class ModelParameters(BaseModel):
    """Model hyperparameters for a single calculation.

    Only types and finiteness are enforced here. Range checks belong to
    ``validate_model_parameters`` so out-of-range values can still be reported.
    """

    model_config = _VALUE_OBJECT

    parameter_count: float = Field(
        allow_inf_nan=False,
        description="Number of parameters in billions",
    )
    precision: PrecisionType = Field(description="Parameter precision")
    sequence_length: int = Field(description="Sequence length in tokens")
    batch_size: int = Field(description="Batch size")
    hidden_size: int = Field(description="Hidden dimension size")
    num_layers: int = Field(description="Number of transformer layers")
    vocabulary_size: int = Field(description="Vocabulary size")


class InferenceMemory(BaseModel):
    """Inference memory breakdown in GB."""

    model_config = _VALUE_OBJECT

    model_weights: float = Field(description="Model weights memory in GB")
    activations: float = Field(description="Activation memory in GB")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> float:
        """Total inference memory in GB."""
        return self.model_weights + self.activations


class TrainingMemory(BaseModel):
    """Training memory breakdown in GB."""

    model_config = _VALUE_OBJECT

    model_weights: float = Field(description="Model weights memory in GB")
    activations: float = Field(description="Training activation memory in GB")
    gradients: float = Field(description="Gradient memory in GB")
    optimizer_states: float = Field(description="Optimizer state memory in GB")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> float:
        """Total training memory in GB."""
        return self.model_weights + self.activations + self.gradients + self.optimizer_states


class UtilizationConfig(BaseModel):
    """Overheads applied when normalizing memory utilization."""

    model_config = _VALUE_OBJECT

    fragmentation_factor: float = Field(
        default=0.08,
        ge=0.0,
        le=1.0,
        description="Fraction of the requirement lost to allocator fragmentation",
    )
    system_reserved_gb: float = Field(
        default=1.0,
        ge=0.0,
        description="Memory reserved by the system in GB",
    )
    driver_overhead_gb: float = Field(
        default=0.5,
        ge=0.0,
        description="Memory used by the driver and CUDA context in GB",
    )
    safety_margin: float = Field(
        default=0.15,
        ge=0.0,
        le=1.0,
        description="Fraction of available memory kept as a buffer (detailed report only)",
    )
    multi_card_communication_overhead: float = Field(
        default=0.07,
        ge=0.0,
        le=1.0,
        description="Fraction of pooled memory lost to multi-card communication",
    )


class StandardizedUtilization(BaseModel):
    """Bounded, display-ready utilization metrics."""

    model_config = _VALUE_OBJECT

    theoretical_utilization: float = Field(ge=0, le=10.0)
    practical_utilization: float = Field(ge=0, le=10.0)
    utilization_percentage: float = Field(ge=0, le=1000.0)
    is_over_capacity: bool
    efficiency_rating: EfficiencyRating


class UtilizationReport(BaseModel):
    """Detailed single-card utilization analysis (all sizes in GB)."""

    model_config = _VALUE_OBJECT

    theoretical_utilization: float
    practical_utilization: float = Field(ge=0)
    fragmentation_loss: float
    system_overhead: float
    safety_buffer: float
    total_memory_needed: float
    available_memory: float
    wasted_memory: float
    utilization_score: float = Field(ge=0, le=100)
    efficiency: EfficiencyTier
    recommendations: list[str] = Field(default_factory=list)


class MultiCardReport(BaseModel):
    """Analysis of spreading a requirement over several identical cards."""

    model_config = _VALUE_OBJECT

    total_effective_memory: float = Field(description="Pooled memory after communication overhead in GB")
    communication_overhead: float = Field(description="Memory lost to communication in GB")
    load_balancing_efficiency: float = Field(ge=0, le=1)
    scaling_factor: float
    optimal_card_count: int = Field(ge=1)
    per_card_utilization: list[float]
    cost_efficiency: float = Field(ge=0, le=100)
    recommendations: list[str] = Field(default_factory=list)


class HardwareRecommendation(BaseModel):
    """One catalog entry evaluated against a memory requirement."""

    model_config = _VALUE_OBJECT

    id: str
    name: str
    memory_size: float = Field(gt=0, description="Single-card memory in GB")
    price: float = Field(ge=0, description="Single-card price in USD")
    total_price: float = Field(ge=0, description="Price of all required cards in USD")
    efficiency: EfficiencyTier
    architecture: str = ""
    suitable: bool = Field(description="Whether one card holds the whole requirement")
    multi_card_required: int = Field(ge=1)
    description: str
    memory_utilization: float = Field(ge=0, description="Requirement over pooled memory, percent")
    cost_per_gb: float = Field(ge=0)
    efficiency_score: float = Field(ge=0, le=1)
    standardized_utilization: StandardizedUtilization
    utilization_details: UtilizationReport | None = None
    multi_card_details: MultiCardReport | None = None


class RecommendationOptions(BaseModel):
    """Filtering and ordering options for hardware recommendations."""

    model_config = _VALUE_OBJECT

    budget: float | None = Field(
        default=None,
        description="Maximum total price; ignored unless greater than zero",
    )
    sort_by: SortBy = Field(default=SortBy.FIT, description="Result ordering")
    max_results: int | None = Field(default=None, ge=0, description="Truncate after sorting")
    utilization: UtilizationConfig = Field(default_factory=UtilizationConfig)


class MemoryCalculationResult(BaseModel):
    """Complete memory calculation result."""

    model_config = _VALUE_OBJECT

    parameters: ModelParameters
    mode: CalculationMode = CalculationMode.INFERENCE
    optimizer: OptimizerType = OptimizerType.ADAM
    inference: InferenceMemory
    training: TrainingMemory
    recommendations: list[HardwareRecommendation] = Field(default_factory=list)

    def total_for(self, mode: CalculationMode | str) -> float:
        """Total memory in GB for the given mode."""
        if CalculationMode(mode) is CalculationMode.TRAINING:
            return self.training.total
        return self.inference.total

    @property
    def highlighted_total(self) -> float:
        """Total memory in GB for the mode this result was calculated for."""
        return self.total_for(self.mode)


class FieldError(BaseModel):
    """A validation message tied to one input field."""

    model_config = _VALUE_OBJECT

    field: str
    message: str


class ValidationReport(BaseModel):
    """Outcome of validating a set of model parameters."""

    model_config = _VALUE_OBJECT

    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    field_errors: list[FieldError] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class BatchAnalysisPoint(BaseModel):
    """Memory profile of one candidate batch size."""

    model_config = _VALUE_OBJECT

    batch_size: int = Field(ge=1)
    memory_usage: float = Field(description="Total memory in GB")
    utilization_rate: float = Field(description="Memory usage over the memory limit")
    within_limit: bool
    safety_margin_exceeded: bool
    estimated_throughput: float = Field(description="Tokens per second, rough heuristic")
    memory_breakdown: dict[str, float]


class PerformanceEstimate(BaseModel):
    """Expected effect of switching to the optimal batch size."""

    model_config = _VALUE_OBJECT

    throughput_improvement: float = Field(description="Percent change versus the current batch size")
    memory_efficiency: float = Field(ge=0, le=100)
    recommended_for_training: bool
    recommended_for_inference: bool


class OptimizationValidation(BaseModel):
    """Plausibility verdict on an optimization result."""

    model_config = _VALUE_OBJECT

    is_valid: bool
    error_message: str | None = None
    warnings: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    confidence: Confidence = Confidence.HIGH


class BatchOptimizationResult(BaseModel):
    """Outcome of a batch size optimization. Always renderable."""

    model_config = _VALUE_OBJECT

    optimal_batch_size: int = Field(ge=1)
    memory_usage: float
    utilization_rate: float
    analysis_data: list[BatchAnalysisPoint] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    performance_estimate: PerformanceEstimate | None = None
    validation: OptimizationValidation
    safety_margin: float
    max_memory_limit: float
    error_code: BatchOptimizationErrorCode | None = None
