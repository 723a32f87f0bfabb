"""Tests for memory formulas and precision utilities."""

import pytest
from llm_mem_estimator.core.formulas import (
    calculate_activations,
    calculate_gradients,
    calculate_model_weights,
    calculate_optimizer_states,
    calculate_training_activations,
)
from llm_mem_estimator.core.models import ModelParameters, OptimizerType, PrecisionType
from llm_mem_estimator.exceptions import InvalidArgumentError
from llm_mem_estimator.utils.precision import (
    BYTES_PER_GB,
    bytes_per_param,
    format_memory_size,
    gb_from_bytes,
    gb_from_params,
    get_precision,
    parse_memory_string,
)


@pytest.fixture
def llama_7b():
    """7B model at fp16 with a 2K context."""
    return ModelParameters(
        parameter_count=7,
        precision=PrecisionType.FP16,
        sequence_length=2048,
        batch_size=1,
        hidden_size=4096,
        num_layers=32,
        vocabulary_size=32000,
    )


class TestPrecision:
    """Test precision utilities."""

    @pytest.mark.parametrize(
        "precision,expected",
        [("fp32", 4.0), ("fp16", 2.0), ("int8", 1.0), ("int4", 0.5)],
    )
    def test_bytes_per_param(self, precision, expected):
        """Test bytes per parameter table."""
        assert bytes_per_param(precision) == expected

    def test_accepts_enum_members(self):
        """Test that enum members resolve like their values."""
        assert get_precision(PrecisionType.INT4).bits_per_param == 4

    def test_unknown_precision(self):
        """Test that an unsupported precision is rejected."""
        with pytest.raises(ValueError):
            get_precision("fp8")

    def test_gb_from_params(self):
        """Test converting parameters to GB."""
        # 1B parameters in FP16 = 2e9 bytes
        assert gb_from_params(1_000_000_000, "fp16") == pytest.approx(2e9 / BYTES_PER_GB)

    def test_negative_bytes(self):
        """Test that negative byte counts are rejected."""
        with pytest.raises(InvalidArgumentError):
            gb_from_bytes(-1)


class TestUnitFormatting:
    """Test memory size formatting and parsing."""

    def test_format_memory_size(self):
        """Test choosing the largest binary unit."""
        assert format_memory_size(512) == "512 B"
        assert format_memory_size(1536) == "1.50 KB"
        assert format_memory_size(24 * BYTES_PER_GB) == "24.00 GB"
        assert format_memory_size(3 * 1024**4, precision=1) == "3.0 TB"

    def test_parse_memory_string(self):
        """Test parsing memory strings with and without units."""
        assert parse_memory_string("24GB") == 24 * BYTES_PER_GB
        assert parse_memory_string("512 mb") == 512 * 1024**2
        assert parse_memory_string("80") == 80 * BYTES_PER_GB

    def test_parse_invalid_memory_string(self):
        """Test that garbage input is rejected."""
        with pytest.raises(InvalidArgumentError):
            parse_memory_string("lots")


class TestModelWeights:
    """Test model weight memory."""

    def test_7b_fp16(self, llama_7b):
        """Test 7B parameters at fp16."""
        assert calculate_model_weights(llama_7b) == pytest.approx(7e9 * 2 / 1024**3)
        assert calculate_model_weights(llama_7b) == pytest.approx(13.0385, abs=1e-4)

    def test_precision_scaling(self, llama_7b):
        """Test fp32 is exactly 2x fp16 and 4x int8."""
        fp32 = calculate_model_weights(llama_7b.model_copy(update={"precision": PrecisionType.FP32}))
        fp16 = calculate_model_weights(llama_7b)
        int8 = calculate_model_weights(llama_7b.model_copy(update={"precision": PrecisionType.INT8}))

        assert fp32 == pytest.approx(2 * fp16)
        assert fp32 == pytest.approx(4 * int8)

    def test_non_positive_parameter_count(self, llama_7b):
        """Test that a zero parameter count fails fast."""
        with pytest.raises(InvalidArgumentError):
            calculate_model_weights(llama_7b.model_copy(update={"parameter_count": 0}))


class TestActivations:
    """Test activation memory."""

    def test_7b_fp16(self, llama_7b):
        """Test (1 + 2 + 4) * b*s*h*L * bytes * 1.2."""
        assert calculate_activations(llama_7b) == pytest.approx(4.2)

    def test_monotonic_in_batch_size(self, llama_7b):
        """Test activations strictly increase with batch size."""
        values = [
            calculate_activations(llama_7b.model_copy(update={"batch_size": b}))
            for b in range(1, 17)
        ]
        assert all(later > earlier for earlier, later in zip(values, values[1:]))

    def test_training_is_double(self, llama_7b):
        """Test training activations are exactly 2x inference."""
        assert calculate_training_activations(llama_7b) == pytest.approx(
            2 * calculate_activations(llama_7b)
        )

    @pytest.mark.parametrize("field", ["batch_size", "sequence_length", "hidden_size", "num_layers"])
    def test_non_positive_dimension(self, llama_7b, field):
        """Test that a zero dimension fails fast."""
        with pytest.raises(InvalidArgumentError):
            calculate_activations(llama_7b.model_copy(update={field: 0}))


class TestTrainingState:
    """Test gradient and optimizer state memory."""

    def test_gradients_equal_weights(self):
        """Test one gradient per weight."""
        assert calculate_gradients(13.5) == 13.5

    def test_optimizer_multipliers(self):
        """Test adam/adamw keep two states and sgd one."""
        assert calculate_optimizer_states(10.0, OptimizerType.ADAM) == 20.0
        assert calculate_optimizer_states(10.0, "adamw") == 20.0
        assert calculate_optimizer_states(10.0, "sgd") == 10.0

    def test_default_optimizer_is_adam(self):
        """Test the default optimizer."""
        assert calculate_optimizer_states(3.0) == 6.0

    def test_unknown_optimizer(self):
        """Test that an unknown optimizer fails fast."""
        with pytest.raises(InvalidArgumentError):
            calculate_optimizer_states(10.0, "lion")

    def test_negative_weights(self):
        """Test that negative weight memory fails fast."""
        with pytest.raises(InvalidArgumentError):
            calculate_gradients(-1.0)
        with pytest.raises(InvalidArgumentError):
            calculate_optimizer_states(-1.0)
