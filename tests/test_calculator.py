"""Tests for the memory calculator."""

import json

import pytest
from llm_mem_estimator.core.calculator import MemoryCalculator, calculate_memory_requirements
from llm_mem_estimator.core.models import (
    CalculationMode,
    ModelParameters,
    OptimizerType,
    PrecisionType,
    RecommendationOptions,
    SortBy,
)
from llm_mem_estimator.exceptions import InvalidArgumentError


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


@pytest.fixture
def gpt_175b():
    """175B model at fp16 with a 4K context."""
    return ModelParameters(
        parameter_count=175,
        precision=PrecisionType.FP16,
        sequence_length=4096,
        batch_size=1,
        hidden_size=12288,
        num_layers=96,
        vocabulary_size=50257,
    )


class TestMemoryCalculation:
    """Test calculate_memory_requirements."""

    def test_inference_example(self, llama_7b):
        """Test the 7B inference breakdown."""
        result = calculate_memory_requirements(llama_7b, mode="inference")

        assert result.inference.model_weights == pytest.approx(13.0385, abs=1e-4)
        assert result.inference.activations == pytest.approx(4.2)
        assert 10 < result.inference.total < 100

    def test_training_breakdown(self, llama_7b):
        """Test the 7B training breakdown with adam."""
        result = calculate_memory_requirements(llama_7b, mode=CalculationMode.TRAINING)
        weights = result.training.model_weights

        assert result.training.activations == pytest.approx(8.4)
        assert result.training.gradients == pytest.approx(weights)
        assert result.training.optimizer_states == pytest.approx(2 * weights)
        assert result.training.total == pytest.approx(60.554, abs=1e-3)

    def test_both_breakdowns_always_computed(self, llama_7b):
        """Test mode only changes the highlighted total."""
        inference = calculate_memory_requirements(llama_7b, mode="inference")
        training = calculate_memory_requirements(llama_7b, mode="training")

        assert inference.training == training.training
        assert inference.inference == training.inference
        assert inference.highlighted_total == inference.inference.total
        assert training.highlighted_total == training.training.total

    def test_totals_are_component_sums(self, gpt_175b):
        """Test totals have no hidden terms."""
        result = calculate_memory_requirements(gpt_175b, optimizer="sgd")

        assert result.inference.total == pytest.approx(
            result.inference.model_weights + result.inference.activations
        )
        assert result.training.total == pytest.approx(
            result.training.model_weights
            + result.training.activations
            + result.training.gradients
            + result.training.optimizer_states
        )

    def test_large_model_training_dominates(self, llama_7b, gpt_175b):
        """Test 175B training needs more than 3x the 7B inference total."""
        small = calculate_memory_requirements(llama_7b, mode="inference")
        large = calculate_memory_requirements(gpt_175b, mode="training")

        assert large.training.total > 3 * small.inference.total

    def test_recommendations_use_mode_total(self, llama_7b):
        """Test recommendations are ranked against the highlighted total."""
        inference = calculate_memory_requirements(llama_7b, mode="inference")
        training = calculate_memory_requirements(llama_7b, mode="training")

        assert inference.recommendations[0].id == "rtx-4090"
        assert all(
            rec.suitable == (rec.memory_size >= training.training.total)
            for rec in training.recommendations
        )

    def test_skip_recommendations(self, llama_7b):
        """Test the hardware ranking can be skipped."""
        result = calculate_memory_requirements(llama_7b, include_recommendations=False)
        assert result.recommendations == []

    def test_camel_case_output(self, llama_7b):
        """Test results serialize with camelCase keys."""
        data = calculate_memory_requirements(llama_7b).model_dump(by_alias=True)

        assert data["parameters"]["parameterCount"] == 7
        assert data["inference"]["modelWeights"] == pytest.approx(13.0385, abs=1e-4)
        assert "multiCardRequired" in data["recommendations"][0]


class TestMemoryCalculator:
    """Test the MemoryCalculator wrapper."""

    def test_calculate(self, llama_7b):
        """Test calculating with options."""
        calculator = MemoryCalculator(
            llama_7b,
            mode="training",
            optimizer=OptimizerType.SGD,
            options=RecommendationOptions(sort_by=SortBy.PRICE, max_results=3),
        )
        result = calculator.calculate()

        assert result.mode is CalculationMode.TRAINING
        assert result.training.optimizer_states == pytest.approx(result.training.model_weights)
        assert len(result.recommendations) == 3

    def test_optimizer_name_case_insensitive(self, llama_7b):
        """Test the wrapper accepts the same optimizer spellings as the function."""
        calculator = MemoryCalculator(llama_7b, optimizer="AdamW")

        assert calculator.optimizer is OptimizerType.ADAMW
        assert calculate_memory_requirements(llama_7b, optimizer="AdamW").optimizer is (
            OptimizerType.ADAMW
        )

    def test_unknown_optimizer(self, llama_7b):
        """Test unknown optimizers fail fast."""
        with pytest.raises(InvalidArgumentError):
            MemoryCalculator(llama_7b, optimizer="lion")

    def test_from_config_file(self, tmp_path):
        """Test building a calculator from a JSON file."""
        config_file = tmp_path / "config.json"
        config_file.write_text(
            json.dumps(
                {
                    "model": {"parameterCount": "13B", "precision": "half"},
                    "mode": "training",
                    "optimizer": "adamw",
                    "recommendation": {"budget": 20000},
                }
            )
        )

        calculator = MemoryCalculator.from_config_file(config_file)

        assert calculator.params.parameter_count == 13
        assert calculator.params.precision is PrecisionType.FP16
        assert calculator.mode is CalculationMode.TRAINING
        assert calculator.optimizer is OptimizerType.ADAMW
        assert calculator.options.budget == 20000

    def test_to_dict(self, llama_7b):
        """Test exporting the configuration."""
        data = MemoryCalculator(llama_7b).to_dict()

        assert data["mode"] == "inference"
        assert data["optimizer"] == "adam"
        assert data["model"]["hiddenSize"] == 4096
        assert data["recommendation"]["sortBy"] == "fit"
