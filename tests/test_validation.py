"""Tests for model parameter validation."""

import math

import pytest
from llm_mem_estimator.core.models import ModelParameters, PrecisionType
from llm_mem_estimator.core.validation import (
    assess_memory_requirement,
    format_validation_errors,
    validate_field,
    validate_model_parameters,
)


@pytest.fixture
def valid_params():
    """Raw camelCase parameters as a UI would submit them."""
    return {
        "parameterCount": 7,
        "precision": "fp16",
        "sequenceLength": 2048,
        "batchSize": 1,
        "hiddenSize": 4096,
        "numLayers": 32,
        "vocabularySize": 32000,
    }


class TestValidateModelParameters:
    """Test validate_model_parameters."""

    def test_valid_mapping(self, valid_params):
        """Test a consistent 7B configuration passes cleanly."""
        report = validate_model_parameters(valid_params)

        assert report.is_valid
        assert report.errors == []
        assert report.warnings == []

    def test_valid_model(self, valid_params):
        """Test ModelParameters input."""
        report = validate_model_parameters(ModelParameters(**valid_params))
        assert report.is_valid

    @pytest.mark.parametrize(
        "field,value",
        [
            ("parameterCount", 0),
            ("parameterCount", -7),
            ("sequenceLength", 0),
            ("sequenceLength", 32769),
            ("batchSize", 0),
            ("batchSize", 1025),
            ("hiddenSize", 0),
            ("numLayers", -1),
            ("vocabularySize", 0),
        ],
    )
    def test_out_of_range(self, valid_params, field, value):
        """Test each range check rejects its boundary violations."""
        report = validate_model_parameters({**valid_params, field: value})

        assert not report.is_valid
        assert len(report.errors) == 1

    @pytest.mark.parametrize(
        "field,value",
        [("sequenceLength", 1), ("sequenceLength", 32768), ("batchSize", 1024)],
    )
    def test_inclusive_bounds(self, valid_params, field, value):
        """Test range bounds are inclusive."""
        assert validate_model_parameters({**valid_params, field: value}).is_valid

    def test_collects_all_errors(self, valid_params):
        """Test checks run independently without short-circuiting."""
        report = validate_model_parameters(
            {**valid_params, "parameterCount": 0, "sequenceLength": 0, "batchSize": 5000}
        )

        assert len(report.errors) == 3
        assert len(set(report.errors)) == 3
        assert {e.field for e in report.field_errors} == {
            "parameter_count",
            "sequence_length",
            "batch_size",
        }

    def test_reports_bad_types(self, valid_params):
        """Test NaN, infinity, strings and missing fields become errors."""
        params = {**valid_params, "parameterCount": math.nan, "hiddenSize": math.inf}
        params["numLayers"] = "thirty-two"
        del params["vocabularySize"]

        report = validate_model_parameters(params)

        assert not report.is_valid
        assert len(report.errors) == 4
        assert "Vocabulary size is required" in report.errors

    @pytest.mark.parametrize(
        "field", ["parameterCount", "batchSize", "sequenceLength", "vocabularySize"]
    )
    def test_huge_integer_reported(self, valid_params, field):
        """Test integers too large for a float are reported, not raised."""
        report = validate_model_parameters({**valid_params, field: 10**400})

        assert not report.is_valid
        assert len(report.errors) == 1
        assert report.errors[0].endswith("must be a valid number")

    def test_huge_integer_single_field(self):
        """Test single-field validation handles oversized integers."""
        error, warning = validate_field("hidden_size", 10**400)

        assert error == "Hidden size must be a valid number"
        assert warning is None

    def test_fractional_integer_field(self, valid_params):
        """Test integer fields reject fractions."""
        report = validate_model_parameters({**valid_params, "numLayers": 32.5})
        assert report.errors == ["Number of layers must be a whole number"]

    def test_unknown_precision(self, valid_params):
        """Test an unknown precision is reported."""
        report = validate_model_parameters({**valid_params, "precision": "fp8"})

        assert not report.is_valid
        assert report.field_errors[0].field == "precision"

    def test_consistency_warnings(self, valid_params):
        """Test soft warnings do not invalidate the report."""
        report = validate_model_parameters(
            {
                **valid_params,
                "parameterCount": 200,
                "precision": "fp32",
                "sequenceLength": 16384,
                "batchSize": 8,
                "vocabularySize": 250000,
            }
        )

        assert report.is_valid
        assert len(report.warnings) == 4

    def test_never_raises(self):
        """Test an empty mapping is reported rather than raised."""
        report = validate_model_parameters({})

        assert not report.is_valid
        assert len(report.errors) == 7


class TestValidateField:
    """Test single-field validation."""

    def test_error(self):
        """Test an out-of-range value returns an error."""
        error, warning = validate_field("sequence_length", 50000)

        assert error == "Sequence length must be between 1 and 32768"
        assert warning is None

    def test_warning(self):
        """Test advisory warnings for valid values."""
        assert validate_field("hidden_size", 1000) == (
            None,
            "Hidden size should be a multiple of 64 for best performance",
        )
        assert validate_field("batch_size", 64)[1] is not None
        assert validate_field("batch_size", 8) == (None, None)

    def test_context_dependent_warning(self):
        """Test warnings that depend on the other parameters."""
        params = ModelParameters(
            parameter_count=7,
            precision=PrecisionType.FP32,
            sequence_length=2048,
            batch_size=1,
            hidden_size=4096,
            num_layers=32,
            vocabulary_size=32000,
        )
        assert validate_field("parameter_count", 175, params)[1] is not None
        assert validate_field("parameter_count", 175)[1] is None

    def test_precision(self):
        """Test precision membership."""
        assert validate_field("precision", "int4") == (None, None)
        assert validate_field("precision", "bf16")[0] is not None

    def test_unknown_field(self):
        """Test fields without checks are accepted."""
        assert validate_field("name", "llama") == (None, None)


class TestMemoryAssessment:
    """Test memory requirement classification and error formatting."""

    @pytest.mark.parametrize(
        "total,level,reasonable",
        [(4, "low", True), (17.2, "medium", True), (60.5, "high", True), (700, "extreme", False)],
    )
    def test_levels(self, total, level, reasonable):
        """Test level thresholds."""
        result_level, is_reasonable, message = assess_memory_requirement(total)

        assert result_level == level
        assert is_reasonable is reasonable
        assert message

    def test_format_validation_errors(self):
        """Test rendering one and many errors."""
        assert format_validation_errors([]) == ""
        assert format_validation_errors(["Batch size must be between 1 and 1024"]) == (
            "Batch size must be between 1 and 1024"
        )

        rendered = format_validation_errors(["first", "second"])
        assert rendered.startswith("Found 2 errors:")
        assert "• second" in rendered
