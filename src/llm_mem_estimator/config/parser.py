"""Configuration file parser and utilities."""

import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from pydantic.alias_generators import to_snake

from llm_mem_estimator.core.models import (
    CalculationMode,
    ModelParameters,
    OptimizerType,
    PrecisionType,
    RecommendationOptions,
    SortBy,
    UtilizationConfig,
)
from llm_mem_estimator.core.validation import validate_model_parameters
from llm_mem_estimator.exceptions import ConfigParseError

DEFAULT_MODEL_PARAMETERS = ModelParameters(
    parameter_count=7,
    precision=PrecisionType.FP16,
    sequence_length=2048,
    batch_size=1,
    hidden_size=4096,
    num_layers=32,
    vocabulary_size=32000,
)


class ConfigParser:
    """Parse and validate configuration files."""

    @staticmethod
    def _normalize_keys(data: dict[str, Any]) -> dict[str, Any]:
        """Accept camelCase keys alongside snake_case ones."""
        return {to_snake(key): value for key, value in data.items()}

    @staticmethod
    def _convert_precision(value: str) -> str:
        """Map precision aliases to their canonical name.

        Unknown names are returned unchanged so validation can report them.
        """
        precision_map = {
            "float32": PrecisionType.FP32,
            "fp32": PrecisionType.FP32,
            "float": PrecisionType.FP32,
            "float16": PrecisionType.FP16,
            "fp16": PrecisionType.FP16,
            "half": PrecisionType.FP16,
            "int8": PrecisionType.INT8,
            "8bit": PrecisionType.INT8,
            "int4": PrecisionType.INT4,
            "4bit": PrecisionType.INT4,
        }
        precision = precision_map.get(value.strip().lower())
        return precision.value if precision else value

    @staticmethod
    def _convert_optimizer(value: str) -> OptimizerType:
        """Convert string optimizer to OptimizerType enum."""
        opt_map = {
            "adam": OptimizerType.ADAM,
            "adamw": OptimizerType.ADAMW,
            "sgd": OptimizerType.SGD,
        }
        return opt_map.get(value.lower(), OptimizerType.ADAM)

    @staticmethod
    def _convert_mode(value: str) -> CalculationMode:
        """Convert string mode to CalculationMode enum."""
        mode_map = {
            "inference": CalculationMode.INFERENCE,
            "serving": CalculationMode.INFERENCE,
            "training": CalculationMode.TRAINING,
            "train": CalculationMode.TRAINING,
        }
        return mode_map.get(value.lower(), CalculationMode.INFERENCE)

    @staticmethod
    def _parse_parameter_count(value: str | int | float) -> float:
        """Parse a parameter count into billions.

        Supports:
        - Numbers, already in billions: 7, 0.35
        - Billions: "7B", "7b"
        - Millions: "350M", "350m"
        - Raw counts in scientific notation: "1.5e9"
        """
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)

        if isinstance(value, str):
            value = value.strip().upper()

            if value.endswith("B"):
                return float(value[:-1])

            if value.endswith("M"):
                return float(value[:-1]) / 1_000

            # Scientific notation is a raw parameter count
            if "E" in value:
                return float(value) / 1_000_000_000

            return float(value)

        raise ValueError(f"Cannot parse parameter count: {value}")

    @classmethod
    def parse_model_parameters(cls, data: dict[str, Any]) -> ModelParameters:
        """Parse model parameters from dict.

        Missing fields fall back to DEFAULT_MODEL_PARAMETERS.

        Args:
            data: Dictionary with model parameters (snake_case or camelCase keys)

        Returns:
            ModelParameters object

        Raises:
            ConfigParseError: If parsing or validation fails
        """
        values = {**DEFAULT_MODEL_PARAMETERS.model_dump(), **cls._normalize_keys(data)}

        try:
            if isinstance(values["parameter_count"], str):
                values["parameter_count"] = cls._parse_parameter_count(values["parameter_count"])
        except ValueError as e:
            raise ConfigParseError("Invalid model parameters", [str(e)]) from e

        if isinstance(values["precision"], str):
            values["precision"] = cls._convert_precision(values["precision"])

        report = validate_model_parameters(values)
        if not report.is_valid:
            raise ConfigParseError("Invalid model parameters", report.errors)

        try:
            return ModelParameters(**values)
        except ValidationError as e:
            raise ConfigParseError("Invalid model parameters", e.errors()) from e

    @classmethod
    def parse_utilization_config(cls, data: dict[str, Any]) -> UtilizationConfig:
        """Parse utilization overhead configuration from dict.

        Raises:
            ConfigParseError: If validation fails
        """
        try:
            return UtilizationConfig(**cls._normalize_keys(data))
        except ValidationError as e:
            raise ConfigParseError("Invalid utilization configuration", e.errors()) from e

    @classmethod
    def parse_recommendation_options(cls, data: dict[str, Any]) -> RecommendationOptions:
        """Parse hardware recommendation options from dict.

        Args:
            data: Dictionary with budget, sort_by, max_results and an
                optional nested utilization section

        Returns:
            RecommendationOptions object

        Raises:
            ConfigParseError: If validation fails
        """
        values = cls._normalize_keys(data)

        if "utilization" in values and isinstance(values["utilization"], dict):
            values["utilization"] = cls.parse_utilization_config(values["utilization"])

        if "sort_by" in values and isinstance(values["sort_by"], str):
            values["sort_by"] = values["sort_by"].lower()

        try:
            return RecommendationOptions(**values)
        except ValidationError as e:
            valid = ", ".join(s.value for s in SortBy)
            raise ConfigParseError(
                f"Invalid recommendation options (sort_by must be one of: {valid})",
                e.errors(),
            ) from e

    @classmethod
    def parse_file(cls, config_path: str | Path) -> dict[str, Any]:
        """Parse configuration from JSON file.

        Args:
            config_path: Path to configuration file

        Returns:
            Dictionary with parsed configuration

        Raises:
            ConfigParseError: If file cannot be read or parsed
        """
        path = Path(config_path)
        if not path.exists():
            raise ConfigParseError(f"Configuration file not found: {config_path}")

        try:
            with path.open("r") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigParseError(f"Invalid JSON in configuration file: {e}") from e
        except OSError as e:
            raise ConfigParseError(f"Error reading configuration file: {e}") from e

        if not isinstance(data, dict):
            raise ConfigParseError("Configuration file must contain a JSON object")
        return data

    @classmethod
    def parse_full_config(
        cls,
        config_path: str | Path,
    ) -> tuple[ModelParameters, CalculationMode, OptimizerType, RecommendationOptions]:
        """Parse complete configuration from file.

        Expected layout::

            {
              "model": {...},
              "mode": "inference",
              "optimizer": "adam",
              "recommendation": {"budget": 5000, "sort_by": "price"}
            }

        Args:
            config_path: Path to configuration file

        Returns:
            Tuple of (ModelParameters, CalculationMode, OptimizerType, RecommendationOptions)

        Raises:
            ConfigParseError: If validation fails
        """
        data = cls.parse_file(config_path)

        try:
            params = cls.parse_model_parameters(data.get("model", {}))
            mode = cls._convert_mode(str(data.get("mode", CalculationMode.INFERENCE.value)))
            optimizer = cls._convert_optimizer(str(data.get("optimizer", OptimizerType.ADAM.value)))
            options = cls.parse_recommendation_options(data.get("recommendation", {}))

            return params, mode, optimizer, options
        except ConfigParseError:
            raise
        except Exception as e:
            raise ConfigParseError(f"Unexpected error parsing configuration: {e}") from e


def load_config(config_path: str | Path) -> dict[str, Any]:
    """Load configuration from file.

    Args:
        config_path: Path to configuration file

    Returns:
        Dictionary with configuration data
    """
    return ConfigParser.parse_file(config_path)


def save_config(data: dict[str, Any], output_path: str | Path) -> None:
    """Save configuration to JSON file.

    Args:
        data: Configuration dictionary to save
        output_path: Path to save configuration file
    """
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with path.open("w") as f:
        json.dump(data, f, indent=2)
