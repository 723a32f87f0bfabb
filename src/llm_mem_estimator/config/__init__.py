"""Configuration parsing, defaults and model presets."""

from llm_mem_estimator.config.parser import (
    DEFAULT_MODEL_PARAMETERS,
    ConfigParser,
    load_config,
    save_config,
)
from llm_mem_estimator.config.presets import (
    get_popular_presets,
    get_preset,
    get_presets_by_category,
    list_categories,
    list_presets,
    load_presets,
)

__all__ = [
    "DEFAULT_MODEL_PARAMETERS",
    "ConfigParser",
    "load_config",
    "save_config",
    "load_presets",
    "get_preset",
    "list_presets",
    "get_popular_presets",
    "get_presets_by_category",
    "list_categories",
]
