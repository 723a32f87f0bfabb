"""Preset model configurations loader.

Presets ship with the package as ``presets/models.json``. Each entry has
display_name, description, category, popular and parameters.
"""

import copy
import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

from llm_mem_estimator.config.parser import ConfigParser
from llm_mem_estimator.core.models import ModelParameters
from llm_mem_estimator.exceptions import ConfigParseError

logger = logging.getLogger(__name__)

PRESET_CATEGORIES = ("gpt", "llama", "bert", "other")


def get_presets_file_path() -> Path:
    """Get the path to the presets JSON file.

    Returns:
        Path to the presets JSON file
    """
    return Path(__file__).parent.parent / "presets" / "models.json"


@lru_cache(maxsize=1)
def _read_presets(presets_file: Path) -> dict[str, dict[str, Any]]:
    if not presets_file.exists():
        logger.warning(f"Presets file not found: {presets_file}")
        return {}

    try:
        with presets_file.open("r") as f:
            presets = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Could not load presets from {presets_file}: {e}")
        return {}

    logger.info(f"Loaded {len(presets)} model presets")
    return presets


def load_presets() -> dict[str, dict[str, Any]]:
    """Load all preset model configurations.

    Returns:
        Dictionary mapping preset ids to their configurations, or an
        empty dictionary when the presets file is missing or malformed
    """
    return copy.deepcopy(_read_presets(get_presets_file_path()))


def get_preset(preset_id: str) -> ModelParameters | None:
    """Get the model parameters of one preset.

    Args:
        preset_id: Id of the preset to retrieve, e.g. "llama-7b"

    Returns:
        ModelParameters, or None if the preset does not exist or is invalid
    """
    preset = load_presets().get(preset_id)
    if preset is None:
        return None

    try:
        return ConfigParser.parse_model_parameters(preset.get("parameters", {}))
    except ConfigParseError as e:
        logger.warning(f"Preset {preset_id} is invalid: {e.errors}")
        return None


def list_presets() -> dict[str, dict[str, Any]]:
    """List all available presets with metadata.

    Returns:
        Dictionary mapping preset ids to display_name, description,
        category and popular
    """
    return {
        preset_id: {
            "display_name": preset.get("display_name", preset_id),
            "description": preset.get("description", ""),
            "category": preset.get("category", "other"),
            "popular": bool(preset.get("popular", False)),
        }
        for preset_id, preset in load_presets().items()
    }


def get_popular_presets() -> list[str]:
    """Ids of presets flagged as popular."""
    return [preset_id for preset_id, meta in list_presets().items() if meta["popular"]]


def get_presets_by_category(category: str) -> list[str]:
    """Ids of presets in the given category."""
    return [
        preset_id
        for preset_id, meta in list_presets().items()
        if meta["category"] == category.lower()
    ]


def list_categories() -> list[str]:
    """Categories that have at least one preset, in first-seen order."""
    return list(dict.fromkeys(meta["category"] for meta in list_presets().values()))
