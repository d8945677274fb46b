"""Workout preset definitions loaded from YAML."""
from __future__ import annotations

import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Iterable

import yaml

from exercise_engine.config import get_settings
from exercise_engine.models.schemas import WorkoutPreset


logger = logging.getLogger(__name__)

# "3x per Week", "4x/week"
FREQUENCY_PATTERN = re.compile(r"(\d+)x\s*(?:per\s*week|/week)", re.IGNORECASE)


def validate_preset_frequency(presets: Iterable[WorkoutPreset]) -> list[str]:
    """
    Check that a weekly frequency declared in a preset title matches its day count.

    Returns:
        One message per mismatched preset; titles without a frequency are skipped
    """
    errors = []
    for preset in presets:
        match = FREQUENCY_PATTERN.search(preset.title)
        if match is None:
            continue
        declared = int(match.group(1))
        if declared != len(preset.days):
            errors.append(
                f"Preset \"{preset.id}\" has frequency mismatch: "
                f"title says \"{declared}x per Week\" but has {len(preset.days)} days"
            )
    return errors


def load_presets(path: Path | None = None) -> dict[str, WorkoutPreset]:
    """
    Parse workout presets from a YAML file.

    Args:
        path: YAML file with a top-level ``presets`` list (defaults to settings)

    Returns:
        Presets keyed by id, in file order
    """
    presets_path = Path(path or get_settings().presets_path)
    with presets_path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}

    presets = {}
    for raw in data.get("presets", []):
        preset = WorkoutPreset.model_validate(raw)
        if preset.id in presets:
            logger.warning("Duplicate preset id %s in %s - keeping the first", preset.id, presets_path)
            continue
        presets[preset.id] = preset

    for error in validate_preset_frequency(presets.values()):
        logger.warning("%s", error)

    logger.info("Loaded %d workout presets from %s", len(presets), presets_path)
    return presets


@lru_cache()
def get_presets() -> dict[str, WorkoutPreset]:
    """Return the configured presets, parsed once per process."""
    return load_presets()


def get_preset(preset_id: str) -> WorkoutPreset:
    """Look up a configured preset; raises KeyError when unknown."""
    presets = get_presets()
    if preset_id not in presets:
        raise KeyError(f"Unknown preset: {preset_id}")
    return presets[preset_id]
