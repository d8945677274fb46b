"""Equipment compatibility checks between exercises and available equipment."""
from __future__ import annotations

from typing import Any, Iterable

from exercise_engine.services.normalize import normalize_search_term


BODYWEIGHT_MARKERS = frozenset({"body only", "bodyweight"})
BODYWEIGHT = "bodyweight"


def is_bodyweight(exercise: Any) -> bool:
    """Return True when the exercise's equipment marks it as bodyweight-only."""
    return any(normalize_search_term(item) in BODYWEIGHT_MARKERS for item in exercise.equipment)


def matches_equipment(exercise: Any, required_equipment: Iterable[str]) -> bool:
    """
    Check whether an exercise can be performed with the available equipment.

    Rules:
        - No required equipment means no constraint.
        - Bodyweight exercises match only when "bodyweight" is available.
        - Otherwise any exercise equipment string containing, or contained in,
          any available equipment string is a match.

    "bench" therefore also matches e.g. "bench press station".
    """
    required = [normalize_search_term(item) for item in required_equipment]
    required = [item for item in required if item]
    if not required:
        return True

    if is_bodyweight(exercise):
        return BODYWEIGHT in required

    for item in exercise.equipment:
        exercise_item = normalize_search_term(item)
        if not exercise_item:
            continue
        for required_item in required:
            if exercise_item in required_item or required_item in exercise_item:
                return True

    return False
