"""Pytest configuration for global fixtures and logging setup."""
from __future__ import annotations

import os
from typing import Any, Callable, Iterator

import pytest
from fastapi.testclient import TestClient

os.environ["DATABASE_URL"] = os.environ.get("DATABASE_URL") or "sqlite://"

from exercise_engine.logging_config import configure_logging

configure_logging()

from exercise_engine.main import app
from exercise_engine.models.schemas import ExerciseRecord
from exercise_engine.services.exercise_catalog import StaticExerciseCatalog, get_catalog


def make_exercise(
    exercise_id: str,
    name: str,
    body_part: str = "full body",
    equipment: list[str] | None = None,
    target_muscles: list[str] | None = None,
    **extra: Any,
) -> ExerciseRecord:
    """Build a catalog record with sensible defaults."""
    return ExerciseRecord(
        id=exercise_id,
        name=name,
        body_part=body_part,
        equipment=equipment if equipment is not None else ["body only"],
        target_muscles=target_muscles if target_muscles is not None else [body_part],
        **extra,
    )


SAMPLE_EXERCISES = [
    make_exercise("goblet-squat", "Goblet Squat", "quadriceps", ["dumbbell"]),
    make_exercise("barbell-squat", "Barbell Squat", "quadriceps", ["barbell"]),
    make_exercise("pushups", "Pushups", "chest", ["body only"]),
    make_exercise("barbell-bench-press", "Barbell Bench Press", "chest", ["barbell"]),
    make_exercise("incline-dumbbell-bench-press", "Incline Dumbbell Bench Press", "chest", ["dumbbell"]),
    make_exercise("bent-over-barbell-row", "Bent Over Barbell Row", "middle back", ["barbell"]),
    make_exercise("dumbbell-bicep-curl", "Dumbbell Bicep Curl", "biceps", ["dumbbell"]),
    make_exercise("plank", "Plank", "abdominals", ["body only"]),
    make_exercise("romanian-deadlift", "Romanian Deadlift", "hamstrings", ["barbell"]),
    make_exercise("kettlebell-swing", "Kettlebell Swing", "hamstrings", ["kettlebells"]),
]


@pytest.fixture
def exercise_factory() -> Callable[..., ExerciseRecord]:
    """Expose the record builder to tests."""

    return make_exercise


@pytest.fixture
def sample_exercises() -> list[ExerciseRecord]:
    """Small catalog covering the main movement groups."""

    return list(SAMPLE_EXERCISES)


@pytest.fixture
def catalog(sample_exercises: list[ExerciseRecord]) -> StaticExerciseCatalog:
    """In-memory catalog over the sample exercises."""

    return StaticExerciseCatalog(sample_exercises)


@pytest.fixture
def test_client(catalog: StaticExerciseCatalog) -> Iterator[TestClient]:
    """Provide a FastAPI test client backed by the sample catalog."""

    app.dependency_overrides[get_catalog] = lambda: catalog
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_catalog, None)
