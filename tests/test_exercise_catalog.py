"""Tests for exercise catalog providers."""
from __future__ import annotations

import asyncio
import json

import pytest
from sqlalchemy import func, select

from exercise_engine.database import create_catalog_engine, create_session_factory
from exercise_engine.models.database_models import Exercise
from exercise_engine.models.schemas import CustomExerciseCreate, Difficulty
from exercise_engine.services.exercise_catalog import (
    CatalogLoadError,
    SqlExerciseCatalog,
    StaticExerciseCatalog,
    map_external_exercise,
    slugify_exercise_name,
)


class CountingCatalog(StaticExerciseCatalog):
    """Static catalog that records how often it loads."""

    def __init__(self, records, fail_first: bool = False):
        super().__init__(records)
        self.loads = 0
        self.fail_first = fail_first

    async def _load(self):
        self.loads += 1
        await asyncio.sleep(0.01)
        if self.fail_first and self.loads == 1:
            raise CatalogLoadError("temporarily unavailable")
        return await super()._load()


@pytest.fixture
def session_factory(tmp_path):
    engine = create_catalog_engine(f"sqlite:///{tmp_path / 'catalog.db'}")
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def dataset_path(tmp_path):
    entries = [
        {"name": "Goblet Squat", "level": "beginner", "equipment": "dumbbell", "primaryMuscles": ["quadriceps"]},
        {"name": "Pushups", "level": "beginner", "equipment": "body only", "primaryMuscles": ["chest"]},
        {"name": "Plank", "force": "static", "equipment": "body only", "primaryMuscles": ["abdominals"]},
        {"name": "Goblet Squat", "level": "intermediate", "equipment": "kettlebells", "primaryMuscles": ["quadriceps"]},
    ]
    path = tmp_path / "exercises.json"
    path.write_text(json.dumps(entries), encoding="utf-8")
    return path


class TestExternalMapping:
    """Test conversion of dataset entries into catalog records."""

    def test_slugify(self):
        assert slugify_exercise_name("Barbell Bench Press - Medium Grip") == "barbell-bench-press-medium-grip"
        assert slugify_exercise_name("Dips - Chest Version") == "dips-chest-version"

    def test_maps_full_entry(self):
        record = map_external_exercise(
            {
                "name": "Barbell Bench Press - Medium Grip",
                "force": "push",
                "level": "intermediate",
                "mechanic": "compound",
                "equipment": "barbell",
                "primaryMuscles": ["chest"],
                "secondaryMuscles": ["shoulders", "triceps"],
                "instructions": ["Lower the bar.", "Press it back up."],
                "category": "strength",
            }
        )

        assert record.id == "barbell-bench-press-medium-grip"
        assert record.body_part == "chest"
        assert record.equipment == ["barbell"]
        assert record.target_muscles == ["chest"]
        assert record.synergist_muscles == ["shoulders", "triceps"]
        assert record.difficulty == Difficulty.INTERMEDIATE
        assert record.force_type.value == "push"
        assert record.mechanics_type.value == "compound"

    def test_defaults_for_sparse_entry(self):
        record = map_external_exercise({"name": "Cat Stretch", "equipment": None, "level": "expert"})

        assert record.body_part == "full body"
        assert record.equipment == ["body only"]
        assert record.target_muscles == []
        assert record.difficulty == Difficulty.BEGINNER
        assert record.force_type is None


class TestCatalogQueries:
    """Test in-memory catalog lookups."""

    @pytest.mark.asyncio
    async def test_blank_query_returns_full_catalog(self, catalog, sample_exercises):
        assert await catalog.search_all("  ") == sample_exercises

    @pytest.mark.asyncio
    async def test_prefix_and_equipment_matches(self, catalog):
        results = await catalog.search_all("Barbell")
        assert [ex.id for ex in results] == [
            "barbell-squat",
            "barbell-bench-press",
            "bent-over-barbell-row",
            "romanian-deadlift",
        ]

    @pytest.mark.asyncio
    async def test_body_part_match(self, catalog):
        results = await catalog.search_all("chest")
        assert [ex.id for ex in results] == ["pushups", "barbell-bench-press", "incline-dumbbell-bench-press"]

    @pytest.mark.asyncio
    async def test_contains_fallback(self, catalog):
        assert [ex.id for ex in await catalog.search_all("curl")] == ["dumbbell-bicep-curl"]
        assert [ex.id for ex in await catalog.search_all("hamstr")] == ["romanian-deadlift", "kettlebell-swing"]
        assert await catalog.search_all("zzz") == []

    @pytest.mark.asyncio
    async def test_result_limit(self, sample_exercises):
        catalog = StaticExerciseCatalog(sample_exercises, search_result_limit=2)
        assert len(await catalog.search_all("barbell")) == 2

    @pytest.mark.asyncio
    async def test_filters(self, catalog):
        assert [ex.id for ex in await catalog.get_by_body_part("Chest")][0] == "pushups"
        assert [ex.id for ex in await catalog.get_by_equipment("dumbbell")] == [
            "goblet-squat",
            "incline-dumbbell-bench-press",
            "dumbbell-bicep-curl",
        ]
        assert len(await catalog.get_by_difficulty("beginner")) == 10
        assert await catalog.get_by_difficulty(Difficulty.ADVANCED) == []

    @pytest.mark.asyncio
    async def test_distinct_values_sorted(self, catalog):
        assert await catalog.get_all_body_parts() == [
            "abdominals",
            "biceps",
            "chest",
            "hamstrings",
            "middle back",
            "quadriceps",
        ]
        assert await catalog.get_all_equipment() == ["barbell", "body only", "dumbbell", "kettlebells"]

    @pytest.mark.asyncio
    async def test_get_by_id(self, catalog):
        assert (await catalog.get_by_id("plank")).name == "Plank"
        assert await catalog.get_by_id("missing") is None

    @pytest.mark.asyncio
    async def test_duplicate_ids_keep_last_record_in_first_position(self, exercise_factory):
        catalog = StaticExerciseCatalog(
            [
                exercise_factory("x", "First"),
                exercise_factory("y", "Other"),
                exercise_factory("x", "Replacement"),
            ]
        )

        records = await catalog.search_all("")

        assert [(ex.id, ex.name) for ex in records] == [("x", "Replacement"), ("y", "Other")]


class TestCatalogLifecycle:
    """Test single-flight initialization."""

    @pytest.mark.asyncio
    async def test_concurrent_initialize_loads_once(self, sample_exercises):
        catalog = CountingCatalog(sample_exercises)

        await asyncio.gather(*(catalog.initialize() for _ in range(5)))
        await catalog.initialize()

        assert catalog.loads == 1
        assert catalog.is_initialized

    @pytest.mark.asyncio
    async def test_failed_load_is_retried(self, sample_exercises):
        catalog = CountingCatalog(sample_exercises, fail_first=True)

        with pytest.raises(CatalogLoadError):
            await catalog.initialize()
        assert not catalog.is_initialized

        await catalog.initialize()
        assert catalog.loads == 2
        assert len(await catalog.search_all("")) == 10

    @pytest.mark.asyncio
    async def test_queries_initialize_lazily(self, sample_exercises):
        catalog = CountingCatalog(sample_exercises)
        assert (await catalog.get_by_id("plank")) is not None
        assert catalog.loads == 1


class TestCustomExercises:
    """Test user-defined catalog additions."""

    @pytest.mark.asyncio
    async def test_add_custom_exercise(self, catalog):
        payload = CustomExerciseCreate(name="Cable Woodchopper", body_part="abdominals", equipment=["cable"])

        exercise_id = await catalog.add_custom_exercise(payload)

        assert exercise_id.startswith("custom-")
        assert exercise_id.endswith("-cable-woodchopper")
        stored = await catalog.get_by_id(exercise_id)
        assert stored.name == "Cable Woodchopper"
        assert stored.equipment == ["cable"]
        assert [ex.id for ex in await catalog.get_custom_exercises()] == [exercise_id]
        assert [ex.id for ex in await catalog.search_all("cable wood")] == [exercise_id]

    @pytest.mark.asyncio
    async def test_existing_snapshots_are_untouched(self, catalog):
        before = await catalog.search_all("")

        await catalog.add_custom_exercise(CustomExerciseCreate(name="Sled Push", body_part="quadriceps"))

        assert len(before) == 10
        assert len(await catalog.search_all("")) == 11


class TestSqlExerciseCatalog:
    """Test the database-backed catalog."""

    @pytest.mark.asyncio
    async def test_seeds_empty_table_in_batches(self, session_factory, dataset_path):
        catalog = SqlExerciseCatalog(session_factory, data_path=dataset_path, batch_size=2)

        records = await catalog.search_all("")

        assert [ex.id for ex in records] == ["goblet-squat", "pushups", "plank"]
        assert records[0].difficulty == Difficulty.INTERMEDIATE
        assert records[0].equipment == ["kettlebells"]
        with session_factory() as session:
            assert session.scalar(select(func.count()).select_from(Exercise)) == 3

    @pytest.mark.asyncio
    async def test_reloads_from_table_without_dataset(self, session_factory, dataset_path, tmp_path):
        await SqlExerciseCatalog(session_factory, data_path=dataset_path).initialize()

        reloaded = SqlExerciseCatalog(session_factory, data_path=tmp_path / "missing.json")

        assert len(await reloaded.search_all("")) == 3
        assert (await reloaded.get_by_id("plank")).force_type.value == "static"

    @pytest.mark.asyncio
    async def test_missing_dataset_raises(self, session_factory, tmp_path):
        catalog = SqlExerciseCatalog(session_factory, data_path=tmp_path / "missing.json")

        with pytest.raises(CatalogLoadError):
            await catalog.initialize()

    @pytest.mark.asyncio
    async def test_malformed_dataset_raises(self, session_factory, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(CatalogLoadError):
            await SqlExerciseCatalog(session_factory, data_path=path).initialize()

    @pytest.mark.asyncio
    async def test_custom_exercises_are_persisted(self, session_factory, dataset_path):
        catalog = SqlExerciseCatalog(session_factory, data_path=dataset_path)
        exercise_id = await catalog.add_custom_exercise(
            CustomExerciseCreate(name="Band Pull-Apart", body_part="shoulders", equipment=["bands"])
        )

        reloaded = SqlExerciseCatalog(session_factory, data_path=dataset_path)

        assert [ex.id for ex in await reloaded.get_custom_exercises()] == [exercise_id]

    @pytest.mark.asyncio
    async def test_bundled_dataset(self, session_factory):
        catalog = SqlExerciseCatalog(session_factory)

        records = await catalog.search_all("")

        assert len(records) == 37
        cat_stretch = await catalog.get_by_id("cat-stretch")
        assert cat_stretch.equipment == ["body only"]
        assert cat_stretch.category == "stretching"
