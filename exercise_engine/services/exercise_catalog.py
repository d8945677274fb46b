"""Exercise catalog providers consumed by the search and slot resolution engine."""
from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Mapping, Protocol, Sequence

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from exercise_engine.config import get_settings
from exercise_engine.database import Base, SessionLocal
from exercise_engine.models.database_models import Exercise
from exercise_engine.models.schemas import CustomExerciseCreate, Difficulty, ExerciseRecord
from exercise_engine.services.normalize import normalize_search_term


logger = logging.getLogger(__name__)

DEFAULT_SEARCH_RESULT_LIMIT = 50
CUSTOM_ID_PREFIX = "custom-"


class CatalogLoadError(RuntimeError):
    """Raised when the exercise dataset cannot be read or parsed."""


class CatalogProvider(Protocol):
    """Capability the resolver needs from an exercise catalog."""

    async def initialize(self) -> None: ...

    async def search_all(self, query: str) -> list[ExerciseRecord]: ...

    async def get_by_body_part(self, body_part: str) -> list[ExerciseRecord]: ...

    async def get_by_equipment(self, equipment: str) -> list[ExerciseRecord]: ...

    async def get_all_body_parts(self) -> list[str]: ...

    async def get_all_equipment(self) -> list[str]: ...

    async def get_by_difficulty(self, difficulty: Difficulty | str) -> list[ExerciseRecord]: ...

    async def get_by_id(self, exercise_id: str) -> ExerciseRecord | None: ...

    async def add_custom_exercise(self, exercise: CustomExerciseCreate) -> str: ...

    async def get_custom_exercises(self) -> list[ExerciseRecord]: ...


def slugify_exercise_name(name: str) -> str:
    """Generate a stable id fragment from an exercise name."""
    return re.sub(r"-+", "-", re.sub(r"[^a-z0-9]", "-", name.lower()))


def _pick_enum_value(value: Any, allowed: set[str]) -> str | None:
    if not isinstance(value, str):
        return None
    lowered = value.lower()
    return lowered if lowered in allowed else None


def map_external_exercise(raw: Mapping[str, Any]) -> ExerciseRecord:
    """
    Map one free-exercise-db style entry to an ExerciseRecord.

    Args:
        raw: Entry with ``name``, ``primaryMuscles``, ``secondaryMuscles``,
            ``equipment``, ``level``, ``force``, ``mechanic``, ``category`` and
            ``instructions`` keys (all optional except ``name``)

    Returns:
        ExerciseRecord with the id derived from the name
    """
    name = raw.get("name") or "Unknown Exercise"
    primary = list(raw.get("primaryMuscles") or [])

    return ExerciseRecord(
        id=slugify_exercise_name(name),
        name=name,
        body_part=primary[0] if primary else "full body",
        category=raw.get("category") or "strength",
        equipment=[raw.get("equipment") or "body only"],
        target_muscles=primary,
        synergist_muscles=list(raw.get("secondaryMuscles") or []),
        stabilizer_muscles=[],
        instructions=list(raw.get("instructions") or []),
        difficulty=_pick_enum_value(raw.get("level"), {d.value for d in Difficulty}) or Difficulty.BEGINNER,
        force_type=_pick_enum_value(raw.get("force"), {"push", "pull", "static"}),
        mechanics_type=_pick_enum_value(raw.get("mechanic"), {"compound", "isolation"}),
    )


class ExerciseCatalog:
    """
    In-memory catalog snapshot with a single-flight loading lifecycle.

    Subclasses supply ``_load``. ``initialize`` may be called any number of
    times, concurrently too: all callers share one in-flight load, and a failed
    load is not remembered so the next call retries.
    """

    def __init__(self, search_result_limit: int = DEFAULT_SEARCH_RESULT_LIMIT):
        self.search_result_limit = search_result_limit
        self._records: list[ExerciseRecord] = []
        self._by_id: dict[str, ExerciseRecord] = {}
        self._loaded = False
        self._init_task: asyncio.Future | None = None

    @property
    def is_initialized(self) -> bool:
        return self._loaded

    async def initialize(self) -> None:
        if self._loaded:
            return

        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._initialize_once())
        task = self._init_task

        try:
            # Shielded so one abandoned caller does not cancel the shared load.
            await asyncio.shield(task)
        except Exception:
            if self._init_task is task:
                self._init_task = None
            raise

    async def _initialize_once(self) -> None:
        records = await self._load()
        self._set_records(records)
        self._loaded = True
        logger.info("Exercise catalog ready: %d exercises", len(self._records))

    async def _load(self) -> list[ExerciseRecord]:
        raise NotImplementedError

    async def _persist(self, record: ExerciseRecord) -> None:
        """Store a newly added record; in-memory catalogs keep nothing else."""

    def _set_records(self, records: Sequence[ExerciseRecord]) -> None:
        # Later duplicates replace earlier ones but keep the first position.
        by_id: dict[str, ExerciseRecord] = {}
        for record in records:
            by_id[record.id] = record
        self._by_id = by_id
        self._records = list(by_id.values())

    async def search_all(self, query: str) -> list[ExerciseRecord]:
        """
        Return catalog matches for ``query``.

        A blank query returns the full catalog in load order. Otherwise names
        starting with the query, or an exact body part or equipment match, are
        returned; when there are none, a contains search over name, body part,
        equipment and target muscles is used. Results are capped at
        ``search_result_limit``.
        """
        await self.initialize()

        term = normalize_search_term(query)
        if not term:
            return list(self._records)

        results = [
            exercise
            for exercise in self._records
            if normalize_search_term(exercise.name).startswith(term)
            or normalize_search_term(exercise.body_part) == term
            or any(normalize_search_term(item) == term for item in exercise.equipment)
        ]

        if not results:
            results = [
                exercise
                for exercise in self._records
                if term in normalize_search_term(exercise.name)
                or term in normalize_search_term(exercise.body_part)
                or any(term in normalize_search_term(item) for item in exercise.equipment)
                or any(term in normalize_search_term(muscle) for muscle in exercise.target_muscles)
            ]

        logger.debug("Catalog search %r matched %d exercises", term, len(results))
        return results[: self.search_result_limit]

    async def get_by_body_part(self, body_part: str) -> list[ExerciseRecord]:
        await self.initialize()
        wanted = normalize_search_term(body_part)
        return [ex for ex in self._records if normalize_search_term(ex.body_part) == wanted]

    async def get_by_equipment(self, equipment: str) -> list[ExerciseRecord]:
        await self.initialize()
        wanted = normalize_search_term(equipment)
        return [
            ex for ex in self._records if any(normalize_search_term(item) == wanted for item in ex.equipment)
        ]

    async def get_by_difficulty(self, difficulty: Difficulty | str) -> list[ExerciseRecord]:
        await self.initialize()
        wanted = Difficulty(difficulty)
        return [ex for ex in self._records if ex.difficulty == wanted]

    async def get_all_body_parts(self) -> list[str]:
        await self.initialize()
        return sorted({ex.body_part for ex in self._records})

    async def get_all_equipment(self) -> list[str]:
        await self.initialize()
        return sorted({item for ex in self._records for item in ex.equipment})

    async def get_by_id(self, exercise_id: str) -> ExerciseRecord | None:
        await self.initialize()
        return self._by_id.get(exercise_id)

    async def add_custom_exercise(self, exercise: CustomExerciseCreate) -> str:
        """Add a user-defined exercise and return its generated id."""
        await self.initialize()

        exercise_id = f"{CUSTOM_ID_PREFIX}{int(time.time() * 1000)}-{slugify_exercise_name(exercise.name)}"
        record = ExerciseRecord(id=exercise_id, **exercise.model_dump())
        await self._persist(record)

        # Copy-on-write: snapshots already handed out stay unchanged.
        self._records = [*self._records, record]
        self._by_id = {**self._by_id, record.id: record}
        logger.info("Added custom exercise %s", exercise_id)
        return exercise_id

    async def get_custom_exercises(self) -> list[ExerciseRecord]:
        await self.initialize()
        return [ex for ex in self._records if ex.id.startswith(CUSTOM_ID_PREFIX)]


class StaticExerciseCatalog(ExerciseCatalog):
    """Catalog over an in-process list of records."""

    def __init__(
        self,
        records: Sequence[ExerciseRecord],
        search_result_limit: int = DEFAULT_SEARCH_RESULT_LIMIT,
    ):
        super().__init__(search_result_limit=search_result_limit)
        self._source = list(records)

    async def _load(self) -> list[ExerciseRecord]:
        return list(self._source)


class SqlExerciseCatalog(ExerciseCatalog):
    """
    Catalog persisted in the ``exercises`` table.

    On first load an empty table is filled from the bundled JSON dataset in
    batches; the snapshot is then read back in insertion order.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] | None = None,
        data_path: Path | None = None,
        batch_size: int | None = None,
        search_result_limit: int | None = None,
    ):
        settings = get_settings()
        super().__init__(search_result_limit=search_result_limit or settings.search_result_limit)

        self._session_factory = session_factory or SessionLocal
        self.data_path = Path(data_path or settings.exercise_data_path)
        self.batch_size = batch_size or settings.catalog_batch_size

    def _read_dataset(self) -> list[ExerciseRecord]:
        try:
            with self.data_path.open("r", encoding="utf-8") as fh:
                raw_exercises = json.load(fh)
            return [map_external_exercise(raw) for raw in raw_exercises]
        except (OSError, ValueError, TypeError, AttributeError, ValidationError) as exc:
            raise CatalogLoadError(f"Could not load exercise dataset from {self.data_path}") from exc

    async def _load(self) -> list[ExerciseRecord]:
        with self._session_factory() as session:
            Base.metadata.create_all(bind=session.get_bind())

            existing_count = session.scalar(select(func.count()).select_from(Exercise)) or 0
            if existing_count == 0:
                self._seed_table(session)
            else:
                logger.info("Exercises already loaded: %d exercises found", existing_count)

            rows = session.scalars(select(Exercise).order_by(Exercise.row_id)).all()
            return [ExerciseRecord.model_validate(row) for row in rows]

    def _seed_table(self, session: Session) -> None:
        logger.info("Loading exercise database from %s", self.data_path)
        records = list({record.id: record for record in self._read_dataset()}.values())
        total_batches = (len(records) + self.batch_size - 1) // self.batch_size

        for start in range(0, len(records), self.batch_size):
            batch = records[start:start + self.batch_size]
            session.add_all(Exercise(**record.model_dump(mode="json")) for record in batch)
            session.commit()
            logger.debug("Loaded batch %d/%d", start // self.batch_size + 1, total_batches)

        logger.info("Successfully loaded %d exercises into database", len(records))

    async def _persist(self, record: ExerciseRecord) -> None:
        with self._session_factory() as session:
            session.add(Exercise(**record.model_dump(mode="json")))
            session.commit()


@lru_cache()
def get_catalog() -> SqlExerciseCatalog:
    """FastAPI dependency returning the process-wide persisted catalog."""
    return SqlExerciseCatalog()
