"""Exercise catalog search and lookup endpoints."""
from __future__ import annotations

import logging
from weakref import WeakKeyDictionary

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError

from exercise_engine.config import get_settings
from exercise_engine.models.schemas import (
    CustomExerciseCreate,
    Difficulty,
    ExerciseRecord,
    ExerciseSearchResponse,
)
from exercise_engine.services.exercise_catalog import CatalogLoadError, ExerciseCatalog, get_catalog
from exercise_engine.services.fuzzy import SearchCache, search_exercises, search_with_relaxation
from exercise_engine.services.normalize import normalize_search_term


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/exercises", tags=["exercises"])

CATALOG_ERRORS = (CatalogLoadError, SQLAlchemyError)

_search_caches: WeakKeyDictionary = WeakKeyDictionary()


def _search_cache_for(catalog: ExerciseCatalog) -> SearchCache:
    cache = _search_caches.get(catalog)
    if cache is None:
        cache = SearchCache(max_age=get_settings().search_cache_max_age_seconds)
        _search_caches[catalog] = cache
    return cache


@router.get("/search", response_model=ExerciseSearchResponse)
async def search_catalog(
    q: str = "",
    limit: int = 20,
    catalog: ExerciseCatalog = Depends(get_catalog),
) -> ExerciseSearchResponse:
    """
    Rank catalog exercises against a free-text query.

    A query with no hits is retried with progressively relaxed variants;
    ``query_used`` and ``was_relaxed`` report which one produced the results.

    Args:
        q: Search text (blank returns the browsable catalog)
        limit: Maximum number of results (1-200)
        catalog: Exercise catalog provider
    """
    if limit < 1 or limit > 200:
        raise HTTPException(status_code=400, detail="limit must be between 1 and 200")

    fuzzy_weight = get_settings().hybrid_fuzzy_weight

    async def run_search(query: str) -> list[ExerciseRecord]:
        candidates = await catalog.search_all(query)
        return search_exercises(candidates, query, fuzzy_weight=fuzzy_weight)

    try:
        outcome = await search_with_relaxation(run_search, q, cache=_search_cache_for(catalog))
    except CATALOG_ERRORS:
        logger.exception("Exercise search failed for %r", q)
        raise HTTPException(status_code=503, detail="Exercise catalog unavailable")

    results = outcome.results[:limit]
    return ExerciseSearchResponse(
        query=q,
        query_used=outcome.query_used,
        was_relaxed=outcome.was_relaxed,
        count=len(results),
        results=results,
    )


@router.get("", response_model=list[ExerciseRecord])
async def browse_exercises(
    body_part: str | None = None,
    equipment: str | None = None,
    difficulty: Difficulty | None = None,
    catalog: ExerciseCatalog = Depends(get_catalog),
) -> list[ExerciseRecord]:
    """List catalog exercises, optionally narrowed by body part, equipment and difficulty."""
    try:
        if body_part:
            exercises = await catalog.get_by_body_part(body_part)
        elif equipment:
            exercises = await catalog.get_by_equipment(equipment)
        elif difficulty is not None:
            exercises = await catalog.get_by_difficulty(difficulty)
        else:
            exercises = await catalog.search_all("")
    except CATALOG_ERRORS:
        logger.exception("Exercise browse failed")
        raise HTTPException(status_code=503, detail="Exercise catalog unavailable")

    if body_part and equipment:
        wanted = normalize_search_term(equipment)
        exercises = [
            ex for ex in exercises if any(normalize_search_term(item) == wanted for item in ex.equipment)
        ]
    if difficulty is not None:
        exercises = [ex for ex in exercises if ex.difficulty == difficulty]
    return exercises


@router.get("/body-parts")
async def list_body_parts(catalog: ExerciseCatalog = Depends(get_catalog)) -> dict:
    """Distinct body parts in the catalog, sorted."""
    try:
        body_parts = await catalog.get_all_body_parts()
    except CATALOG_ERRORS:
        logger.exception("Failed to list body parts")
        raise HTTPException(status_code=503, detail="Exercise catalog unavailable")
    return {"count": len(body_parts), "body_parts": body_parts}


@router.get("/equipment")
async def list_equipment(catalog: ExerciseCatalog = Depends(get_catalog)) -> dict:
    """Distinct equipment names in the catalog, sorted."""
    try:
        equipment = await catalog.get_all_equipment()
    except CATALOG_ERRORS:
        logger.exception("Failed to list equipment")
        raise HTTPException(status_code=503, detail="Exercise catalog unavailable")
    return {"count": len(equipment), "equipment": equipment}


@router.get("/custom", response_model=list[ExerciseRecord])
async def list_custom_exercises(catalog: ExerciseCatalog = Depends(get_catalog)) -> list[ExerciseRecord]:
    """User-defined exercises added to the catalog."""
    try:
        return await catalog.get_custom_exercises()
    except CATALOG_ERRORS:
        logger.exception("Failed to list custom exercises")
        raise HTTPException(status_code=503, detail="Exercise catalog unavailable")


@router.post("/custom", status_code=201)
async def create_custom_exercise(
    payload: CustomExerciseCreate,
    catalog: ExerciseCatalog = Depends(get_catalog),
) -> dict:
    """Add a user-defined exercise and return its id."""
    try:
        exercise_id = await catalog.add_custom_exercise(payload)
    except CATALOG_ERRORS:
        logger.exception("Failed to add custom exercise %r", payload.name)
        raise HTTPException(status_code=503, detail="Exercise catalog unavailable")

    # Cached searches predate the new exercise.
    _search_cache_for(catalog).clear()
    return {"status": "success", "id": exercise_id}


@router.get("/{exercise_id}", response_model=ExerciseRecord)
async def get_exercise(
    exercise_id: str,
    catalog: ExerciseCatalog = Depends(get_catalog),
) -> ExerciseRecord:
    """
    Fetch a single exercise.

    Raises:
        HTTPException: 404 if the exercise is not in the catalog
    """
    try:
        exercise = await catalog.get_by_id(exercise_id)
    except CATALOG_ERRORS:
        logger.exception("Failed to fetch exercise %s", exercise_id)
        raise HTTPException(status_code=503, detail="Exercise catalog unavailable")

    if exercise is None:
        raise HTTPException(status_code=404, detail="Exercise not found")
    return exercise
