"""Preset slot resolution endpoints."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError

from exercise_engine.config import get_settings
from exercise_engine.models.schemas import (
    DayResolution,
    ResolveDayRequest,
    ResolvedExercise,
    ResolveSlotRequest,
)
from exercise_engine.services.exercise_catalog import CatalogLoadError, ExerciseCatalog, get_catalog
from exercise_engine.services.presets import get_preset, get_presets
from exercise_engine.services.slot_resolver import SlotResolver


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/presets", tags=["presets"])


def get_slot_resolver(catalog: ExerciseCatalog = Depends(get_catalog)) -> SlotResolver:
    """FastAPI dependency building a resolver over the active catalog."""
    return SlotResolver(catalog, fuzzy_weight=get_settings().hybrid_fuzzy_weight)


@router.get("")
async def list_presets() -> dict:
    """Summaries of the configured workout presets."""
    presets = get_presets()
    return {
        "count": len(presets),
        "presets": [
            {
                "id": p.id,
                "title": p.title,
                "level": p.level.value,
                "equipment": p.equipment,
                "days": [day.name for day in p.days],
            }
            for p in presets.values()
        ],
    }


@router.post("/resolve-slot", response_model=ResolvedExercise)
async def resolve_slot(
    request: ResolveSlotRequest,
    resolver: SlotResolver = Depends(get_slot_resolver),
) -> ResolvedExercise:
    """Resolve one slot to a catalog exercise (or an unresolved placeholder)."""
    try:
        return await resolver.resolve_slot(
            request.slot,
            preset_id=request.preset_id,
            day_index=request.day_index,
            slot_index=request.slot_index,
            equipment=request.equipment,
        )
    except (CatalogLoadError, SQLAlchemyError):
        logger.exception("Slot resolution failed for preset %s", request.preset_id)
        raise HTTPException(status_code=503, detail="Exercise catalog unavailable")


@router.post("/resolve-day", response_model=DayResolution)
async def resolve_day(
    request: ResolveDayRequest,
    resolver: SlotResolver = Depends(get_slot_resolver),
) -> DayResolution:
    """Resolve an ordered list of slots for one workout day."""
    try:
        return await resolver.resolve_day(
            request.preset_id,
            request.day_index,
            request.slots,
            request.equipment,
        )
    except (CatalogLoadError, SQLAlchemyError):
        logger.exception("Day resolution failed for preset %s", request.preset_id)
        raise HTTPException(status_code=503, detail="Exercise catalog unavailable")


@router.post("/{preset_id}/days/{day_index}/resolve", response_model=DayResolution)
async def resolve_preset_day(
    preset_id: str,
    day_index: int,
    equipment: list[str] | None = Body(default=None),
    resolver: SlotResolver = Depends(get_slot_resolver),
) -> DayResolution:
    """
    Resolve one day of a configured preset.

    Args:
        preset_id: Configured preset id
        day_index: Zero-based day within the preset
        equipment: Available equipment (defaults to the preset's own list)

    Raises:
        HTTPException: 404 if the preset or day does not exist
    """
    try:
        preset = get_preset(preset_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Preset not found")

    if day_index < 0 or day_index >= len(preset.days):
        raise HTTPException(status_code=404, detail="Preset day not found")

    available = preset.equipment if equipment is None else equipment
    try:
        return await resolver.resolve_day(preset.id, day_index, preset.days[day_index].slots, available)
    except (CatalogLoadError, SQLAlchemyError):
        logger.exception("Day resolution failed for preset %s", preset_id)
        raise HTTPException(status_code=503, detail="Exercise catalog unavailable")
