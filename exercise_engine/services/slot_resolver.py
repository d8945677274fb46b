"""Resolve preset workout slots to concrete catalog exercises.

Each slot walks a fixed fallback chain and stops at the first stage that
yields an equipment-compatible candidate:

1. keyword pass   - each explicit slot keyword, in priority order
2. pattern pass   - the slot pattern, its label, then its coarse movement group
3. broad pass     - whole catalog narrowed by keyword-in-name, else anything usable
4. placeholder    - synthetic unresolved entry the user must fill in manually

Picks among equally eligible candidates are seeded by preset, day and slot so
the same inputs always produce the same exercise.
"""
from __future__ import annotations

import logging
from typing import Iterable, Sequence

from exercise_engine.models.schemas import DayResolution, ExerciseRecord, ResolvedExercise, WorkoutSlot
from exercise_engine.services.equipment import matches_equipment
from exercise_engine.services.exercise_catalog import CatalogProvider
from exercise_engine.services.fuzzy import DEFAULT_FUZZY_WEIGHT, search_exercises
from exercise_engine.services.normalize import normalize_search_term
from exercise_engine.services.seeded import SeededSequence


logger = logging.getLogger(__name__)

# Checked in order; the first key contained in the text wins.
EXERCISE_GROUP_KEYWORDS: tuple[tuple[str, str], ...] = (
    # Squat variations
    ("squat", "legs"),
    ("goblet", "legs"),
    ("leg press", "legs"),
    ("lunge", "legs"),
    ("bulgarian", "legs"),
    ("split squat", "legs"),
    # Push variations
    ("push", "push"),
    ("press", "push"),
    ("bench", "chest"),
    ("dumbbell press", "chest"),
    ("incline", "chest"),
    ("overhead", "shoulders"),
    ("ohp", "shoulders"),
    ("dip", "chest"),
    ("pushup", "chest"),
    ("floor press", "chest"),
    # Pull variations
    ("pull", "pull"),
    ("row", "back"),
    ("bent over", "back"),
    ("pullup", "back"),
    ("lat", "back"),
    ("chin up", "back"),
    ("pull-apart", "back"),
    ("inverted row", "back"),
    # Hinge
    ("hinge", "posterior"),
    ("deadlift", "posterior"),
    ("romanian", "posterior"),
    ("rdl", "posterior"),
    # Lateral
    ("lateral", "shoulders"),
    ("side raise", "shoulders"),
    # Arms
    ("bicep", "biceps"),
    ("curl", "biceps"),
    ("tricep", "triceps"),
    ("extension", "triceps"),
    ("skullcrusher", "triceps"),
    ("pushdown", "triceps"),
    # Core
    ("core", "core"),
    ("plank", "core"),
    ("crunch", "core"),
    ("ab", "core"),
    ("dead bug", "core"),
    ("mountain climber", "core"),
    ("russian twist", "core"),
    ("leg raise", "core"),
    ("hanging leg raise", "core"),
    # Glutes
    ("glute", "glutes"),
    ("hip thrust", "glutes"),
    ("bridge", "glutes"),
    ("pullthrough", "glutes"),
    # Calves
    ("calve", "calves"),
    # Traps and rear delts
    ("trap", "shoulders"),
    ("traps", "shoulders"),
    ("shrug", "shoulders"),
    ("face pull", "shoulders"),
    ("rear delt", "shoulders"),
)

BODY_PART_GROUPS = ("chest", "back", "shoulders", "biceps", "triceps", "legs", "core", "glutes", "calves")

DEFAULT_GROUP = "other"


def get_exercise_group_for_keyword(keyword: str | None) -> str:
    """
    Map a movement pattern to a coarse exercise group.

    Example:
        >>> get_exercise_group_for_keyword("Goblet Squat")
        'legs'
        >>> get_exercise_group_for_keyword("")
        'other'
    """
    keyword_lower = (keyword or "").lower()
    if not keyword_lower.strip():
        return DEFAULT_GROUP

    for key, group in EXERCISE_GROUP_KEYWORDS:
        if key in keyword_lower:
            return group

    for body_part in BODY_PART_GROUPS:
        if body_part in keyword_lower:
            return body_part

    return DEFAULT_GROUP


def placeholder_exercise(slot: WorkoutSlot, preset_id: str, day_index: int, slot_index: int) -> ResolvedExercise:
    """Synthetic unresolved entry for a slot nothing in the catalog can fill."""
    return ResolvedExercise(
        exercise_id=f"placeholder-{preset_id}-{day_index}-{slot_index}",
        exercise_name=f"{slot.label} (Select an exercise)",
        unresolved=True,
    )


def _as_resolved(exercise: ExerciseRecord) -> ResolvedExercise:
    return ResolvedExercise(exercise_id=exercise.id, exercise_name=exercise.name)


class SlotResolver:
    """Resolve slots against a catalog provider."""

    def __init__(self, catalog: CatalogProvider, fuzzy_weight: float = DEFAULT_FUZZY_WEIGHT):
        self.catalog = catalog
        self.fuzzy_weight = fuzzy_weight

    async def _ranked_candidates(self, keyword: str, equipment: Sequence[str]) -> list[ExerciseRecord]:
        exercises = await self.catalog.search_all(keyword)
        ranked = search_exercises(exercises, keyword, fuzzy_weight=self.fuzzy_weight)
        return [exercise for exercise in ranked if matches_equipment(exercise, equipment)]

    async def _first_match(
        self,
        keywords: Iterable[str],
        equipment: Sequence[str],
        sequence: SeededSequence,
        offset: int,
    ) -> ExerciseRecord | None:
        for keyword in keywords:
            if not keyword or not keyword.strip():
                continue
            candidates = await self._ranked_candidates(keyword, equipment)
            if candidates:
                return candidates[sequence.pick_index(len(candidates), offset)]
        return None

    async def resolve_slot(
        self,
        slot: WorkoutSlot,
        preset_id: str,
        day_index: int,
        slot_index: int,
        equipment: Sequence[str] = (),
    ) -> ResolvedExercise:
        """
        Resolve one slot to a catalog exercise or a placeholder.

        Args:
            slot: Slot template to fill
            preset_id: Preset the slot belongs to (part of the seed)
            day_index: Day position within the preset
            slot_index: Slot position within the day
            equipment: Available equipment; empty means unconstrained

        Returns:
            ResolvedExercise; ``unresolved`` is set for placeholders

        Catalog errors propagate unchanged.
        """
        await self.catalog.initialize()

        equipment = list(equipment)
        sequence = SeededSequence.for_slot(preset_id, day_index, slot_index)

        # Step 1: explicit keywords, highest priority first
        exercise = await self._first_match(slot.keywords, equipment, sequence, SeededSequence.KEYWORD)
        if exercise is not None:
            logger.debug("Slot %s/%d/%d resolved by keyword: %s", preset_id, day_index, slot_index, exercise.id)
            return _as_resolved(exercise)

        # Step 2: pattern, label, then movement group
        group = get_exercise_group_for_keyword(slot.pattern)
        exercise = await self._first_match(
            [slot.pattern, slot.label, group], equipment, sequence, SeededSequence.PATTERN
        )
        if exercise is not None:
            logger.debug(
                "Slot %s/%d/%d resolved by pattern group %r: %s",
                preset_id, day_index, slot_index, group, exercise.id,
            )
            return _as_resolved(exercise)

        # Step 3: anything usable, preferring names that overlap a keyword
        usable = [ex for ex in await self.catalog.search_all("") if matches_equipment(ex, equipment)]
        if usable:
            keywords = [kw for kw in (normalize_search_term(k) for k in slot.keywords) if kw]
            named = [
                ex
                for ex in usable
                if any(
                    kw in normalize_search_term(ex.name) or normalize_search_term(ex.name) in kw
                    for kw in keywords
                )
            ]
            if named:
                exercise = named[sequence.pick_index(len(named), SeededSequence.BROAD_KEYWORD)]
            else:
                exercise = usable[sequence.pick_index(len(usable), SeededSequence.BROAD_ANY)]
            logger.debug("Slot %s/%d/%d resolved by broad fallback: %s", preset_id, day_index, slot_index, exercise.id)
            return _as_resolved(exercise)

        # Step 4: nothing fits
        logger.info(
            "No exercise found for slot %r (%s/%d/%d, equipment=%s)",
            slot.label, preset_id, day_index, slot_index, equipment,
        )
        return placeholder_exercise(slot, preset_id, day_index, slot_index)

    async def resolve_day(
        self,
        preset_id: str,
        day_index: int,
        slots: Sequence[WorkoutSlot],
        equipment: Sequence[str] = (),
    ) -> DayResolution:
        """Resolve a day's slots one after another, in index order."""
        resolved: list[ResolvedExercise] = []
        unresolved_count = 0

        for slot_index, slot in enumerate(slots):
            result = await self.resolve_slot(slot, preset_id, day_index, slot_index, equipment)
            if result.unresolved:
                unresolved_count += 1
            resolved.append(result)

        return DayResolution(resolved=resolved, unresolved_count=unresolved_count)


async def resolve_workout_slot(
    catalog: CatalogProvider,
    slot: WorkoutSlot,
    preset_id: str,
    day_index: int,
    slot_index: int,
    equipment: Sequence[str] = (),
) -> ResolvedExercise:
    """Resolve a single slot with a one-off resolver."""
    return await SlotResolver(catalog).resolve_slot(slot, preset_id, day_index, slot_index, equipment)


async def resolve_workout_day(
    catalog: CatalogProvider,
    preset_id: str,
    day_index: int,
    slots: Sequence[WorkoutSlot],
    equipment: Sequence[str] = (),
) -> DayResolution:
    """Resolve an entire preset workout day."""
    return await SlotResolver(catalog).resolve_day(preset_id, day_index, slots, equipment)
