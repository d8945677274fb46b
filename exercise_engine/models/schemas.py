"""Pydantic models describing catalog records, workout slots and API payloads."""
from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator


class Difficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class ForceType(str, Enum):
    PUSH = "push"
    PULL = "pull"
    STATIC = "static"


class MechanicsType(str, Enum):
    COMPOUND = "compound"
    ISOLATION = "isolation"


class ExerciseRecord(BaseModel):
    """Immutable catalog entry."""

    id: str
    name: str
    body_part: str
    category: str = "strength"
    equipment: list[str] = []
    target_muscles: list[str] = []
    synergist_muscles: list[str] = []
    stabilizer_muscles: list[str] = []
    difficulty: Difficulty = Difficulty.BEGINNER
    force_type: ForceType | None = None
    mechanics_type: MechanicsType | None = None
    instructions: list[str] = []

    class Config:
        frozen = True
        from_attributes = True


class CustomExerciseCreate(BaseModel):
    """Payload for adding a user-defined exercise to the catalog."""

    name: str = Field(min_length=1)
    body_part: str
    category: str = "strength"
    equipment: list[str] = ["body only"]
    target_muscles: list[str] = []
    synergist_muscles: list[str] = []
    difficulty: Difficulty = Difficulty.BEGINNER
    force_type: ForceType | None = None
    mechanics_type: MechanicsType | None = None
    instructions: list[str] = []


class RepRange(BaseModel):
    """Inclusive repetition range."""

    min: int = Field(ge=1)
    max: int = Field(ge=1)

    @model_validator(mode="after")
    def check_order(self) -> "RepRange":
        if self.min > self.max:
            raise ValueError("rep range min must not exceed max")
        return self


class WorkoutSlot(BaseModel):
    """Movement template supplied by a preset; read-only to the resolver."""

    label: str
    pattern: str = ""
    keywords: list[str] = []
    sets: int = Field(default=3, ge=1)
    reps: int | RepRange = 10
    rest_seconds: int | None = Field(default=None, ge=0)
    rir: int | None = Field(default=None, ge=0)
    optional: bool = False
    tempo: str | None = None

    @field_validator("pattern", mode="before")
    @classmethod
    def default_pattern(cls, value: str | None) -> str:
        return value or ""

    @field_validator("keywords", mode="before")
    @classmethod
    def default_keywords(cls, value: list[str] | None) -> list[str]:
        return value or []


class ResolvedExercise(BaseModel):
    """Outcome of resolving one slot: a catalog exercise or a placeholder."""

    exercise_id: str
    exercise_name: str
    unresolved: bool = False


class DayResolution(BaseModel):
    """Resolved exercises for one workout day, in slot order."""

    resolved: list[ResolvedExercise] = []
    unresolved_count: int = Field(default=0, ge=0)


# Preset Schemas
class WorkoutPresetDay(BaseModel):
    """A single day in a workout preset."""

    name: str
    focus: str = ""
    slots: list[WorkoutSlot] = []


class WorkoutPreset(BaseModel):
    """Pre-built program made of slot templates."""

    id: str
    title: str
    summary: str = ""
    tags: list[str] = []
    level: Difficulty = Difficulty.BEGINNER
    equipment: list[str] = []
    days: list[WorkoutPresetDay] = []


# API Schemas
class ResolveSlotRequest(BaseModel):
    """Schema for resolving a single slot."""

    slot: WorkoutSlot
    preset_id: str
    day_index: int = Field(ge=0)
    slot_index: int = Field(ge=0)
    equipment: list[str] = []


class ResolveDayRequest(BaseModel):
    """Schema for resolving an ordered list of slots."""

    preset_id: str
    day_index: int = Field(ge=0)
    slots: list[WorkoutSlot]
    equipment: list[str] = []


class ExerciseSearchResponse(BaseModel):
    """Schema for the exercise search API response."""

    query: str
    query_used: str
    was_relaxed: bool
    count: int
    results: list[ExerciseRecord] = []
