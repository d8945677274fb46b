"""Deterministic pseudo-random picks keyed by integer seeds."""
from __future__ import annotations

import math
from dataclasses import dataclass


def seeded_random(seed: int) -> float:
    """
    Map a seed to a value in [0, 1).

    Same seed, same value, across processes and runs; no external entropy.

    Example:
        >>> seeded_random(1) == seeded_random(1)
        True
    """
    x = math.sin(seed) * 10000
    return x - math.floor(x)


def pick_index(seed: int, count: int) -> int:
    """Select one of ``count`` equally eligible candidates."""
    if count < 1:
        raise ValueError(f"count must be at least 1, got {count}")
    return min(math.floor(seeded_random(seed) * count), count - 1)


def base_seed(preset_id: str, day_index: int, slot_index: int) -> int:
    """Seed for one slot: preset id character codes plus day and slot position."""
    return sum(ord(ch) for ch in preset_id) + day_index * 1000 + slot_index


@dataclass(frozen=True)
class SeededSequence:
    """
    Base seed of one slot plus the fixed offsets used by each resolution stage.

    The offsets keep picks of different stages decorrelated while staying
    reproducible for the same preset, day and slot.
    """

    KEYWORD = 0
    PATTERN = 100
    BROAD_KEYWORD = 200
    BROAD_ANY = 300

    seed: int

    @classmethod
    def for_slot(cls, preset_id: str, day_index: int, slot_index: int) -> "SeededSequence":
        return cls(base_seed(preset_id, day_index, slot_index))

    def next(self, offset: int = 0) -> float:
        return seeded_random(self.seed + offset)

    def pick_index(self, count: int, offset: int = 0) -> int:
        return pick_index(self.seed + offset, count)
