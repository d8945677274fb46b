"""Resolve every day of a workout preset and print the chosen exercises."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from exercise_engine.logging_config import configure_logging
from exercise_engine.services.exercise_catalog import SqlExerciseCatalog
from exercise_engine.services.presets import load_presets
from exercise_engine.services.slot_resolver import SlotResolver


logger = logging.getLogger("scripts.resolve_preset")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Resolve preset workout slots to catalog exercises",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Resolve a preset with its own equipment list
  python scripts/resolve_preset.py full-body-beginner

  # Resolve with the equipment you actually have
  python scripts/resolve_preset.py upper-lower-barbell --equipment dumbbell bodyweight
        """
    )
    parser.add_argument("preset_id", help="Preset id from the presets file")
    parser.add_argument(
        "--equipment",
        nargs="*",
        help="Available equipment. Defaults to the preset's equipment."
    )
    parser.add_argument(
        "--presets",
        type=Path,
        help="Presets YAML file. Defaults to PRESETS_PATH."
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log catalog and resolver details at DEBUG level"
    )
    return parser.parse_args()


async def resolve_preset(preset_id: str, equipment: list[str] | None, presets_path: Path | None) -> int:
    """Resolve and log all days; returns the number of unresolved slots."""
    presets = load_presets(presets_path)
    if preset_id not in presets:
        logger.error("❌ Unknown preset %s. Available: %s", preset_id, ", ".join(presets))
        sys.exit(1)

    preset = presets[preset_id]
    available = preset.equipment if equipment is None else equipment
    resolver = SlotResolver(SqlExerciseCatalog())

    logger.info("🏋️  %s (equipment: %s)", preset.title, ", ".join(available) or "none")
    unresolved_total = 0
    for day_index, day in enumerate(preset.days):
        result = await resolver.resolve_day(preset.id, day_index, day.slots, available)
        unresolved_total += result.unresolved_count

        logger.info("%s", "=" * 50)
        logger.info("%s - %s", day.name, day.focus)
        for slot, resolved in zip(day.slots, result.resolved):
            marker = "⚠️ " if resolved.unresolved else "✅"
            logger.info("%s %-22s -> %s", marker, slot.label, resolved.exercise_name)

    return unresolved_total


def main() -> None:
    args = parse_args()
    configure_logging("DEBUG" if args.verbose else None)

    unresolved = asyncio.run(resolve_preset(args.preset_id, args.equipment, args.presets))
    if unresolved:
        logger.warning("%d slot(s) need manual exercise selection", unresolved)


if __name__ == "__main__":
    main()
