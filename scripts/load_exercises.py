"""Create the catalog tables and load the bundled exercise dataset."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from filelock import FileLock

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from exercise_engine.config import get_settings
from exercise_engine.database import init_db
from exercise_engine.logging_config import configure_logging
from exercise_engine.services.exercise_catalog import CatalogLoadError, SqlExerciseCatalog


logger = logging.getLogger("scripts.load_exercises")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Load the exercise catalog into the database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Load the bundled dataset (no-op when exercises already exist)
  python scripts/load_exercises.py

  # Load a different free-exercise-db export
  python scripts/load_exercises.py --data path/to/exercises.json --batch-size 250
        """
    )
    parser.add_argument(
        "--data",
        type=Path,
        help="JSON dataset to load. Defaults to EXERCISE_DATA_PATH."
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        help="Rows inserted per commit. Defaults to CATALOG_BATCH_SIZE."
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log catalog and resolver details at DEBUG level"
    )
    return parser.parse_args()


async def summarize_catalog(catalog: SqlExerciseCatalog) -> tuple[list[str], list[str]]:
    """Load the catalog and return its distinct body parts and equipment."""
    await catalog.initialize()
    return await catalog.get_all_body_parts(), await catalog.get_all_equipment()


def acquire_lock(lock_path: Path) -> FileLock:
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock = FileLock(str(lock_path))
    lock.acquire(timeout=0)
    return lock


def main() -> None:
    args = parse_args()

    configure_logging("DEBUG" if args.verbose else None)
    settings = get_settings()

    try:
        lock = acquire_lock(settings.catalog_lock_file)
    except TimeoutError:
        logger.error("❌ Another loader holds %s", settings.catalog_lock_file)
        sys.exit(1)

    try:
        init_db()
        catalog = SqlExerciseCatalog(data_path=args.data, batch_size=args.batch_size)
        body_parts, equipment = asyncio.run(summarize_catalog(catalog))
    except CatalogLoadError as exc:
        logger.error("❌ %s", exc)
        sys.exit(1)
    finally:
        lock.release()

    logger.info("✅ Catalog ready in %s", settings.database_url)
    logger.info("Body parts (%d): %s", len(body_parts), ", ".join(body_parts))
    logger.info("Equipment (%d): %s", len(equipment), ", ".join(equipment))


if __name__ == "__main__":
    main()
