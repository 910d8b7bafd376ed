"""
Import menu feed JSON files into the database.

Usage:
    python import_menus.py                 # every *.json in MENU_DATA_DIR
    python import_menus.py data/2025-11-21-lunch.json data/...
    python import_menus.py --dir ./feeds
"""
import argparse
import asyncio
import sys
from pathlib import Path

from cafeteria.config import get_settings
from cafeteria.database import engine, Base, AsyncSessionLocal
from cafeteria.models import *  # noqa: F401,F403 - Import all models to register them
from cafeteria.services.menu_importer import MenuImporter

settings = get_settings()


async def run(files: list[str], directory: str) -> int:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        importer = MenuImporter(session)
        if files:
            batch = await importer.import_files(files)
        else:
            batch = await importer.import_directory(directory)

    await engine.dispose()

    for report in batch.documents:
        print(
            f"{report.menu_date} {report.location} {report.period}: "
            f"{report.menu_items_created} new, {report.menu_items_existing} existing, "
            f"{len(report.failures)} skipped"
        )
    for failure in batch.failures:
        print(f"FAILED {failure.path}: {failure.error}")
    print(f"All imports complete: {batch.succeeded} imported, {batch.failed} failed")

    return 1 if batch.failed else 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Import cafeteria menu feeds")
    parser.add_argument("files", nargs="*", help="Feed files to import (default: every *.json in --dir)")
    parser.add_argument("--dir", default=settings.MENU_DATA_DIR, help="Directory of feed files")
    args = parser.parse_args()

    if not args.files and not Path(args.dir).is_dir():
        print(f"Error: Directory not found: {args.dir}")
        return 1

    return asyncio.run(run(args.files, args.dir))


if __name__ == "__main__":
    sys.exit(main())
