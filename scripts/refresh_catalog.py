"""
Cozy Cove — One-off Catalog Refresh

Fetches, normalizes and stores one or more curated categories without
starting the scheduler. Useful right after a deploy or when tuning keywords.

Usage:
    python scripts/refresh_catalog.py
    python scripts/refresh_catalog.py --category home-decor --category self-care
    python scripts/refresh_catalog.py --database-url sqlite+aiosqlite:///cozycove.db
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

# Resolve project root so this script can be run from any working directory
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.config import settings
from src.main import configure_logging, create_db_engine
from src.pipeline.aliexpress import AliExpressClient
from src.pipeline.ingest import refresh_catalog


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Refresh Cozy Cove catalog categories from AliExpress.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/refresh_catalog.py
  python scripts/refresh_catalog.py --category gifts-under-20
""",
    )
    parser.add_argument(
        "--category",
        action="append",
        choices=sorted(settings.CATALOG_CATEGORIES),
        help="Category key to refresh (repeatable, default: all categories).",
    )
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="Override DATABASE_URL for this run.",
    )
    return parser.parse_args()


async def run(categories: list[str] | None, database_url: str | None) -> int:
    engine, session_factory = await create_db_engine(database_url)
    try:
        async with session_factory() as session:
            async with AliExpressClient() as client:
                return await refresh_catalog(client, session, categories=categories)
    finally:
        await engine.dispose()


async def main() -> None:
    args = parse_args()
    configure_logging()

    if not settings.ALIEXPRESS_APP_KEY:
        print("ALIEXPRESS_APP_KEY is not set; nothing to fetch.", file=sys.stderr)
        sys.exit(1)

    categories = args.category or sorted(settings.CATALOG_CATEGORIES)
    print(f"Refreshing categories: {', '.join(categories)}")

    try:
        rowcount = await run(categories, args.database_url)
    except Exception as e:
        print(f"Catalog refresh failed: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Stored {rowcount} products.")


if __name__ == "__main__":
    asyncio.run(main())
