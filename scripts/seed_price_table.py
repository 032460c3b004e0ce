#!/usr/bin/env python
"""Script to load a price table into the price_configurations table.

This script:
1. Reads a price table from a JSON file
2. Validates it (well-formed ranges, unique card types, no overlapping ranges)
3. Upserts it under its config_key (defaults to PRICING_CONFIG_KEY)

Usage:
    python scripts/seed_price_table.py [path/to/price_table.json] [--dry-run]

Requirements:
    - SUPABASE_URL and SUPABASE_SECRET_KEY environment variables must be set
    - The price_configurations table must exist (see supabase/migrations)

Note:
    - Tiers are matched first-wins in file order, so overlaps are rejected here
      rather than silently shadowing a later tier.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

# Add the project root to the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.core.config import get_settings
from src.core.supabase import get_supabase_client
from src.schemas.pricing import PriceTable
from src.services.pricing_service import PricingService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

DEFAULT_TABLE_PATH = Path(__file__).parent.parent / "data" / "price_table.json"


def load_price_table(path: Path, config_key: str) -> PriceTable:
    """Read and validate a price table file.

    Args:
        path: JSON file with ``pricing_table`` (and optionally ``config_key``).
        config_key: Key used when the file does not name one.

    Returns:
        PriceTable: The validated table.

    Raises:
        ValueError: If the file is malformed or has overlapping ranges.
    """
    raw: dict[str, Any] = json.loads(path.read_text(encoding="utf-8"))
    raw.setdefault("config_key", config_key)

    try:
        table = PriceTable.model_validate(raw)
    except ValidationError as e:
        raise ValueError(f"Price table {path} is invalid:\n{e}") from e

    overlaps = table.find_overlaps()
    if overlaps:
        raise ValueError("Price table has overlapping ranges:\n" + "\n".join(overlaps))
    return table


def upsert_price_table(table: PriceTable) -> None:
    """Insert or replace the stored table with the same config_key."""
    client = get_supabase_client()
    client.table(PricingService.TABLE).upsert(
        table.model_dump(mode="json"),
        on_conflict="config_key",
    ).execute()


async def main() -> None:
    """Main entry point for the seed script."""
    parser = argparse.ArgumentParser(description="Load a price table into Supabase")
    parser.add_argument("path", nargs="?", type=Path, default=DEFAULT_TABLE_PATH)
    parser.add_argument("--dry-run", action="store_true", help="Validate only, do not write")
    args = parser.parse_args()

    settings = get_settings()

    try:
        table = load_price_table(args.path, settings.pricing_config_key)
    except (OSError, ValueError) as e:
        logger.error("Could not load price table: %s", e)
        sys.exit(1)

    tier_count = sum(len(rule.pricing) for rule in table.pricing_table)
    logger.info(
        "Validated %s: %d card types, %d tiers",
        table.config_key,
        len(table.pricing_table),
        tier_count,
    )

    if args.dry_run:
        logger.info("Dry run; nothing written")
        return

    upsert_price_table(table)
    logger.info("Price table %s stored", table.config_key)


if __name__ == "__main__":
    asyncio.run(main())
