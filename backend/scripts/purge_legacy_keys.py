#!/usr/bin/env python3
"""
Migration: Remove legacy unscoped employer keys from key-value storage.

Older dashboards stored employer preferences under keys shared by every
account (employer_logo_url, employer_dashboard_tab, ...), which let one
employer's state bleed into the next session. The conversation store purges
them on initialization; this script does the same for a whole deployment
without waiting for a dashboard to load.

Usage:
    # Report which legacy keys exist
    python scripts/purge_legacy_keys.py --dry-run

    # Delete them
    python scripts/purge_legacy_keys.py

    # Against a specific Redis
    python scripts/purge_legacy_keys.py --redis-url redis://cache:6379/0
"""

import asyncio
import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, Optional

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.config import get_settings
from app.services.conversations import LEGACY_UNSCOPED_KEYS
from app.services.storage import KeyValueStorage

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


async def purge(storage: KeyValueStorage, dry_run: bool = False) -> Dict[str, int]:
    """
    Find and (unless dry_run) delete the legacy keys.

    Returns:
        {"found": n, "deleted": m}
    """
    found = 0
    for key in LEGACY_UNSCOPED_KEYS:
        if await storage.exists(key):
            found += 1
            logger.info(f"  legacy key present: {key}")

    if dry_run or not found:
        return {"found": found, "deleted": 0}

    deleted = await storage.delete(*LEGACY_UNSCOPED_KEYS)
    return {"found": found, "deleted": deleted}


async def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Remove legacy unscoped employer keys")
    parser.add_argument("--redis-url", help="Redis URL (defaults to REDIS_URL setting)")
    parser.add_argument("--dry-run", action="store_true", help="Report only, delete nothing")

    args = parser.parse_args(argv)

    storage = KeyValueStorage(redis_url=args.redis_url or get_settings().redis_url)
    try:
        if not await storage.health_check():
            logger.error("Storage unreachable, nothing purged")
            return 1

        result = await purge(storage, dry_run=args.dry_run)

        print("\n=== Legacy Key Purge ===")
        print(f"Legacy keys found: {result['found']}")
        print(f"Legacy keys deleted: {result['deleted']}")
        return 0
    finally:
        await storage.close()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
