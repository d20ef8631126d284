#!/usr/bin/env python3
"""
Recompute and republish one tournament day's leaderboard.

Use this after fixing cached match data or a tournament rulebook. Reads the
day's complete matches and locked lineups and replaces the leaderboard row.

Usage:
    python3 scripts/rescore_day.py --tid ti2025 --date 20250911
    python3 scripts/rescore_day.py --tid ti2025 --date 20250911 --no-names  # skip provider name lookups
"""

import argparse
import asyncio
import sys
import time
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv(Path(__file__).parent.parent / ".env")

# Add src directory to path
backend_dir = Path(__file__).parent.parent
src_dir = backend_dir / "src"
sys.path.insert(0, str(src_dir))

from config import Config
from database.supabase_client import SupabaseClient
from opendota_api.client import OpenDotaAPIClient
from refresh.leaderboard import DayAggregator
from refresh.players import PlayerNameResolver
from utils.lock_gate import is_valid_date_key
from utils.logger import setup_logging


async def rescore_day(tid: str, date_key: str, resolve_names: bool = True):
    """Rebuild the leaderboard for (tid, date_key) and print it."""
    config = Config()
    setup_logging(config)

    if not is_valid_date_key(date_key):
        print(f"❌ Invalid date key {date_key!r} (expected YYYYMMDD)")
        sys.exit(2)

    db_client = SupabaseClient(config)
    api_client = OpenDotaAPIClient(config) if resolve_names else None
    aggregator = DayAggregator(db_client, PlayerNameResolver(api_client, db_client))

    start = time.perf_counter()
    try:
        print(f"🔄 Rescoring {tid} {date_key}...\n")
        entries = await aggregator.score_day(tid, date_key)
        for rank, entry in enumerate(entries, start=1):
            print(f"{rank:>3}. {entry.display_name:<24} {entry.total_points:>8.2f}")
        print(f"\n✅ {len(entries)} entries published in {time.perf_counter() - start:.1f}s.")
    except Exception as e:
        print(f"\n❌ Error: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)
    finally:
        if api_client:
            await api_client.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Recompute one tournament day's leaderboard.")
    parser.add_argument("--tid", required=True, help="Tournament id")
    parser.add_argument("--date", required=True, metavar="YYYYMMDD", help="UTC day key")
    parser.add_argument(
        "--no-names",
        action="store_true",
        help="Do not call OpenDota for player names (use match rows and the players cache only)",
    )
    args = parser.parse_args()
    asyncio.run(rescore_day(args.tid, args.date, resolve_names=not args.no_names))
