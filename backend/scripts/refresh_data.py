#!/usr/bin/env python3
"""
Script to manually trigger one refresh cycle.

This will:
1. Ingest new matches for every configured tournament
2. Rescore the days that gained a complete match
3. Optionally lock due lineups and purge old matches

Usage:
    python3 scripts/refresh_data.py
    python3 scripts/refresh_data.py --tid ti2025 --with-lock-sweep --with-retention
"""

import argparse
import asyncio
import sys
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv(Path(__file__).parent.parent / ".env")

# Add src directory to path
backend_dir = Path(__file__).parent.parent
src_dir = backend_dir / "src"
sys.path.insert(0, str(src_dir))

from config import Config
from refresh.orchestrator import RefreshOrchestrator
from utils.logger import setup_logging


async def refresh_data(tournament_ids=None, lock_sweep: bool = False, retention: bool = False):
    """Run a single refresh cycle."""
    config = Config()
    setup_logging(config)
    if tournament_ids:
        config.tournament_ids = tournament_ids

    orchestrator = RefreshOrchestrator(config)

    print("🔄 Initializing refresh orchestrator...\n")

    try:
        await orchestrator.initialize()

        print("✅ Orchestrator initialized")

        if lock_sweep:
            locked = await orchestrator.run_lock_sweep()
            print(f"🔒 Locked {locked} lineups")

        print("🔄 Running ingest cycle...\n")
        summary = await orchestrator.run_ingest_cycle()
        print(
            f"📊 Fetched {summary['fetched']}, skipped {summary['skipped']}, "
            f"failed {summary['failed']}"
        )
        for tid, date_key in summary["rescored"]:
            print(f"   rescored {tid} {date_key}")

        if retention:
            deleted = orchestrator.run_retention()
            print(f"🧹 Purged {deleted} old matches")

        print("\n✅ Refresh cycle completed successfully!")

    except Exception as e:
        print(f"\n❌ Error during refresh cycle: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)

    finally:
        await orchestrator.shutdown()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run one ingest cycle.")
    parser.add_argument(
        "--tid",
        action="append",
        help="Tournament id to ingest (repeatable; defaults to TOURNAMENT_IDS)",
    )
    parser.add_argument("--with-lock-sweep", action="store_true", help="Lock due lineups first")
    parser.add_argument("--with-retention", action="store_true", help="Purge matches past retention")
    args = parser.parse_args()
    asyncio.run(refresh_data(args.tid, args.with_lock_sweep, args.with_retention))
