#!/usr/bin/env python3
"""
Fantasy Leaderboard Refresh Service - Main Entry Point

Polls OpenDota for tournament matches, caches them in Supabase, locks lineups
when each day's lock hour passes and republishes the affected leaderboards.
"""

import asyncio
import logging
import signal
import sys
from pathlib import Path

# Load .env from backend directory before Config() is used
from dotenv import load_dotenv
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from config import Config
from refresh.orchestrator import RefreshOrchestrator
from utils.logger import setup_logging

logger = logging.getLogger(__name__)


class LeaderboardRefreshService:
    """Main service class for match ingestion and leaderboard refresh."""

    def __init__(self, config: Config = None):
        self.config = config or Config()
        self.orchestrator = None
        self.running = False

    async def start(self):
        """Start the refresh service."""
        logger.info("Starting Leaderboard Refresh Service", extra={
            "version": "1.0.0",
            "environment": self.config.environment
        })

        try:
            self.orchestrator = RefreshOrchestrator(self.config)
            await self.orchestrator.initialize()

            # Set up signal handlers for graceful shutdown
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, self._handle_shutdown, sig)

            self.running = True

            await self.orchestrator.run()

        except Exception as e:
            logger.error("Fatal error in refresh service", extra={
                "error": str(e),
                "error_type": type(e).__name__
            }, exc_info=True)
            raise

    def _handle_shutdown(self, signum):
        """Handle shutdown signals gracefully."""
        logger.info("Received shutdown signal", extra={"signal": signum})
        self.running = False
        if self.orchestrator:
            asyncio.create_task(self.orchestrator.shutdown())


async def main():
    """Main entry point."""
    config = Config()
    setup_logging(config)

    service = LeaderboardRefreshService(config)
    try:
        await service.start()
    except KeyboardInterrupt:
        logger.info("Service interrupted by user")
    except Exception as e:
        logger.error("Service crashed", extra={"error": str(e)}, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
