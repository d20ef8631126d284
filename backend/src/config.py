"""
Configuration management for the fantasy leaderboard service.

Loads configuration from environment variables with sensible defaults.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class Config:
    """Application configuration."""

    # Environment
    environment: str = os.getenv("ENVIRONMENT", "development")

    # Supabase Configuration
    supabase_url: str = os.getenv("SUPABASE_URL", "")
    supabase_key: str = os.getenv("SUPABASE_KEY", "")
    supabase_service_key: Optional[str] = os.getenv("SUPABASE_SERVICE_KEY", None)

    # OpenDota API Configuration
    opendota_api_base_url: str = os.getenv("OPENDOTA_API_BASE_URL", "https://api.opendota.com/api")
    opendota_api_key: Optional[str] = os.getenv("OPENDOTA_API_KEY", None)
    request_timeout: float = float(os.getenv("REQUEST_TIMEOUT", "30.0"))

    # Rate Limiting (fixed delay between provider fetches, plus a per-minute ceiling)
    max_requests_per_minute: int = int(os.getenv("MAX_REQUESTS_PER_MINUTE", "60"))
    min_request_interval: float = float(os.getenv("MIN_REQUEST_INTERVAL", "1.0"))

    # Retry Configuration
    max_retries: int = int(os.getenv("MAX_RETRIES", "3"))
    retry_backoff_base: float = float(os.getenv("RETRY_BACKOFF_BASE", "1.0"))
    max_retry_delay: int = int(os.getenv("MAX_RETRY_DELAY", "60"))

    # Freshness guard: skip provider data that is likely still being written
    fresh_uncached_minutes: int = int(os.getenv("FRESH_UNCACHED_MINUTES", "10"))
    fresh_incomplete_minutes: int = int(os.getenv("FRESH_INCOMPLETE_MINUTES", "15"))
    # Look-back for ingest candidates and retention for cached matches (days)
    retention_days: int = int(os.getenv("RETENTION_DAYS", "2"))

    # Loop cadence (in seconds)
    ingest_interval: int = int(os.getenv("INGEST_INTERVAL", "300"))
    lock_sweep_interval: int = int(os.getenv("LOCK_SWEEP_INTERVAL", "3600"))
    retention_interval: int = int(os.getenv("RETENTION_INTERVAL", "86400"))

    # Tournaments polled by the ingest loop. Set TOURNAMENT_IDS (comma-separated).
    tournament_ids: List[str] = field(default_factory=list)

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_format: str = os.getenv("LOG_FORMAT", "json")  # json or text

    def validate(self):
        """Validate configuration."""
        errors = []

        if not self.supabase_url:
            errors.append("SUPABASE_URL is required")
        if not self.supabase_key:
            errors.append("SUPABASE_KEY is required")
        if self.min_request_interval < 0:
            errors.append("MIN_REQUEST_INTERVAL must be >= 0")
        if self.retention_days < 1:
            errors.append("RETENTION_DAYS must be >= 1")

        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")

        return True

    def __post_init__(self):
        """Validate after initialization."""
        if not self.tournament_ids:
            raw_list = os.getenv("TOURNAMENT_IDS")
            if raw_list:
                self.tournament_ids = [s.strip() for s in raw_list.split(",") if s.strip()]
        self.validate()
