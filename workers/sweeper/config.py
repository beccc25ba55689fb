# workers/sweeper/config.py
"""
Configuration for the stale import sweeper.
"""
from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass
class SweeperConfig:
    """Configuration for the stale import sweeper."""

    # How often the ledger is scanned
    sweep_interval_seconds: int = int(os.getenv("SWEEPER_INTERVAL_SECONDS", "60"))

    # PROCESSING jobs untouched for longer than this are failed
    stale_job_minutes: int = int(os.getenv("STALE_JOB_MINUTES", "15"))

    # 0 = run until signalled
    max_sweeps: int = int(os.getenv("SWEEPER_MAX_SWEEPS", "0"))

    # Supabase (inherited from env)
    supabase_url: str = os.getenv("SUPABASE_URL", "")
    supabase_key: str = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if not self.supabase_url:
            errors.append("SUPABASE_URL is required")
        if not self.supabase_key:
            errors.append("SUPABASE_SERVICE_ROLE_KEY is required")
        if self.sweep_interval_seconds <= 0:
            errors.append("SWEEPER_INTERVAL_SECONDS must be positive")
        if self.stale_job_minutes <= 0:
            errors.append("STALE_JOB_MINUTES must be positive")

        return errors


def get_config() -> SweeperConfig:
    """Get sweeper configuration from environment."""
    return SweeperConfig()
