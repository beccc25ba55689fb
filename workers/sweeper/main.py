from __future__ import annotations

import logging
import signal
import sys
import threading

from recipe_importer.app.domain.errors import WorkerConfigurationError
from recipe_importer.app.infra.db.base import ImportJobRepository
from workers.sweeper.config import SweeperConfig, get_config

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("sweeper-worker")


class SweeperWorker:
    """Periodically fails import jobs stuck in PROCESSING or PENDING after a crash or restart."""

    def __init__(self, config: SweeperConfig, job_repository: ImportJobRepository | None = None):
        self.config = config
        self.job_repo = job_repository
        self.running = False
        self.sweeps_done = 0
        self.jobs_released = 0
        self._stop_event = threading.Event()

    def start(self) -> None:
        self._validate_configuration()
        if self.job_repo is None:
            self.job_repo = create_default_repository(self.config)
        self._setup_signal_handlers()
        logger.info(
            "Starting stale import sweeper: interval=%ds, stale_after=%dmin",
            self.config.sweep_interval_seconds,
            self.config.stale_job_minutes,
        )
        self.running = True
        self._run_main_loop()
        logger.info(
            "Sweeper shutdown complete: sweeps=%d, jobs_released=%d",
            self.sweeps_done,
            self.jobs_released,
        )

    def _validate_configuration(self) -> None:
        errors = self.config.validate()
        if errors:
            raise WorkerConfigurationError(errors)

    def _setup_signal_handlers(self) -> None:
        signal.signal(signal.SIGTERM, self._handle_shutdown_signal)
        signal.signal(signal.SIGINT, self._handle_shutdown_signal)

    def _run_main_loop(self) -> None:
        while self.running:
            self.sweep_once()

            if self._reached_max_sweeps():
                break

            self._stop_event.wait(self.config.sweep_interval_seconds)

    def sweep_once(self) -> int:
        released = self.job_repo.release_stale_jobs(
            stale_after_minutes=self.config.stale_job_minutes,
        )
        self.sweeps_done += 1
        self.jobs_released += released

        if released > 0:
            logger.warning("Failed %d stale import jobs", released)
        else:
            logger.debug("No stale import jobs found")
        return released

    def _reached_max_sweeps(self) -> bool:
        if self.config.max_sweeps <= 0:
            return False
        return self.sweeps_done >= self.config.max_sweeps

    def _handle_shutdown_signal(self, signum: int, frame: object) -> None:
        logger.info("Received shutdown signal %d", signum)
        self.stop()

    def stop(self) -> None:
        self.running = False
        self._stop_event.set()


def create_default_repository(config: SweeperConfig) -> ImportJobRepository:
    from supabase import create_client

    from recipe_importer.app.infra.db.supabase_jobs_repo import SupabaseImportJobRepository

    return SupabaseImportJobRepository(create_client(config.supabase_url, config.supabase_key))


def main() -> None:
    worker = SweeperWorker(config=get_config())
    worker.start()


if __name__ == "__main__":
    main()
