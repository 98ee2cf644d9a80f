from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
import asyncio
import logging

from imagepress.core.config import Settings
from imagepress.services.job_service import JobService
from imagepress.services.storage_service import StorageService

@dataclass
class CleanupReport:
    files_cleaned: int
    jobs_cleaned: int

def seconds_until_next_tick(now: datetime, interval_minutes: int) -> float:
    """Delay until the next `*/interval_minutes * * * *` cron slot after `now`."""
    interval_minutes = max(1, interval_minutes)
    hour_start = now.replace(minute=0, second=0, microsecond=0)
    next_minute = (now.minute // interval_minutes + 1) * interval_minutes
    if next_minute >= 60:
        target = hour_start + timedelta(hours=1)
    else:
        target = hour_start + timedelta(minutes=next_minute)
    return (target - now).total_seconds()

class CleanupService:
    def __init__(
        self,
        settings: Settings,
        job_service: JobService,
        storage_service: StorageService,
        logger: Optional[logging.Logger] = None
    ):
        self.settings = settings
        self.job_service = job_service
        self.storage_service = storage_service
        self.logger = logger if logger else logging.getLogger("cleanup_service")
        self.is_running = False
        self._ticker: Optional[asyncio.Task] = None
        self._initial: Optional[asyncio.Task] = None
        self._sweep: Optional[asyncio.Task] = None

    def start(self):
        if self._ticker:
            self.logger.warning("Cleanup service is already running")
            return

        self._ticker = asyncio.create_task(self._tick_forever())
        self._initial = asyncio.create_task(self._initial_cleanup())
        self.logger.info(f"Cleanup service started (runs every {self.settings.CLEANUP_INTERVAL} minutes)")

    async def _initial_cleanup(self):
        await asyncio.sleep(self.settings.INITIAL_CLEANUP_DELAY)
        self._spawn_sweep()

    async def _tick_forever(self):
        while True:
            await asyncio.sleep(seconds_until_next_tick(datetime.now(), self.settings.CLEANUP_INTERVAL))
            self._spawn_sweep()

    def _spawn_sweep(self):
        # Sweeps run outside the scheduling tasks so stop() never cancels one mid-way
        if self._sweep and not self._sweep.done():
            self.logger.debug("Cleanup already in progress, skipping...")
            return
        self._sweep = asyncio.create_task(self.cleanup())

    async def cleanup(self) -> Optional[CleanupReport]:
        if self.is_running:
            self.logger.debug("Cleanup already in progress, skipping...")
            return None

        self.is_running = True
        self.logger.info("Starting cleanup...")
        ttl = self.settings.FILE_TTL
        files_cleaned = 0
        jobs_cleaned = 0

        try:
            try:
                files_cleaned = await self.storage_service.cleanup_expired(ttl)
            except Exception as e:
                self.logger.error(f"Cleanup of job directories failed: {e}", exc_info=True)

            try:
                jobs_cleaned = self.job_service.cleanup_old_jobs(ttl)
            except Exception as e:
                self.logger.error(f"Cleanup of in-memory jobs failed: {e}", exc_info=True)

            if files_cleaned > 0 or jobs_cleaned > 0:
                self.logger.info(f"Cleanup completed: {files_cleaned} file jobs, {jobs_cleaned} memory jobs")
            else:
                self.logger.debug("Cleanup completed: nothing to clean")

            return CleanupReport(files_cleaned=files_cleaned, jobs_cleaned=jobs_cleaned)
        finally:
            self.is_running = False

    async def stop(self):
        for task in (self._ticker, self._initial):
            if task and not task.done():
                task.cancel()

        if self._ticker:
            self._ticker = None
            self._initial = None
            self.logger.info("Cleanup service stopped")

        if self._sweep and not self._sweep.done():
            await self._sweep

    async def run_now(self) -> Optional[CleanupReport]:
        return await self.cleanup()
