from typing import Dict, List, Optional
from datetime import datetime
import copy
import logging
import threading

from imagepress.core.exceptions import ConflictError
from imagepress.models.job import Job, JobSnapshot, JobStatus, TERMINAL_STATUSES, utcnow

class JobService:
    """In-memory job table.

    Every operation runs under one lock so no caller can observe a half
    applied update, and reads hand out copies so records are only ever
    changed through this service.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.RLock()
        self.logger = logger if logger else logging.getLogger("job_service")

    def create_job(self) -> Job:
        job = Job()
        with self._lock:
            self._jobs[job.id] = job
            created = copy.deepcopy(job)
        self.logger.info(f"Created new job: {job.id}")
        return created

    def get_job(self, job_id: str) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            return copy.deepcopy(job) if job else None

    def set_job_status(self, job_id: str, status: JobStatus, error: Optional[str] = None) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            if not job:
                self.logger.warning(f"Attempted to update non-existent job: {job_id}")
                return None
            job.set_status(status, error)
            updated = copy.deepcopy(job)
        self.logger.debug(f"Job {job_id} -> {updated.status.value}")
        return updated

    def set_job_settings(self, job_id: str, settings) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            if not job:
                return None
            if job.status == JobStatus.PROCESSING or job.status in TERMINAL_STATUSES:
                raise ConflictError(f"Cannot change settings of job in status: {job.status.value}")
            job.settings = settings
            job.touch()
            return copy.deepcopy(job)

    def add_uploaded_file(self, job_id: str, filename: str, size: int) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            if not job:
                return None
            job.add_uploaded_file(filename, size)
            return copy.deepcopy(job)

    def add_processed_file(self, job_id: str, filename: str, original_size: int, compressed_size: int) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            if not job:
                return None
            job.add_processed_file(filename, original_size, compressed_size)
            return copy.deepcopy(job)

    def update_progress(self, job_id: str, processed_count: int, total_files: int) -> Optional[Job]:
        # Liveness only. The pipeline writes `completed` after the archive exists.
        with self._lock:
            job = self._jobs.get(job_id)
            if not job:
                return None
            job.update_progress(processed_count, total_files)
            return copy.deepcopy(job)

    def set_job_result(self, job_id: str, summary: Dict) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            if not job:
                return None
            job.set_result(summary)
            return copy.deepcopy(job)

    def delete_job(self, job_id: str) -> bool:
        with self._lock:
            deleted = self._jobs.pop(job_id, None) is not None
        if deleted:
            self.logger.info(f"Deleted job from memory: {job_id}")
        return deleted

    def get_job_stats(self, job_id: str) -> Optional[JobSnapshot]:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.snapshot() if job else None

    def get_all_jobs(self) -> List[Job]:
        with self._lock:
            return [copy.deepcopy(job) for job in self._jobs.values()]

    def count(self) -> int:
        with self._lock:
            return len(self._jobs)

    def cleanup_old_jobs(self, max_age_seconds: float, now: Optional[datetime] = None) -> int:
        # Sweeper side of get_all_jobs + delete_job, decided and applied under one lock hold
        now = now or utcnow()
        with self._lock:
            to_remove = [
                job_id for job_id, job in self._jobs.items()
                if job.age_seconds(now) > max_age_seconds
            ]
            for job_id in to_remove:
                del self._jobs[job_id]
        if len(to_remove) > 0:
            self.logger.info(f"Removed {len(to_remove)} old job(s) from memory")
        return len(to_remove)
