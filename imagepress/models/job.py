from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, List, Optional
import math
import uuid

class JobStatus(str, Enum):
    CREATED = "created"
    UPLOADING = "uploading"
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})

# failed is reachable from every non-terminal status
ALLOWED_TRANSITIONS: Dict[JobStatus, frozenset] = {
    JobStatus.CREATED: frozenset({JobStatus.UPLOADING, JobStatus.FAILED}),
    JobStatus.UPLOADING: frozenset({JobStatus.UPLOADED, JobStatus.FAILED}),
    JobStatus.UPLOADED: frozenset({JobStatus.PROCESSING, JobStatus.FAILED}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}

def can_transition(current: JobStatus, new: JobStatus) -> bool:
    return new in ALLOWED_TRANSITIONS[JobStatus(current)]

def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))

def reduction_percent(original_size: int, compressed_size: int) -> int:
    if original_size <= 0:
        return 0
    return round_half_up((original_size - compressed_size) / original_size * 100)

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

@dataclass(frozen=True)
class UploadedFile:
    filename: str
    size: int

@dataclass(frozen=True)
class ProcessedFile:
    filename: str
    original_size: int
    compressed_size: int
    reduction: int

@dataclass(frozen=True)
class JobSnapshot:
    job_id: str
    status: JobStatus
    progress: int
    total_files: int
    processed_count: int
    original_size: int
    compressed_size: int
    reduction: int
    settings: Optional[Dict[str, Any]]
    summary: Optional[Dict[str, Any]]
    created_at: datetime
    updated_at: datetime
    error: Optional[str]

class Job:
    def __init__(self):
        self.id = str(uuid.uuid4())
        self.status = JobStatus.CREATED
        self.uploaded_files: List[UploadedFile] = []
        self.processed_files: List[ProcessedFile] = []
        self.settings = None
        self.progress = 0
        self.total_files = 0
        self.processed_count = 0
        self.original_size = 0
        self.compressed_size = 0
        self.error: Optional[str] = None
        self.summary: Optional[Dict[str, Any]] = None
        self.created_at = utcnow()
        self.updated_at = self.created_at

    def touch(self):
        self.updated_at = utcnow()

    def set_status(self, status: JobStatus, error: Optional[str] = None):
        self.status = JobStatus(status)
        if error is not None:
            self.error = error
        self.touch()

    def add_uploaded_file(self, filename: str, size: int):
        self.uploaded_files.append(UploadedFile(filename, size))
        self.total_files = len(self.uploaded_files)
        self.original_size += size
        self.touch()

    def add_processed_file(self, filename: str, original_size: int, compressed_size: int):
        self.processed_files.append(ProcessedFile(
            filename=filename,
            original_size=original_size,
            compressed_size=compressed_size,
            reduction=reduction_percent(original_size, compressed_size)
        ))
        self.compressed_size += compressed_size
        self.touch()

    def update_progress(self, processed_count: int, total_files: int):
        progress = round_half_up(processed_count / total_files * 100) if total_files > 0 else 0
        self.processed_count = max(self.processed_count, processed_count)
        self.progress = max(self.progress, min(progress, 100))
        self.touch()

    def set_result(self, summary: Dict[str, Any]):
        self.summary = summary
        self.touch()

    def age_seconds(self, now: Optional[datetime] = None) -> float:
        now = now or utcnow()
        return (now - self.updated_at).total_seconds()

    def snapshot(self) -> JobSnapshot:
        return JobSnapshot(
            job_id=self.id,
            status=self.status,
            progress=self.progress,
            total_files=self.total_files,
            processed_count=self.processed_count,
            original_size=self.original_size,
            compressed_size=self.compressed_size,
            reduction=reduction_percent(self.original_size, self.compressed_size),
            settings=self.settings.model_dump() if self.settings is not None else None,
            summary=dict(self.summary) if self.summary is not None else None,
            created_at=self.created_at,
            updated_at=self.updated_at,
            error=self.error
        )
