from pydantic import BaseModel
from typing import Optional, Dict, Any, List
from datetime import datetime

class JobCreatedResponse(BaseModel):
    job_id: str
    message: str = "Job created successfully"

class UploadedFileInfo(BaseModel):
    filename: str
    size: int
    mimetype: Optional[str] = None

class UploadResponse(BaseModel):
    job_id: str
    files_uploaded: int
    total_size: int
    files: List[UploadedFileInfo]

class ProcessStartedResponse(BaseModel):
    job_id: str
    message: str = "Processing started"

class JobStatusResponse(BaseModel):
    job_id: str
    status: str
    progress: int = 0
    total_files: int = 0
    processed_count: int = 0
    original_size: int = 0
    compressed_size: int = 0
    reduction: int = 0
    settings: Optional[Dict[str, Any]] = None
    summary: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    created_at: datetime
    updated_at: datetime

class MessageResponse(BaseModel):
    message: str

class HealthCheck(BaseModel):
    status: str
    version: str
    uptime: float
    timestamp: datetime

class SystemInfo(BaseModel):
    version: str
    max_file_size: int
    max_files: int
    allowed_mime_types: List[str]
    output_formats: List[str]
    cleanup_interval_minutes: int
    file_ttl_seconds: int
    active_jobs: int
    storage_dir: str
