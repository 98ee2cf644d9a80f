from fastapi import APIRouter, Depends
from datetime import datetime, timezone
import time

from imagepress.core.config import get_settings
from imagepress.core.dependencies import get_job_service
from imagepress.schemas.responses import SystemInfo, HealthCheck
from imagepress.services.job_service import JobService

router = APIRouter(prefix="/system", tags=["system"])

_started_at = time.monotonic()

@router.get("/health", response_model=HealthCheck)
async def health_check():
    settings = get_settings()

    return HealthCheck(
        status="ok",
        version=settings.VERSION,
        uptime=time.monotonic() - _started_at,
        timestamp=datetime.now(timezone.utc)
    )

@router.get("/info", response_model=SystemInfo)
async def get_system_info(job_service: JobService = Depends(get_job_service)):
    settings = get_settings()

    return SystemInfo(
        version=settings.VERSION,
        max_file_size=settings.MAX_FILE_SIZE,
        max_files=settings.MAX_FILES,
        allowed_mime_types=settings.ALLOWED_MIME_TYPES,
        output_formats=settings.OUTPUT_FORMATS,
        cleanup_interval_minutes=settings.CLEANUP_INTERVAL,
        file_ttl_seconds=settings.FILE_TTL,
        active_jobs=job_service.count(),
        storage_dir=str(settings.STORAGE_DIR)
    )
