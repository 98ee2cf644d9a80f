from fastapi import APIRouter, BackgroundTasks, Depends, File, UploadFile
from fastapi.responses import FileResponse
from typing import List, Optional
import logging

from imagepress.core.config import Settings, get_settings
from imagepress.core.dependencies import get_job_service, get_processor_service, get_storage_service
from imagepress.core.exceptions import ConflictError, IntegrityError, InvalidInputError, NotFoundError
from imagepress.models.job import Job, JobStatus, can_transition
from imagepress.schemas.requests import ProcessSettings
from imagepress.schemas.responses import (
    JobCreatedResponse,
    JobStatusResponse,
    MessageResponse,
    ProcessStartedResponse,
    UploadedFileInfo,
    UploadResponse
)
from imagepress.services.job_service import JobService
from imagepress.services.processor_service import ProcessorService
from imagepress.services.storage_service import StorageService, now_ms

router = APIRouter(prefix="/jobs", tags=["jobs"])
logger = logging.getLogger("jobs_api")

def _require_job(job_service: JobService, job_id: str) -> Job:
    job = job_service.get_job(job_id)
    if not job:
        raise NotFoundError("Job not found", {"job_id": job_id})
    return job

def _validate_uploads(images: List[UploadFile], settings: Settings):
    if not images:
        raise InvalidInputError("No files uploaded")

    if len(images) > settings.MAX_FILES:
        raise InvalidInputError(
            f"Too many files: {len(images)}. Maximum is {settings.MAX_FILES}",
            {"max_files": settings.MAX_FILES}
        )

    for image in images:
        if image.content_type not in settings.ALLOWED_MIME_TYPES:
            raise InvalidInputError(
                f"Invalid file type: {image.content_type}. Only JPG, PNG, WebP, and GIF are allowed.",
                {"filename": image.filename}
            )
        if image.size is not None and image.size > settings.MAX_FILE_SIZE:
            raise InvalidInputError(
                f"File too large: {image.filename}",
                {"max_file_size": settings.MAX_FILE_SIZE}
            )

@router.post("", response_model=JobCreatedResponse)
async def create_job(
    job_service: JobService = Depends(get_job_service),
    storage_service: StorageService = Depends(get_storage_service)
):
    job = job_service.create_job()
    try:
        # Metadata lands with the tree so the sweeper sees a fresh job rather than an orphan
        await storage_service.create_job_directories(job.id, metadata={
            "created_at": now_ms(),
            "uploaded_at": None,
            "file_count": 0,
            "total_size": 0
        })
    except Exception:
        job_service.delete_job(job.id)
        raise

    return JobCreatedResponse(job_id=job.id)

@router.post("/{job_id}/upload", response_model=UploadResponse)
async def upload_images(
    job_id: str,
    images: Optional[List[UploadFile]] = File(None),
    job_service: JobService = Depends(get_job_service),
    storage_service: StorageService = Depends(get_storage_service)
):
    settings = get_settings()
    job = _require_job(job_service, job_id)

    if not can_transition(job.status, JobStatus.UPLOADING):
        raise ConflictError(f"Cannot upload to job in status: {job.status.value}")

    # Limits are checked before anything touches the disk or the registry
    _validate_uploads(images or [], settings)

    job_service.set_job_status(job_id, JobStatus.UPLOADING)

    uploaded = []
    total_size = 0
    try:
        taken = set(await storage_service.list_files(storage_service.get_upload_dir(job_id)))
        for image in images:
            filename, size = await storage_service.save_upload(job_id, image, taken)
            job_service.add_uploaded_file(job_id, filename, size)
            uploaded.append(UploadedFileInfo(filename=filename, size=size, mimetype=image.content_type))
            total_size += size

        await storage_service.save_metadata(job_id, {
            "created_at": int(job.created_at.timestamp() * 1000),
            "uploaded_at": now_ms(),
            "file_count": len(uploaded),
            "total_size": total_size
        })
    except Exception as e:
        job_service.set_job_status(job_id, JobStatus.FAILED, error=str(e))
        raise

    job_service.set_job_status(job_id, JobStatus.UPLOADED)
    logger.info(f"Uploaded {len(uploaded)} files for job {job_id}")

    return UploadResponse(
        job_id=job_id,
        files_uploaded=len(uploaded),
        total_size=total_size,
        files=uploaded
    )

@router.post("/{job_id}/process", response_model=ProcessStartedResponse)
async def process_job(
    job_id: str,
    settings: ProcessSettings,
    background_tasks: BackgroundTasks,
    job_service: JobService = Depends(get_job_service),
    processor_service: ProcessorService = Depends(get_processor_service)
):
    job = _require_job(job_service, job_id)

    if job.status != JobStatus.UPLOADED:
        raise ConflictError(f"Cannot process job in status: {job.status.value}")

    job_service.set_job_settings(job_id, settings)
    job_service.set_job_status(job_id, JobStatus.PROCESSING)

    background_tasks.add_task(processor_service.run_job, job_id, settings)

    return ProcessStartedResponse(job_id=job_id)

@router.get("/{job_id}/status", response_model=JobStatusResponse)
async def get_job_status(
    job_id: str,
    job_service: JobService = Depends(get_job_service)
):
    stats = job_service.get_job_stats(job_id)
    if not stats:
        raise NotFoundError("Job not found", {"job_id": job_id})

    return JobStatusResponse(
        job_id=stats.job_id,
        status=stats.status.value,
        progress=stats.progress,
        total_files=stats.total_files,
        processed_count=stats.processed_count,
        original_size=stats.original_size,
        compressed_size=stats.compressed_size,
        reduction=stats.reduction,
        settings=stats.settings,
        summary=stats.summary,
        error=stats.error,
        created_at=stats.created_at,
        updated_at=stats.updated_at
    )

@router.get("/{job_id}/download")
async def download_job(
    job_id: str,
    job_service: JobService = Depends(get_job_service),
    storage_service: StorageService = Depends(get_storage_service)
):
    job = _require_job(job_service, job_id)

    if job.status != JobStatus.COMPLETED:
        raise ConflictError(
            f"Cannot download job in status: {job.status.value}",
            {"current_status": job.status.value}
        )

    if not await storage_service.archive_exists(job_id):
        logger.error(f"Job {job_id} is completed but its archive is missing")
        raise IntegrityError("Processed files not found", {"job_id": job_id})

    return FileResponse(
        storage_service.get_archive_path(job_id),
        media_type="application/zip",
        filename=f"compressed-images-{job_id}.zip"
    )

@router.delete("/{job_id}", response_model=MessageResponse)
async def delete_job(
    job_id: str,
    job_service: JobService = Depends(get_job_service),
    storage_service: StorageService = Depends(get_storage_service)
):
    _require_job(job_service, job_id)

    await storage_service.delete_job_tree(job_id)
    job_service.delete_job(job_id)

    return MessageResponse(message="Job deleted successfully")
