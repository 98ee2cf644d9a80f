from imagepress.core.config import get_settings
from imagepress.services.cleanup_service import CleanupService
from imagepress.services.job_service import JobService
from imagepress.services.processor_service import ProcessorService
from imagepress.services.storage_service import StorageService
import logging

_job_service = None
_storage_service = None
_processor_service = None
_cleanup_service = None

def get_job_service() -> JobService:
    global _job_service
    if _job_service is None:
        _job_service = JobService(logging.getLogger("job_service"))
    return _job_service

def get_storage_service() -> StorageService:
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService(get_settings(), logging.getLogger("storage_service"))
    return _storage_service

def get_processor_service() -> ProcessorService:
    global _processor_service
    if _processor_service is None:
        settings = get_settings()
        logger = logging.getLogger("processor_service")
        _processor_service = ProcessorService(settings, logger, get_job_service(), get_storage_service())
    return _processor_service

def get_cleanup_service() -> CleanupService:
    global _cleanup_service
    if _cleanup_service is None:
        _cleanup_service = CleanupService(
            get_settings(),
            get_job_service(),
            get_storage_service(),
            logging.getLogger("cleanup_service")
        )
    return _cleanup_service
