from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Optional, Dict, Any, List, Callable, Set
import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor

from imagepress.core.config import Settings
from imagepress.core.exceptions import ProcessingError
from imagepress.models.job import JobStatus, reduction_percent
from imagepress.services.archive_service import ArchiveService
from imagepress.services.image_processor import ImageProcessor, ImageResult
from imagepress.services.job_service import JobService
from imagepress.services.storage_service import StorageService

ProgressCallback = Callable[[int, int], None]

@dataclass
class BatchSummary:
    total: int
    successful: int
    failed: int
    total_original_size: int
    total_compressed_size: int
    total_reduction: int
    failures: List[Dict[str, Optional[str]]] = field(default_factory=list)

    @classmethod
    def from_results(cls, results: List[Dict[str, Any]]) -> "BatchSummary":
        successful = [r for r in results if r['result'].success]
        original = sum(r['result'].original_size for r in successful)
        compressed = sum(r['result'].compressed_size for r in successful)
        return cls(
            total=len(results),
            successful=len(successful),
            failed=len(results) - len(successful),
            total_original_size=original,
            total_compressed_size=compressed,
            total_reduction=reduction_percent(original, compressed),
            failures=[
                {'filename': r['filename'], 'error': r['result'].error}
                for r in results if not r['result'].success
            ]
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

def output_filename_for(filename: str, output_format: str, taken: Set[str]) -> str:
    """`<stem>.<format>`, falling back to the source extension and then a counter when a
    name was already produced in this batch."""
    path = Path(filename)
    candidate = f"{path.stem}.{output_format}"
    if candidate not in taken:
        return candidate

    source_ext = path.suffix.lstrip('.').lower()
    if source_ext:
        candidate = f"{path.stem}_{source_ext}.{output_format}"
        if candidate not in taken:
            return candidate

    index = 1
    while f"{path.stem}_{index}.{output_format}" in taken:
        index += 1
    return f"{path.stem}_{index}.{output_format}"

class ProcessorService:
    def __init__(
        self,
        settings: Settings,
        logger: logging.Logger,
        job_service: JobService,
        storage_service: StorageService,
        image_processor: Optional[ImageProcessor] = None,
        archive_service: Optional[ArchiveService] = None
    ):
        self.settings = settings
        self.logger = logger
        self.job_service = job_service
        self.storage_service = storage_service
        self.image_processor = image_processor or ImageProcessor(logger)
        self.archive_service = archive_service or ArchiveService(logger)
        self.executor = ThreadPoolExecutor(max_workers=settings.MAX_WORKERS)

    async def run_job(self, job_id: str, settings, progress_callback: Optional[ProgressCallback] = None) -> Optional[BatchSummary]:
        """Transcode every uploaded file of a job, archive the outputs and finalize the job.

        The caller has already checked the job is `uploaded` and moved it to
        `processing`. A failing file is recorded and skipped; anything else that
        escapes marks the job `failed`. `completed` is only written once the
        archive is on disk.
        """
        codec_settings = settings.model_dump() if hasattr(settings, 'model_dump') else dict(settings)
        output_format = codec_settings['format']

        try:
            upload_dir = self.storage_service.get_upload_dir(job_id)
            processed_dir = self.storage_service.get_processed_dir(job_id)

            files = await self.storage_service.list_files(upload_dir, strict=True)
            if not files:
                raise ProcessingError("No uploaded files found")

            total = len(files)
            self.logger.info(f"Job {job_id}: processing {total} file(s) to {output_format}")

            loop = asyncio.get_running_loop()
            results: List[Dict[str, Any]] = []
            taken: Set[str] = set()

            for index, filename in enumerate(files):
                output_filename = output_filename_for(filename, output_format, taken)
                taken.add(output_filename)
                output_path = processed_dir / output_filename

                result: ImageResult = await loop.run_in_executor(
                    self.executor,
                    self.image_processor.process_image,
                    upload_dir / filename,
                    output_path,
                    codec_settings
                )

                if result.success:
                    self.job_service.add_processed_file(
                        job_id,
                        output_filename,
                        result.original_size,
                        result.compressed_size
                    )
                else:
                    self.logger.warning(f"Job {job_id}: {filename} failed: {result.error}")
                    await self.storage_service.remove_file(output_path)

                results.append({'filename': filename, 'output_filename': output_filename, 'result': result})

                processed = index + 1
                self.job_service.update_progress(job_id, processed, total)
                if progress_callback:
                    progress_callback(processed, total)

            summary = BatchSummary.from_results(results)
            self.job_service.set_job_result(job_id, summary.to_dict())
            self.logger.info(
                f"Job {job_id}: batch processing complete: "
                f"{summary.successful} successful, {summary.failed} failed"
            )

            await self.archive_service.create_archive(
                processed_dir,
                self.storage_service.get_archive_path(job_id)
            )

            self.job_service.set_job_status(job_id, JobStatus.COMPLETED)
            self.logger.info(f"Job {job_id} completed successfully")
            return summary

        except Exception as e:
            self.logger.error(f"Job {job_id} failed: {e}", exc_info=True)
            self.job_service.set_job_status(job_id, JobStatus.FAILED, error=str(e) or e.__class__.__name__)
            return None

    def shutdown(self):
        self.executor.shutdown(wait=False)
