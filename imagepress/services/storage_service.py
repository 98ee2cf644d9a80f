from pathlib import Path
from typing import Optional, Dict, Any, List, Set, Tuple
import asyncio
import json
import logging
import os
import re
import shutil
import time

import aiofiles
import aiofiles.os
from fastapi import UploadFile

from imagepress.core.config import Settings
from imagepress.core.exceptions import InvalidInputError, StorageError

UPLOADS_DIRNAME = "uploads"
PROCESSED_DIRNAME = "processed"
ARCHIVE_FILENAME = "processed.zip"
METADATA_FILENAME = "metadata.json"
CHUNK_SIZE = 1024 * 1024
STAGING_PREFIX = ".staging-"

_UNSAFE_CHARS = re.compile(r'[^a-zA-Z0-9.-]')

def sanitize_filename(filename: str) -> str:
    sanitized = _UNSAFE_CHARS.sub('_', Path(filename or '').name).lstrip('.')
    return sanitized or "upload"

def unique_filename(filename: str, taken: Set[str]) -> str:
    if filename not in taken:
        return filename

    path = Path(filename)
    index = 1
    while f"{path.stem}_{index}{path.suffix}" in taken:
        index += 1
    return f"{path.stem}_{index}{path.suffix}"

def now_ms() -> int:
    return int(time.time() * 1000)

class StorageService:
    """Maps job ids onto the on-disk layout.

    <STORAGE_DIR>/<job_id>/
        uploads/        raw uploaded files
        processed/      transcoded outputs
        processed.zip   archive served to the client
        metadata.json   durable creation/upload record, its mtime is the job's age
    """

    def __init__(self, settings: Settings, logger: Optional[logging.Logger] = None):
        self.settings = settings
        self.base_dir = Path(settings.STORAGE_DIR)
        self.logger = logger if logger else logging.getLogger("storage_service")

    async def initialize(self):
        try:
            await aiofiles.os.makedirs(self.base_dir, exist_ok=True)
        except OSError as e:
            self.logger.error(f"Failed to initialize storage at {self.base_dir}: {e}")
            raise StorageError(f"Cannot create storage directory {self.base_dir}", str(e))
        self.logger.info(f"Storage initialized at {self.base_dir}")

    def _validate_job_id(self, job_id: str):
        if not job_id or len(job_id) > 100:
            raise InvalidInputError("Invalid job ID")
        if '/' in job_id or '\\' in job_id or '..' in job_id:
            raise InvalidInputError("Invalid job ID")

    def get_job_dir(self, job_id: str) -> Path:
        self._validate_job_id(job_id)
        return self.base_dir / job_id

    def get_upload_dir(self, job_id: str) -> Path:
        return self.get_job_dir(job_id) / UPLOADS_DIRNAME

    def get_processed_dir(self, job_id: str) -> Path:
        return self.get_job_dir(job_id) / PROCESSED_DIRNAME

    def get_archive_path(self, job_id: str) -> Path:
        return self.get_job_dir(job_id) / ARCHIVE_FILENAME

    def get_metadata_path(self, job_id: str) -> Path:
        return self.get_job_dir(job_id) / METADATA_FILENAME

    async def create_job_directories(
        self,
        job_id: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Tuple[Path, Path]:
        """Create the uploads and processed directories of a job.

        With `metadata`, a job tree that does not exist yet is assembled under a
        staging name and renamed into place together with its metadata file, so
        a sweep never finds the job directory without one.
        """
        job_dir = self.get_job_dir(job_id)
        upload_dir = self.get_upload_dir(job_id)
        processed_dir = self.get_processed_dir(job_id)
        try:
            if metadata is not None and not await aiofiles.os.path.exists(job_dir):
                await self._create_staged(job_id, job_dir, metadata)
            else:
                await aiofiles.os.makedirs(upload_dir, exist_ok=True)
                await aiofiles.os.makedirs(processed_dir, exist_ok=True)
                if metadata is not None:
                    await self.save_metadata(job_id, metadata)
        except OSError as e:
            self.logger.error(f"Failed to create directories for job {job_id}: {e}")
            raise StorageError(f"Cannot create directories for job {job_id}", str(e))

        self.logger.debug(f"Created directories for job {job_id}")
        return upload_dir, processed_dir

    async def _create_staged(self, job_id: str, job_dir: Path, metadata: Dict[str, Any]):
        staging_dir = self.base_dir / f"{STAGING_PREFIX}{job_id}"
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._build_tree, staging_dir, job_dir, metadata)
        except OSError:
            await loop.run_in_executor(None, lambda: shutil.rmtree(staging_dir, ignore_errors=True))
            raise

    @staticmethod
    def _build_tree(staging_dir: Path, job_dir: Path, metadata: Dict[str, Any]):
        os.makedirs(staging_dir / UPLOADS_DIRNAME, exist_ok=True)
        os.makedirs(staging_dir / PROCESSED_DIRNAME, exist_ok=True)
        with open(staging_dir / METADATA_FILENAME, "w") as f:
            json.dump(metadata, f, indent=2)
        os.replace(staging_dir, job_dir)

    async def list_files(self, directory: Path, strict: bool = False) -> List[str]:
        try:
            entries = await aiofiles.os.listdir(directory)
            files = []
            for name in sorted(entries):
                if name.startswith('.'):
                    continue
                if await aiofiles.os.path.isfile(Path(directory) / name):
                    files.append(name)
            return files
        except OSError as e:
            self.logger.error(f"Failed to list files in {directory}: {e}")
            if strict:
                raise StorageError(f"Cannot read directory {directory}", str(e))
            return []

    async def save_upload(
        self,
        job_id: str,
        upload: UploadFile,
        taken: Optional[Set[str]] = None
    ) -> Tuple[str, int]:
        """Stream one upload into the job's uploads directory.

        `taken` holds names already stored for the job. A clashing name gets a
        `_N` suffix and the chosen name is added to the set.
        """
        filename = sanitize_filename(upload.filename)
        if taken is not None:
            filename = unique_filename(filename, taken)
            taken.add(filename)
        destination = self.get_upload_dir(job_id) / filename
        size = 0

        try:
            async with aiofiles.open(destination, "wb") as out_file:
                while True:
                    chunk = await upload.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > self.settings.MAX_FILE_SIZE:
                        break
                    await out_file.write(chunk)
        except OSError as e:
            raise StorageError(f"Failed to store {filename}", str(e))
        finally:
            await upload.close()

        if size > self.settings.MAX_FILE_SIZE:
            await self.remove_file(destination)
            raise InvalidInputError(
                f"File too large: {upload.filename}",
                {"max_file_size": self.settings.MAX_FILE_SIZE}
            )

        return filename, size

    async def remove_file(self, path: Path):
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            self.logger.warning(f"Could not remove {path}: {e}")

    async def save_metadata(self, job_id: str, metadata: Dict[str, Any]):
        metadata_path = self.get_metadata_path(job_id)
        try:
            async with aiofiles.open(metadata_path, "w") as f:
                await f.write(json.dumps(metadata, indent=2))
        except OSError as e:
            self.logger.error(f"Failed to save metadata for job {job_id}: {e}")
            raise StorageError(f"Cannot write metadata for job {job_id}", str(e))
        self.logger.debug(f"Saved metadata for job {job_id}")

    async def get_metadata(self, job_id: str) -> Optional[Dict[str, Any]]:
        metadata_path = self.get_metadata_path(job_id)
        try:
            async with aiofiles.open(metadata_path, "r") as f:
                return json.loads(await f.read())
        except (OSError, ValueError) as e:
            self.logger.error(f"Failed to read metadata for job {job_id}: {e}")
            return None

    async def archive_exists(self, job_id: str) -> bool:
        return await aiofiles.os.path.isfile(self.get_archive_path(job_id))

    async def delete_job_tree(self, job_id: str) -> bool:
        job_dir = self.get_job_dir(job_id)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._rmtree, job_dir)
        except OSError as e:
            self.logger.error(f"Failed to delete job {job_id}: {e}")
            return False
        self.logger.info(f"Deleted job directory: {job_id}")
        return True

    @staticmethod
    def _rmtree(path: Path):
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink()
        except FileNotFoundError:
            pass

    async def cleanup_expired(self, max_age_seconds: float) -> int:
        try:
            entries = await aiofiles.os.listdir(self.base_dir)
        except OSError as e:
            self.logger.error(f"Failed to cleanup old jobs: {e}")
            return 0

        now = time.time()
        cleaned = 0

        for job_id in entries:
            try:
                if job_id.startswith(STAGING_PREFIX):
                    # half-built trees are aged by the staging directory itself
                    age_path = self.get_job_dir(job_id)
                else:
                    age_path = self.get_metadata_path(job_id)
            except InvalidInputError:
                continue

            try:
                stats = await aiofiles.os.stat(age_path)
                expired = now - stats.st_mtime > max_age_seconds
            except OSError:
                # No readable metadata: nothing vouches for this entry
                expired = True

            if expired and await self.delete_job_tree(job_id):
                cleaned += 1

        if cleaned > 0:
            self.logger.info(f"Cleanup completed: removed {cleaned} old job(s)")

        return cleaned
