from pathlib import Path
from typing import Optional
import asyncio
import logging
import os
import zipfile

from imagepress.core.exceptions import ProcessingError

class ArchiveService:
    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger if logger else logging.getLogger("archive_service")

    async def create_archive(self, source_dir: Path, archive_path: Path) -> int:
        loop = asyncio.get_running_loop()
        try:
            count = await loop.run_in_executor(None, self._create_archive_sync, Path(source_dir), Path(archive_path))
        except OSError as e:
            raise ProcessingError(f"Failed to create archive: {e}")
        self.logger.info(f"Created archive {archive_path} with {count} file(s)")
        return count

    def _create_archive_sync(self, source_dir: Path, archive_path: Path) -> int:
        # Written beside the target and renamed, so readers never see a partial zip
        tmp_path = archive_path.with_name(f".{archive_path.name}.tmp")
        count = 0
        try:
            with zipfile.ZipFile(tmp_path, 'w', compression=zipfile.ZIP_DEFLATED) as zf:
                for entry in sorted(source_dir.iterdir()):
                    if entry.name.startswith('.') or not entry.is_file():
                        continue
                    zf.write(entry, arcname=entry.name)
                    count += 1
            os.replace(tmp_path, archive_path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()
        return count
