"""Tests for the per-job processing pipeline."""
import asyncio
import logging
import zipfile

import pytest

from imagepress.core.config import Settings
from imagepress.core.exceptions import ProcessingError
from imagepress.models.job import JobStatus
from imagepress.schemas.requests import ProcessSettings
from imagepress.services.archive_service import ArchiveService
from imagepress.services.job_service import JobService
from imagepress.services.processor_service import ProcessorService, output_filename_for
from imagepress.services.storage_service import StorageService


class BrokenArchiveService(ArchiveService):
    async def create_archive(self, source_dir, archive_path):
        raise ProcessingError("zip exploded")


@pytest.fixture
def env(tmp_path):
    settings = Settings(STORAGE_DIR=tmp_path / "jobs", LOG_TO_FILE=False, MAX_WORKERS=2)
    jobs = JobService()
    storage = StorageService(settings)
    return settings, jobs, storage


def _processor(env, **kwargs):
    settings, jobs, storage = env
    return ProcessorService(settings, logging.getLogger("test"), jobs, storage, **kwargs)


def _uploaded_job(env, files):
    _, jobs, storage = env
    job = jobs.create_job()
    upload_dir, _ = asyncio.run(storage.create_job_directories(job.id))
    jobs.set_job_status(job.id, JobStatus.UPLOADING)
    for name, data in files.items():
        (upload_dir / name).write_bytes(data)
        jobs.add_uploaded_file(job.id, name, len(data))
    jobs.set_job_status(job.id, JobStatus.UPLOADED)
    jobs.set_job_status(job.id, JobStatus.PROCESSING)
    return job.id


def test_partial_failure_is_not_fatal(env, make_image):
    _, jobs, storage = env
    job_id = _uploaded_job(env, {
        "a.png": make_image("PNG"),
        "b.png": b"corrupt bytes",
        "c.jpg": make_image("JPEG"),
    })
    progress = []

    summary = asyncio.run(_processor(env).run_job(
        job_id,
        ProcessSettings(format="webp"),
        lambda done, total: progress.append((done, total))
    ))

    assert summary.total == 3
    assert summary.successful == 2
    assert summary.failed == 1
    assert [f["filename"] for f in summary.failures] == ["b.png"]
    assert progress == [(1, 3), (2, 3), (3, 3)]

    job = jobs.get_job(job_id)
    assert job.status == JobStatus.COMPLETED
    assert job.progress == 100
    assert [f.filename for f in job.processed_files] == ["a.webp", "c.webp"]
    assert job.summary["successful"] == 2

    with zipfile.ZipFile(storage.get_archive_path(job_id)) as zf:
        assert sorted(zf.namelist()) == ["a.webp", "c.webp"]


def test_batch_totals(env, make_image):
    _, jobs, _ = env
    job_id = _uploaded_job(env, {"a.png": make_image("PNG", size=(200, 200))})

    summary = asyncio.run(_processor(env).run_job(job_id, ProcessSettings(format="jpeg", quality=40)))

    job = jobs.get_job(job_id)
    assert summary.total_original_size == job.original_size
    assert summary.total_compressed_size == job.compressed_size
    snapshot = jobs.get_job_stats(job_id)
    assert snapshot.reduction == summary.total_reduction


def test_archive_failure_fails_job(env, make_image):
    _, jobs, storage = env
    job_id = _uploaded_job(env, {"a.png": make_image("PNG")})

    summary = asyncio.run(
        _processor(env, archive_service=BrokenArchiveService()).run_job(job_id, ProcessSettings(format="png"))
    )

    assert summary is None
    job = jobs.get_job(job_id)
    assert job.status == JobStatus.FAILED
    assert job.error == "zip exploded"
    assert not storage.get_archive_path(job_id).exists()


def test_enumeration_failure_skips_archive(env, make_image):
    _, jobs, storage = env
    job_id = _uploaded_job(env, {"a.png": make_image("PNG")})
    asyncio.run(storage.delete_job_tree(job_id))

    asyncio.run(_processor(env).run_job(job_id, ProcessSettings(format="webp")))

    job = jobs.get_job(job_id)
    assert job.status == JobStatus.FAILED
    assert job.error
    assert not storage.get_archive_path(job_id).exists()


def test_empty_upload_directory_fails_job(env):
    _, jobs, _ = env
    job_id = _uploaded_job(env, {})

    asyncio.run(_processor(env).run_job(job_id, ProcessSettings(format="webp")))

    job = jobs.get_job(job_id)
    assert job.status == JobStatus.FAILED
    assert job.error == "No uploaded files found"


def test_same_stem_inputs_do_not_overwrite_each_other(env, make_image):
    _, jobs, storage = env
    job_id = _uploaded_job(env, {
        "photo.jpg": make_image("JPEG"),
        "photo.png": make_image("PNG"),
    })

    asyncio.run(_processor(env).run_job(job_id, ProcessSettings(format="webp")))

    with zipfile.ZipFile(storage.get_archive_path(job_id)) as zf:
        assert sorted(zf.namelist()) == ["photo.webp", "photo_png.webp"]


def test_output_filename_for():
    taken = set()
    first = output_filename_for("shot.png", "webp", taken)
    taken.add(first)
    second = output_filename_for("shot.jpg", "webp", taken)
    taken.add(second)
    taken.add("shot_jpg.webp")
    third = output_filename_for("shot.jpg", "webp", taken)

    assert first == "shot.webp"
    assert second == "shot_jpg.webp"
    assert third == "shot_1.webp"
    assert output_filename_for("noext", "png", set()) == "noext.png"
