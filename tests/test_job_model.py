"""Unit tests for the job record, status graph and percentage maths."""
import pytest

from imagepress.models.job import (
    ALLOWED_TRANSITIONS,
    Job,
    JobStatus,
    can_transition,
    reduction_percent,
    round_half_up,
)


def test_reduction_percent_basic():
    assert reduction_percent(1000, 750) == 25


def test_reduction_percent_zero_original():
    assert reduction_percent(0, 0) == 0
    assert reduction_percent(0, 500) == 0


def test_reduction_percent_negative_when_output_grows():
    assert reduction_percent(100, 150) == -50


def test_round_half_up_matches_js_math_round():
    assert round_half_up(2.5) == 3
    assert round_half_up(0.5) == 1
    assert round_half_up(-2.5) == -2
    assert round_half_up(33.3333) == 33


def test_happy_path_is_legal():
    path = [
        JobStatus.CREATED,
        JobStatus.UPLOADING,
        JobStatus.UPLOADED,
        JobStatus.PROCESSING,
        JobStatus.COMPLETED,
    ]
    for current, new in zip(path, path[1:]):
        assert can_transition(current, new)


@pytest.mark.parametrize("status", [
    JobStatus.CREATED,
    JobStatus.UPLOADING,
    JobStatus.UPLOADED,
    JobStatus.PROCESSING,
])
def test_failed_reachable_from_every_non_terminal_status(status):
    assert can_transition(status, JobStatus.FAILED)


@pytest.mark.parametrize("status", [JobStatus.COMPLETED, JobStatus.FAILED])
def test_terminal_statuses_have_no_exits(status):
    assert ALLOWED_TRANSITIONS[status] == frozenset()
    for other in JobStatus:
        assert not can_transition(status, other)


def test_no_skipping_or_regressing():
    assert not can_transition(JobStatus.CREATED, JobStatus.UPLOADED)
    assert not can_transition(JobStatus.UPLOADED, JobStatus.COMPLETED)
    assert not can_transition(JobStatus.PROCESSING, JobStatus.UPLOADED)
    assert not can_transition(JobStatus.UPLOADED, JobStatus.UPLOADING)


def test_can_transition_accepts_plain_strings():
    assert can_transition("uploaded", "processing")


def test_progress_never_decreases():
    job = Job()
    job.update_progress(2, 4)
    assert job.progress == 50
    job.update_progress(1, 4)
    assert job.progress == 50
    assert job.processed_count == 2
    job.update_progress(3, 4)
    assert job.progress == 75


def test_progress_does_not_touch_status():
    job = Job()
    job.set_status(JobStatus.PROCESSING)
    job.update_progress(4, 4)
    assert job.progress == 100
    assert job.status == JobStatus.PROCESSING


def test_upload_totals_move_together():
    job = Job()
    job.add_uploaded_file("a.png", 100)
    job.add_uploaded_file("b.png", 50)
    assert [f.filename for f in job.uploaded_files] == ["a.png", "b.png"]
    assert job.total_files == 2
    assert job.original_size == 150


def test_snapshot_reduction():
    job = Job()
    job.add_uploaded_file("a.png", 1000)
    job.add_processed_file("a.webp", 1000, 750)
    snap = job.snapshot()
    assert snap.reduction == 25
    assert snap.processed_count == 0
    assert job.processed_files[0].reduction == 25


def test_set_status_keeps_error_unless_given():
    job = Job()
    job.set_status(JobStatus.FAILED, error="boom")
    assert job.error == "boom"
    job.set_status(JobStatus.FAILED)
    assert job.error == "boom"
