"""Tests for the upload status state machine."""
import pytest

from ingestion.exceptions import InvalidStatusTransitionError
from ingestion.models.uploaded_file import UploadedFile
from ingestion.services.lifecycle import (
    TERMINAL_STATUSES,
    FileStatus,
    can_transition,
    progress_for,
    step_label,
    transition,
)


def make_file(status="uploaded"):
    return UploadedFile(id="file-1", status=status, original_filename="orders.csv")


def test_happy_path_stamps_timestamps():
    file = make_file()
    for status in (
        FileStatus.ANALYZING,
        FileStatus.MAPPING_REQUIRED,
        FileStatus.MAPPING_CONFIRMED,
        FileStatus.PROCESSING,
        FileStatus.COMPLETED,
    ):
        transition(file, status)

    assert file.status == "completed"
    assert file.analysis_started_at is not None
    assert file.analysis_completed_at is not None
    assert file.mapping_confirmed_at is not None
    assert file.processing_started_at is not None
    assert file.processing_completed_at is not None


def test_skipping_ahead_is_rejected():
    file = make_file()
    with pytest.raises(InvalidStatusTransitionError) as exc_info:
        transition(file, FileStatus.COMPLETED)

    assert exc_info.value.extra == {"current_status": "uploaded", "requested_status": "completed"}
    assert file.status == "uploaded"


def test_mapping_can_be_reconfirmed():
    assert can_transition("mapping_confirmed", "mapping_confirmed")
    assert not can_transition("mapping_required", "processing")


@pytest.mark.parametrize("status", [s for s in FileStatus if s not in TERMINAL_STATUSES])
def test_any_active_status_can_cancel_or_fail(status):
    assert can_transition(status.value, "cancelled")
    assert can_transition(status.value, "failed")


@pytest.mark.parametrize("status", ["completed", "completed_with_errors", "cancelled"])
def test_finished_files_stay_finished(status):
    for target in FileStatus:
        assert not can_transition(status, target.value)


def test_retry_resets_failed_file():
    file = make_file("processing")
    transition(file, FileStatus.FAILED)
    file.error_message = "boom"

    transition(file, FileStatus.UPLOADED)

    assert file.status == "uploaded"
    assert file.error_message is None
    assert file.processing_completed_at is None
    assert file.processing_started_at is None


def test_progress_and_labels():
    assert progress_for("uploaded") == 10
    assert progress_for("completed_with_errors") == 100
    assert progress_for("cancelled") == 0
    assert step_label("mapping_required").startswith("Column detection complete")
