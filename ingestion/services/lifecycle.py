"""Upload lifecycle: statuses, allowed transitions and progress reporting."""
import logging
from datetime import datetime
from enum import Enum

from ingestion.exceptions import InvalidStatusTransitionError
from ingestion.models.uploaded_file import UploadedFile

logger = logging.getLogger(__name__)


class FileStatus(str, Enum):
    UPLOADED = "uploaded"
    ANALYZING = "analyzing"
    MAPPING_REQUIRED = "mapping_required"
    MAPPING_CONFIRMED = "mapping_confirmed"
    PROCESSING = "processing"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset(
    {
        FileStatus.COMPLETED,
        FileStatus.COMPLETED_WITH_ERRORS,
        FileStatus.FAILED,
        FileStatus.CANCELLED,
    }
)

# Forward path only; cancel and fail are added below for every non-terminal state.
_FORWARD = {
    FileStatus.UPLOADED: {FileStatus.ANALYZING},
    FileStatus.ANALYZING: {FileStatus.MAPPING_REQUIRED},
    FileStatus.MAPPING_REQUIRED: {FileStatus.MAPPING_CONFIRMED},
    FileStatus.MAPPING_CONFIRMED: {FileStatus.MAPPING_CONFIRMED, FileStatus.PROCESSING},
    FileStatus.PROCESSING: {FileStatus.COMPLETED, FileStatus.COMPLETED_WITH_ERRORS},
    FileStatus.FAILED: {FileStatus.UPLOADED},
}

ALLOWED_TRANSITIONS = {
    status: set(_FORWARD.get(status, set()))
    | (set() if status in TERMINAL_STATUSES else {FileStatus.CANCELLED, FileStatus.FAILED})
    for status in FileStatus
}

PROGRESS = {
    FileStatus.UPLOADED: 10,
    FileStatus.ANALYZING: 30,
    FileStatus.MAPPING_REQUIRED: 60,
    FileStatus.MAPPING_CONFIRMED: 70,
    FileStatus.PROCESSING: 85,
    FileStatus.COMPLETED: 100,
    FileStatus.COMPLETED_WITH_ERRORS: 100,
    FileStatus.FAILED: 0,
    FileStatus.CANCELLED: 0,
}

STEP_LABELS = {
    FileStatus.UPLOADED: "File uploaded, waiting for analysis",
    FileStatus.ANALYZING: "Analyzing columns",
    FileStatus.MAPPING_REQUIRED: "Column detection complete, review mappings",
    FileStatus.MAPPING_CONFIRMED: "Mappings confirmed, ready for processing",
    FileStatus.PROCESSING: "Standardizing records",
    FileStatus.COMPLETED: "Processing complete",
    FileStatus.COMPLETED_WITH_ERRORS: "Processing complete with errors",
    FileStatus.FAILED: "Processing failed",
    FileStatus.CANCELLED: "Processing cancelled",
}

# Phase timestamps cleared on retry
PHASE_TIMESTAMPS = (
    "analysis_started_at",
    "analysis_completed_at",
    "mapping_confirmed_at",
    "processing_started_at",
    "processing_completed_at",
    "cancelled_at",
)


def can_transition(current: str, target: str) -> bool:
    return FileStatus(target) in ALLOWED_TRANSITIONS[FileStatus(current)]


def transition(file: UploadedFile, target: FileStatus) -> UploadedFile:
    """
    Move a file to a new status, stamping the matching phase timestamp.

    Raises:
        InvalidStatusTransitionError: if the move is not on the state machine
    """
    current = FileStatus(file.status)
    target = FileStatus(target)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStatusTransitionError(current.value, target.value)

    now = datetime.utcnow()
    if target == FileStatus.ANALYZING:
        file.analysis_started_at = now
    elif target == FileStatus.MAPPING_REQUIRED:
        file.analysis_completed_at = now
    elif target == FileStatus.MAPPING_CONFIRMED:
        file.mapping_confirmed_at = now
    elif target == FileStatus.PROCESSING:
        file.processing_started_at = now
    elif target in (FileStatus.COMPLETED, FileStatus.COMPLETED_WITH_ERRORS, FileStatus.FAILED):
        file.processing_completed_at = now
    elif target == FileStatus.CANCELLED:
        file.cancelled_at = now
    elif target == FileStatus.UPLOADED:
        for name in PHASE_TIMESTAMPS:
            setattr(file, name, None)
        file.error_message = None

    logger.info(f"File {file.id}: {current.value} -> {target.value}")
    file.status = target.value
    return file


def progress_for(status: str) -> int:
    return PROGRESS[FileStatus(status)]


def step_label(status: str) -> str:
    return STEP_LABELS[FileStatus(status)]
