"""Best-effort status events on Redis pub/sub for SSE streaming."""
import json
import logging
from typing import Optional

import redis

from ingestion.config import get_settings
from ingestion.models.uploaded_file import UploadedFile
from ingestion.services.lifecycle import progress_for, step_label

logger = logging.getLogger(__name__)

FINAL_EVENT_STATUSES = {"completed", "completed_with_errors", "failed", "cancelled"}


def channel_for(file_id: str) -> str:
    return f"ingestion:{file_id}"


def publish_event(file_id: str, message: dict) -> None:
    """Publish one message; never raises, the status endpoint remains the source of truth."""
    settings = get_settings()
    if not settings.publish_events:
        return
    try:
        redis_client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
        redis_client.publish(channel_for(file_id), json.dumps(message))
    except Exception as e:
        # Don't fail the pipeline if Redis is unavailable
        logger.warning(f"Failed to publish event for file {file_id}: {e}")


def publish_status(file: UploadedFile, error: Optional[str] = None) -> None:
    """
    Publish a file's persisted status.

    Args:
        file: File whose current state has been committed
        error: Error message (for failed status)
    """
    message = {
        "file_id": file.id,
        "status": file.status,
        "progress": progress_for(file.status),
        "current_step": step_label(file.status),
        "processed": file.total_rows_processed,
        "total": file.detected_row_count,
        "successful": file.successful_rows,
        "failed": file.failed_rows,
    }
    if error:
        message["error"] = error
    publish_event(file.id, message)


def publish_progress(file_id: str, processed: int, total: int) -> None:
    """Publish row progress while a file is processing."""
    publish_event(
        file_id,
        {
            "file_id": file_id,
            "status": "processing",
            "progress": progress_for("processing"),
            "current_step": step_label("processing"),
            "processed": processed,
            "total": total,
        },
    )
