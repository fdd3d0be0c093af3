"""Processing status API endpoints."""
import asyncio
import json
import logging

import redis
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from ingestion.api.deps import Owner, get_owner, get_pipeline
from ingestion.api.mappings import to_choices
from ingestion.config import get_settings
from ingestion.schemas.status import StatusActionRequest, StatusActionResponse, StatusResponse
from ingestion.services.events import FINAL_EVENT_STATUSES, channel_for
from ingestion.services.pipeline import IngestionPipeline

router = APIRouter(prefix="/api/data-ingestion", tags=["status"])

settings = get_settings()
logger = logging.getLogger(__name__)


@router.get("/status/{file_id}", response_model=StatusResponse)
def get_status(
    file_id: str,
    owner: Owner = Depends(get_owner),
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    """
    Get file status and progress.

    Column detections are included while mappings await review, and the first
    errors once a file failed or completed with errors.
    """
    return pipeline.status_report(file_id, owner.company_id)


@router.post("/status/{file_id}", response_model=StatusActionResponse)
def update_status(
    file_id: str,
    payload: StatusActionRequest,
    owner: Owner = Depends(get_owner),
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    """Apply a lifecycle action: mark_completed, confirm_mapping, cancel_processing or retry_processing."""
    if payload.action == "mark_completed":
        file = pipeline.mark_completed(file_id, owner.company_id)
        message = "File marked as completed"
    elif payload.action == "confirm_mapping":
        if not payload.column_mappings:
            raise HTTPException(status_code=400, detail="column_mappings is required for confirm_mapping")
        result = pipeline.confirm(
            file_id, to_choices(payload.column_mappings), company_id=owner.company_id, entity_type=payload.entity_type
        )
        file = pipeline.get_file(file_id)
        message = f"{result['mappings_confirmed']} mappings confirmed"
    elif payload.action == "cancel_processing":
        file = pipeline.cancel(file_id, owner.company_id)
        message = "Processing cancelled"
    else:
        file = pipeline.retry(file_id, owner.company_id)
        message = "Processing restarted"

    logger.info(f"Status action {payload.action} applied to file {file_id}")
    return StatusActionResponse(file_id=file.id, action=payload.action, status=file.status, message=message)


@router.get("/status/{file_id}/stream")
async def stream_status(
    file_id: str,
    owner: Owner = Depends(get_owner),
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    """
    Server-Sent Events (SSE) endpoint for real-time status streaming.

    Relays the status events published on Redis while the file moves through
    the pipeline. The polled status endpoint stays the source of truth.
    """
    # Verify file exists and belongs to the caller
    pipeline.get_file(file_id, owner.company_id)

    async def event_generator():
        """Generate SSE events from Redis pub/sub."""
        redis_client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
        pubsub = redis_client.pubsub()
        pubsub.subscribe(channel_for(file_id))

        try:
            while True:
                # Non-blocking message check with timeout
                message = pubsub.get_message(timeout=1.0)

                if message and message["type"] == "message":
                    data = json.loads(message["data"])
                    yield f"data: {json.dumps(data)}\n\n"

                    if data.get("status") in FINAL_EVENT_STATUSES:
                        break

                await asyncio.sleep(0.1)

        except Exception as e:
            logger.warning(f"SSE stream error for file {file_id}: {str(e)}")
            yield f"data: {json.dumps({'status': 'error', 'error': 'Stream error'})}\n\n"

        finally:
            pubsub.unsubscribe(channel_for(file_id))
            redis_client.close()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )
