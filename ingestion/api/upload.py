"""File upload API endpoints."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from ingestion.api.deps import Owner, get_owner, get_pipeline
from ingestion.schemas.upload import UploadedFileResponse, UploadResponse
from ingestion.services.pipeline import IngestionPipeline

router = APIRouter(prefix="/api/data-ingestion", tags=["upload"])

logger = logging.getLogger(__name__)


@router.post("/upload", response_model=UploadResponse, status_code=201)
def upload_file(
    file: UploadFile = File(...),
    entity_type: Optional[str] = Form(None),
    priority: str = Form("normal"),
    owner: Owner = Depends(get_owner),
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    """
    Upload a data file for ingestion.

    This endpoint:
    1. Validates type and size and rejects duplicates of earlier uploads
    2. Stores the original bytes in object storage
    3. Parses the file and keeps every row for traceability

    Returns the file id used by the analyze, confirm-mapping and status endpoints.
    """
    # Read one byte past the limit so oversize files are detected without buffering more
    content = file.file.read(pipeline.settings.max_upload_bytes + 1)
    uploaded = pipeline.upload(
        content,
        filename=file.filename or "upload",
        mime_type=file.content_type,
        company_id=owner.company_id,
        user_id=owner.user_id,
        entity_type=entity_type,
        priority=priority,
    )
    logger.info(f"🎉 Upload completed for file {uploaded.id}")
    return UploadResponse(
        file_id=uploaded.id,
        status=uploaded.status,
        file_type=uploaded.file_type,
        file_size_bytes=uploaded.file_size_bytes,
        file_hash=uploaded.file_hash,
        detected_entity_type=uploaded.detected_entity_type,
        detected_row_count=uploaded.detected_row_count,
        detected_column_count=uploaded.detected_column_count,
        storage_key=uploaded.storage_key,
    )


@router.get("/upload", response_model=List[UploadedFileResponse])
def list_uploads(
    status: Optional[str] = Query(None, description="Filter by status"),
    limit: int = Query(50, ge=1, le=200),
    owner: Owner = Depends(get_owner),
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    """List the owner's uploads, newest first."""
    return pipeline.list_uploads(owner.company_id, status=status, limit=limit)
