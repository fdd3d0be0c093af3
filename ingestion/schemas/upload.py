"""Upload request and response schemas."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class UploadResponse(BaseModel):
    """Response after a file is accepted and parsed."""

    file_id: str
    status: str
    file_type: str
    file_size_bytes: int
    file_hash: str
    detected_entity_type: Optional[str] = None
    detected_row_count: int
    detected_column_count: int
    storage_key: Optional[str] = None
    message: str = "File uploaded successfully"


class UploadedFileResponse(BaseModel):
    """Uploaded file summary for listings."""

    id: str
    original_filename: str
    file_type: str
    file_size_bytes: int
    priority: str
    status: str
    declared_entity_type: Optional[str] = None
    detected_entity_type: Optional[str] = None
    detected_row_count: int
    total_rows_processed: int
    successful_rows: int
    failed_rows: int
    data_quality_score: Optional[int] = None
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
