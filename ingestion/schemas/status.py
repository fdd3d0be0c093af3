"""Processing status schemas."""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel

from ingestion.schemas.mapping import MappingChoiceRequest, MappingSuggestionResponse


class ErrorDetail(BaseModel):
    row_number: Optional[int] = None
    error_type: str
    message: str
    field_name: Optional[str] = None
    field_value: Optional[str] = None
    severity: str


class StatusResponse(BaseModel):
    """Polled processing status of a file."""

    file_id: str
    filename: str
    status: str
    progress: int
    current_step: str
    entity_type: Optional[str] = None
    entity_confidence: Optional[int] = None
    total_rows: int
    column_count: int
    processed_rows: int
    successful_rows: int
    failed_rows: int
    data_quality_score: Optional[int] = None
    error_message: Optional[str] = None
    processing_generation: int
    created_at: datetime
    updated_at: datetime
    processing_started_at: Optional[datetime] = None
    processing_completed_at: Optional[datetime] = None
    column_detections: Optional[List[MappingSuggestionResponse]] = None
    errors: Optional[List[ErrorDetail]] = None


class StatusActionRequest(BaseModel):
    """Lifecycle action on a file."""

    action: Literal["mark_completed", "confirm_mapping", "cancel_processing", "retry_processing"]
    column_mappings: Optional[List[MappingChoiceRequest]] = None
    entity_type: Optional[str] = None


class StatusActionResponse(BaseModel):
    file_id: str
    action: str
    status: str
    message: str


class ProcessResponse(BaseModel):
    """Outcome of a standardization run."""

    file_id: str
    status: str
    generation: int
    total_rows: int
    successful_rows: int
    failed_rows: int
    quality_score: Optional[int] = None
    error_count: int
    dashboards: List[dict] = []
