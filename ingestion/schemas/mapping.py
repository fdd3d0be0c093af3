"""Column mapping request and response schemas."""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class AlternativeField(BaseModel):
    field: str
    confidence: int


class MappingSuggestionResponse(BaseModel):
    """One suggested or stored mapping for a source column."""

    source_column: str
    target_field: str
    confidence: int = Field(..., ge=0, le=100)
    match_type: Optional[str] = None
    reasoning: Optional[str] = None
    alternatives: List[AlternativeField] = []
    transformation: Optional[str] = None
    transformation_params: Optional[Dict[str, Any]] = None
    is_confirmed: bool = False
    is_user_override: bool = False
    requires_review: bool = False


class AnalysisResponse(BaseModel):
    """Result of analyzing a file's columns."""

    file_id: str
    status: str
    entity_type: str
    confidence: int
    reasoning: str
    detection_method: str
    row_count: int
    column_count: int
    model: Optional[str] = None
    strategy: str
    mapping_suggestions: List[MappingSuggestionResponse]


class SampleRow(BaseModel):
    row_number: int
    data: Dict[str, Any]


class AnalysisPreviewResponse(BaseModel):
    """Stored analysis of a file with its first rows."""

    file_id: str
    filename: str
    status: str
    entity_type: Optional[str] = None
    entity_confidence: Optional[int] = None
    row_count: int
    column_count: int
    mapping_suggestions: List[MappingSuggestionResponse]
    sample_rows: List[SampleRow]


class MappingChoiceRequest(BaseModel):
    """User decision for one column. A null target ignores the column."""

    source_column: str = Field(..., min_length=1)
    target_field: Optional[str] = None
    transformation: Optional[str] = None
    transformation_params: Optional[Dict[str, Any]] = None
    is_user_override: bool = False


class ConfirmMappingRequest(BaseModel):
    """Request to confirm a file's column mappings."""

    mappings: List[MappingChoiceRequest] = Field(..., min_length=1)
    entity_type: Optional[str] = None
    auto_process: bool = Field(False, alias="autoProcess")

    class Config:
        populate_by_name = True


class ConfirmMappingResponse(BaseModel):
    file_id: str
    status: str
    mappings_confirmed: int
    processed: bool
    queued: bool
    process_result: Optional[Dict[str, Any]] = None
