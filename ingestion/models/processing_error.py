"""Processing error log (append-only)."""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from ingestion.database import Base


class ProcessingError(Base):
    """Row- or file-level error raised while processing an upload."""

    __tablename__ = "processing_errors"

    id = Column(Integer, primary_key=True, index=True)
    file_id = Column(
        String(36), ForeignKey("file_uploads.id", ondelete="CASCADE"), nullable=False, index=True
    )
    row_number = Column(Integer, nullable=True)
    error_type = Column(
        String(50), nullable=False
    )  # validation_error, transformation_error, row_error, pipeline_error, parse_error
    error_message = Column(Text, nullable=False)
    field_name = Column(String(255), nullable=True)
    field_value = Column(Text, nullable=True)
    severity = Column(String(20), nullable=False, default="error")  # warning, error, critical
    is_resolved = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
