"""Standardized record model: canonical output of the pipeline."""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from ingestion.database import Base, JSONType


class StandardizedRecord(Base):
    """One standardized, validated record per raw input row."""

    __tablename__ = "standardized_records"

    id = Column(Integer, primary_key=True, index=True)
    file_id = Column(
        String(36), ForeignKey("file_uploads.id", ondelete="CASCADE"), nullable=False, index=True
    )
    company_id = Column(String(64), nullable=False, index=True)
    source_row_number = Column(Integer, nullable=False)
    record_hash = Column(String(64), nullable=False)
    entity_type = Column(String(50), nullable=False)
    standardized_data = Column(JSONType, nullable=False)
    original_data = Column(JSONType, nullable=False)
    transformations_applied = Column(JSONType, nullable=False, default=list)
    validation_status = Column(String(20), nullable=False)  # passed, warning, failed
    validation_errors = Column(JSONType, nullable=False, default=list)
    quality_score = Column(Integer, nullable=False)
    target_dashboards = Column(JSONType, nullable=False, default=list)
    processing_generation = Column(Integer, nullable=False, default=1)
    processed_at = Column(DateTime, server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("file_id", "source_row_number", name="uq_standardized_records_file_row"),
    )
