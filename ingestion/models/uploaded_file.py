"""Uploaded file model tracking a file through the ingestion lifecycle."""
import uuid

from sqlalchemy import Column, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from ingestion.database import Base


class UploadedFile(Base):
    """Model for uploaded files and their processing state."""

    __tablename__ = "file_uploads"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(String(64), nullable=False, index=True)
    uploaded_by = Column(String(64), nullable=True)

    original_filename = Column(String(500), nullable=False)
    file_size_bytes = Column(Integer, nullable=False)
    file_type = Column(String(20), nullable=False)  # csv, tsv, txt, excel, json, xml
    mime_type = Column(String(255), nullable=True)
    file_hash = Column(String(64), nullable=False)
    storage_key = Column(String(1024), nullable=True)
    priority = Column(String(20), nullable=False, default="normal")

    declared_entity_type = Column(String(50), nullable=True)
    detected_entity_type = Column(String(50), nullable=True)
    entity_confidence = Column(Integer, nullable=True)
    detected_row_count = Column(Integer, default=0, nullable=False)
    detected_column_count = Column(Integer, default=0, nullable=False)

    total_rows_processed = Column(Integer, default=0, nullable=False)
    successful_rows = Column(Integer, default=0, nullable=False)
    failed_rows = Column(Integer, default=0, nullable=False)
    data_quality_score = Column(Integer, nullable=True)

    status = Column(
        String(50), nullable=False, default="uploaded"
    )  # see ingestion.services.lifecycle.FileStatus
    processing_generation = Column(Integer, default=0, nullable=False)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )
    analysis_started_at = Column(DateTime, nullable=True)
    analysis_completed_at = Column(DateTime, nullable=True)
    mapping_confirmed_at = Column(DateTime, nullable=True)
    processing_started_at = Column(DateTime, nullable=True)
    processing_completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("company_id", "file_hash", name="uq_file_uploads_company_hash"),
    )

    @property
    def entity_type(self):
        """Entity type used downstream: detected, else declared."""
        return self.detected_entity_type or self.declared_entity_type

    def __repr__(self):
        return f"<UploadedFile(id={self.id}, filename='{self.original_filename}', status='{self.status}')>"
