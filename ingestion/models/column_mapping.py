"""Column mapping model: suggested or confirmed source column -> standard field."""
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from ingestion.database import Base, JSONType


class ColumnMapping(Base):
    """Mapping of one source column of a file onto one standard field."""

    __tablename__ = "column_mappings"

    id = Column(Integer, primary_key=True, index=True)
    file_id = Column(
        String(36), ForeignKey("file_uploads.id", ondelete="CASCADE"), nullable=False, index=True
    )
    source_column = Column(String(255), nullable=False)
    target_field = Column(String(255), nullable=False)
    confidence = Column(Integer, nullable=False, default=0)
    match_type = Column(String(30), nullable=True)  # exact_alias, learned, substring, fallback, llm, user
    reasoning = Column(Text, nullable=True)
    alternatives = Column(JSONType, nullable=False, default=list)
    transformation = Column(String(30), nullable=True)
    transformation_params = Column(JSONType, nullable=True)
    is_confirmed = Column(Boolean, default=False, nullable=False)
    is_user_override = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("file_id", "source_column", name="uq_column_mappings_file_column"),
        CheckConstraint("confidence >= 0 AND confidence <= 100", name="ck_column_mappings_confidence"),
    )
