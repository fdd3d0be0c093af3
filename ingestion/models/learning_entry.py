"""Learning entries: confirmed column -> field pairs reused by later suggestions."""
from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from ingestion.database import Base


class LearningEntry(Base):
    """Observed success of mapping a source column name onto a standard field."""

    __tablename__ = "learning_entries"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(String(64), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False)
    source_column_name = Column(String(255), nullable=False)
    target_field = Column(String(255), nullable=False)
    usage_frequency = Column(Integer, default=1, nullable=False)
    success_rate = Column(Float, default=1.0, nullable=False)
    is_global = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "company_id",
            "entity_type",
            "source_column_name",
            "target_field",
            name="uq_learning_entries_mapping",
        ),
    )
