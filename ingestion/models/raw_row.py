"""Raw row model: one parsed input row, kept for traceability."""
from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, UniqueConstraint

from ingestion.database import Base, JSONType


class RawRow(Base):
    """A parsed source row, immutable once written."""

    __tablename__ = "raw_rows"

    id = Column(Integer, primary_key=True, index=True)
    file_id = Column(
        String(36), ForeignKey("file_uploads.id", ondelete="CASCADE"), nullable=False, index=True
    )
    row_number = Column(Integer, nullable=False)
    raw_data = Column(JSONType, nullable=False)
    row_hash = Column(String(64), nullable=False)
    is_header_row = Column(Boolean, default=False, nullable=False)
    processed = Column(Boolean, default=False, nullable=False)

    __table_args__ = (UniqueConstraint("file_id", "row_number", name="uq_raw_rows_file_row"),)
