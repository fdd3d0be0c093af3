"""Dashboard sync status model: fan-out bookkeeping per company and dashboard."""
from sqlalchemy import Column, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from ingestion.database import Base


class DashboardSyncStatus(Base):
    """Last sync outcome and running counts for one dashboard of one company."""

    __tablename__ = "dashboard_sync_status"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(String(64), nullable=False, index=True)
    dashboard_id = Column(String(100), nullable=False)
    last_file_id = Column(String(36), nullable=True)
    sync_status = Column(String(20), nullable=False)  # completed, failed
    last_sync_at = Column(DateTime, server_default=func.now(), nullable=False)
    records_processed = Column(Integer, default=0, nullable=False)
    records_created = Column(Integer, default=0, nullable=False)
    records_failed = Column(Integer, default=0, nullable=False)
    error_count = Column(Integer, default=0, nullable=False)
    last_error = Column(Text, nullable=True)
    updated_at = Column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("company_id", "dashboard_id", name="uq_dashboard_sync_company_dashboard"),
    )
