"""Dashboard sync schemas."""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class SyncDashboardRequest(BaseModel):
    """Optional explicit dashboard list; defaults to the entity type's dashboards."""

    dashboards: Optional[List[str]] = None


class DashboardOutcome(BaseModel):
    dashboard_id: str
    status: str
    error: Optional[str] = None


class SyncDashboardResponse(BaseModel):
    file_id: str
    dashboards: List[DashboardOutcome]


class DashboardSyncStatusResponse(BaseModel):
    """Last sync outcome and running counts for one dashboard."""

    dashboard_id: str
    sync_status: str
    last_file_id: Optional[str] = None
    last_sync_at: datetime
    records_processed: int
    records_created: int
    records_failed: int
    error_count: int
    last_error: Optional[str] = None

    class Config:
        from_attributes = True
