"""Dashboard sync API endpoints."""
from typing import List, Optional

from fastapi import APIRouter, Body, Depends

from ingestion.api.deps import Owner, get_owner, get_pipeline
from ingestion.schemas.dashboard import (
    DashboardSyncStatusResponse,
    SyncDashboardRequest,
    SyncDashboardResponse,
)
from ingestion.services.pipeline import IngestionPipeline

router = APIRouter(prefix="/api/data-ingestion", tags=["dashboards"])


@router.post("/sync-dashboard/{file_id}", response_model=SyncDashboardResponse)
def sync_dashboard(
    file_id: str,
    payload: Optional[SyncDashboardRequest] = Body(None),
    owner: Owner = Depends(get_owner),
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    """Re-run dashboard fan-out for a processed file."""
    dashboards = payload.dashboards if payload else None
    outcomes = pipeline.sync_dashboards(file_id, owner.company_id, dashboards)
    return SyncDashboardResponse(file_id=file_id, dashboards=[o.to_dict() for o in outcomes])


@router.get("/sync-status", response_model=List[DashboardSyncStatusResponse])
def get_sync_status(
    owner: Owner = Depends(get_owner),
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    """Sync status of every dashboard for the caller's company."""
    return pipeline.sync_status(owner.company_id)
