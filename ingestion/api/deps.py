"""Shared FastAPI dependencies."""
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from ingestion.config import Settings, get_settings
from ingestion.database import get_db
from ingestion.services.fanout import DashboardFanout, build_fanout
from ingestion.services.llm_client import ClaudeMappingClient, build_llm_client
from ingestion.services.pipeline import IngestionPipeline
from ingestion.services.storage import ObjectStore, build_object_store


@dataclass
class Owner:
    company_id: str
    user_id: Optional[str] = None


def get_owner(
    x_company_id: str = Header(..., min_length=1),
    x_user_id: Optional[str] = Header(None),
) -> Owner:
    """Owner of the request, taken from trusted upstream headers."""
    return Owner(company_id=x_company_id, user_id=x_user_id)


def get_object_store(settings: Settings = Depends(get_settings)) -> ObjectStore:
    return build_object_store(settings)


def get_llm_client(settings: Settings = Depends(get_settings)) -> Optional[ClaudeMappingClient]:
    return build_llm_client(settings)


def get_fanout(settings: Settings = Depends(get_settings)) -> DashboardFanout:
    return build_fanout(settings)


def get_pipeline(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    store: ObjectStore = Depends(get_object_store),
    llm: Optional[ClaudeMappingClient] = Depends(get_llm_client),
    fanout: DashboardFanout = Depends(get_fanout),
) -> IngestionPipeline:
    return IngestionPipeline(db, settings, store, llm, fanout)
