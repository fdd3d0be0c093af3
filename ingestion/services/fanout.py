"""Dashboard fan-out: hand standardized records to every dashboard of their entity type."""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

import httpx
from sqlalchemy.orm import Session

from ingestion.config import Settings
from ingestion.database import dialect_insert
from ingestion.models.dashboard_sync_status import DashboardSyncStatus
from ingestion.models.standardized_record import StandardizedRecord

logger = logging.getLogger(__name__)

DEFAULT_DASHBOARDS = ["executive_dashboard"]

DASHBOARD_MAP: Dict[str, List[str]] = {
    "inventory": ["inventory_management", "executive_dashboard"],
    "orders": ["order_management", "sales_analytics", "executive_dashboard"],
    "suppliers": ["supplier_management", "procurement"],
    "customers": ["customer_analytics", "crm", "executive_dashboard"],
    "sales": ["sales_analytics", "revenue_dashboard", "executive_dashboard"],
    "purchases": ["procurement", "expense_management", "financial"],
    "recipes": ["recipe_management", "cost_analysis"],
    "ingredients": ["inventory_management", "recipe_management"],
    "menu_items": ["menu_management", "sales_analytics"],
    "financial": ["financial", "accounting", "executive_dashboard"],
    "logistics": ["logistics", "shipping", "operations"],
}

# exporter(dashboard_id, company_id, records)
Exporter = Callable[[str, str, Sequence[StandardizedRecord]], None]


def target_dashboards(entity_type: Optional[str]) -> List[str]:
    """Dashboards fed by an entity type, in a fixed order."""
    return list(DASHBOARD_MAP.get(entity_type, DEFAULT_DASHBOARDS))


def log_exporter(dashboard_id: str, company_id: str, records: Sequence[StandardizedRecord]) -> None:
    """Default exporter: dashboards read standardized_records directly, so only log the hand-off."""
    logger.info(f"📊 {len(records)} records available to {dashboard_id} for company {company_id}")


def record_payload(record: StandardizedRecord) -> dict:
    return {
        "row_number": record.source_row_number,
        "entity_type": record.entity_type,
        "data": record.standardized_data,
        "validation_status": record.validation_status,
        "quality_score": record.quality_score,
    }


def http_exporter(url: str, timeout: float = 5.0, client: Optional[httpx.Client] = None) -> Exporter:
    """
    Exporter that POSTs a file's records to a dashboard endpoint.

    Args:
        url: Dashboard ingestion URL
        timeout: Request timeout in seconds
        client: HTTP client to reuse (a short-lived one is created otherwise)

    Raises (from the returned exporter):
        httpx.HTTPError: on transport errors and non-2xx replies
    """

    def export(dashboard_id: str, company_id: str, records: Sequence[StandardizedRecord]) -> None:
        payload = {
            "dashboard_id": dashboard_id,
            "company_id": company_id,
            "record_count": len(records),
            "records": [record_payload(r) for r in records],
        }
        if client is not None:
            response = client.post(url, json=payload, timeout=timeout)
        else:
            with httpx.Client(timeout=timeout) as http:
                response = http.post(url, json=payload)
        response.raise_for_status()
        logger.info(f"📤 Pushed {len(records)} records to {dashboard_id} at {url}")

    return export


@dataclass
class FanoutOutcome:
    dashboard_id: str
    status: str  # completed, failed
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {"dashboard_id": self.dashboard_id, "status": self.status, "error": self.error}


class DashboardFanout:
    """
    Deliver records to each dashboard independently and record the outcome.

    One dashboard failing never stops delivery to the others.
    """

    def __init__(self, exporters: Optional[Dict[str, Exporter]] = None, default_exporter: Exporter = log_exporter):
        self.exporters = exporters or {}
        self.default_exporter = default_exporter

    def sync(
        self,
        db: Session,
        company_id: str,
        entity_type: Optional[str],
        file_id: str,
        records: Sequence[StandardizedRecord],
        dashboards: Optional[List[str]] = None,
    ) -> List[FanoutOutcome]:
        """
        Run every dashboard exporter and upsert its sync status.

        Writes go through ``db``; the caller owns the transaction.
        """
        dashboards = dashboards or target_dashboards(entity_type)
        processed = len(records)
        failed = sum(1 for r in records if r.validation_status == "failed")
        created = processed - failed

        outcomes = []
        for dashboard_id in dashboards:
            exporter = self.exporters.get(dashboard_id, self.default_exporter)
            try:
                exporter(dashboard_id, company_id, records)
            except Exception as e:
                logger.warning(f"⚠️ Dashboard {dashboard_id} sync failed for file {file_id}: {e}")
                self._record_failure(db, company_id, dashboard_id, file_id, str(e))
                outcomes.append(FanoutOutcome(dashboard_id, "failed", str(e)))
                continue
            self._record_success(db, company_id, dashboard_id, file_id, processed, created, failed)
            outcomes.append(FanoutOutcome(dashboard_id, "completed"))

        logger.info(
            f"Fan-out for file {file_id}: "
            f"{sum(1 for o in outcomes if o.status == 'completed')}/{len(outcomes)} dashboards synced"
        )
        return outcomes

    def _record_success(
        self, db: Session, company_id: str, dashboard_id: str, file_id: str, processed: int, created: int, failed: int
    ) -> None:
        now = datetime.utcnow()
        stmt = dialect_insert(db, DashboardSyncStatus).values(
            company_id=company_id,
            dashboard_id=dashboard_id,
            last_file_id=file_id,
            sync_status="completed",
            last_sync_at=now,
            records_processed=processed,
            records_created=created,
            records_failed=failed,
            error_count=0,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["company_id", "dashboard_id"],
            set_={
                "last_file_id": file_id,
                "sync_status": "completed",
                "last_sync_at": now,
                "records_processed": DashboardSyncStatus.records_processed + processed,
                "records_created": DashboardSyncStatus.records_created + created,
                "records_failed": DashboardSyncStatus.records_failed + failed,
                "last_error": None,
                "updated_at": now,
            },
        )
        db.execute(stmt)

    def _record_failure(self, db: Session, company_id: str, dashboard_id: str, file_id: str, error: str) -> None:
        now = datetime.utcnow()
        stmt = dialect_insert(db, DashboardSyncStatus).values(
            company_id=company_id,
            dashboard_id=dashboard_id,
            last_file_id=file_id,
            sync_status="failed",
            last_sync_at=now,
            error_count=1,
            last_error=error,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["company_id", "dashboard_id"],
            set_={
                "last_file_id": file_id,
                "sync_status": "failed",
                "last_sync_at": now,
                "error_count": DashboardSyncStatus.error_count + 1,
                "last_error": error,
                "updated_at": now,
            },
        )
        db.execute(stmt)


def build_fanout(settings: Settings) -> DashboardFanout:
    """Fan-out with an HTTP exporter for every dashboard that has an endpoint configured."""
    exporters = {
        dashboard_id: http_exporter(url, timeout=settings.dashboard_timeout_seconds)
        for dashboard_id, url in settings.dashboard_endpoints.items()
    }
    return DashboardFanout(exporters)
