"""Database models."""
from ingestion.models.column_mapping import ColumnMapping
from ingestion.models.dashboard_sync_status import DashboardSyncStatus
from ingestion.models.learning_entry import LearningEntry
from ingestion.models.processing_error import ProcessingError
from ingestion.models.raw_row import RawRow
from ingestion.models.standard_field import StandardFieldDefinition
from ingestion.models.standardized_record import StandardizedRecord
from ingestion.models.uploaded_file import UploadedFile

__all__ = [
    "ColumnMapping",
    "DashboardSyncStatus",
    "LearningEntry",
    "ProcessingError",
    "RawRow",
    "StandardFieldDefinition",
    "StandardizedRecord",
    "UploadedFile",
]
