"""Standardization and validation engine shared by every processing entry point."""
import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session

from ingestion.config import Settings
from ingestion.database import unit_of_work
from ingestion.exceptions import (
    ConcurrentProcessingError,
    InvalidStatusTransitionError,
    TransformationError,
    UploadNotFoundError,
)
from ingestion.models.column_mapping import ColumnMapping
from ingestion.models.processing_error import ProcessingError
from ingestion.models.raw_row import RawRow
from ingestion.models.standardized_record import StandardizedRecord
from ingestion.models.uploaded_file import UploadedFile
from ingestion.services.events import publish_progress, publish_status
from ingestion.services.fanout import DashboardFanout, FanoutOutcome, target_dashboards
from ingestion.services.field_dictionary import FieldDictionary
from ingestion.services.lifecycle import FileStatus, transition
from ingestion.services.suggester import DEFAULT_ENTITY_TYPE
from ingestion.services.transforms import apply_transformation
from ingestion.services.validation import (
    FieldError,
    ValidationStatus,
    classify,
    is_empty,
    quality_score,
    validate_field,
)

logger = logging.getLogger(__name__)

ROW_LEVEL_ERROR_TYPES = ("validation_error", "transformation_error", "row_error")
SEVERITY = {"validation_error": "warning", "transformation_error": "error", "row_error": "error"}


def canonical_hash(payload: Any) -> str:
    return hashlib.sha256(json.dumps(payload, sort_keys=True, default=str).encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class StandardizationOptions:
    warning_max_errors: int = 2
    batch_size: int = 1000
    fan_out: bool = True

    @classmethod
    def from_settings(cls, settings: Settings, fan_out: bool = True) -> "StandardizationOptions":
        return cls(
            warning_max_errors=settings.validation_warning_max_errors,
            batch_size=settings.processing_batch_size,
            fan_out=fan_out,
        )


@dataclass
class RowOutcome:
    standardized: Dict[str, Any]
    transformations: List[dict]
    errors: List[FieldError]
    validation_status: str
    quality_score: int


@dataclass
class ProcessingResult:
    file_id: str
    status: str
    generation: int
    total_rows: int = 0
    successful_rows: int = 0
    failed_rows: int = 0
    quality_score: Optional[int] = None
    error_count: int = 0
    dashboards: List[FanoutOutcome] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "file_id": self.file_id,
            "status": self.status,
            "generation": self.generation,
            "total_rows": self.total_rows,
            "successful_rows": self.successful_rows,
            "failed_rows": self.failed_rows,
            "quality_score": self.quality_score,
            "error_count": self.error_count,
            "dashboards": [d.to_dict() for d in self.dashboards],
        }


class _RunSuperseded(Exception):
    """The file left this run's processing generation before the final write."""

    def __init__(self, status: str):
        super().__init__(status)
        self.status = status


class StandardizationEngine:
    """
    Turn a file's raw rows into standardized, validated records.

    A run claims the file by moving it from mapping_confirmed to processing
    and bumping its processing generation. Records, errors and the final file
    status are written in one transaction that is discarded if the file was
    cancelled or re-claimed in the meantime.
    """

    def __init__(
        self,
        dictionary: FieldDictionary,
        options: Optional[StandardizationOptions] = None,
        fanout: Optional[DashboardFanout] = None,
    ):
        self.dictionary = dictionary
        self.options = options or StandardizationOptions()
        self.fanout = fanout or DashboardFanout()

    # Row-level

    def standardize_row(
        self, raw_data: Dict[str, Any], mappings: List[ColumnMapping], entity_type: str
    ) -> RowOutcome:
        """Apply transformations and validation to a single row."""
        standardized: Dict[str, Any] = {}
        applied: List[dict] = []
        errors: List[FieldError] = []
        non_empty = 0
        valid = 0

        for mapping in mappings:
            target = mapping.target_field
            original = raw_data.get(mapping.source_column)
            try:
                value = apply_transformation(mapping.transformation, original, mapping.transformation_params)
            except TransformationError as e:
                standardized[target] = None
                errors.append(FieldError(target, e.message, original, "transformation_error"))
                continue
            if mapping.transformation and original is not None:
                applied.append({"field": target, "transformation": mapping.transformation})

            standardized[target] = value
            if not is_empty(value):
                non_empty += 1
            definition = self.dictionary.get(entity_type, target)
            error = validate_field(definition, value) if definition else None
            if error:
                errors.append(error)
            else:
                valid += 1

        return RowOutcome(
            standardized=standardized,
            transformations=applied,
            errors=errors,
            validation_status=classify(len(errors), self.options.warning_max_errors),
            quality_score=quality_score(len(mappings), non_empty, valid),
        )

    # File-level

    def claim(self, db: Session, file_id: str) -> int:
        """
        Move a confirmed file to processing and return the new generation.

        Raises:
            UploadNotFoundError: if the file does not exist
            ConcurrentProcessingError: if another run holds the file
            InvalidStatusTransitionError: if the file is not confirmed
        """
        result = db.execute(
            update(UploadedFile)
            .where(
                UploadedFile.id == file_id,
                UploadedFile.status == FileStatus.MAPPING_CONFIRMED.value,
            )
            .values(
                status=FileStatus.PROCESSING.value,
                processing_generation=UploadedFile.processing_generation + 1,
                processing_started_at=datetime.utcnow(),
                processing_completed_at=None,
                error_message=None,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            db.rollback()
            file = db.get(UploadedFile, file_id)
            if file is None:
                raise UploadNotFoundError(file_id)
            if file.status == FileStatus.PROCESSING.value:
                raise ConcurrentProcessingError(f"File {file_id} is already being processed")
            raise InvalidStatusTransitionError(file.status, FileStatus.PROCESSING.value)
        db.commit()

        file = db.get(UploadedFile, file_id)
        db.refresh(file)
        logger.info(f"🔒 Claimed file {file_id} for processing (generation {file.processing_generation})")
        return file.processing_generation

    def process_file(self, db: Session, file_id: str) -> ProcessingResult:
        """
        Standardize every raw row of a confirmed file.

        Raises:
            UploadNotFoundError, ConcurrentProcessingError, InvalidStatusTransitionError:
                if the file cannot be claimed
            Exception: systemic failures, after the file is marked failed
        """
        generation = self.claim(db, file_id)
        file = db.get(UploadedFile, file_id)
        publish_status(file)

        try:
            result = self._run(db, file, generation)
        except _RunSuperseded as e:
            logger.warning(f"⚠️ File {file_id} left generation {generation} ({e.status}), discarding run")
            return ProcessingResult(file_id=file_id, status=e.status, generation=generation)
        except Exception as e:
            logger.error(f"💥 Processing failed for file {file_id}: {e}", exc_info=True)
            self._mark_failed(db, file_id, generation, e)
            raise

        publish_status(file)
        if self.options.fan_out:
            result.dashboards = self.sync_dashboards(db, file)
        return result

    def _run(self, db: Session, file: UploadedFile, generation: int) -> ProcessingResult:
        entity_type = file.entity_type or DEFAULT_ENTITY_TYPE
        dashboards = target_dashboards(entity_type)
        mappings = (
            db.query(ColumnMapping)
            .filter(ColumnMapping.file_id == file.id, ColumnMapping.is_confirmed.is_(True))
            .order_by(ColumnMapping.id)
            .all()
        )
        logger.info(f"⚙️ Processing file {file.id} as {entity_type} with {len(mappings)} mappings")

        total = failed = error_count = 0
        with unit_of_work(db):
            # Supersede records and row-level errors of earlier runs
            db.query(StandardizedRecord).filter(StandardizedRecord.file_id == file.id).delete(
                synchronize_session=False
            )
            db.query(ProcessingError).filter(
                ProcessingError.file_id == file.id,
                ProcessingError.error_type.in_(ROW_LEVEL_ERROR_TYPES),
            ).delete(synchronize_session=False)

            for batch in self._batches(db, file.id):
                for raw in batch:
                    status, errors = self._process_row(db, file, raw, mappings, entity_type, dashboards, generation)
                    total += 1
                    error_count += errors
                    if status == ValidationStatus.FAILED:
                        failed += 1
                db.flush()
                logger.info(f"📦 File {file.id}: {total}/{file.detected_row_count} rows standardized")
                publish_progress(file.id, total, file.detected_row_count)

            db.query(RawRow).filter(RawRow.file_id == file.id, RawRow.is_header_row.is_(False)).update(
                {RawRow.processed: True}, synchronize_session=False
            )

            db.refresh(file, with_for_update=True)
            if file.status != FileStatus.PROCESSING.value or file.processing_generation != generation:
                raise _RunSuperseded(file.status)

            successful = total - failed
            file.total_rows_processed = total
            file.successful_rows = successful
            file.failed_rows = failed
            file.data_quality_score = round(successful / total * 100) if total else 0
            transition(file, FileStatus.COMPLETED if error_count == 0 else FileStatus.COMPLETED_WITH_ERRORS)

        logger.info(
            f"🏁 File {file.id} {file.status}: total={total}, successful={total - failed}, "
            f"failed={failed}, errors={error_count}"
        )
        return ProcessingResult(
            file_id=file.id,
            status=file.status,
            generation=generation,
            total_rows=total,
            successful_rows=total - failed,
            failed_rows=failed,
            quality_score=file.data_quality_score,
            error_count=error_count,
        )

    def _batches(self, db: Session, file_id: str):
        """Yield raw rows in row order, at most batch_size at a time."""
        last_row = 0
        while True:
            batch = (
                db.query(RawRow)
                .filter(
                    RawRow.file_id == file_id,
                    RawRow.is_header_row.is_(False),
                    RawRow.row_number > last_row,
                )
                .order_by(RawRow.row_number)
                .limit(self.options.batch_size)
                .all()
            )
            if not batch:
                return
            yield batch
            last_row = batch[-1].row_number

    def _process_row(
        self,
        db: Session,
        file: UploadedFile,
        raw: RawRow,
        mappings: List[ColumnMapping],
        entity_type: str,
        dashboards: List[str],
        generation: int,
    ) -> Tuple[str, int]:
        """Write one record and its errors; returns (validation status, error count)."""
        try:
            outcome = self.standardize_row(raw.raw_data, mappings, entity_type)
        except Exception as e:
            logger.warning(f"⚠️ Row {raw.row_number} of file {file.id} failed: {e}")
            outcome = RowOutcome(
                standardized={},
                transformations=[],
                errors=[FieldError("", str(e), None, "row_error")],
                validation_status=ValidationStatus.FAILED,
                quality_score=0,
            )

        db.add(
            StandardizedRecord(
                file_id=file.id,
                company_id=file.company_id,
                source_row_number=raw.row_number,
                record_hash=canonical_hash(outcome.standardized),
                entity_type=entity_type,
                standardized_data=outcome.standardized,
                original_data=raw.raw_data,
                transformations_applied=outcome.transformations,
                validation_status=outcome.validation_status,
                validation_errors=[e.to_dict() for e in outcome.errors],
                quality_score=outcome.quality_score,
                target_dashboards=dashboards,
                processing_generation=generation,
            )
        )
        for error in outcome.errors:
            db.add(
                ProcessingError(
                    file_id=file.id,
                    row_number=raw.row_number,
                    error_type=error.error_type,
                    error_message=error.message,
                    field_name=error.field or None,
                    field_value=None if error.value is None else str(error.value),
                    severity=SEVERITY[error.error_type],
                )
            )
        return outcome.validation_status, len(outcome.errors)

    def _mark_failed(self, db: Session, file_id: str, generation: int, error: Exception) -> None:
        db.rollback()
        try:
            with unit_of_work(db):
                file = db.get(UploadedFile, file_id)
                db.refresh(file, with_for_update=True)
                if file.status != FileStatus.PROCESSING.value or file.processing_generation != generation:
                    return
                transition(file, FileStatus.FAILED)
                file.error_message = str(error)
                db.add(
                    ProcessingError(
                        file_id=file_id,
                        error_type="pipeline_error",
                        error_message=str(error),
                        severity="critical",
                    )
                )
            publish_status(file, str(error))
        except Exception:
            logger.error(f"Failed to mark file {file_id} as failed", exc_info=True)

    def sync_dashboards(
        self, db: Session, file: UploadedFile, dashboards: Optional[List[str]] = None
    ) -> List[FanoutOutcome]:
        """Fan a processed file's records out to its dashboards."""
        records = (
            db.query(StandardizedRecord)
            .filter(StandardizedRecord.file_id == file.id)
            .order_by(StandardizedRecord.source_row_number)
            .all()
        )
        try:
            with unit_of_work(db):
                return self.fanout.sync(
                    db, file.company_id, file.entity_type, file.id, records, dashboards=dashboards
                )
        except Exception:
            logger.error(f"Dashboard sync bookkeeping failed for file {file.id}", exc_info=True)
            return []
