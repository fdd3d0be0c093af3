"""Ingestion pipeline: upload, analyze, confirm, process and lifecycle actions."""
import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import insert, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ingestion.config import Settings
from ingestion.database import unit_of_work
from ingestion.exceptions import (
    DuplicateFileError,
    EmptyFileError,
    FileNotReadyError,
    FileParseError,
    FileTooLargeError,
    InvalidStatusTransitionError,
    StorageReadError,
    StorageWriteError,
    UnknownStandardFieldError,
    UploadNotFoundError,
)
from ingestion.models.column_mapping import ColumnMapping
from ingestion.models.dashboard_sync_status import DashboardSyncStatus
from ingestion.models.processing_error import ProcessingError
from ingestion.models.raw_row import RawRow
from ingestion.models.uploaded_file import UploadedFile
from ingestion.services.confirmation import MappingChoice, confirm_mappings
from ingestion.services.events import publish_status
from ingestion.services.fanout import DashboardFanout, FanoutOutcome, build_fanout
from ingestion.services.field_dictionary import FieldDictionary, load_field_dictionary
from ingestion.services.lifecycle import TERMINAL_STATUSES, FileStatus, progress_for, step_label, transition
from ingestion.services.llm_client import ClaudeMappingClient, build_llm_client
from ingestion.services.parsers import ParsedFile, parse_file, profile_columns, resolve_file_type
from ingestion.services.standardizer import (
    ProcessingResult,
    StandardizationEngine,
    StandardizationOptions,
    canonical_hash,
)
from ingestion.services.storage import ObjectStore, build_object_store, make_storage_key
from ingestion.services.suggester import (
    EntityDetection,
    MappingSuggester,
    SuggesterConfig,
    SuggestionResult,
    detect_entity_from_filename,
    load_learning_entries,
)

logger = logging.getLogger(__name__)

PRIORITIES = ("low", "normal", "high", "urgent")
PREVIEW_ROWS = 10
SYNCABLE_STATUSES = {FileStatus.COMPLETED.value, FileStatus.COMPLETED_WITH_ERRORS.value}


@dataclass
class AnalysisResult:
    file: UploadedFile
    detection: EntityDetection
    suggestions: SuggestionResult

    def to_dict(self) -> dict:
        return {
            "file_id": self.file.id,
            "status": self.file.status,
            "entity_type": self.detection.entity_type,
            "confidence": self.detection.confidence,
            "reasoning": self.detection.reasoning,
            "detection_method": self.detection.method,
            "row_count": self.file.detected_row_count,
            "column_count": self.file.detected_column_count,
            "model": self.suggestions.model,
            "strategy": self.suggestions.strategy,
            "mapping_suggestions": [s.to_dict() for s in self.suggestions.suggestions],
        }


def mapping_to_dict(mapping: ColumnMapping) -> dict:
    return {
        "source_column": mapping.source_column,
        "target_field": mapping.target_field,
        "confidence": mapping.confidence,
        "match_type": mapping.match_type,
        "reasoning": mapping.reasoning,
        "alternatives": mapping.alternatives or [],
        "transformation": mapping.transformation,
        "transformation_params": mapping.transformation_params,
        "is_confirmed": mapping.is_confirmed,
        "is_user_override": mapping.is_user_override,
        "requires_review": mapping.confidence < 70,
    }


def error_to_dict(error: ProcessingError) -> dict:
    return {
        "row_number": error.row_number,
        "error_type": error.error_type,
        "message": error.error_message,
        "field_name": error.field_name,
        "field_value": error.field_value,
        "severity": error.severity,
    }


class IngestionPipeline:
    """
    Entry points for every stage of a file's lifecycle.

    One instance serves one database session; the field dictionary is loaded
    once per instance.
    """

    def __init__(
        self,
        db: Session,
        settings: Settings,
        store: ObjectStore,
        llm: Optional[ClaudeMappingClient] = None,
        fanout: Optional[DashboardFanout] = None,
    ):
        self.db = db
        self.settings = settings
        self.store = store
        self.llm = llm
        self.fanout = fanout or DashboardFanout()
        self._dictionary: Optional[FieldDictionary] = None

    @property
    def dictionary(self) -> FieldDictionary:
        if self._dictionary is None:
            self._dictionary = load_field_dictionary(self.db)
        return self._dictionary

    def suggester(self) -> MappingSuggester:
        return MappingSuggester(self.dictionary, SuggesterConfig.from_settings(self.settings), self.llm)

    def engine(self, fan_out: bool = True) -> StandardizationEngine:
        return StandardizationEngine(
            self.dictionary, StandardizationOptions.from_settings(self.settings, fan_out=fan_out), self.fanout
        )

    def get_file(self, file_id: str, company_id: Optional[str] = None) -> UploadedFile:
        file = self.db.get(UploadedFile, file_id)
        if file is None or (company_id is not None and file.company_id != company_id):
            raise UploadNotFoundError(file_id)
        return file

    # Upload

    def upload(
        self,
        content: bytes,
        filename: str,
        mime_type: Optional[str],
        company_id: str,
        user_id: Optional[str] = None,
        entity_type: Optional[str] = None,
        priority: str = "normal",
    ) -> UploadedFile:
        """
        Accept a file: validate, dedupe, store the blob, then parse and keep its rows.

        Raises:
            UnsupportedFileTypeError, EmptyFileError, FileTooLargeError: bad input
            DuplicateFileError: the owner already uploaded these bytes
            FileParseError: the content could not be parsed (the file is kept as failed)
        """
        logger.info(f"📁 Upload: filename={filename}, content_type={mime_type}, size={len(content)}")
        file_type = resolve_file_type(mime_type, filename)
        if not content:
            raise EmptyFileError("File is empty")
        if len(content) > self.settings.max_upload_bytes:
            raise FileTooLargeError(
                f"File too large (max {self.settings.max_upload_bytes // (1024 * 1024)}MB)",
                max_bytes=self.settings.max_upload_bytes,
            )
        if entity_type and entity_type not in self.dictionary:
            raise UnknownStandardFieldError(f"Unknown entity type '{entity_type}'")
        if priority not in PRIORITIES:
            priority = "normal"

        file_hash = hashlib.sha256(content).hexdigest()
        self._reject_duplicate(company_id, file_hash)

        storage_key = make_storage_key(company_id, filename)
        try:
            self.store.put(storage_key, content, content_type=mime_type or "application/octet-stream")
        except StorageWriteError as e:
            logger.warning(f"⚠️ Blob storage failed, continuing without it: {e}")
            storage_key = None

        hint = entity_type or detect_entity_from_filename(filename)
        file = UploadedFile(
            company_id=company_id,
            uploaded_by=user_id,
            original_filename=filename,
            file_size_bytes=len(content),
            file_type=file_type,
            mime_type=mime_type,
            file_hash=file_hash,
            storage_key=storage_key,
            priority=priority,
            declared_entity_type=entity_type,
            detected_entity_type=hint,
            entity_confidence=100 if entity_type else (80 if hint else None),
            status=FileStatus.UPLOADED.value,
        )
        try:
            with unit_of_work(self.db):
                self.db.add(file)
        except IntegrityError:
            # Lost a race with an identical upload
            self._reject_duplicate(company_id, file_hash)
            raise
        logger.info(f"💾 File record created: {file.id}")
        publish_status(file)

        try:
            parsed = parse_file(content, file_type)
        except FileParseError as e:
            self._fail(file, e.message, error_type="parse_error")
            raise FileParseError(e.message, file_id=file.id) from e

        self._store_rows(file, parsed)
        return file

    def _reject_duplicate(self, company_id: str, file_hash: str) -> None:
        existing = (
            self.db.query(UploadedFile)
            .filter(UploadedFile.company_id == company_id, UploadedFile.file_hash == file_hash)
            .first()
        )
        if existing:
            logger.warning(f"⚠️ Duplicate upload of file {existing.id}")
            raise DuplicateFileError(existing.id)

    def _store_rows(self, file: UploadedFile, parsed: ParsedFile) -> None:
        """Persist the header and data rows in source order, in batches."""
        batch_size = self.settings.processing_batch_size
        with unit_of_work(self.db):
            self.db.query(RawRow).filter(RawRow.file_id == file.id).delete(synchronize_session=False)
            self.db.execute(
                insert(RawRow),
                [
                    {
                        "file_id": file.id,
                        "row_number": 0,
                        "raw_data": {"columns": parsed.columns},
                        "row_hash": canonical_hash(parsed.columns),
                        "is_header_row": True,
                    }
                ],
            )
            for start in range(0, len(parsed.rows), batch_size):
                chunk = parsed.rows[start:start + batch_size]
                self.db.execute(
                    insert(RawRow),
                    [
                        {
                            "file_id": file.id,
                            "row_number": start + offset,
                            "raw_data": row,
                            "row_hash": canonical_hash(row),
                            "is_header_row": False,
                        }
                        for offset, row in enumerate(chunk, start=1)
                    ],
                )
            file.detected_row_count = len(parsed.rows)
            file.detected_column_count = len(parsed.columns)
        logger.info(f"✅ Stored {len(parsed.rows)} raw rows for file {file.id}")

    def _load_rows(self, file: UploadedFile) -> ParsedFile:
        """Rows from raw_rows, or re-parsed from the stored blob when none were kept."""
        rows = (
            self.db.query(RawRow)
            .filter(RawRow.file_id == file.id)
            .order_by(RawRow.row_number)
            .all()
        )
        data_rows = [r.raw_data for r in rows if not r.is_header_row]
        header = next((r for r in rows if r.is_header_row), None)
        if data_rows:
            columns = header.raw_data["columns"] if header else list(data_rows[0])
            return ParsedFile(columns=columns, rows=data_rows)

        if not file.storage_key:
            raise StorageReadError(f"File {file.id} has no stored rows and no stored blob")
        logger.info(f"📖 Re-reading blob {file.storage_key} for file {file.id}")
        parsed = parse_file(self.store.get(file.storage_key), file.file_type)
        self._store_rows(file, parsed)
        return parsed

    def _fail(self, file: UploadedFile, message: str, error_type: str = "pipeline_error") -> None:
        """Mark a file failed and log the error that caused it."""
        self.db.rollback()
        with unit_of_work(self.db):
            self.db.refresh(file)
            transition(file, FileStatus.FAILED)
            file.error_message = message
            self.db.add(
                ProcessingError(
                    file_id=file.id,
                    error_type=error_type,
                    error_message=message,
                    severity="critical",
                )
            )
        publish_status(file, message)

    # Analysis

    def analyze(self, file_id: str, company_id: Optional[str] = None) -> AnalysisResult:
        """
        Profile columns, detect the entity type and store mapping suggestions.

        Raises:
            InvalidStatusTransitionError: if the file is not freshly uploaded
            StorageReadError: if rows must be re-read and the blob is unavailable
            LLMAuthenticationError, LLMModelNotFoundError, LLMRateLimitError:
                model errors that cannot fall back
        """
        file = self.get_file(file_id, company_id)
        with unit_of_work(self.db):
            transition(file, FileStatus.ANALYZING)
        publish_status(file)
        logger.info(f"🔍 Analyzing file {file.id}")

        try:
            parsed = self._load_rows(file)
            profiles = profile_columns(parsed.columns, parsed.rows)
            suggester = self.suggester()
            detection = suggester.detect_entity_type(profiles, file.original_filename, file.declared_entity_type)
            learned = load_learning_entries(
                self.db,
                file.company_id,
                detection.entity_type,
                self.settings.learning_min_success_rate,
                self.settings.learning_history_limit,
            )
            result = suggester.suggest(profiles, detection.entity_type, learned)

            with unit_of_work(self.db):
                # A cancel may have landed while the model was thinking
                self.db.refresh(file, with_for_update=True)
                if file.status != FileStatus.ANALYZING.value:
                    logger.warning(f"⚠️ File {file.id} became {file.status} during analysis, dropping suggestions")
                    dropped = SuggestionResult([], model=result.model, strategy=result.strategy)
                    return AnalysisResult(file, detection, dropped)
                self.db.query(ColumnMapping).filter(ColumnMapping.file_id == file.id).delete(
                    synchronize_session="fetch"
                )
                for suggestion in result.suggestions:
                    self.db.add(
                        ColumnMapping(
                            file_id=file.id,
                            source_column=suggestion.source_column,
                            target_field=suggestion.target_field,
                            confidence=suggestion.confidence,
                            match_type=suggestion.match_type,
                            reasoning=suggestion.reasoning,
                            alternatives=suggestion.alternatives,
                            is_confirmed=False,
                        )
                    )
                file.detected_entity_type = detection.entity_type
                file.entity_confidence = detection.confidence
                file.detected_row_count = len(parsed.rows)
                file.detected_column_count = len(parsed.columns)
                transition(file, FileStatus.MAPPING_REQUIRED)
        except Exception as e:
            logger.error(f"💥 Analysis failed for file {file.id}: {e}", exc_info=True)
            self._fail(file, getattr(e, "message", str(e)))
            raise

        publish_status(file)
        logger.info(
            f"✅ File {file.id} analyzed as {detection.entity_type} "
            f"({detection.confidence}%), {len(result.suggestions)} suggestions via {result.strategy}"
        )
        return AnalysisResult(file, detection, result)

    def preview(self, file_id: str, company_id: Optional[str] = None) -> dict:
        """File info, stored mappings and the first raw rows."""
        file = self.get_file(file_id, company_id)
        mappings = (
            self.db.query(ColumnMapping)
            .filter(ColumnMapping.file_id == file.id)
            .order_by(ColumnMapping.id)
            .all()
        )
        rows = (
            self.db.query(RawRow)
            .filter(RawRow.file_id == file.id, RawRow.is_header_row.is_(False))
            .order_by(RawRow.row_number)
            .limit(PREVIEW_ROWS)
            .all()
        )
        return {
            "file_id": file.id,
            "filename": file.original_filename,
            "status": file.status,
            "entity_type": file.entity_type,
            "entity_confidence": file.entity_confidence,
            "row_count": file.detected_row_count,
            "column_count": file.detected_column_count,
            "mapping_suggestions": [mapping_to_dict(m) for m in mappings],
            "sample_rows": [{"row_number": r.row_number, "data": r.raw_data} for r in rows],
        }

    # Confirmation and processing

    def confirm(
        self,
        file_id: str,
        choices: List[MappingChoice],
        company_id: Optional[str] = None,
        entity_type: Optional[str] = None,
        auto_process: bool = False,
    ) -> dict:
        file = self.get_file(file_id, company_id)
        mappings = confirm_mappings(self.db, file, choices, self.dictionary, self.settings, entity_type)
        publish_status(file)

        response = {
            "file_id": file.id,
            "status": file.status,
            "mappings_confirmed": len(mappings),
            "processed": False,
            "queued": False,
            "process_result": None,
        }
        if auto_process:
            if self.settings.background_processing:
                from ingestion.tasks.pipeline_tasks import process_file_task

                process_file_task.delay(file.id)
                response["queued"] = True
                logger.info(f"🚀 Queued processing for file {file.id}")
            else:
                result = self.process(file.id)
                response.update(status=result.status, processed=True, process_result=result.to_dict())
        return response

    def process(self, file_id: str, company_id: Optional[str] = None) -> ProcessingResult:
        file = self.get_file(file_id, company_id)
        return self.engine().process_file(self.db, file.id)

    # Lifecycle actions

    def cancel(self, file_id: str, company_id: Optional[str] = None) -> UploadedFile:
        """
        Cancel a non-terminal file. A run in flight keeps going but its final write is discarded.

        Raises:
            InvalidStatusTransitionError: if the file already finished
        """
        file = self.get_file(file_id, company_id)
        terminal = [s.value for s in TERMINAL_STATUSES]
        result = self.db.execute(
            update(UploadedFile)
            .where(UploadedFile.id == file.id, UploadedFile.status.notin_(terminal))
            .values(status=FileStatus.CANCELLED.value, cancelled_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.db.rollback()
            self.db.refresh(file)
            raise InvalidStatusTransitionError(file.status, FileStatus.CANCELLED.value)
        self.db.commit()
        self.db.refresh(file)
        logger.info(f"🛑 File {file.id} cancelled")
        publish_status(file)
        return file

    def retry(self, file_id: str, company_id: Optional[str] = None) -> UploadedFile:
        """Reset a failed file to uploaded and run analysis again."""
        file = self.get_file(file_id, company_id)
        with unit_of_work(self.db):
            transition(file, FileStatus.UPLOADED)
            file.total_rows_processed = 0
            file.successful_rows = 0
            file.failed_rows = 0
            file.data_quality_score = None
        publish_status(file)
        logger.info(f"🔁 Retrying file {file.id}")

        if self.settings.background_processing:
            from ingestion.tasks.pipeline_tasks import analyze_file_task

            analyze_file_task.delay(file.id)
        else:
            self.analyze(file.id)
        return file

    def mark_completed(self, file_id: str, company_id: Optional[str] = None) -> UploadedFile:
        file = self.get_file(file_id, company_id)
        with unit_of_work(self.db):
            transition(file, FileStatus.COMPLETED)
        publish_status(file)
        return file

    # Reporting

    def status_report(self, file_id: str, company_id: Optional[str] = None) -> dict:
        file = self.get_file(file_id, company_id)
        report = {
            "file_id": file.id,
            "filename": file.original_filename,
            "status": file.status,
            "progress": progress_for(file.status),
            "current_step": step_label(file.status),
            "entity_type": file.entity_type,
            "entity_confidence": file.entity_confidence,
            "total_rows": file.detected_row_count,
            "column_count": file.detected_column_count,
            "processed_rows": file.total_rows_processed,
            "successful_rows": file.successful_rows,
            "failed_rows": file.failed_rows,
            "data_quality_score": file.data_quality_score,
            "error_message": file.error_message,
            "processing_generation": file.processing_generation,
            "created_at": file.created_at,
            "updated_at": file.updated_at,
            "processing_started_at": file.processing_started_at,
            "processing_completed_at": file.processing_completed_at,
        }
        if file.status == FileStatus.MAPPING_REQUIRED.value:
            mappings = (
                self.db.query(ColumnMapping)
                .filter(ColumnMapping.file_id == file.id)
                .order_by(ColumnMapping.id)
                .all()
            )
            report["column_detections"] = [mapping_to_dict(m) for m in mappings]
        if file.status in (FileStatus.FAILED.value, FileStatus.COMPLETED_WITH_ERRORS.value):
            errors = (
                self.db.query(ProcessingError)
                .filter(ProcessingError.file_id == file.id)
                .order_by(ProcessingError.id)
                .limit(self.settings.status_error_limit)
                .all()
            )
            report["errors"] = [error_to_dict(e) for e in errors]
        return report

    def list_uploads(self, company_id: str, status: Optional[str] = None, limit: int = 50) -> List[UploadedFile]:
        query = self.db.query(UploadedFile).filter(UploadedFile.company_id == company_id)
        if status:
            query = query.filter(UploadedFile.status == status)
        return query.order_by(UploadedFile.created_at.desc(), UploadedFile.id).limit(limit).all()

    # Dashboards

    def sync_dashboards(
        self, file_id: str, company_id: Optional[str] = None, dashboards: Optional[List[str]] = None
    ) -> List[FanoutOutcome]:
        """
        Raises:
            FileNotReadyError: if the file has not finished processing
        """
        file = self.get_file(file_id, company_id)
        if file.status not in SYNCABLE_STATUSES:
            raise FileNotReadyError(
                f"File {file.id} is '{file.status}'; only processed files can be synced", status=file.status
            )
        return self.engine().sync_dashboards(self.db, file, dashboards)

    def sync_status(self, company_id: str) -> List[DashboardSyncStatus]:
        return (
            self.db.query(DashboardSyncStatus)
            .filter(DashboardSyncStatus.company_id == company_id)
            .order_by(DashboardSyncStatus.dashboard_id)
            .all()
        )


def build_pipeline(db: Session, settings: Settings) -> IngestionPipeline:
    """Pipeline wired with the configured object store and model client."""
    return IngestionPipeline(
        db, settings, build_object_store(settings), build_llm_client(settings), build_fanout(settings)
    )
