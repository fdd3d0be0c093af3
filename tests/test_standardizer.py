"""Tests for row standardization and file processing."""
import pytest

from conftest import ORDERS_CSV
from ingestion.exceptions import ConcurrentProcessingError, InvalidStatusTransitionError, UploadNotFoundError
from ingestion.models.column_mapping import ColumnMapping
from ingestion.models.dashboard_sync_status import DashboardSyncStatus
from ingestion.models.processing_error import ProcessingError
from ingestion.models.raw_row import RawRow
from ingestion.models.standardized_record import StandardizedRecord
from ingestion.services import standardizer
from ingestion.services.pipeline import IngestionPipeline
from ingestion.services.standardizer import StandardizationEngine, StandardizationOptions
from test_confirmation import analyzed_file, order_choices


def confirmed_file(pipeline, content=ORDERS_CSV):
    file = analyzed_file(pipeline, content=content)
    pipeline.confirm(file.id, order_choices())
    return file


def records_for(db, file_id):
    return (
        db.query(StandardizedRecord)
        .filter(StandardizedRecord.file_id == file_id)
        .order_by(StandardizedRecord.source_row_number)
        .all()
    )


def test_every_row_becomes_a_record(pipeline, db):
    file = confirmed_file(pipeline)

    result = pipeline.process(file.id)

    assert result.total_rows == 3
    assert result.successful_rows + result.failed_rows == result.total_rows
    assert result.status == "completed_with_errors"
    assert result.error_count == 1
    assert result.generation == 1

    records = records_for(db, file.id)
    assert [r.source_row_number for r in records] == [1, 2, 3]
    assert records[0].standardized_data == {
        "order_id": "ORD-1",
        "order_date": "2024-03-01",
        "customer_name": "Harbor Bistro",
        "quantity": "4",
        "total_amount": 120.5,
    }
    assert records[0].validation_status == "passed"
    assert records[0].quality_score == 100
    assert records[0].target_dashboards == ["order_management", "sales_analytics", "executive_dashboard"]
    assert records[2].standardized_data["total_amount"] == 1000.0
    assert {"field": "order_date", "transformation": "date"} in records[0].transformations_applied


def test_negative_total_flagged_not_dropped(pipeline, db):
    file = confirmed_file(pipeline)
    pipeline.process(file.id)

    record = records_for(db, file.id)[1]
    assert record.standardized_data["order_date"] == "2024-03-02"
    assert record.validation_status == "warning"
    assert record.quality_score == 90
    assert len(record.validation_errors) == 1
    assert "minimum" in record.validation_errors[0]["message"]

    error = db.query(ProcessingError).filter(ProcessingError.file_id == file.id).one()
    assert error.row_number == 2
    assert error.error_type == "validation_error"
    assert error.field_name == "total_amount"
    assert error.severity == "warning"


def test_file_counts_and_quality(pipeline, db):
    file = confirmed_file(pipeline)
    pipeline.process(file.id)
    db.refresh(file)

    assert file.status == "completed_with_errors"
    assert file.total_rows_processed == 3
    assert file.successful_rows == 3
    assert file.failed_rows == 0
    assert file.data_quality_score == 100
    assert file.processing_completed_at is not None
    assert db.query(RawRow).filter(RawRow.file_id == file.id, RawRow.processed.is_(True)).count() == 3


def test_clean_file_completes(pipeline, db):
    content = b"Order #,Date,Client,Qty,Order Total\nORD-9,2024-05-01,Corner Deli,2,19.99\n"
    file = confirmed_file(pipeline, content=content)

    result = pipeline.process(file.id)

    assert result.status == "completed"
    assert result.quality_score == 100


def test_small_batches_cover_every_row(pipeline, db):
    file = confirmed_file(pipeline)
    engine = StandardizationEngine(pipeline.dictionary, StandardizationOptions(batch_size=1, fan_out=False))

    result = engine.process_file(db, file.id)

    assert result.total_rows == 3
    assert len(records_for(db, file.id)) == 3


def test_processing_twice_is_rejected(pipeline):
    file = confirmed_file(pipeline)
    pipeline.process(file.id)

    with pytest.raises(InvalidStatusTransitionError):
        pipeline.process(file.id)


def test_claim_conflict(pipeline, db):
    file = confirmed_file(pipeline)
    engine = pipeline.engine()
    assert engine.claim(db, file.id) == 1

    with pytest.raises(ConcurrentProcessingError):
        engine.claim(db, file.id)


def test_claim_unknown_file(pipeline, db):
    with pytest.raises(UploadNotFoundError):
        pipeline.engine().claim(db, "missing")


def test_cancel_mid_run_discards_the_result(pipeline, db, test_db, settings, store, monkeypatch):
    file = confirmed_file(pipeline)
    other = test_db()

    def cancel_on_first_batch(file_id, processed, total):
        if file.id == file_id and processed == 3:
            IngestionPipeline(other, settings, store).cancel(file_id)

    monkeypatch.setattr(standardizer, "publish_progress", cancel_on_first_batch)

    result = pipeline.process(file.id)
    other.close()

    assert result.status == "cancelled"
    assert result.total_rows == 0
    assert result.dashboards == []
    db.refresh(file)
    assert file.status == "cancelled"
    assert file.successful_rows == 0
    assert file.data_quality_score is None
    assert db.query(DashboardSyncStatus).count() == 0


def test_reprocessing_supersedes_records(pipeline, db):
    file = confirmed_file(pipeline)
    pipeline.process(file.id)

    # Back to confirmed, as an operator would after fixing mappings
    file.status = "mapping_confirmed"
    db.commit()
    result = pipeline.process(file.id)

    assert result.generation == 2
    records = records_for(db, file.id)
    assert len(records) == 3
    assert {r.processing_generation for r in records} == {2}
    assert db.query(ProcessingError).filter(ProcessingError.file_id == file.id).count() == 1


def test_transformation_failure_nulls_the_field(dictionary):
    engine = StandardizationEngine(dictionary)
    mappings = [
        ColumnMapping(source_column="Date", target_field="order_date", transformation="date"),
        ColumnMapping(source_column="Ref", target_field="order_id"),
    ]

    outcome = engine.standardize_row({"Date": "sometime last week", "Ref": "ORD-1"}, mappings, "orders")

    assert outcome.standardized == {"order_date": None, "order_id": "ORD-1"}
    assert [e.error_type for e in outcome.errors] == ["transformation_error"]
    assert outcome.validation_status == "warning"
    assert outcome.quality_score == 50


def test_many_errors_fail_the_row(dictionary):
    engine = StandardizationEngine(dictionary)
    mappings = [
        ColumnMapping(source_column="Ref", target_field="order_id"),
        ColumnMapping(source_column="Date", target_field="order_date"),
        ColumnMapping(source_column="Total", target_field="total_amount"),
    ]

    outcome = engine.standardize_row({"Ref": None, "Date": "soon", "Total": "-1"}, mappings, "orders")

    assert len(outcome.errors) == 3
    assert outcome.validation_status == "failed"
    assert outcome.quality_score == 33
