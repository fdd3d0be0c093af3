"""Tests for blob storage and status events."""
import json
from types import SimpleNamespace

import pytest
import redis
from botocore.exceptions import ClientError

from conftest import ORDERS_CSV
from ingestion.exceptions import StorageReadError, StorageWriteError
from ingestion.services import events
from ingestion.services.pipeline import IngestionPipeline
from ingestion.services.storage import LocalObjectStore, ObjectStore, S3ObjectStore, make_storage_key


def test_storage_key_layout():
    key = make_storage_key("company-1", "../March Orders (final).csv")
    owner, name = key.split("/")
    assert owner == "company-1"
    assert name.endswith("-March_Orders_final_.csv")


def test_storage_key_owner_is_cleaned():
    assert make_storage_key("..", "data.csv").startswith("unknown/")
    assert make_storage_key("../../etc", "data.csv").startswith("_.._etc/")
    assert make_storage_key("acme/eu", "data.csv").startswith("acme_eu/")


def test_local_store_round_trip(store):
    store.put("company-1/orders.csv", b"a,b\n1,2\n")
    assert store.get("company-1/orders.csv") == b"a,b\n1,2\n"


def test_local_store_rejects_escaping_keys(tmp_path):
    store = LocalObjectStore(str(tmp_path / "blobs"))
    with pytest.raises(StorageReadError):
        store.get("../outside.csv")
    with pytest.raises(StorageReadError):
        store.get("company-1/missing.csv")


def test_local_store_rejects_escaping_writes(tmp_path):
    store = LocalObjectStore(str(tmp_path / "blobs"))
    with pytest.raises(StorageWriteError):
        store.put("../outside.csv", b"a,b\n")
    assert not (tmp_path / "outside.csv").exists()


def test_upload_keeps_file_when_blob_write_fails(db, settings, tmp_path):
    class FullDisk(LocalObjectStore):
        def put(self, key, content, content_type="application/octet-stream"):
            raise StorageWriteError("No space left on device")

    pipeline = IngestionPipeline(db, settings, FullDisk(str(tmp_path)))

    file = pipeline.upload(ORDERS_CSV, "data.csv", "text/csv", "company-1")

    assert file.storage_key is None
    assert file.status == "uploaded"
    assert file.detected_row_count == 3


def test_upload_with_unsafe_owner_is_stored_inside_base(db, settings, store):
    pipeline = IngestionPipeline(db, settings, store)

    file = pipeline.upload(ORDERS_CSV, "data.csv", "text/csv", "..")

    assert file.company_id == ".."
    assert file.storage_key.startswith("unknown/")
    assert store.get(file.storage_key) == ORDERS_CSV


def test_object_store_requires_every_operation():
    class WriteOnly(ObjectStore):
        def put(self, key, content, content_type="application/octet-stream"):
            pass

    with pytest.raises(TypeError):
        WriteOnly()


class FailingS3:
    def put_object(self, **kwargs):
        raise ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject")

    def get_object(self, **kwargs):
        raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")


def test_s3_errors_are_wrapped():
    store = S3ObjectStore("uploads", FailingS3())
    with pytest.raises(StorageWriteError):
        store.put("k", b"data")
    with pytest.raises(StorageReadError):
        store.get("k")


def test_s3_put_and_get():
    calls = {}

    class FakeS3:
        def put_object(self, **kwargs):
            calls.update(kwargs)

        def get_object(self, **kwargs):
            return {"Body": SimpleNamespace(read=lambda: b"payload")}

    store = S3ObjectStore("uploads", FakeS3())
    store.put("company-1/a.csv", b"payload", content_type="text/csv")

    assert calls == {"Bucket": "uploads", "Key": "company-1/a.csv", "Body": b"payload", "ContentType": "text/csv"}
    assert store.get("company-1/a.csv") == b"payload"


def test_events_disabled_by_default(monkeypatch):
    monkeypatch.setattr(redis.Redis, "from_url", lambda *a, **kw: pytest.fail("redis should not be used"))
    events.publish_event("file-1", {"status": "uploaded"})


def test_publish_progress(monkeypatch, settings):
    published = []
    fake = SimpleNamespace(publish=lambda channel, message: published.append((channel, json.loads(message))))
    monkeypatch.setattr(settings, "publish_events", True)
    monkeypatch.setattr(redis.Redis, "from_url", lambda *a, **kw: fake)

    events.publish_progress("file-1", 500, 1000)

    channel, message = published[0]
    assert channel == "ingestion:file-1"
    assert message["status"] == "processing"
    assert message["processed"] == 500
    assert message["total"] == 1000


def test_publish_failure_is_swallowed(monkeypatch, settings):
    def unavailable(*args, **kwargs):
        raise redis.ConnectionError("connection refused")

    monkeypatch.setattr(settings, "publish_events", True)
    monkeypatch.setattr(redis.Redis, "from_url", unavailable)

    events.publish_event("file-1", {"status": "failed"})
