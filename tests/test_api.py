"""Tests for the data ingestion API."""
from conftest import ORDER_MAPPINGS, ORDERS_CSV
from ingestion.models.uploaded_file import UploadedFile

API = "/api/data-ingestion"


def upload(client, headers, content=ORDERS_CSV, filename="march_orders.csv", mime_type="text/csv", **data):
    return client.post(f"{API}/upload", files={"file": (filename, content, mime_type)}, data=data, headers=headers)


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_upload_csv(client, headers):
    response = upload(client, headers)

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "uploaded"
    assert body["file_type"] == "csv"
    assert body["detected_entity_type"] == "orders"
    assert body["detected_row_count"] == 3
    assert body["detected_column_count"] == 5
    assert len(body["file_hash"]) == 64


def test_upload_requires_owner(client):
    response = upload(client, {})
    assert response.status_code == 422


def test_duplicate_upload_rejected(client, headers):
    first = upload(client, headers).json()
    response = upload(client, headers, filename="copy_of_orders.csv")

    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "duplicate_file"
    assert body["original_file_id"] == first["file_id"]


def test_same_bytes_allowed_for_another_company(client, headers):
    upload(client, headers)
    response = upload(client, {"X-Company-Id": "company-2"})
    assert response.status_code == 201


def test_unsupported_file_type(client, headers):
    response = upload(client, headers, content=b"%PDF-1.4", filename="invoice.pdf", mime_type="application/pdf")

    assert response.status_code == 400
    assert response.json()["error"] == "unsupported_file_type"


def test_empty_file(client, headers):
    response = upload(client, headers, content=b"")

    assert response.status_code == 400
    assert response.json()["error"] == "empty_file"


def test_unparseable_file_is_kept_as_failed(client, headers):
    response = upload(client, headers, content=b"a,b\n1,2,3\n", filename="broken.csv")

    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "parse_failed"

    status = client.get(f"{API}/status/{body['file_id']}", headers=headers).json()
    assert status["status"] == "failed"
    assert status["progress"] == 0
    assert status["errors"][0]["error_type"] == "parse_error"
    assert status["errors"][0]["severity"] == "critical"


def test_full_ingestion_flow(client, headers):
    file_id = upload(client, headers).json()["file_id"]

    analysis = client.post(f"{API}/analyze/{file_id}", headers=headers)
    assert analysis.status_code == 200
    body = analysis.json()
    assert body["status"] == "mapping_required"
    assert body["entity_type"] == "orders"
    assert body["detection_method"] == "filename"
    assert body["strategy"] == "deterministic"
    assert [s["target_field"] for s in body["mapping_suggestions"]] == [
        "order_id", "order_date", "customer_name", "quantity", "total_amount",
    ]

    status = client.get(f"{API}/status/{file_id}", headers=headers).json()
    assert status["status"] == "mapping_required"
    assert status["progress"] == 60
    assert len(status["column_detections"]) == 5

    preview = client.get(f"{API}/analyze/{file_id}", headers=headers).json()
    assert len(preview["sample_rows"]) == 3

    confirmed = client.post(
        f"{API}/confirm-mapping/{file_id}",
        json={"mappings": ORDER_MAPPINGS, "autoProcess": True},
        headers=headers,
    )
    assert confirmed.status_code == 200
    body = confirmed.json()
    assert body["processed"] is True
    assert body["status"] == "completed_with_errors"
    assert body["process_result"]["total_rows"] == 3
    assert body["process_result"]["error_count"] == 1

    status = client.get(f"{API}/status/{file_id}", headers=headers).json()
    assert status["status"] == "completed_with_errors"
    assert status["progress"] == 100
    assert status["processed_rows"] == 3
    assert status["successful_rows"] + status["failed_rows"] == 3
    assert status["data_quality_score"] == 100
    assert len(status["errors"]) == 1
    assert status["errors"][0]["row_number"] == 2
    assert status["errors"][0]["severity"] == "warning"

    sync = client.get(f"{API}/sync-status", headers=headers).json()
    assert {s["dashboard_id"] for s in sync} == {"order_management", "sales_analytics", "executive_dashboard"}
    assert all(s["sync_status"] == "completed" for s in sync)

    listing = client.get(f"{API}/upload", headers=headers).json()
    assert [f["id"] for f in listing] == [file_id]


def test_confirm_then_process(client, headers):
    file_id = upload(client, headers).json()["file_id"]
    client.post(f"{API}/analyze/{file_id}", headers=headers)

    confirmed = client.post(f"{API}/confirm-mapping/{file_id}", json={"mappings": ORDER_MAPPINGS}, headers=headers)
    assert confirmed.json()["status"] == "mapping_confirmed"
    assert confirmed.json()["processed"] is False

    processed = client.post(f"{API}/process/{file_id}", headers=headers)
    assert processed.status_code == 200
    assert processed.json()["generation"] == 1

    again = client.post(f"{API}/process/{file_id}", headers=headers)
    assert again.status_code == 409
    assert again.json()["error"] == "invalid_status_transition"


def test_confirm_missing_required_field(client, headers):
    file_id = upload(client, headers).json()["file_id"]
    client.post(f"{API}/analyze/{file_id}", headers=headers)
    mappings = [m for m in ORDER_MAPPINGS if m["target_field"] != "order_id"]

    response = client.post(f"{API}/confirm-mapping/{file_id}", json={"mappings": mappings}, headers=headers)

    assert response.status_code == 422
    assert response.json()["missing_fields"] == ["order_id"]


def test_confirm_unknown_source_column(client, headers):
    file_id = upload(client, headers).json()["file_id"]
    client.post(f"{API}/analyze/{file_id}", headers=headers)
    mappings = [
        dict(m, source_column="Grand Total") if m["target_field"] == "total_amount" else m for m in ORDER_MAPPINGS
    ]

    response = client.post(f"{API}/confirm-mapping/{file_id}", json={"mappings": mappings}, headers=headers)

    assert response.status_code == 422
    assert response.json()["error"] == "unknown_source_column"
    assert response.json()["unknown_columns"] == ["Grand Total"]


def test_files_are_scoped_to_their_company(client, headers):
    file_id = upload(client, headers).json()["file_id"]

    response = client.get(f"{API}/status/{file_id}", headers={"X-Company-Id": "company-2"})

    assert response.status_code == 404
    assert response.json()["error"] == "file_not_found"


def test_cancel_processing(client, headers):
    file_id = upload(client, headers).json()["file_id"]
    client.post(f"{API}/analyze/{file_id}", headers=headers)

    response = client.post(f"{API}/status/{file_id}", json={"action": "cancel_processing"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    again = client.post(f"{API}/status/{file_id}", json={"action": "cancel_processing"}, headers=headers)
    assert again.status_code == 409


def test_confirm_mapping_action(client, headers):
    file_id = upload(client, headers).json()["file_id"]
    client.post(f"{API}/analyze/{file_id}", headers=headers)

    missing = client.post(f"{API}/status/{file_id}", json={"action": "confirm_mapping"}, headers=headers)
    assert missing.status_code == 400

    response = client.post(
        f"{API}/status/{file_id}",
        json={"action": "confirm_mapping", "column_mappings": ORDER_MAPPINGS},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "mapping_confirmed"


def test_mark_completed_requires_processing(client, headers):
    file_id = upload(client, headers).json()["file_id"]

    response = client.post(f"{API}/status/{file_id}", json={"action": "mark_completed"}, headers=headers)

    assert response.status_code == 409
    assert response.json()["current_status"] == "uploaded"


def test_retry_failed_file(client, headers, test_db):
    file_id = upload(client, headers).json()["file_id"]
    session = test_db()
    file = session.get(UploadedFile, file_id)
    file.status = "failed"
    file.error_message = "worker crashed"
    session.commit()
    session.close()

    response = client.post(f"{API}/status/{file_id}", json={"action": "retry_processing"}, headers=headers)

    assert response.status_code == 200
    assert response.json()["status"] == "mapping_required"
    status = client.get(f"{API}/status/{file_id}", headers=headers).json()
    assert status["error_message"] is None


def test_sync_dashboard_endpoint(client, headers):
    file_id = upload(client, headers).json()["file_id"]
    client.post(f"{API}/analyze/{file_id}", headers=headers)

    early = client.post(f"{API}/sync-dashboard/{file_id}", headers=headers)
    assert early.status_code == 409
    assert early.json()["error"] == "file_not_ready"

    client.post(
        f"{API}/confirm-mapping/{file_id}",
        json={"mappings": ORDER_MAPPINGS, "autoProcess": True},
        headers=headers,
    )
    response = client.post(
        f"{API}/sync-dashboard/{file_id}", json={"dashboards": ["order_management"]}, headers=headers
    )

    assert response.status_code == 200
    assert response.json()["dashboards"] == [
        {"dashboard_id": "order_management", "status": "completed", "error": None}
    ]
    sync = {s["dashboard_id"]: s for s in client.get(f"{API}/sync-status", headers=headers).json()}
    assert sync["order_management"]["records_processed"] == 6
    assert sync["sales_analytics"]["records_processed"] == 3
