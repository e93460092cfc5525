import io

import pytest

PLANNER = {"X-User-Id": "planner-1"}


def _payload(shipment_id="SHP-API-1", rows=None, meta=None) -> dict:
    rows = rows if rows is not None else [
        {"caseNumber": "A1", "totalLines": 10, "domesticLines": 6, "bulkLines": 4, "criticalParts": 1, "row": 2},
        {"caseNumber": "A2", "totalLines": 5, "domesticLines": 5, "bulkLines": 0, "criticalParts": 0, "row": 3},
    ]
    body = {"shipments": {shipment_id: rows}}
    if meta is not None:
        body["meta"] = meta
    return body


@pytest.mark.asyncio
async def test_import_requires_identity(client):
    response = await client.post("/api/v1/production/import", json=_payload())
    assert response.status_code == 401
    assert response.json()["error"] == "UNAUTHENTICATED"


@pytest.mark.asyncio
async def test_import_requires_permission(client):
    response = await client.post(
        "/api/v1/production/import", json=_payload(), headers={"X-User-Id": "sorter-1"}
    )
    assert response.status_code == 403
    assert response.json()["error"] == "FORBIDDEN"


@pytest.mark.asyncio
async def test_import_accepts_session_cookie(client):
    client.cookies.set("session", "admin-1")
    response = await client.post("/api/v1/production/import", json=_payload("SHP-API-COOKIE"))
    client.cookies.clear()
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_import_returns_counts_and_job(client):
    response = await client.post("/api/v1/production/import", json=_payload(), headers=PLANNER)
    assert response.status_code == 200
    data = response.json()
    assert data["totalItems"] == 2
    assert data["status"] == "completed"
    assert data["pendingShipmentIds"] == []
    assert data["rejectedRows"] == []

    job = await client.get(f"/api/v1/production/import/jobs/{data['jobId']}")
    assert job.status_code == 200
    assert job.json()["status"] == "completed"
    assert job.json()["processedCount"] == 2
    assert job.json()["userId"] == "planner-1"


@pytest.mark.asyncio
async def test_import_reports_rejected_rows(client):
    rows = [
        {"caseNumber": "A1", "totalLines": 10, "domesticLines": 6, "bulkLines": 4, "criticalParts": 0},
        {"caseNumber": "A2", "totalLines": "lots", "domesticLines": 0, "bulkLines": 0, "criticalParts": 0, "row": 7},
    ]
    response = await client.post(
        "/api/v1/production/import", json=_payload("SHP-API-2", rows), headers=PLANNER
    )
    data = response.json()
    assert data["totalItems"] == 1
    assert data["rejectedRows"] == [
        {"shipmentId": "SHP-API-2", "index": 1, "reason": "totalLines:not_a_number", "sourceRow": 7}
    ]


@pytest.mark.asyncio
async def test_import_rejects_empty_payload(client):
    response = await client.post("/api/v1/production/import", json={"shipments": {}}, headers=PLANNER)
    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_PAYLOAD"


@pytest.mark.asyncio
async def test_list_and_get_cases(client):
    await client.post("/api/v1/production/import", json=_payload("SHP-API-3"), headers=PLANNER)

    listing = await client.get("/api/v1/production/cases", params={"shipmentId": "SHP-API-3"})
    assert listing.status_code == 200
    assert listing.json()["caseNumbers"] == ["A1", "A2"]
    assert listing.json()["balances"] == [
        {"caseNumber": "A1", "remainingLines": 10},
        {"caseNumber": "A2", "remainingLines": 5},
    ]

    detail = await client.get(
        "/api/v1/production/case", params={"shipmentId": "SHP-API-3", "caseNumber": "A1"}
    )
    assert detail.status_code == 200
    body = detail.json()
    assert body["shipmentId"] == "SHP-API-3"
    assert body["caseNumber"] == "A1"
    assert body["data"]["totalLines"] == 10
    assert body["data"]["remainingLines"] == 10
    assert body["data"]["sourceRow"] == 2
    assert body["data"]["uploadedBy"] == "planner-1"


@pytest.mark.asyncio
async def test_get_case_not_found(client):
    response = await client.get(
        "/api/v1/production/case", params={"shipmentId": "SHP-API-NONE", "caseNumber": "Z9"}
    )
    assert response.status_code == 404
    assert response.json()["error"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_list_cases_requires_shipment(client):
    response = await client.get("/api/v1/production/cases")
    assert response.status_code == 400
    assert response.json()["error"] == "VALIDATION"


@pytest.mark.asyncio
async def test_upload_then_wildcard_delete_removes_file(client, blob_store):
    upload = await client.post(
        "/api/v1/production/upload",
        data={"shipmentId": "SHP-API-4"},
        files={"file": ("cases sheet.xlsx", io.BytesIO(b"xlsx"), "application/octet-stream")},
        headers=PLANNER,
    )
    assert upload.status_code == 201
    uploaded = upload.json()
    assert uploaded["storagePath"].startswith("shipments/SHP-API-4/production/")
    assert uploaded["storagePath"].endswith("-cases_sheet.xlsx")
    assert uploaded["downloadUrl"].startswith("http://test/files/shipments/SHP-API-4/")
    assert uploaded["fileName"] == "cases sheet.xlsx"

    await client.post(
        "/api/v1/production/import",
        json=_payload("SHP-API-4", meta={"storagePath": uploaded["storagePath"], "fileName": uploaded["fileName"]}),
        headers=PLANNER,
    )

    response = await client.request(
        "DELETE", "/api/v1/production/import", json={"shipments": {"SHP-API-4": ["*"]}}, headers=PLANNER
    )
    assert response.status_code == 200
    assert response.json() == {
        "totalDeletes": 2,
        "status": "ok",
        "shipments": {"SHP-API-4": 2},
        "storageCleanupFailed": [],
    }

    listing = await client.get(
        "/api/v1/production/cases", params={"shipmentId": "SHP-API-4", "includeExhausted": "true"}
    )
    assert listing.json()["caseNumbers"] == []


@pytest.mark.asyncio
async def test_delete_requires_delete_permission(client):
    response = await client.request(
        "DELETE", "/api/v1/production/import", json={"shipments": {"SHP-1": ["*"]}}, headers={"X-User-Id": "sorter-1"}
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_upload_too_large(client, monkeypatch):
    from app.config import settings

    monkeypatch.setattr(settings, "max_upload_size_mb", 0)
    response = await client.post(
        "/api/v1/production/upload",
        data={"shipmentId": "SHP-API-5"},
        files={"file": ("big.xlsx", io.BytesIO(b"x"), "application/octet-stream")},
        headers=PLANNER,
    )
    assert response.status_code == 413
    assert response.json()["error"] == "FILE_TOO_LARGE"


@pytest.mark.asyncio
async def test_unknown_job(client):
    response = await client.get("/api/v1/production/import/jobs/00000000-0000-0000-0000-000000000000")
    assert response.status_code == 404
