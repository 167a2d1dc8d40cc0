"""
HTTP layer: status code mapping, auth and settings persistence.
"""

import json

import pytest
from fastapi.testclient import TestClient

from conftest import HEADER
from app.main import app
from app.api.v1.review_import import get_import_context
from app.core.auth import get_verified_store


BASE = "/api/v1/stores/my-store/review-import"
AUTH = {"X-Store-Key": "secret-key"}


@pytest.fixture
def client(import_context):
    app.dependency_overrides[get_import_context] = lambda: import_context
    app.dependency_overrides[get_verified_store] = lambda: {"name": "My Store", "id": "my-store"}
    yield TestClient(app)
    app.dependency_overrides.clear()


def upload(client, content: bytes, filename: str = "reviews.csv"):
    return client.post(f"{BASE}/upload", files={"file": (filename, content, "text/csv")}, headers=AUTH)


def test_health():
    assert TestClient(app).get("/api/v1/health").json() == {"ok": True}


def test_upload_and_import_scenario(client, reviews):
    content = f"{HEADER}\nABC123,John Doe,john@example.com,,,Great product works well,5\n".encode()

    response = upload(client, content)
    assert response.status_code == 200
    body = response.json()
    assert body["total_rows"] == 1
    assert body["headers"][0] == "SKU"

    first = client.post(f"{BASE}/batch", json={"upload_id": body["upload_id"], "offset": 0}, headers=AUTH)
    assert first.json()["processed"] == 1
    assert first.json()["complete"] is False

    final = client.post(f"{BASE}/batch", json={"upload_id": body["upload_id"], "offset": 1}, headers=AUTH)
    assert final.json()["complete"] is True
    assert final.json()["message"] == "Import complete! Created 1 new reviews, updated 0 existing reviews."
    assert final.json()["error_list"] == []

    [record] = reviews.records.values()
    assert record["product_id"] == 10
    assert record["rating"] == 5
    assert record["content"] == "Great product works well"


def test_upload_invalid_structure_is_400(client):
    response = upload(client, b"SKU,Author Name,Review Text\n")
    assert response.status_code == 400
    assert response.json()["detail"] == "Missing required columns: Review Stars CSV file contains no data rows."


def test_upload_wrong_extension_is_400(client):
    assert upload(client, b"SKU\n", filename="reviews.xlsx").status_code == 400


def test_upload_too_large_is_413(client, import_context):
    import_context.max_upload_size = 10
    assert upload(client, f"{HEADER}\n".encode()).status_code == 413


def test_batch_unknown_upload_is_404(client):
    response = client.post(f"{BASE}/batch", json={"upload_id": "missing", "offset": 0}, headers=AUTH)
    assert response.status_code == 404
    assert response.json()["detail"] == "Upload session expired. Please upload the file again."


def test_batch_negative_offset_is_422(client):
    response = client.post(f"{BASE}/batch", json={"upload_id": "x", "offset": -1}, headers=AUTH)
    assert response.status_code == 422


def test_settings_require_store_key(stores_config):
    client = TestClient(app)

    assert client.get(f"{BASE}/settings").status_code == 403
    assert client.get(f"{BASE}/settings", headers={"X-Store-Key": "wrong"}).status_code == 403
    assert client.get("/api/v1/stores/unknown/review-import/settings", headers=AUTH).status_code == 404


def test_settings_defaults_and_update(stores_config):
    client = TestClient(app)

    assert client.get(f"{BASE}/settings", headers=AUTH).json() == {
        "min_review_length": 10,
        "create_user_accounts": False,
        "default_ip_address": "",
        "auto_approve_reviews": True,
        "reviews_are_verified": False,
    }

    response = client.put(
        f"{BASE}/settings",
        json={"min_review_length": "-25", "create_user_accounts": "yes", "default_ip_address": "bogus"},
        headers=AUTH
    )
    assert response.status_code == 200
    assert response.json()["min_review_length"] == 25
    assert response.json()["create_user_accounts"] is True
    assert response.json()["default_ip_address"] == ""

    saved = json.loads(stores_config.read_text(encoding="utf-8"))
    assert saved["stores"]["My Store"]["review_import"]["min_review_length"] == 25
    assert saved["stores"]["My Store"]["api_key"] == "secret-key"
