"""Tests for the company profile, QR image uploads and app-level plumbing."""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from backend.app.core.config import settings
from backend.app.models.audit import AuditLog
from backend.app.services.file_service import FileStorageService

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


# ─── General settings ─────────────────────────────────────────────────────────


class TestGeneralSettings:
    def test_defaults_created_on_first_read(self, client: TestClient) -> None:
        resp = client.get("/api/v1/general-settings")
        assert resp.status_code == 200
        body = resp.json()
        assert body["company_name"] == settings.COMPANY_NAME
        assert body["company_address"] is None

        again = client.get("/api/v1/general-settings").json()
        assert again["id"] == body["id"]

    def test_update_profile(self, client: TestClient, db: Session) -> None:
        resp = client.put(
            "/api/v1/general-settings",
            json={
                "companyName": "Shakti Power Solutions",
                "companyEmail": "Sales@ShaktiPower.in",
                "companyGstNumber": "07AAGCS0000A1Z2",
                "bankIfsc": "HDFC0000123",
            },
        )
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["company_name"] == "Shakti Power Solutions"
        assert body["company_email"] == "sales@shaktipower.in"
        assert body["bank_ifsc"] == "HDFC0000123"

        log = db.query(AuditLog).filter(AuditLog.action == "GENERAL_SETTINGS_UPDATED").one()
        assert log.new_values["company_gst_number"] == "07AAGCS0000A1Z2"

    def test_null_name_keeps_existing(self, client: TestClient) -> None:
        client.put("/api/v1/general-settings", json={"companyName": "Shakti Power"})
        body = client.put(
            "/api/v1/general-settings", json={"companyName": None, "bankName": "HDFC"}
        ).json()
        assert body["company_name"] == "Shakti Power"
        assert body["bank_name"] == "HDFC"

    def test_blank_name_rejected(self, client: TestClient) -> None:
        resp = client.put("/api/v1/general-settings", json={"companyName": " "})
        assert resp.status_code == 422
        assert resp.json()["errors"] == [
            {"field": "companyName", "message": "Company name is required"}
        ]


# ─── QR code upload ───────────────────────────────────────────────────────────


class TestQRUpload:
    def _upload(self, client: TestClient, filename: str, data: bytes, content_type: str):
        return client.post(
            "/api/v1/qr-code/upload", files={"file": (filename, data, content_type)}
        )

    def test_png_is_stored(self, client: TestClient, storage: FileStorageService) -> None:
        resp = self._upload(client, "upi-qr.png", PNG, "image/png")
        assert resp.status_code == 201, resp.text
        body = resp.json()
        assert body["filename"].startswith("qr-codes/qr-")
        assert body["filename"].endswith(".png")
        assert body["url"] == f"/files/{body['filename']}"
        assert body["size"] == len(PNG)
        assert storage.read(body["filename"]) == PNG

    def test_extension_taken_from_content_type_when_missing(self, client: TestClient) -> None:
        body = self._upload(client, "scan", b"GIF89a....", "image/gif").json()
        assert body["filename"].endswith(".gif")

    def test_non_image_rejected(self, client: TestClient) -> None:
        resp = self._upload(client, "notes.txt", b"hello", "text/plain")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Only image files are allowed"

    def test_empty_file_rejected(self, client: TestClient) -> None:
        resp = self._upload(client, "qr.png", b"", "image/png")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Uploaded file is empty"

    def test_size_limit(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 1024 * 1024)
        resp = self._upload(client, "qr.png", b"\x00" * (1024 * 1024 + 1), "image/png")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "File too large. Maximum size is 1 MB"


def test_storage_refuses_paths_outside_root(storage: FileStorageService) -> None:
    with pytest.raises(ValueError, match="Invalid file path"):
        storage.save("../outside.png", PNG)


# ─── App plumbing ─────────────────────────────────────────────────────────────


def test_health(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.json() == {"status": "ok", "app": settings.APP_NAME}


def test_request_id_generated(client: TestClient) -> None:
    resp = client.get("/health")
    assert len(resp.headers["X-Request-ID"]) == 36


def test_request_id_echoed(client: TestClient) -> None:
    resp = client.get("/health", headers={"X-Request-ID": "trace-42"})
    assert resp.headers["X-Request-ID"] == "trace-42"


def test_not_found_carries_request_id(client: TestClient) -> None:
    resp = client.get(
        "/api/v1/general-settings/nothing-here", headers={"X-Request-ID": "trace-43"}
    )
    assert resp.status_code == 404
    assert resp.headers["X-Request-ID"] == "trace-43"
