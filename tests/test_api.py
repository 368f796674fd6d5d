"""Tests for the HTTP surface: auth, structured errors, and endpoint wiring."""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from src.api.auth import get_identity
from src.api.routes import get_ai_client, get_gateway, get_tracker
from src.db.engine import get_session
from src.errors import NotFound, QualityGateFailed
from src.extraction.progress import ProgressTracker
from src.extraction.quality import ILLEGIBLE_DOCUMENT_MESSAGE
from src.main import app
from src.schemas.approval import ExtractionOutcome
from src.schemas.status import ProcessingStatus


@pytest.fixture()
def db() -> AsyncMock:
    return AsyncMock()


@pytest.fixture()
def client(db, identity, fake_redis):
    async def _session():
        yield db

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_identity] = lambda: identity
    app.dependency_overrides[get_gateway] = lambda: AsyncMock()
    app.dependency_overrides[get_ai_client] = lambda: AsyncMock()
    app.dependency_overrides[get_tracker] = lambda: ProgressTracker(fake_redis)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def anonymous_client(db):
    async def _session():
        yield db

    app.dependency_overrides[get_session] = _session
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestAuth:
    def test_missing_header_structured_401(self, anonymous_client) -> None:
        response = anonymous_client.post("/extractions", json={"file_id": str(uuid.uuid4())})
        assert response.status_code == 401
        body = response.json()
        assert body["ok"] is False
        assert body["error_type"] == "Unauthorized"
        assert body["retryable"] is False


class TestHealth:
    def test_health(self, anonymous_client) -> None:
        response = anonymous_client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestUpload:
    def test_upload_created(self, client, identity, file_factory) -> None:
        record = file_factory(original_filename="licenca.pdf", size_bytes=8)
        with patch("src.api.routes.upload_document", new_callable=AsyncMock, return_value=record) as upload:
            response = client.post(
                "/files",
                files={"file": ("licenca.pdf", b"%PDF-1.7", "application/pdf")},
            )

        assert response.status_code == 201
        body = response.json()
        assert body["file_id"] == str(record.id)
        assert body["status"] == "uploaded"
        kwargs = upload.call_args.kwargs
        assert kwargs["mime_type"] == "application/pdf"
        assert kwargs["data"] == b"%PDF-1.7"


class TestExtraction:
    def test_quality_gate_structured_422(self, client) -> None:
        error = QualityGateFailed(ILLEGIBLE_DOCUMENT_MESSAGE, details=["evidence 50 chars below minimum 200"])
        with patch("src.api.routes.run_extraction", new_callable=AsyncMock, side_effect=error):
            response = client.post("/extractions", json={"file_id": str(uuid.uuid4())})

        assert response.status_code == 422
        body = response.json()
        assert body["error_type"] == "QualityGateFailed"
        assert body["retryable"] is False
        assert "illegible" in body["error"]
        assert body["details"] == ["evidence 50 chars below minimum 200"]

    def test_success(self, client) -> None:
        outcome = ExtractionOutcome(extraction_id=uuid.uuid4(), confidence=0.9, evidence_chars=640, items_count=4)
        with patch("src.api.routes.run_extraction", new_callable=AsyncMock, return_value=outcome):
            response = client.post("/extractions", json={"file_id": str(uuid.uuid4())})

        assert response.status_code == 200
        assert response.json()["items_count"] == 4

    def test_malformed_body_structured_400(self, client) -> None:
        response = client.post("/extractions", json={"file_id": "not-a-uuid"})
        assert response.status_code == 400
        assert response.json()["error_type"] == "ValidationFailed"

    def test_status_processing(self, client) -> None:
        status = ProcessingStatus(progress=50, message="Extracting fields")
        with patch("src.api.routes.get_extraction_status", new_callable=AsyncMock, return_value=status):
            response = client.get("/extractions/status", params={"file_id": str(uuid.uuid4())})

        assert response.json() == {"state": "processing", "progress": 50, "message": "Extracting fields"}

    def test_status_unknown_file(self, client) -> None:
        with patch("src.api.routes.get_extraction_status", new_callable=AsyncMock, side_effect=NotFound("File not found.")):
            response = client.get("/extractions/status", params={"file_id": str(uuid.uuid4())})
        assert response.status_code == 404


class TestReject:
    def test_blank_reason_400(self, client) -> None:
        with patch("src.api.routes.reject_preview", new_callable=AsyncMock) as reject:
            response = client.post(f"/previews/{uuid.uuid4()}/reject", json={"reason": "   "})

        assert response.status_code == 400
        assert response.json()["error_type"] == "ValidationFailed"
        reject.assert_not_called()
