"""Shared fixtures: identities, an in-memory Redis stand-in, and ORM factories."""

from __future__ import annotations

import uuid
from typing import Any

import pytest

import src.models  # noqa: F401  (registers every mapper before instances are built)
from src.audit import events
from src.models.enums import FileStatus, JobStatus, PreviewStatus
from src.models.extraction_job import ExtractionJob
from src.models.preview import ExtractionPreview
from src.models.uploaded_file import UploadedFile
from src.schemas.approval import Identity


class FakeRedis:
    """Dict-backed subset of redis.asyncio.Redis used by ProgressTracker."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key: str) -> str | None:
        return self.store.get(key)

    async def setex(self, key: str, ttl: int, value: str) -> None:
        self.store[key] = value
        self.ttls[key] = ttl

    async def delete(self, key: str) -> None:
        self.store.pop(key, None)
        self.ttls.pop(key, None)


@pytest.fixture(autouse=True)
def _reset_event_bus():
    """Each test gets a fresh event queue bound to its own loop; subscribers are restored after."""
    subscribers = list(events._subscribers)
    typed = {k: list(v) for k, v in events._type_subscribers.items()}
    events._queue = None
    events._worker_task = None
    yield
    events._queue = None
    events._worker_task = None
    events._subscribers[:] = subscribers
    events._type_subscribers.clear()
    events._type_subscribers.update(typed)


@pytest.fixture()
def identity() -> Identity:
    return Identity(user_id=uuid.uuid4(), company_id=uuid.uuid4())


@pytest.fixture()
def fake_redis() -> FakeRedis:
    return FakeRedis()


def make_uploaded_file(identity: Identity, **overrides: Any) -> UploadedFile:
    values: dict[str, Any] = {
        "id": uuid.uuid4(),
        "company_id": identity.company_id,
        "uploaded_by": identity.user_id,
        "original_filename": "licenca_operacao.pdf",
        "storage_path": f"{identity.company_id}/doc.pdf",
        "mime_type": "application/pdf",
        "size_bytes": 2048,
        "status": FileStatus.UPLOADED.value,
    }
    values.update(overrides)
    return UploadedFile(**values)


def make_preview(
    identity: Identity,
    fields: dict[str, Any],
    target_table: str | None = None,
    status: PreviewStatus = PreviewStatus.PENDING,
    job_status: JobStatus = JobStatus.COMPLETED,
) -> ExtractionPreview:
    job = ExtractionJob(
        id=uuid.uuid4(),
        company_id=identity.company_id,
        file_id=uuid.uuid4(),
        model="gpt-4o-mini",
        schema_version="2",
        status=job_status.value,
        quality_score=0.9,
        evidence_chars=800,
        declared_target_table=target_table,
    )
    preview = ExtractionPreview(
        id=uuid.uuid4(),
        company_id=identity.company_id,
        extraction_job_id=job.id,
        target_table=target_table,
        extracted_fields=fields,
        confidence_scores={name: 0.9 for name in fields},
        document_confidence=0.9,
        status=status.value,
    )
    preview.job = job
    return preview


@pytest.fixture()
def file_factory(identity: Identity):
    def _make(**overrides: Any) -> UploadedFile:
        return make_uploaded_file(identity, **overrides)

    return _make


@pytest.fixture()
def preview_factory(identity: Identity):
    def _make(fields: dict[str, Any], target_table: str | None = None, **kwargs: Any) -> ExtractionPreview:
        return make_preview(identity, fields, target_table, **kwargs)

    return _make
