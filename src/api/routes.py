"""Pipeline HTTP API: upload, extraction, status, review, and approval.

Every endpoint runs as the authenticated Identity and is tenant-scoped.
PipelineErrors raised below are turned into structured bodies by the
exception handler registered in src.main.
"""

# ruff: noqa: B008  (Depends() in function defaults is standard FastAPI)

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.auth import get_identity
from src.config import settings
from src.db.engine import get_session, redis_client
from src.extraction.invoker import load_file, run_extraction
from src.extraction.progress import ProgressTracker
from src.extraction.upload import upload_document
from src.llm.client import AIDocumentClient, ai_client
from src.reconciliation.approval import approve_preview, build_comparison, reject_preview
from src.schemas.approval import (
    ApprovalRequest,
    ApprovalResult,
    ComparisonOut,
    ExtractionOutcome,
    ExtractionRequest,
    Identity,
    RejectionRequest,
    RejectionResult,
    SignedUrl,
    UploadResult,
)
from src.schemas.status import ExtractionStatus
from src.status.poller import get_extraction_status
from src.storage.gateway import ObjectStoreGateway, storage_gateway

router = APIRouter(tags=["pipeline"])


# ── Collaborator dependencies ────────────────────────────────────────


def get_gateway() -> ObjectStoreGateway:
    return storage_gateway


def get_ai_client() -> AIDocumentClient:
    return ai_client


def get_tracker() -> ProgressTracker:
    return ProgressTracker(redis_client)


# ── Upload & extraction ──────────────────────────────────────────────


@router.post("/files", response_model=UploadResult, status_code=status.HTTP_201_CREATED)
async def upload_file(
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_identity),
    gateway: ObjectStoreGateway = Depends(get_gateway),
) -> UploadResult:
    """Accept a PDF, CSV, XLS/XLSX, or TXT document up to the size limit."""
    data = await file.read()
    record = await upload_document(
        db,
        gateway,
        identity,
        filename=file.filename or "document",
        mime_type=file.content_type or "application/octet-stream",
        data=data,
    )
    return UploadResult(
        file_id=record.id,
        status=record.status,
        original_filename=record.original_filename,
        size_bytes=record.size_bytes,
        mime_type=record.mime_type,
    )


@router.get("/files/{file_id}/url", response_model=SignedUrl)
async def signed_file_url(
    file_id: uuid.UUID,
    db: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_identity),
    gateway: ObjectStoreGateway = Depends(get_gateway),
) -> SignedUrl:
    """Time-limited download link for the original document."""
    record = await load_file(db, file_id, identity.company_id)
    ttl = settings.storage.signed_url_ttl
    url = await gateway.create_signed_url(record.storage_path, ttl)
    return SignedUrl(url=url, expires_in=ttl)


@router.post("/extractions", response_model=ExtractionOutcome)
async def start_extraction(
    request: ExtractionRequest,
    db: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_identity),
    gateway: ObjectStoreGateway = Depends(get_gateway),
    client: AIDocumentClient = Depends(get_ai_client),
    tracker: ProgressTracker = Depends(get_tracker),
) -> ExtractionOutcome:
    """Run one extraction attempt. Each call creates a new job."""
    return await run_extraction(
        db,
        request.file_id,
        identity,
        gateway=gateway,
        ai_client=client,
        tracker=tracker,
    )


@router.get("/extractions/status", response_model=ExtractionStatus)
async def extraction_status(
    file_id: uuid.UUID = Query(...),
    job_id: uuid.UUID | None = Query(default=None),
    db: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_identity),
    tracker: ProgressTracker = Depends(get_tracker),
) -> ExtractionStatus:
    """Idempotent status read for polling callers."""
    return await get_extraction_status(db, tracker, file_id, identity.company_id, job_id=job_id)


# ── Review & approval ────────────────────────────────────────────────


@router.get("/previews/{preview_id}/comparison", response_model=ComparisonOut)
async def preview_comparison(
    preview_id: uuid.UUID,
    db: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_identity),
) -> ComparisonOut:
    return await build_comparison(db, identity, preview_id)


@router.post("/approvals", response_model=ApprovalResult)
async def approve(
    request: ApprovalRequest,
    db: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_identity),
) -> ApprovalResult:
    """Commit a reviewed preview to its (re-derived) destination table."""
    return await approve_preview(db, identity, request)


@router.post("/previews/{preview_id}/reject", response_model=RejectionResult)
async def reject(
    preview_id: uuid.UUID,
    request: RejectionRequest,
    db: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_identity),
) -> RejectionResult:
    """Reject a whole preview with a mandatory reason."""
    return await reject_preview(db, identity, preview_id, request.reason)
