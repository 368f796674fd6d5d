"""Request/response schemas for the upload, extraction, and approval endpoints."""

from __future__ import annotations

import uuid
from typing import Any

from pydantic import BaseModel, Field, field_validator

from src.models.enums import ChangeKind

# ── Identity (external collaborator) ─────────────────────────────────


class Identity(BaseModel):
    """Authenticated caller plus the tenant it acts for."""

    model_config = {"frozen": True}

    user_id: uuid.UUID
    company_id: uuid.UUID


# ── Upload & extraction ──────────────────────────────────────────────


class UploadResult(BaseModel):
    file_id: uuid.UUID
    status: str
    original_filename: str
    size_bytes: int
    mime_type: str


class ExtractionRequest(BaseModel):
    file_id: uuid.UUID


class ExtractionOutcome(BaseModel):
    """Successful extraction response."""

    ok: bool = True
    extraction_id: uuid.UUID
    confidence: float
    evidence_chars: int
    items_count: int = 0


class SignedUrl(BaseModel):
    url: str
    expires_in: int


# ── Review & approval ────────────────────────────────────────────────


class ApprovalRequest(BaseModel):
    preview_id: uuid.UUID
    edited_data: dict[str, Any] | None = None
    approval_notes: str | None = None
    excluded_fields: list[str] = Field(
        default_factory=list, description="Fields the reviewer declined (e.g. unresolved conflicts)"
    )


class ApprovalResult(BaseModel):
    success: bool = True
    preview_id: uuid.UUID
    records_inserted: int
    target_table: str
    processing_time_seconds: float
    edited_fields_count: int
    duplicates_filtered: int = 0
    reclassified_from: str | None = None


class RejectionRequest(BaseModel):
    reason: str

    @field_validator("reason")
    @classmethod
    def _reason_required(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            msg = "A rejection reason is required"
            raise ValueError(msg)
        return stripped


class RejectionResult(BaseModel):
    success: bool = True
    preview_id: uuid.UUID
    staging_items_rejected: int


class FieldComparisonOut(BaseModel):
    field_name: str
    row_index: int | None = None
    extracted_value: Any = None
    current_value: Any = None
    confidence: float
    change: ChangeKind
    source_snippet: str | None = None
    accepted: bool


class ComparisonOut(BaseModel):
    preview_id: uuid.UUID
    target_table: str
    document_confidence: float
    has_current_record: bool
    fields: list[FieldComparisonOut]
    summary: dict[str, int]
