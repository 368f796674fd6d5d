"""SystemEvent schema: the core event type that flows through the pipeline.

Every stage emits a SystemEvent. Subscribers (the operational audit logger)
consume these events asynchronously.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """All event types emitted by the system."""

    # Upload boundary
    FILE_UPLOADED = "file.uploaded"
    UPLOAD_REJECTED = "file.upload_rejected"

    # Extraction
    EXTRACTION_STARTED = "extraction.started"
    EXTRACTION_COMPLETED = "extraction.completed"
    EXTRACTION_FAILED = "extraction.failed"
    QUALITY_GATE_FAILED = "extraction.quality_gate_failed"
    SCHEMA_VIOLATION = "extraction.schema_violation"
    STAGING_AUTO_APPROVED = "staging.auto_approved"

    # AI service
    AI_REQUEST = "ai.request"
    AI_RESPONSE = "ai.response"
    AI_ERROR = "ai.error"
    AI_FILE_CLEANUP_FAILED = "ai.file_cleanup_failed"

    # Review & approval
    TARGET_RECLASSIFIED = "review.target_reclassified"
    DUPLICATES_FILTERED = "review.duplicates_filtered"
    PREVIEW_APPROVED = "review.preview_approved"
    PREVIEW_REJECTED = "review.preview_rejected"
    APPROVAL_VALIDATION_FAILED = "review.validation_failed"

    # System
    SYSTEM_STARTUP = "system.startup"
    SYSTEM_SHUTDOWN = "system.shutdown"
    SYSTEM_ERROR = "system.error"


class SystemEvent(BaseModel):
    """Core event that flows through the pipeline.

    Immutable once created. Consumed by the AuditLogger, which writes it
    to the audit_log table.
    """

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    event_type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Context (optional: not every event has a tenant or subject)
    company_id: uuid.UUID | None = None
    subject_id: uuid.UUID | None = None
    actor_id: str | None = None
    actor_role: str | None = None

    # Flexible payload
    data: dict[str, Any] = Field(default_factory=dict)

    # Metadata
    source_module: str | None = Field(default=None, description="Module that emitted this event")

    model_config = {"frozen": True}
