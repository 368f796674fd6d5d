"""ApprovalAuditEntry model: write-once record of every approval decision.

This is the ground truth for "what did a human actually authorize". The
mapper refuses UPDATE and DELETE flushes on it.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import Float, Integer, String, Text, event
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base, TenantMixin, TimestampMixin


class ImmutableRecordError(RuntimeError):
    """Raised when code tries to modify or delete a write-once row."""


class ApprovalAuditEntry(TenantMixin, TimestampMixin, Base):
    """Immutable approval / rejection decision."""

    __tablename__ = "approval_audit"

    preview_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    file_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), index=True)
    approved_by: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)

    action: Mapped[str] = mapped_column(String(20), nullable=False, comment="ApprovalAction enum value")
    original_data: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    edited_data: Mapped[dict[str, Any] | None] = mapped_column(JSONB)
    field_diff: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False, default=list)
    excluded_fields: Mapped[list[str]] = mapped_column(
        JSONB, nullable=False, default=list, comment="Fields and rows the reviewer declined"
    )
    confidence_scores: Mapped[dict[str, float]] = mapped_column(JSONB, nullable=False, default=dict)

    target_table: Mapped[str | None] = mapped_column(String(50), comment="Destination actually used")
    records_written: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    duplicates_filtered: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notes: Mapped[str | None] = mapped_column(Text)
    processing_time_seconds: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    def __repr__(self) -> str:
        return f"<ApprovalAuditEntry preview={self.preview_id} action={self.action} written={self.records_written}>"


@event.listens_for(ApprovalAuditEntry, "before_update")
def _refuse_update(mapper: Any, connection: Any, target: ApprovalAuditEntry) -> None:
    raise ImmutableRecordError(f"Approval audit entry {target.id} is write-once")


@event.listens_for(ApprovalAuditEntry, "before_delete")
def _refuse_delete(mapper: Any, connection: Any, target: ApprovalAuditEntry) -> None:
    raise ImmutableRecordError(f"Approval audit entry {target.id} cannot be deleted")
