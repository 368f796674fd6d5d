"""ExtractionPreview model: the reviewable projection of one extraction job.

Created together with the job's staging items. Resolved previews
(approved / rejected) are never re-opened.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import DateTime, Float, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TenantMixin, TimestampMixin
from src.models.enums import PreviewStatus

if TYPE_CHECKING:
    from src.models.extraction_job import ExtractionJob


class ExtractionPreview(TenantMixin, TimestampMixin, Base):
    """Grouped field bag of one job, as declared by the extraction."""

    __tablename__ = "extraction_previews"

    extraction_job_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("extraction_jobs.id"), nullable=False, unique=True
    )

    target_table: Mapped[str | None] = mapped_column(String(50), comment="Destination declared by the model")
    extracted_fields: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    confidence_scores: Mapped[dict[str, float]] = mapped_column(JSONB, nullable=False, default=dict)
    document_confidence: Mapped[float] = mapped_column(Float, nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PreviewStatus.PENDING.value, index=True)
    resolved_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    rejection_reason: Mapped[str | None] = mapped_column(Text)

    job: Mapped[ExtractionJob] = relationship("ExtractionJob", back_populates="preview")

    @property
    def is_resolved(self) -> bool:
        return self.status != PreviewStatus.PENDING.value

    def __repr__(self) -> str:
        return f"<ExtractionPreview id={self.id} table={self.target_table} status={self.status}>"
