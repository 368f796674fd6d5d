"""ExtractionJob model: one row per extraction attempt against a file.

Append-only history: retries create new jobs, past attempts stay inspectable.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy import Float, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TenantMixin, TimestampMixin

if TYPE_CHECKING:
    from src.models.preview import ExtractionPreview
    from src.models.staging_item import StagingItem
    from src.models.uploaded_file import UploadedFile


class ExtractionJob(TenantMixin, TimestampMixin, Base):
    """One attempt to derive structured fields from one uploaded document."""

    __tablename__ = "extraction_jobs"

    file_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("uploaded_files.id"), nullable=False, index=True
    )

    model: Mapped[str] = mapped_column(String(100), nullable=False, comment="AI model identifier")
    schema_version: Mapped[str] = mapped_column(String(30), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False, comment="JobStatus enum value")

    quality_score: Mapped[float | None] = mapped_column(Float, comment="Overall model confidence 0.0-1.0")
    evidence_chars: Mapped[int | None] = mapped_column(Integer)
    declared_target_table: Mapped[str | None] = mapped_column(String(50), comment="Destination hinted by the model")

    raw_result: Mapped[dict[str, Any] | None] = mapped_column(JSONB, comment="Parsed structured result")
    raw_output: Mapped[str | None] = mapped_column(Text, comment="Unparseable model output, kept for forensics")

    file: Mapped[UploadedFile] = relationship("UploadedFile", back_populates="jobs")
    items: Mapped[list[StagingItem]] = relationship("StagingItem", back_populates="job")
    preview: Mapped[ExtractionPreview | None] = relationship("ExtractionPreview", back_populates="job", uselist=False)

    def __repr__(self) -> str:
        return f"<ExtractionJob id={self.id} file={self.file_id} status={self.status} score={self.quality_score}>"
