"""StagingItem model: one candidate field or row awaiting human review.

Each item carries the literal snippet it was derived from and its own
confidence. Only `review_status` changes after insert, one way only.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TimestampMixin
from src.models.enums import ReviewStatus

if TYPE_CHECKING:
    from src.models.extraction_job import ExtractionJob


class StagingItem(TimestampMixin, Base):
    """A single extracted value with provenance and confidence."""

    __tablename__ = "staging_items"

    extraction_job_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("extraction_jobs.id"), nullable=False, index=True
    )

    # Repeating structures (conditions, waste entries, suppliers) get one row per element
    row_index: Mapped[int | None] = mapped_column(Integer)
    field_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    extracted_value: Mapped[str | None] = mapped_column(Text, comment="String-serialized value (JSON for rows)")
    source_snippet: Mapped[str | None] = mapped_column(Text, comment="Literal text the value was derived from")
    confidence: Mapped[float] = mapped_column(Float, nullable=False)

    review_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ReviewStatus.PENDING.value, index=True
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    job: Mapped[ExtractionJob] = relationship("ExtractionJob", back_populates="items")

    def __repr__(self) -> str:
        return (
            f"<StagingItem field={self.field_name} row={self.row_index} "
            f"confidence={self.confidence} status={self.review_status}>"
        )
