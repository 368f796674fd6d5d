"""UploadedFile model: one row per uploaded document.

Never deleted automatically: kept for audit and reprocessing. Only `status`
and `last_error` change after creation, along FILE_TRANSITIONS.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TenantMixin, TimestampMixin
from src.models.enums import FileStatus

if TYPE_CHECKING:
    from src.models.extraction_job import ExtractionJob

# Allowed in-place transitions. Every failed attempt ends in failed, including
# a re-run of an extracted file; a failed file recovers through a new attempt.
FILE_TRANSITIONS: dict[FileStatus, frozenset[FileStatus]] = {
    FileStatus.UPLOADED: frozenset({FileStatus.PARSED, FileStatus.FAILED}),
    FileStatus.PARSED: frozenset({FileStatus.EXTRACTED, FileStatus.FAILED}),
    FileStatus.FAILED: frozenset({FileStatus.PARSED, FileStatus.EXTRACTED, FileStatus.FAILED}),
    FileStatus.EXTRACTED: frozenset({FileStatus.EXTRACTED, FileStatus.FAILED}),
}


class UploadedFile(TenantMixin, TimestampMixin, Base):
    """A document uploaded for extraction."""

    __tablename__ = "uploaded_files"

    uploaded_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), comment="Identity that uploaded")
    original_filename: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_path: Mapped[str] = mapped_column(Text, nullable=False, comment="Object store path")
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=FileStatus.UPLOADED.value, index=True)
    last_error: Mapped[str | None] = mapped_column(Text)

    jobs: Mapped[list[ExtractionJob]] = relationship(
        "ExtractionJob", back_populates="file", order_by="ExtractionJob.created_at"
    )

    def transition(self, target: FileStatus, error: str | None = None) -> bool:
        """Move to `target` if allowed. Returns False (and changes nothing) otherwise."""
        current = FileStatus(self.status)
        if target not in FILE_TRANSITIONS[current]:
            return False
        if error is not None:
            self.last_error = error
        self.status = target.value
        if target == FileStatus.EXTRACTED:
            self.last_error = None
        return True

    def __repr__(self) -> str:
        return f"<UploadedFile id={self.id} name={self.original_filename} status={self.status}>"
