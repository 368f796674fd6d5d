"""SQLAlchemy ORM models for the extraction pipeline.

Import all models here so Alembic and Base.metadata.create_all() discover them.
"""

from __future__ import annotations

from src.models.approval_audit import ApprovalAuditEntry, ImmutableRecordError
from src.models.audit import AuditLog
from src.models.base import Base
from src.models.enums import (
    ApprovalAction,
    ChangeKind,
    CompanySize,
    DestinationTable,
    FileStatus,
    JobStatus,
    PreviewStatus,
    RecordStatus,
    ReviewStatus,
    WasteClass,
)
from src.models.extraction_job import ExtractionJob
from src.models.license import License, LicenseCondition
from src.models.preview import ExtractionPreview
from src.models.staging_item import StagingItem
from src.models.supplier import Supplier
from src.models.uploaded_file import UploadedFile
from src.models.waste_log import WasteLog

__all__ = [
    # Base
    "Base",
    # Pipeline models
    "UploadedFile",
    "ExtractionJob",
    "StagingItem",
    "ExtractionPreview",
    "ApprovalAuditEntry",
    "AuditLog",
    # Destination models
    "WasteLog",
    "Supplier",
    "License",
    "LicenseCondition",
    # Errors
    "ImmutableRecordError",
    # Enums
    "FileStatus",
    "JobStatus",
    "ReviewStatus",
    "PreviewStatus",
    "ChangeKind",
    "ApprovalAction",
    "DestinationTable",
    "WasteClass",
    "CompanySize",
    "RecordStatus",
]
