"""Domain enums used across SQLAlchemy models and Pydantic schemas.

All enums use str mixin for JSON serialization; columns store the value.
"""

from __future__ import annotations

from enum import Enum


class FileStatus(str, Enum):
    """Lifecycle of an uploaded document."""

    UPLOADED = "uploaded"
    PARSED = "parsed"
    EXTRACTED = "extracted"
    FAILED = "failed"


class JobStatus(str, Enum):
    """Outcome of one extraction attempt."""

    COMPLETED = "completed"
    SCHEMA_VIOLATION = "schema_violation"  # recorded for forensics, never staged


class ReviewStatus(str, Enum):
    """Human decision on a staging item. approved/rejected are terminal."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PreviewStatus(str, Enum):
    """Resolution state of a reconciliation preview."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ChangeKind(str, Enum):
    """Per-field classification produced by the reconciliation engine."""

    NEW = "new"
    MODIFIED = "modified"
    CONFLICT = "conflict"
    UNCHANGED = "unchanged"


class ApprovalAction(str, Enum):
    """Action recorded on an approval audit entry."""

    APPROVED = "approved"
    EDITED = "edited"
    REJECTED = "rejected"


class DestinationTable(str, Enum):
    """Destination schemas that extracted data can be committed to."""

    WASTE_LOGS = "waste_logs"
    SUPPLIERS = "suppliers"
    LICENSES = "licenses"


class WasteClass(str, Enum):
    """Brazilian NBR 10004 waste hazard classes."""

    I = "I"  # noqa: E741  dangerous
    II_A = "II-A"  # non-inert
    II_B = "II-B"  # inert


class CompanySize(str, Enum):
    """Company size as declared on an environmental license."""

    MICRO = "micro"
    PEQUENO = "pequeno"
    MEDIO = "medio"
    GRANDE = "grande"


class RecordStatus(str, Enum):
    """Status assigned to destination rows created by the pipeline."""

    ACTIVE = "active"
