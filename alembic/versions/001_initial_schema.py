"""Initial schema: pipeline, audit, and destination tables.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from __future__ import annotations

from typing import Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, tuple[str, ...], None] = None
depends_on: Union[str, tuple[str, ...], None] = None


def _base_columns() -> list[sa.Column]:
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    # ── Standalone tables (no FKs) ─────────────────────────────────────

    op.create_table(
        "audit_log",
        sa.Column("event_type", sa.String(100), nullable=False, index=True),
        sa.Column("company_id", postgresql.UUID(as_uuid=True), index=True),
        sa.Column("subject_id", postgresql.UUID(as_uuid=True), index=True, comment="File, job, or preview the event is about"),
        sa.Column("actor_id", sa.String(100), comment="User ID or 'system'"),
        sa.Column("actor_role", sa.String(50), comment="user, system"),
        sa.Column("data", postgresql.JSONB(astext_type=sa.Text())),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "uploaded_files",
        sa.Column("company_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("uploaded_by", postgresql.UUID(as_uuid=True), comment="Identity that uploaded"),
        sa.Column("original_filename", sa.String(255), nullable=False),
        sa.Column("storage_path", sa.Text(), nullable=False, comment="Object store path"),
        sa.Column("mime_type", sa.String(100), nullable=False),
        sa.Column("size_bytes", sa.BigInteger(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, index=True),
        sa.Column("last_error", sa.Text()),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "approval_audit",
        sa.Column("company_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("preview_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("file_id", postgresql.UUID(as_uuid=True), index=True),
        sa.Column("approved_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("action", sa.String(20), nullable=False, comment="ApprovalAction enum value"),
        sa.Column("original_data", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("edited_data", postgresql.JSONB(astext_type=sa.Text())),
        sa.Column("field_diff", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column(
            "excluded_fields",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            comment="Fields and rows the reviewer declined",
        ),
        sa.Column("confidence_scores", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("target_table", sa.String(50), comment="Destination actually used"),
        sa.Column("records_written", sa.Integer(), nullable=False),
        sa.Column("duplicates_filtered", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("processing_time_seconds", sa.Float(), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
    )

    # ── Destination tables ─────────────────────────────────────────────

    op.create_table(
        "waste_logs",
        sa.Column("company_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("mtr_number", sa.String(50), nullable=False, index=True),
        sa.Column("waste_description", sa.Text(), nullable=False),
        sa.Column("waste_class", sa.String(10), nullable=False, comment="WasteClass enum value"),
        sa.Column("collection_date", sa.Date(), nullable=False),
        sa.Column("quantity", sa.Numeric(14, 3), nullable=False),
        sa.Column("unit", sa.String(20), nullable=False),
        sa.Column("destination_name", sa.String(255)),
        sa.Column("cost", sa.Numeric(14, 2)),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("source_preview_id", postgresql.UUID(as_uuid=True), index=True),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("company_id", "mtr_number", name="uq_waste_logs_company_mtr"),
    )

    op.create_table(
        "suppliers",
        sa.Column("company_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("cnpj", sa.String(20)),
        sa.Column("registration_key", sa.String(255), nullable=False, index=True),
        sa.Column("contact_person", sa.String(255)),
        sa.Column("email", sa.String(255)),
        sa.Column("phone", sa.String(50)),
        sa.Column("address", sa.Text()),
        sa.Column("supplier_type", sa.String(100)),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("source_preview_id", postgresql.UUID(as_uuid=True), index=True),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("company_id", "registration_key", name="uq_suppliers_company_key"),
    )

    op.create_table(
        "licenses",
        sa.Column("company_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("license_number", sa.String(100), nullable=False, index=True),
        sa.Column("issuing_agency", sa.String(255)),
        sa.Column("issue_date", sa.Date()),
        sa.Column("expiration_date", sa.Date()),
        sa.Column("company_name", sa.String(255)),
        sa.Column("cnpj", sa.String(20)),
        sa.Column("address", sa.Text()),
        sa.Column("activity_description", sa.Text()),
        sa.Column("company_size", sa.String(20)),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("source_preview_id", postgresql.UUID(as_uuid=True), index=True),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("company_id", "license_number", name="uq_licenses_company_number"),
    )

    # ── Tables with FKs ────────────────────────────────────────────────

    op.create_table(
        "license_conditions",
        sa.Column("license_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("licenses.id"), nullable=False, index=True),
        sa.Column("code", sa.String(50)),
        sa.Column("section_title", sa.String(255)),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("deadline_days", sa.Integer()),
        sa.Column("law_refs", postgresql.JSONB(astext_type=sa.Text())),
        sa.Column("source_snippet", sa.Text()),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "extraction_jobs",
        sa.Column("company_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column(
            "file_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("uploaded_files.id"), nullable=False, index=True
        ),
        sa.Column("model", sa.String(100), nullable=False, comment="AI model identifier"),
        sa.Column("schema_version", sa.String(30), nullable=False),
        sa.Column("status", sa.String(30), nullable=False, comment="JobStatus enum value"),
        sa.Column("quality_score", sa.Float(), comment="Overall model confidence 0.0-1.0"),
        sa.Column("evidence_chars", sa.Integer()),
        sa.Column("declared_target_table", sa.String(50), comment="Destination hinted by the model"),
        sa.Column("raw_result", postgresql.JSONB(astext_type=sa.Text()), comment="Parsed structured result"),
        sa.Column("raw_output", sa.Text(), comment="Unparseable model output, kept for forensics"),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "staging_items",
        sa.Column(
            "extraction_job_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("extraction_jobs.id"),
            nullable=False,
            index=True,
        ),
        sa.Column("row_index", sa.Integer()),
        sa.Column("field_name", sa.String(100), nullable=False, index=True),
        sa.Column("extracted_value", sa.Text(), comment="String-serialized value (JSON for rows)"),
        sa.Column("source_snippet", sa.Text(), comment="Literal text the value was derived from"),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("review_status", sa.String(20), nullable=False, index=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True)),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "extraction_previews",
        sa.Column("company_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column(
            "extraction_job_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("extraction_jobs.id"),
            nullable=False,
            unique=True,
        ),
        sa.Column("target_table", sa.String(50), comment="Destination declared by the model"),
        sa.Column("extracted_fields", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("confidence_scores", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("document_confidence", sa.Float(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, index=True),
        sa.Column("resolved_by", postgresql.UUID(as_uuid=True)),
        sa.Column("resolved_at", sa.DateTime(timezone=True)),
        sa.Column("rejection_reason", sa.Text()),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    # Drop in reverse dependency order
    op.drop_table("extraction_previews")
    op.drop_table("staging_items")
    op.drop_table("extraction_jobs")
    op.drop_table("license_conditions")
    op.drop_table("licenses")
    op.drop_table("suppliers")
    op.drop_table("waste_logs")
    op.drop_table("approval_audit")
    op.drop_table("uploaded_files")
    op.drop_table("audit_log")
