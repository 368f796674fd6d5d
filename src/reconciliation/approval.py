"""Approval service: turn a reviewed preview into destination records.

Flow (one unit of work, committed by the request session):
    1. Load the preview (tenant-scoped); its job must be completed
    2. Merge the reviewer's edits over the extracted field bag
    3. Re-derive the destination with the target classifier
    4. Transform and validate (every issue collected, nothing written on failure)
    5. Drop candidates whose natural key already exists
    6. Insert, resolve the preview and its staging items
    7. Write exactly one approval audit entry
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.audit.approval import ROW_KEY, exclusion_diff, field_diff, record_decision
from src.audit.events import emit
from src.config import settings
from src.errors import (
    NotFound,
    PreviewNotReady,
    PreviewResolved,
    UnsupportedDestination,
    ValidationFailed,
)
from src.extraction.staging import get_job_items, resolve_job_items
from src.models.enums import ApprovalAction, JobStatus, PreviewStatus, ReviewStatus
from src.models.preview import ExtractionPreview
from src.reconciliation.classifier import classify_target
from src.reconciliation.dedup import fetch_existing_keys, filter_duplicates
from src.reconciliation.engine import find_current_record, reconcile
from src.reconciliation.transformers import TRANSFORMERS
from src.reconciliation.transformers.base import tag_row_positions
from src.reconciliation.transformers.validation import validate_records
from src.schemas.approval import (
    ApprovalRequest,
    ApprovalResult,
    ComparisonOut,
    FieldComparisonOut,
    Identity,
    RejectionResult,
)
from src.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)


async def load_preview(db: AsyncSession, company_id: uuid.UUID, preview_id: uuid.UUID) -> ExtractionPreview:
    """Fetch a preview with its job, or raise NotFound."""
    result = await db.execute(
        select(ExtractionPreview)
        .options(selectinload(ExtractionPreview.job))
        .where(
            ExtractionPreview.id == preview_id,
            ExtractionPreview.company_id == company_id,
        )
    )
    preview = result.scalar_one_or_none()
    if preview is None:
        raise NotFound("Preview not found.")
    return preview


def apply_exclusions(fields: dict[str, Any], excluded: list[str]) -> dict[str, Any]:
    """Remove declined fields. `conditions[2]` removes one row, `cnpj` a whole field."""
    result = dict(fields)
    rows: dict[str, set[int]] = {}
    for key in excluded:
        match = ROW_KEY.match(key)
        if match:
            rows.setdefault(match["field"], set()).add(int(match["index"]))
        else:
            result.pop(key, None)
    for name, indices in rows.items():
        value = result.get(name)
        if isinstance(value, list):
            result[name] = [row for i, row in enumerate(value) if i not in indices]
    return result


async def approve_preview(db: AsyncSession, identity: Identity, request: ApprovalRequest) -> ApprovalResult:
    """Commit a reviewed preview to its destination table.

    Re-approving an approved preview re-runs the whole path; deduplication
    makes it insert nothing and report every candidate as a duplicate.

    Raises:
        NotFound: unknown preview or owned by another tenant.
        PreviewResolved: the preview was rejected.
        PreviewNotReady: the extraction job has not completed.
        UnsupportedDestination: no destination could be resolved.
        ValidationFailed: transformed records break field rules (nothing written).
    """
    start = time.monotonic()
    preview = await load_preview(db, identity.company_id, request.preview_id)

    if preview.status == PreviewStatus.REJECTED.value:
        raise PreviewResolved("This preview was rejected and cannot be approved.")
    job = preview.job
    if job is None or job.status != JobStatus.COMPLETED.value:
        raise PreviewNotReady("The extraction for this preview has not completed.")

    original: dict[str, Any] = dict(preview.extracted_fields)
    merged = {**original, **(request.edited_data or {})}
    edits = field_diff(original, request.edited_data)
    removals = exclusion_diff(merged, request.excluded_fields)
    final = apply_exclusions(merged, request.excluded_fields)

    # Destination
    decision = classify_target(final, preview.target_table)
    if decision.overridden:
        logger.warning(
            "Destination reclassified for preview %s: %s -> %s (%s)",
            preview.id,
            decision.declared,
            decision.destination.value,
            decision.reason,
        )
        await emit(SystemEvent(
            event_type=EventType.TARGET_RECLASSIFIED,
            company_id=identity.company_id,
            subject_id=preview.id,
            actor_id=str(identity.user_id),
            data={
                "declared": decision.declared,
                "destination": decision.destination.value,
                "reason": decision.reason,
                "field_names": sorted(final),
            },
            source_module="reconciliation.approval",
        ))
    transformer = TRANSFORMERS.get(decision.destination)
    if transformer is None:
        raise UnsupportedDestination(f"Unsupported destination table: {decision.destination.value}")
    table = decision.destination.value

    # Transform + validate
    # Rows keep their original positions so generated keys survive exclusions
    candidates = apply_exclusions(tag_row_positions(merged), request.excluded_fields)
    records = transformer.transform(candidates, identity.company_id, preview.id)
    issues = validate_records(table, records, transformer.rules, transformer.checks)
    if issues:
        await emit(SystemEvent(
            event_type=EventType.APPROVAL_VALIDATION_FAILED,
            company_id=identity.company_id,
            subject_id=preview.id,
            actor_id=str(identity.user_id),
            data={"table": table, "issues": [str(issue) for issue in issues]},
            source_module="reconciliation.approval",
        ))
        raise ValidationFailed(
            f"Validation failed: {'; '.join(str(issue) for issue in issues)}",
            details=[issue.model_dump() for issue in issues],
        )
    if not records:
        logger.warning("No %s records could be built from preview %s", table, preview.id)

    # Deduplicate + insert
    existing = await fetch_existing_keys(
        db, transformer, identity.company_id, [k for k in map(transformer.natural_key, records) if k]
    )
    dedup = filter_duplicates(records, existing, transformer.natural_key)
    if dedup.filtered:
        logger.info("Filtered %d duplicate %s records for preview %s", dedup.filtered_count, table, preview.id)
        await emit(SystemEvent(
            event_type=EventType.DUPLICATES_FILTERED,
            company_id=identity.company_id,
            subject_id=preview.id,
            data={"table": table, "count": dedup.filtered_count},
            source_module="reconciliation.approval",
        ))

    rows = [transformer.to_model(record) for record in dedup.kept]
    if rows:
        db.add_all(rows)
        await db.flush()

    # Resolve preview + staging
    if preview.status == PreviewStatus.PENDING.value:
        preview.status = PreviewStatus.APPROVED.value
        preview.resolved_by = identity.user_id
        preview.resolved_at = datetime.now(timezone.utc)
    await resolve_job_items(db, job.id, ReviewStatus.APPROVED, excluded_fields=request.excluded_fields)

    # Audit
    changed = bool(edits or removals)
    action = ApprovalAction.EDITED if changed else ApprovalAction.APPROVED
    elapsed = time.monotonic() - start
    await record_decision(
        db,
        identity=identity,
        preview_id=preview.id,
        file_id=job.file_id,
        action=action,
        original_data=original,
        edited_data=final if changed else None,
        diff=edits + removals,
        excluded_fields=request.excluded_fields,
        confidence_scores=dict(preview.confidence_scores or {}),
        target_table=table,
        records_written=len(rows),
        duplicates_filtered=dedup.filtered_count,
        notes=request.approval_notes,
        processing_time_seconds=elapsed,
    )

    await emit(SystemEvent(
        event_type=EventType.PREVIEW_APPROVED,
        company_id=identity.company_id,
        subject_id=preview.id,
        actor_id=str(identity.user_id),
        data={
            "action": action.value,
            "table": table,
            "records_inserted": len(rows),
            "duplicates_filtered": dedup.filtered_count,
            "edited_fields_count": len(edits),
        },
        source_module="reconciliation.approval",
    ))
    logger.info(
        "Preview %s approved: table=%s inserted=%d duplicates=%d edited=%d",
        preview.id,
        table,
        len(rows),
        dedup.filtered_count,
        len(edits),
    )

    return ApprovalResult(
        preview_id=preview.id,
        records_inserted=len(rows),
        target_table=table,
        processing_time_seconds=round(elapsed, 3),
        edited_fields_count=len(edits),
        duplicates_filtered=dedup.filtered_count,
        reclassified_from=decision.declared if decision.overridden else None,
    )


async def reject_preview(
    db: AsyncSession,
    identity: Identity,
    preview_id: uuid.UUID,
    reason: str,
) -> RejectionResult:
    """Reject a whole preview. Staging rows are kept; no destination record is written."""
    reason = (reason or "").strip()
    if not reason:
        raise ValidationFailed("A rejection reason is required.")

    start = time.monotonic()
    preview = await load_preview(db, identity.company_id, preview_id)
    if preview.is_resolved:
        raise PreviewResolved(f"This preview is already {preview.status}.")

    preview.status = PreviewStatus.REJECTED.value
    preview.rejection_reason = reason
    preview.resolved_by = identity.user_id
    preview.resolved_at = datetime.now(timezone.utc)
    rejected = await resolve_job_items(db, preview.extraction_job_id, ReviewStatus.REJECTED)

    await record_decision(
        db,
        identity=identity,
        preview_id=preview.id,
        file_id=preview.job.file_id if preview.job is not None else None,
        action=ApprovalAction.REJECTED,
        original_data=dict(preview.extracted_fields),
        edited_data=None,
        diff=[],
        confidence_scores=dict(preview.confidence_scores or {}),
        target_table=preview.target_table,
        records_written=0,
        notes=reason,
        processing_time_seconds=time.monotonic() - start,
    )

    await emit(SystemEvent(
        event_type=EventType.PREVIEW_REJECTED,
        company_id=identity.company_id,
        subject_id=preview.id,
        actor_id=str(identity.user_id),
        data={"reason": reason, "staging_items_rejected": rejected},
        source_module="reconciliation.approval",
    ))
    logger.info("Preview %s rejected (%d staging items)", preview.id, rejected)

    return RejectionResult(preview_id=preview.id, staging_items_rejected=rejected)


async def build_comparison(db: AsyncSession, identity: Identity, preview_id: uuid.UUID) -> ComparisonOut:
    """Per-field comparison of a preview against the tenant's current entity."""
    preview = await load_preview(db, identity.company_id, preview_id)
    items = await get_job_items(db, preview.extraction_job_id)

    decision = classify_target(preview.extracted_fields, preview.target_table)
    current = await find_current_record(db, decision.destination, identity.company_id, preview.extracted_fields)
    comparison = reconcile(
        decision.destination.value,
        items,
        current,
        conflict_threshold=settings.pipeline.conflict_threshold,
        sensitive_fields=settings.pipeline.sensitive_fields,
    )
    comparison.accept_non_conflicting()

    return ComparisonOut(
        preview_id=preview.id,
        target_table=comparison.target_table,
        document_confidence=preview.document_confidence,
        has_current_record=comparison.has_current_record,
        fields=[
            FieldComparisonOut(
                field_name=c.field_name,
                row_index=c.row_index,
                extracted_value=c.extracted_value,
                current_value=c.current_value,
                confidence=c.confidence,
                change=c.change,
                source_snippet=c.source_snippet,
                accepted=c.accepted,
            )
            for c in comparison.fields
        ],
        summary=comparison.summary(),
    )
