"""Extraction invoker: one uploaded file in, one staged extraction job out.

Flow:
    1. Resolve the file (tenant-scoped)
    2. Download it from the object store
    3. Submit it to the AI service under a scoped remote copy
    4. Parse the answer against the extraction contract
    5. Apply the quality gate
    6. Persist job + staging items + preview in one flush, then commit

Failures before step 6 mark the file failed, store the user-facing message,
and commit that before raising, so the status poller can report it. Success
is committed before the progress snapshot is cleared as well. No
staging rows are ever written for a failed attempt.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.audit.events import emit
from src.config import settings
from src.errors import (
    DownloadFailed,
    ExternalServiceFailed,
    NotFound,
    QualityGateFailed,
    SchemaViolation,
)
from src.extraction.contract import INSTRUCTIONS, JSON_SCHEMA, SCHEMA_NAME, SCHEMA_VERSION
from src.extraction.parsing import ModelOutputError, parse_model_json
from src.extraction.progress import ProgressTracker
from src.extraction.quality import SERVICE_UNAVAILABLE_MESSAGE, evaluate_quality
from src.extraction.staging import (
    auto_approve_eligible,
    build_confidence_scores,
    build_field_bag,
    build_staging_items,
    transition_review_status,
)
from src.llm.client import AIDocumentClient
from src.models.enums import FileStatus, JobStatus, ReviewStatus
from src.models.extraction_job import ExtractionJob
from src.models.preview import ExtractionPreview
from src.models.uploaded_file import UploadedFile
from src.schemas.approval import ExtractionOutcome, Identity
from src.schemas.events import EventType, SystemEvent
from src.schemas.extraction import ExtractionPayload
from src.storage.gateway import ObjectStoreGateway

logger = logging.getLogger(__name__)

SCHEMA_VIOLATION_MESSAGE = "The AI service returned a result that does not match the extraction format."


async def load_file(db: AsyncSession, file_id: uuid.UUID, company_id: uuid.UUID) -> UploadedFile:
    """Fetch a file owned by the tenant, or raise NotFound."""
    result = await db.execute(
        select(UploadedFile).where(
            UploadedFile.id == file_id,
            UploadedFile.company_id == company_id,
        )
    )
    record = result.scalar_one_or_none()
    if record is None:
        raise NotFound("File not found.")
    return record


async def run_extraction(
    db: AsyncSession,
    file_id: uuid.UUID,
    identity: Identity,
    *,
    gateway: ObjectStoreGateway,
    ai_client: AIDocumentClient,
    tracker: ProgressTracker,
) -> ExtractionOutcome:
    """Extract structured candidate fields from one uploaded file.

    Every call is a new attempt and, on success, a new ExtractionJob.

    Raises:
        NotFound: unknown file or owned by another tenant.
        DownloadFailed: object store unavailable (retryable).
        ExternalServiceFailed: AI service unavailable (retryable).
        SchemaViolation: answer does not match the contract.
        QualityGateFailed: confidence or evidence below policy thresholds.
    """
    uploaded = await load_file(db, file_id, identity.company_id)
    attempt = await tracker.start(file_id)

    try:
        await emit(SystemEvent(
            event_type=EventType.EXTRACTION_STARTED,
            company_id=identity.company_id,
            subject_id=file_id,
            actor_id=str(identity.user_id),
            data={"model": ai_client.model, "schema_version": SCHEMA_VERSION},
            source_module="extraction.invoker",
        ))

        # 1. Download
        await tracker.advance(file_id, attempt, 10, "Downloading document")
        try:
            data = await gateway.download(uploaded.storage_path)
        except DownloadFailed as exc:
            await _fail(db, uploaded, identity, exc.user_message, stage="download")
            raise

        uploaded.transition(FileStatus.PARSED)

        # 2. AI call, remote copy removed on every path
        await tracker.advance(file_id, attempt, 30, "Analysing document")
        try:
            async with ai_client.uploaded_file(uploaded.original_filename, data, uploaded.mime_type) as remote_id:
                await tracker.advance(file_id, attempt, 50, "Extracting fields")
                raw = await ai_client.complete_structured(remote_id, INSTRUCTIONS, SCHEMA_NAME, JSON_SCHEMA)
        except ExternalServiceFailed:
            await _fail(db, uploaded, identity, SERVICE_UNAVAILABLE_MESSAGE, stage="ai_service")
            raise

        # 3. Contract
        await tracker.advance(file_id, attempt, 70, "Validating result")
        try:
            payload = parse_model_json(raw, ExtractionPayload)
        except ModelOutputError as exc:
            db.add(ExtractionJob(
                company_id=identity.company_id,
                file_id=file_id,
                model=ai_client.model,
                schema_version=SCHEMA_VERSION,
                status=JobStatus.SCHEMA_VIOLATION.value,
                raw_output=exc.raw_output,
            ))
            await emit(SystemEvent(
                event_type=EventType.SCHEMA_VIOLATION,
                company_id=identity.company_id,
                subject_id=file_id,
                data={"error": str(exc), "output_chars": len(exc.raw_output)},
                source_module="extraction.invoker",
            ))
            await _fail(db, uploaded, identity, SCHEMA_VIOLATION_MESSAGE, stage="schema")
            raise SchemaViolation(SCHEMA_VIOLATION_MESSAGE, details=[str(exc)]) from exc

        # 4. Quality gate
        report = evaluate_quality(
            payload,
            settings.pipeline.min_confidence,
            settings.pipeline.min_evidence_chars,
        )
        if not report.passed:
            await emit(SystemEvent(
                event_type=EventType.QUALITY_GATE_FAILED,
                company_id=identity.company_id,
                subject_id=file_id,
                data={
                    "confidence": report.confidence,
                    "evidence_chars": report.evidence_chars,
                    "violations": report.violations,
                },
                source_module="extraction.invoker",
            ))
            await _fail(db, uploaded, identity, report.message, stage="quality_gate")
            raise QualityGateFailed(report.message, details=report.violations)

        # 5. Persist job, staging items, and preview together
        await tracker.advance(file_id, attempt, 85, "Saving extracted fields")
        job = ExtractionJob(
            id=uuid.uuid4(),
            company_id=identity.company_id,
            file_id=file_id,
            model=ai_client.model,
            schema_version=SCHEMA_VERSION,
            status=JobStatus.COMPLETED.value,
            quality_score=payload.confidence,
            evidence_chars=payload.evidence_chars,
            declared_target_table=payload.target_table,
            raw_result=payload.model_dump(mode="json", by_alias=True, exclude_none=True),
        )
        items = build_staging_items(job.id, payload)
        preview = ExtractionPreview(
            company_id=identity.company_id,
            extraction_job_id=job.id,
            target_table=payload.target_table,
            extracted_fields=build_field_bag(items),
            confidence_scores=build_confidence_scores(items),
            document_confidence=payload.confidence,
        )
        db.add_all([job, *items, preview])
        uploaded.transition(FileStatus.EXTRACTED)
        await db.flush()

        auto_approved = 0
        if settings.pipeline.auto_approve_enabled:
            for item in auto_approve_eligible(items, settings.pipeline.auto_approve_threshold):
                if transition_review_status(item, ReviewStatus.APPROVED):
                    auto_approved += 1
            if auto_approved:
                await emit(SystemEvent(
                    event_type=EventType.STAGING_AUTO_APPROVED,
                    company_id=identity.company_id,
                    subject_id=job.id,
                    data={"count": auto_approved, "threshold": settings.pipeline.auto_approve_threshold},
                    source_module="extraction.invoker",
                ))

        # Committed before the snapshot is cleared so pollers never see the pre-run row
        await db.commit()
        await tracker.advance(file_id, attempt, 100, "Extraction completed")
        await emit(SystemEvent(
            event_type=EventType.EXTRACTION_COMPLETED,
            company_id=identity.company_id,
            subject_id=file_id,
            actor_id=str(identity.user_id),
            data={
                "extraction_id": str(job.id),
                "confidence": payload.confidence,
                "evidence_chars": payload.evidence_chars,
                "items_count": len(items),
                "auto_approved": auto_approved,
                "declared_target_table": payload.target_table,
            },
            source_module="extraction.invoker",
        ))
        logger.info(
            "Extraction completed: file=%s job=%s confidence=%.2f evidence=%d items=%d",
            file_id,
            job.id,
            payload.confidence,
            payload.evidence_chars,
            len(items),
        )

        return ExtractionOutcome(
            extraction_id=job.id,
            confidence=payload.confidence,
            evidence_chars=payload.evidence_chars,
            items_count=len(items),
        )

    finally:
        await tracker.finish(file_id, attempt)


async def _fail(
    db: AsyncSession,
    uploaded: UploadedFile,
    identity: Identity,
    message: str,
    *,
    stage: str,
) -> None:
    """Record the failure on the file row and commit it before the error propagates."""
    uploaded.transition(FileStatus.FAILED, error=message)
    await db.commit()
    await emit(SystemEvent(
        event_type=EventType.EXTRACTION_FAILED,
        company_id=identity.company_id,
        subject_id=uploaded.id,
        actor_id=str(identity.user_id),
        data={"stage": stage, "error": message},
        source_module="extraction.invoker",
    ))
    logger.warning("Extraction failed at %s for file %s: %s", stage, uploaded.id, message)
