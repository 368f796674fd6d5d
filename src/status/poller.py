"""Extraction status: server-side read model and caller-side polling helpers.

`get_extraction_status` is a pure read: calling it any number of times never
changes state. `poll_until_terminal` and `run_with_retry` run on the caller
side; every retry is a fresh invocation and therefore a fresh job.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Awaitable, Callable, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.errors import NotFound, PipelineError
from src.extraction.progress import ProgressTracker
from src.extraction.staging import count_job_items
from src.models.enums import FileStatus, JobStatus
from src.models.extraction_job import ExtractionJob
from src.models.uploaded_file import UploadedFile
from src.schemas.status import (
    CompletedStatus,
    ExtractionStatus,
    FailedStatus,
    ProcessingStatus,
    QueuedStatus,
    is_terminal,
)

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_MESSAGE = "Extraction failed."


# ── Server side ──────────────────────────────────────────────────────


async def get_extraction_status(
    db: AsyncSession,
    tracker: ProgressTracker,
    file_id: uuid.UUID,
    company_id: uuid.UUID,
    job_id: uuid.UUID | None = None,
) -> ExtractionStatus:
    """Current status of the latest (or a specific) extraction of a file.

    Order of precedence: a live progress snapshot, then the file's terminal
    status, then queued.
    """
    result = await db.execute(
        select(UploadedFile).where(
            UploadedFile.id == file_id,
            UploadedFile.company_id == company_id,
        )
    )
    uploaded = result.scalar_one_or_none()
    if uploaded is None:
        raise NotFound("File not found.")

    if job_id is not None:
        job = await _load_job(db, company_id, file_id, job_id=job_id)
        if job is None:
            raise NotFound("Extraction not found.")
        if job.status == JobStatus.COMPLETED.value:
            return await _completed(db, job)
        return FailedStatus(message=uploaded.last_error or DEFAULT_FAILURE_MESSAGE)

    snapshot = await tracker.read(file_id)
    if snapshot is not None:
        return ProcessingStatus(progress=snapshot.progress, message=snapshot.message)

    if uploaded.status == FileStatus.EXTRACTED.value:
        job = await _load_job(db, company_id, file_id)
        if job is not None:
            return await _completed(db, job)

    if uploaded.status == FileStatus.FAILED.value:
        return FailedStatus(message=uploaded.last_error or DEFAULT_FAILURE_MESSAGE)

    return QueuedStatus()


async def _load_job(
    db: AsyncSession,
    company_id: uuid.UUID,
    file_id: uuid.UUID,
    *,
    job_id: uuid.UUID | None = None,
) -> ExtractionJob | None:
    query = select(ExtractionJob).where(
        ExtractionJob.file_id == file_id,
        ExtractionJob.company_id == company_id,
    )
    if job_id is not None:
        query = query.where(ExtractionJob.id == job_id)
    else:
        query = query.where(ExtractionJob.status == JobStatus.COMPLETED.value)
    result = await db.execute(query.order_by(ExtractionJob.created_at.desc()).limit(1))
    return result.scalar_one_or_none()


async def _completed(db: AsyncSession, job: ExtractionJob) -> CompletedStatus:
    return CompletedStatus(
        extraction_id=job.id,
        items_count=await count_job_items(db, job.id),
        quality_score=job.quality_score or 0.0,
    )


# ── Caller side ──────────────────────────────────────────────────────


async def poll_until_terminal(
    fetch: Callable[[], Awaitable[ExtractionStatus]],
    interval: float | None = None,
    timeout: float | None = None,
) -> ExtractionStatus:
    """Poll `fetch` until it reports completed or failed.

    Only the latest status is kept. Cancelling the awaiting task stops the
    loop at the next await point.

    Raises:
        TimeoutError: `timeout` seconds elapsed without a terminal status.
    """
    interval = settings.pipeline.poll_interval_seconds if interval is None else interval
    deadline = None if timeout is None else time.monotonic() + timeout

    while True:
        status = await fetch()
        if is_terminal(status):
            return status
        if deadline is not None and time.monotonic() + interval > deadline:
            raise TimeoutError(f"Extraction still {status.state} after {timeout}s")
        await asyncio.sleep(interval)


def backoff_delay(attempt: int, schedule: Sequence[float]) -> float:
    """Delay before retry number `attempt` (1-based), capped at the last step."""
    if not schedule:
        return 0.0
    return float(schedule[min(attempt, len(schedule)) - 1])


async def run_with_retry[T](
    invoke: Callable[[], Awaitable[T]],
    backoff: Sequence[float] | None = None,
    max_retries: int | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Call `invoke`, retrying only retryable pipeline errors.

    Non-retryable errors (schema violation, quality gate, validation) are
    raised immediately. After `max_retries` retries the last error is raised.
    """
    backoff = settings.pipeline.retry_backoff_seconds if backoff is None else backoff
    max_retries = settings.pipeline.max_retries if max_retries is None else max_retries

    attempt = 0
    while True:
        try:
            return await invoke()
        except PipelineError as exc:
            if not exc.retryable or attempt >= max_retries:
                raise
            attempt += 1
            delay = backoff_delay(attempt, backoff)
            logger.warning(
                "Retryable %s (attempt %d/%d), retrying in %.0fs",
                exc.error_type,
                attempt,
                max_retries,
                delay,
            )
            await sleep(delay)
