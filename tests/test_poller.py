"""Tests for the extraction status read model and caller-side polling."""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.errors import DownloadFailed, ExternalServiceFailed, NotFound, QualityGateFailed
from src.extraction.progress import ProgressTracker
from src.models.enums import FileStatus, JobStatus
from src.models.extraction_job import ExtractionJob
from src.schemas.status import CompletedStatus, FailedStatus, ProcessingStatus, QueuedStatus
from src.status.poller import backoff_delay, get_extraction_status, poll_until_terminal, run_with_retry


def _result(value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


def _db(*values) -> AsyncMock:
    db = AsyncMock()
    db.execute.side_effect = [_result(v) for v in values]
    return db


def _job(identity, file_id, status: JobStatus = JobStatus.COMPLETED) -> ExtractionJob:
    return ExtractionJob(
        id=uuid.uuid4(),
        company_id=identity.company_id,
        file_id=file_id,
        model="gpt-4o-mini",
        schema_version="2",
        status=status.value,
        quality_score=0.88,
    )


@pytest.fixture(autouse=True)
def mock_count():
    with patch("src.status.poller.count_job_items", new_callable=AsyncMock, return_value=7) as m:
        yield m


class TestGetExtractionStatus:
    @pytest.mark.asyncio()
    async def test_unknown_file(self, fake_redis, identity) -> None:
        with pytest.raises(NotFound):
            await get_extraction_status(_db(None), ProgressTracker(fake_redis), uuid.uuid4(), identity.company_id)

    @pytest.mark.asyncio()
    async def test_fresh_upload_queued(self, fake_redis, identity, file_factory) -> None:
        uploaded = file_factory()
        status = await get_extraction_status(
            _db(uploaded), ProgressTracker(fake_redis), uploaded.id, identity.company_id
        )
        assert isinstance(status, QueuedStatus)

    @pytest.mark.asyncio()
    async def test_live_snapshot_wins(self, fake_redis, identity, file_factory) -> None:
        uploaded = file_factory(status=FileStatus.FAILED.value, last_error="old")
        tracker = ProgressTracker(fake_redis)
        attempt = await tracker.start(uploaded.id)
        await tracker.advance(uploaded.id, attempt, 50, "Extracting fields")

        status = await get_extraction_status(_db(uploaded), tracker, uploaded.id, identity.company_id)
        assert status == ProcessingStatus(progress=50, message="Extracting fields")

    @pytest.mark.asyncio()
    async def test_extracted_reports_latest_job(self, fake_redis, identity, file_factory) -> None:
        uploaded = file_factory(status=FileStatus.EXTRACTED.value)
        job = _job(identity, uploaded.id)
        status = await get_extraction_status(
            _db(uploaded, job), ProgressTracker(fake_redis), uploaded.id, identity.company_id
        )
        assert status == CompletedStatus(extraction_id=job.id, items_count=7, quality_score=0.88)

    @pytest.mark.asyncio()
    async def test_failed_carries_message(self, fake_redis, identity, file_factory) -> None:
        uploaded = file_factory(status=FileStatus.FAILED.value, last_error="Document is illegible")
        status = await get_extraction_status(
            _db(uploaded), ProgressTracker(fake_redis), uploaded.id, identity.company_id
        )
        assert status == FailedStatus(message="Document is illegible")

    @pytest.mark.asyncio()
    async def test_specific_failed_job(self, fake_redis, identity, file_factory) -> None:
        uploaded = file_factory(status=FileStatus.EXTRACTED.value, last_error="schema mismatch")
        job = _job(identity, uploaded.id, JobStatus.SCHEMA_VIOLATION)
        status = await get_extraction_status(
            _db(uploaded, job), ProgressTracker(fake_redis), uploaded.id, identity.company_id, job_id=job.id
        )
        assert status == FailedStatus(message="schema mismatch")

    @pytest.mark.asyncio()
    async def test_unknown_job(self, fake_redis, identity, file_factory) -> None:
        uploaded = file_factory()
        with pytest.raises(NotFound):
            await get_extraction_status(
                _db(uploaded, None), ProgressTracker(fake_redis), uploaded.id, identity.company_id, job_id=uuid.uuid4()
            )

    @pytest.mark.asyncio()
    async def test_reading_never_writes(self, fake_redis, identity, file_factory) -> None:
        uploaded = file_factory(status=FileStatus.FAILED.value, last_error="x")
        for _ in range(3):
            await get_extraction_status(_db(uploaded), ProgressTracker(fake_redis), uploaded.id, identity.company_id)
        assert uploaded.status == FileStatus.FAILED.value
        assert fake_redis.store == {}


class TestPollUntilTerminal:
    @pytest.mark.asyncio()
    async def test_stops_at_terminal(self) -> None:
        fetch = AsyncMock(side_effect=[
            QueuedStatus(),
            ProcessingStatus(progress=30, message="Analysing"),
            FailedStatus(message="illegible"),
        ])
        status = await poll_until_terminal(fetch, interval=0)
        assert status == FailedStatus(message="illegible")
        assert fetch.await_count == 3

    @pytest.mark.asyncio()
    async def test_timeout(self) -> None:
        fetch = AsyncMock(return_value=QueuedStatus())
        with pytest.raises(TimeoutError):
            await poll_until_terminal(fetch, interval=0.01, timeout=0.0)


class TestBackoff:
    def test_schedule_and_cap(self) -> None:
        schedule = [5.0, 15.0, 45.0]
        assert [backoff_delay(n, schedule) for n in (1, 2, 3, 4, 9)] == [5.0, 15.0, 45.0, 45.0, 45.0]

    def test_empty_schedule(self) -> None:
        assert backoff_delay(1, []) == 0.0


class TestRunWithRetry:
    @pytest.mark.asyncio()
    async def test_retryable_then_success(self) -> None:
        sleep = AsyncMock()
        invoke = AsyncMock(side_effect=[DownloadFailed("x"), ExternalServiceFailed("y"), "ok"])
        result = await run_with_retry(invoke, backoff=[5.0, 15.0], max_retries=3, sleep=sleep)
        assert result == "ok"
        assert [c.args[0] for c in sleep.await_args_list] == [5.0, 15.0]

    @pytest.mark.asyncio()
    async def test_non_retryable_raised_immediately(self) -> None:
        sleep = AsyncMock()
        invoke = AsyncMock(side_effect=QualityGateFailed("illegible"))
        with pytest.raises(QualityGateFailed):
            await run_with_retry(invoke, backoff=[5.0], max_retries=3, sleep=sleep)
        assert invoke.await_count == 1
        sleep.assert_not_called()

    @pytest.mark.asyncio()
    async def test_gives_up_after_max_retries(self) -> None:
        sleep = AsyncMock()
        invoke = AsyncMock(side_effect=ExternalServiceFailed("down"))
        with pytest.raises(ExternalServiceFailed):
            await run_with_retry(invoke, backoff=[1.0], max_retries=2, sleep=sleep)
        assert invoke.await_count == 3
        assert sleep.await_count == 2
